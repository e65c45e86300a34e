from enum import StrEnum, auto

class ServiceType(StrEnum):
    EXPERIENCE = auto()
    STRATEGY = auto()


class Scope(StrEnum):
    STRATEGY = "strategy"
    DESIGN = "design"
    SOLUTIONS = "solutions"
    TECH = "tech"
    MA = "m&a"


SCOPE_TITLES = {
    Scope.STRATEGY: "Strategy & Business",
    Scope.DESIGN: "Design",
    Scope.SOLUTIONS: "Solutions",
    Scope.TECH: "Technology",
    Scope.MA: "M&A e Finance",
}


class Language(StrEnum):
    PT = auto()
    EN = auto()
    ES = auto()


class QuestionId(StrEnum):
    RECOMMEND_SCORE = auto()
    RECOMMEND_REASON = auto()
    REHIRE_SCORE = auto()
    TESTIMONIAL = auto()
    CAN_PUBLISH = auto()


class QuestionKind(StrEnum):
    SCORE = auto()
    TEXT = auto()
    BOOLEAN = auto()


QUESTION_KINDS = {
    QuestionId.RECOMMEND_SCORE: QuestionKind.SCORE,
    QuestionId.RECOMMEND_REASON: QuestionKind.TEXT,
    QuestionId.REHIRE_SCORE: QuestionKind.SCORE,
    QuestionId.TESTIMONIAL: QuestionKind.TEXT,
    QuestionId.CAN_PUBLISH: QuestionKind.BOOLEAN,
}


class SurveyStage(StrEnum):
    WELCOME = auto()
    RECOMMEND = auto()
    REASON = auto()
    REHIRE = auto()
    TESTIMONIAL = auto()
    PUBLISH = auto()
    SUMMARY = auto()
    THANK_YOU = auto()
    CODE_USED = auto()


TERMINAL_STAGES = frozenset({SurveyStage.THANK_YOU, SurveyStage.CODE_USED})


class CodeLifecycle(StrEnum):
    FRESH = auto()
    COMPLETED = auto()


class CodeStatus(StrEnum):
    PENDING = auto()
    IN_PROGRESS = auto()
    COMPLETED = auto()


class NPSCategory(StrEnum):
    PROMOTER = auto()
    NEUTRAL = auto()
    DETRACTOR = auto()
