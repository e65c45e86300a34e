import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

from npsbot.domain.entities import SurveySession
from npsbot.domain.enums import CodeLifecycle, QuestionId, SurveyStage, TERMINAL_STAGES
from npsbot.domain.exceptions import (
    CodeAlreadyCompleted,
    InvalidTransitionError,
    StepValidationError,
    SurveyCompletionError,
    TerminalStageError,
)
from npsbot.use_cases.code_registry import CodeRegistry, lifecycle_of, normalize_code
from npsbot.use_cases.response_collector import ResponseCollector

logger = logging.getLogger(__name__)

MIN_SCORE = 1
MAX_SCORE = 10

TRUE_WORDS = ("true", "yes")
FALSE_WORDS = ("false", "no")


def validate_score(stage: SurveyStage, value: Any) -> int:
    if isinstance(value, bool):
        raise StepValidationError(stage, "Please pick a score from 1 to 10.")
    if isinstance(value, str):
        value = value.strip()
        if not value.isdecimal():
            raise StepValidationError(stage, "Please pick a score from 1 to 10.")
        value = int(value)
    if not isinstance(value, int) or not MIN_SCORE <= value <= MAX_SCORE:
        raise StepValidationError(stage, "Please pick a score from 1 to 10.")
    return value


def validate_text(stage: SurveyStage, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise StepValidationError(stage, "This answer cannot be empty.")
    return value.strip()


def validate_choice(stage: SurveyStage, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_WORDS:
            return True
        if lowered in FALSE_WORDS:
            return False
    raise StepValidationError(stage, "Please answer yes or no.")


@dataclass(frozen=True)
class StageDescriptor:
    stage: SurveyStage
    question_id: Optional[QuestionId] = None
    validate: Optional[Callable[[SurveyStage, Any], Any]] = None


# Forward order of the flow. CODE_USED is out of band and never listed here.
STAGES: Tuple[StageDescriptor, ...] = (
    StageDescriptor(SurveyStage.WELCOME),
    StageDescriptor(SurveyStage.RECOMMEND, QuestionId.RECOMMEND_SCORE, validate_score),
    StageDescriptor(SurveyStage.REASON, QuestionId.RECOMMEND_REASON, validate_text),
    StageDescriptor(SurveyStage.REHIRE, QuestionId.REHIRE_SCORE, validate_score),
    StageDescriptor(SurveyStage.TESTIMONIAL, QuestionId.TESTIMONIAL, validate_text),
    StageDescriptor(SurveyStage.PUBLISH, QuestionId.CAN_PUBLISH, validate_choice),
    StageDescriptor(SurveyStage.SUMMARY),
    StageDescriptor(SurveyStage.THANK_YOU),
)

_INDEX = {descriptor.stage: idx for idx, descriptor in enumerate(STAGES)}
QUESTION_STAGES = tuple(d for d in STAGES if d.question_id is not None)


def descriptor_for(stage: SurveyStage) -> StageDescriptor:
    return STAGES[_INDEX[stage]]


def progress(stage: SurveyStage) -> Tuple[int, int]:
    """(current question number, number of questions); 0 before the first question."""
    total = len(QUESTION_STAGES)
    if stage == SurveyStage.CODE_USED:
        return 0, total
    answered_before = sum(1 for d in QUESTION_STAGES if _INDEX[d.stage] < _INDEX[stage])
    if descriptor_for(stage).question_id is not None:
        return answered_before + 1, total
    return answered_before, total


class SurveyStateMachine:
    def __init__(self, registry: CodeRegistry, collector: ResponseCollector):
        self.registry = registry
        self.collector = collector

    async def enter(self, code: str) -> SurveySession:
        """
        Starts or resumes a survey for ``code``.

        Same path for deep links and typed codes. CodeNotFound propagates to
        the caller; a completed code always lands on CODE_USED.
        """
        code = normalize_code(code)
        survey_code = await self.registry.validate(code)
        if lifecycle_of(survey_code) == CodeLifecycle.COMPLETED:
            logger.info(f"Code {code} already completed, routing to code_used")
            return SurveySession(code=code, stage=SurveyStage.CODE_USED)
        return SurveySession(code=code, stage=SurveyStage.WELCOME)

    async def advance(self, session: SurveySession, value: Any = None) -> SurveySession:
        if session.stage in TERMINAL_STAGES:
            raise TerminalStageError(f"Stage {session.stage} is terminal")

        if self.collector.is_closed(session.code):
            return await self._close(session)

        descriptor = descriptor_for(session.stage)
        if session.stage == SurveyStage.WELCOME:
            await self._activate(session.code)
        elif session.stage == SurveyStage.SUMMARY:
            if not await self._submit(session):
                return await self._close(session)
        else:
            answer = descriptor.validate(session.stage, value)
            session.answers[descriptor.question_id.value] = answer
            self.collector.record_later(session.code, descriptor.question_id, answer)

        session.stage = STAGES[_INDEX[session.stage] + 1].stage
        if session.stage in TERMINAL_STAGES:
            await self.collector.forget(session.code)
        return session

    async def back(self, session: SurveySession) -> SurveySession:
        if session.stage in TERMINAL_STAGES or session.stage == SurveyStage.WELCOME:
            raise InvalidTransitionError(f"Cannot go back from {session.stage}")
        session.stage = STAGES[_INDEX[session.stage] - 1].stage
        return session

    async def _activate(self, code: str) -> None:
        try:
            await self.registry.activate(code)
        except Exception as e:
            logger.error(f"Activation failed for code {code}: {e}", exc_info=True)

    async def _close(self, session: SurveySession) -> SurveySession:
        # Someone else completed the code; this respondent's answers were not all kept
        logger.warning(f"Code {session.code} was completed elsewhere, routing to code_used")
        session.stage = SurveyStage.CODE_USED
        await self.collector.forget(session.code)
        return session

    async def _submit(self, session: SurveySession) -> bool:
        """Flushes and completes. False when the code had already been completed by someone else."""
        try:
            await self.collector.flush(session.code)
            return await self.registry.try_complete(session.code)
        except CodeAlreadyCompleted:
            return False
        except Exception as e:
            logger.error(f"Completion failed for code {session.code}: {e}", exc_info=True)
            raise SurveyCompletionError(session.code, e) from e
