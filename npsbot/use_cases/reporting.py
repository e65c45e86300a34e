import io
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

from openpyxl import Workbook
from openpyxl.styles import Font, Alignment

from npsbot.domain.entities import Respondent, SegmentResult
from npsbot.domain.enums import CodeStatus, NPSCategory, QuestionId, QUESTION_KINDS
from npsbot.domain.exceptions import CodeNotFound
from npsbot.domain.repositories import AbstractSurveyAnswerRepository, AbstractSurveyCodeRepository
from npsbot.infrastructure.database.models import SurveyAnswer, SurveyCode
from npsbot.use_cases.code_registry import normalize_code, status_of
from npsbot.use_cases.nps import classify, extract_score, segment, segment_by
from npsbot.use_cases.response_collector import decode_answer

logger = logging.getLogger(__name__)

EXPORT_QUESTIONS = [
    QuestionId.RECOMMEND_SCORE,
    QuestionId.RECOMMEND_REASON,
    QuestionId.REHIRE_SCORE,
    QuestionId.TESTIMONIAL,
    QuestionId.CAN_PUBLISH,
]


@dataclass
class NPSReport:
    recommend: SegmentResult
    rehire: SegmentResult
    by_service_type: Dict[str, SegmentResult] = field(default_factory=dict)
    by_scope: Dict[str, SegmentResult] = field(default_factory=dict)


@dataclass
class CodeDetails:
    survey_code: SurveyCode
    status: CodeStatus
    timeline: List[SurveyAnswer]
    answers: Dict[str, Any]
    category: Optional[NPSCategory]
    duration: Optional[timedelta] = None


def latest_answers(rows: List[SurveyAnswer]) -> Dict[str, str]:
    """Collapses the answer log to the newest value per question. Rows must be in timestamp order."""
    latest: Dict[str, str] = {}
    for row in rows:
        latest[row.question_id] = row.answer
    return latest


def time_spent(survey_code: SurveyCode) -> Optional[timedelta]:
    if survey_code.started_at is None or survey_code.completed_at is None:
        return None
    return survey_code.completed_at - survey_code.started_at


def to_respondent(survey_code: SurveyCode, rows: List[SurveyAnswer]) -> Respondent:
    return Respondent(
        code=survey_code.code,
        name=survey_code.name,
        email=survey_code.email,
        service_type=survey_code.service_type,
        language=survey_code.language,
        scopes=list(survey_code.scopes or []),
        project_name=survey_code.project.name if survey_code.project else None,
        status=status_of(survey_code),
        answers=latest_answers(rows),
    )


class ReportService:
    def __init__(self, code_repo: AbstractSurveyCodeRepository, answer_repo: AbstractSurveyAnswerRepository):
        self.code_repo = code_repo
        self.answer_repo = answer_repo

    async def respondents(self) -> List[Respondent]:
        codes = await self.code_repo.get_all()
        rows_by_code: Dict[int, List[SurveyAnswer]] = {}
        for row in await self.answer_repo.get_all():
            rows_by_code.setdefault(row.survey_code_id, []).append(row)
        return [to_respondent(c, rows_by_code.get(c.id, [])) for c in codes]

    async def nps_report(self) -> NPSReport:
        respondents = await self.respondents()
        everyone = lambda r: True
        report = NPSReport(
            recommend=segment(respondents, everyone, QuestionId.RECOMMEND_SCORE),
            rehire=segment(respondents, everyone, QuestionId.REHIRE_SCORE),
            by_service_type=segment_by(respondents, lambda r: [r.service_type], QuestionId.RECOMMEND_SCORE),
            by_scope=segment_by(respondents, lambda r: r.scopes, QuestionId.RECOMMEND_SCORE),
        )
        logger.info(f"Built NPS report over {len(respondents)} codes, {report.recommend.total} scored")
        return report

    async def list_codes(self) -> List[Tuple[SurveyCode, CodeStatus]]:
        return [(c, status_of(c)) for c in await self.code_repo.get_all()]

    async def code_details(self, code: str) -> CodeDetails:
        survey_code = await self.code_repo.get_by_code(normalize_code(code))
        if survey_code is None:
            raise CodeNotFound(code)
        timeline = await self.answer_repo.get_for_code(survey_code.id)
        latest = latest_answers(timeline)
        answers = {
            question_id: decode_answer(raw, QUESTION_KINDS[question_id])
            for question_id, raw in latest.items()
            if question_id in QUESTION_KINDS
        }
        score = extract_score(latest.get(QuestionId.RECOMMEND_SCORE))
        return CodeDetails(
            survey_code=survey_code,
            status=status_of(survey_code),
            timeline=timeline,
            answers=answers,
            category=classify(score) if score is not None else None,
            duration=time_spent(survey_code),
        )

    async def export_workbook(self) -> bytes:
        """One row per code with its metadata, latest answers and NPS category, as .xlsx bytes."""
        respondents = await self.respondents()

        wb = Workbook()
        ws = wb.active
        ws.title = "Responses"

        headers = ["Code", "Name", "Email", "Project", "Service type", "Language", "Scopes", "Status"]
        headers += [str(q) for q in EXPORT_QUESTIONS]
        headers.append("Category")
        ws.append(headers)

        for cell in ws[1]:
            cell.font = Font(bold=True)
            cell.alignment = Alignment(horizontal='center')

        for r in respondents:
            score = extract_score(r.answers.get(QuestionId.RECOMMEND_SCORE))
            ws.append(
                [
                    r.code,
                    r.name,
                    r.email,
                    r.project_name or "N/A",
                    r.service_type,
                    r.language,
                    ", ".join(r.scopes),
                    str(r.status),
                ]
                + [r.answers.get(q, "") for q in EXPORT_QUESTIONS]
                + [classify(score).value if score is not None else ""]
            )

        output = io.BytesIO()
        wb.save(output)
        output.seek(0)
        return output.getvalue()
