import asyncio
import functools
import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set

from npsbot.domain.enums import QuestionKind
from npsbot.domain.exceptions import CodeAlreadyCompleted, CodeNotFound
from npsbot.domain.repositories import AbstractSurveyAnswerRepository, AbstractSurveyCodeRepository
from npsbot.infrastructure.database.models import SurveyAnswer
from npsbot.use_cases.code_registry import normalize_code

logger = logging.getLogger(__name__)


def encode_answer(value: Any) -> str:
    """Canonical string form of an answer; the collector itself never looks at types beyond this."""
    if value is None:
        raise ValueError("An answer cannot be None")
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def decode_answer(raw: Optional[str], kind: QuestionKind) -> Any:
    if raw is None:
        return None
    if kind == QuestionKind.SCORE:
        try:
            return int(raw.strip())
        except ValueError:
            return None
    if kind == QuestionKind.BOOLEAN:
        lowered = raw.strip().lower()
        if lowered in ("true", "false"):
            return lowered == "true"
        return None
    return raw


class ResponseCollector:
    def __init__(
        self,
        code_repo: AbstractSurveyCodeRepository,
        answer_repo: AbstractSurveyAnswerRepository,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.code_repo = code_repo
        self.answer_repo = answer_repo
        self.clock = clock
        self._pending: Dict[str, Set[asyncio.Task]] = {}
        # code -> question_id -> last value whose write failed
        self._failed: Dict[str, Dict[str, Any]] = {}
        self._closed: Set[str] = set()

    async def record(self, code: str, question_id: str, value: Any) -> SurveyAnswer:
        code = normalize_code(code)
        answer = encode_answer(value)
        survey_code = await self.code_repo.get_by_code(code)
        if survey_code is None:
            raise CodeNotFound(code)
        if survey_code.completed_at is not None:
            raise CodeAlreadyCompleted(code)
        row = await self.answer_repo.add_answer(survey_code.id, question_id, answer, self.clock())
        self._failed.get(code, {}).pop(question_id, None)
        return row

    def record_later(self, code: str, question_id: str, value: Any) -> asyncio.Task:
        """
        Schedules ``record`` without waiting for it.

        A failure is logged and kept, so ``flush`` can try the write again
        before the survey is completed. The caller's flow is never blocked.
        """
        code = normalize_code(code)
        task = asyncio.create_task(self._record_logged(code, question_id, value))
        self._pending.setdefault(code, set()).add(task)
        task.add_done_callback(functools.partial(self._discard, code))
        return task

    def _discard(self, code: str, task: asyncio.Task) -> None:
        tasks = self._pending.get(code)
        if tasks is None:
            return
        tasks.discard(task)
        if not tasks:
            del self._pending[code]

    async def _record_logged(self, code: str, question_id: str, value: Any) -> None:
        try:
            await self.record(code, question_id, value)
        except CodeAlreadyCompleted:
            logger.warning(f"Answer {question_id} for code {code} rejected, the code is already completed")
            self._closed.add(code)
        except Exception as e:
            logger.error(f"Failed to record answer {question_id} for code {code}: {e}", exc_info=True)
            self._failed.setdefault(code, {})[question_id] = value

    def has_failed_writes(self, code: str) -> bool:
        return bool(self._failed.get(normalize_code(code)))

    def is_closed(self, code: str) -> bool:
        """True once a write for ``code`` was rejected because the code is completed."""
        return normalize_code(code) in self._closed

    async def flush(self, code: str) -> None:
        """
        Waits for pending writes of ``code`` and retries the failed ones.

        Raises CodeAlreadyCompleted when any answer was rejected because the
        code got completed meanwhile; those answers are dropped.
        """
        code = normalize_code(code)
        pending = list(self._pending.get(code, ()))
        if pending:
            await asyncio.gather(*pending)

        failed = dict(self._failed.get(code, {}))
        for question_id, value in failed.items():
            logger.info(f"Retrying answer {question_id} for code {code}")
            try:
                await self.record(code, question_id, value)
            except CodeAlreadyCompleted:
                self._closed.add(code)
                break
        self._failed.pop(code, None)

        if code in self._closed:
            logger.warning(f"Code {code} was completed elsewhere, unsent answers were dropped")
            raise CodeAlreadyCompleted(code)

    async def forget(self, code: str) -> None:
        """Waits for writes still in flight, then drops the bookkeeping kept for ``code``."""
        code = normalize_code(code)
        pending = list(self._pending.get(code, ()))
        if pending:
            await asyncio.gather(*pending)
        self._failed.pop(code, None)
        self._closed.discard(code)

    async def fetch_all(self, code: str) -> List[SurveyAnswer]:
        code = normalize_code(code)
        survey_code = await self.code_repo.get_by_code(code)
        if survey_code is None:
            raise CodeNotFound(code)
        return await self.answer_repo.get_for_code(survey_code.id)
