import logging
import secrets
import string
from datetime import datetime
from typing import Callable, Iterable, Optional

from sqlalchemy.exc import IntegrityError

from npsbot.domain.enums import CodeLifecycle, CodeStatus, Language
from npsbot.domain.exceptions import CodeGenerationError, CodeNotFound
from npsbot.domain.repositories import AbstractSurveyCodeRepository
from npsbot.infrastructure.database.models import SurveyCode

logger = logging.getLogger(__name__)

DEFAULT_CODE_LENGTH = 8
DEFAULT_ALPHABET = string.ascii_uppercase + string.digits


def generate_code(length: int = DEFAULT_CODE_LENGTH, alphabet: str = DEFAULT_ALPHABET) -> str:
    if length <= 0 or not alphabet:
        raise ValueError("Code length and alphabet must be non-empty")
    return "".join(secrets.choice(alphabet) for _ in range(length))


def normalize_code(code: str) -> str:
    return code.strip().upper()


def lifecycle_of(survey_code: SurveyCode) -> CodeLifecycle:
    if survey_code.completed_at is not None:
        return CodeLifecycle.COMPLETED
    return CodeLifecycle.FRESH


def status_of(survey_code: SurveyCode) -> CodeStatus:
    if survey_code.completed_at is not None:
        return CodeStatus.COMPLETED
    if survey_code.started_at is not None:
        return CodeStatus.IN_PROGRESS
    return CodeStatus.PENDING


class CodeRegistry:
    def __init__(
        self,
        code_repo: AbstractSurveyCodeRepository,
        length: int = DEFAULT_CODE_LENGTH,
        alphabet: str = DEFAULT_ALPHABET,
        max_attempts: int = 5,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.code_repo = code_repo
        self.length = length
        self.alphabet = alphabet
        self.max_attempts = max_attempts
        self.clock = clock

    async def generate_unique(self) -> str:
        """
        Draws codes until one is not taken yet.

        Collisions are expected to be rare; each one is simply redrawn and
        rechecked. Gives up with CodeGenerationError after max_attempts.
        """
        for attempt in range(1, self.max_attempts + 1):
            code = generate_code(self.length, self.alphabet)
            if not await self.code_repo.code_exists(code):
                return code
            logger.warning(f"Generated code collided with an existing one (attempt {attempt})")
        raise CodeGenerationError(f"No unique code after {self.max_attempts} attempts")

    async def issue(
        self,
        name: str,
        email: str,
        project_id: int,
        service_type: str,
        language: str = Language.PT,
        scopes: Optional[Iterable[str]] = None,
    ) -> SurveyCode:
        for attempt in range(1, self.max_attempts + 1):
            code = await self.generate_unique()
            try:
                survey_code = await self.code_repo.create_code(
                    code=code,
                    name=name,
                    email=email,
                    project_id=project_id,
                    service_type=service_type,
                    language=language,
                    scopes=list(scopes or []),
                    generated_at=self.clock(),
                )
            except IntegrityError:
                # Another writer took the same code between check and insert
                logger.warning(f"Code {code} was taken concurrently, regenerating (attempt {attempt})")
                continue
            logger.info(f"Issued survey code {code} for project {project_id}")
            return survey_code
        raise CodeGenerationError(f"Could not store a unique code after {self.max_attempts} attempts")

    async def validate(self, code: str) -> SurveyCode:
        survey_code = await self.code_repo.get_by_code(normalize_code(code))
        if survey_code is None:
            raise CodeNotFound(code)
        return survey_code

    async def check_lifecycle(self, code: str) -> CodeLifecycle:
        return lifecycle_of(await self.validate(code))

    async def activate(self, code: str) -> datetime:
        """Sets started_at once; later calls return the stored value unchanged."""
        code = normalize_code(code)
        marked = await self.code_repo.mark_started(code, self.clock())
        survey_code = await self.validate(code)
        if marked:
            logger.info(f"Survey code {code} activated")
        return survey_code.started_at

    async def try_complete(self, code: str) -> bool:
        """Completes the code. False when it had already been completed before this call."""
        code = normalize_code(code)
        marked = await self.code_repo.mark_completed(code, self.clock())
        await self.validate(code)
        if marked:
            logger.info(f"Survey code {code} completed")
        else:
            logger.info(f"Survey code {code} was already completed")
        return marked

    async def complete(self, code: str) -> datetime:
        await self.try_complete(code)
        return (await self.validate(code)).completed_at
