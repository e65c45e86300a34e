from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from npsbot.infrastructure.database.models import Company, Project, SurveyAnswer, SurveyCode


class AbstractSurveyCodeRepository(ABC):
    @abstractmethod
    async def get_by_code(self, code: str) -> Optional[SurveyCode]:
        pass

    @abstractmethod
    async def code_exists(self, code: str) -> bool:
        pass

    @abstractmethod
    async def create_code(
        self,
        code: str,
        name: str,
        email: str,
        project_id: int,
        service_type: str,
        language: str,
        scopes: List[str],
        generated_at: datetime,
    ) -> SurveyCode:
        pass

    @abstractmethod
    async def mark_started(self, code: str, at: datetime) -> bool:
        """Set ``started_at`` only where it is still NULL. Returns True if this call set it."""

    @abstractmethod
    async def mark_completed(self, code: str, at: datetime) -> bool:
        """Set ``completed_at`` only where it is still NULL. Returns True if this call set it."""

    @abstractmethod
    async def get_all(self) -> List[SurveyCode]:
        pass


class AbstractSurveyAnswerRepository(ABC):
    @abstractmethod
    async def add_answer(self, survey_code_id: int, question_id: str, answer: str, timestamp: datetime) -> SurveyAnswer:
        pass

    @abstractmethod
    async def get_for_code(self, survey_code_id: int) -> List[SurveyAnswer]:
        pass

    @abstractmethod
    async def get_all(self) -> List[SurveyAnswer]:
        pass


class AbstractProjectRepository(ABC):
    @abstractmethod
    async def add_company(self, name: str, cnpj: str) -> Company:
        pass

    @abstractmethod
    async def add_project(self, company_id: int, name: str) -> Project:
        pass

    @abstractmethod
    async def get_project(self, project_id: int) -> Optional[Project]:
        pass

    @abstractmethod
    async def get_all_projects(self) -> List[Project]:
        pass
