from datetime import datetime
from typing import List, Optional
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from npsbot.domain.repositories import (
    AbstractSurveyCodeRepository,
    AbstractSurveyAnswerRepository,
    AbstractProjectRepository
)
from npsbot.infrastructure.database.models import Company, Project, SurveyCode, SurveyAnswer

# Every method opens its own short-lived session, so the repositories can be
# shared by handlers and by background writes that outlive a handler.

class SQLAlchemySurveyCodeRepository(AbstractSurveyCodeRepository):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_by_code(self, code: str) -> Optional[SurveyCode]:
        async with self.session_factory() as session:
            stmt = select(SurveyCode).where(SurveyCode.code == code).options(selectinload(SurveyCode.project))
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def code_exists(self, code: str) -> bool:
        async with self.session_factory() as session:
            stmt = select(func.count()).select_from(SurveyCode).where(SurveyCode.code == code)
            return (await session.scalar(stmt)) > 0

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
        async with self.session_factory() as session:
            survey_code = SurveyCode(
                code=code,
                name=name,
                email=email,
                project_id=project_id,
                service_type=service_type,
                language=language,
                scopes=list(scopes),
                generated_at=generated_at,
            )
            session.add(survey_code)
            await session.commit()
            await session.refresh(survey_code)
            return survey_code

    async def mark_started(self, code: str, at: datetime) -> bool:
        async with self.session_factory() as session:
            stmt = update(SurveyCode).where(
                SurveyCode.code == code,
                SurveyCode.started_at.is_(None)
            ).values(started_at=at)
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount == 1

    async def mark_completed(self, code: str, at: datetime) -> bool:
        async with self.session_factory() as session:
            stmt = update(SurveyCode).where(
                SurveyCode.code == code,
                SurveyCode.completed_at.is_(None)
            ).values(
                completed_at=at,
                # completion implies a start, even if activation never got through
                started_at=func.coalesce(SurveyCode.started_at, at)
            )
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount == 1

    async def get_all(self) -> List[SurveyCode]:
        async with self.session_factory() as session:
            stmt = select(SurveyCode).options(selectinload(SurveyCode.project)).order_by(SurveyCode.generated_at.desc())
            result = await session.execute(stmt)
            return list(result.scalars().all())

class SQLAlchemySurveyAnswerRepository(AbstractSurveyAnswerRepository):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def add_answer(self, survey_code_id: int, question_id: str, answer: str, timestamp: datetime) -> SurveyAnswer:
        async with self.session_factory() as session:
            row = SurveyAnswer(
                survey_code_id=survey_code_id,
                question_id=question_id,
                answer=answer,
                timestamp=timestamp
            )
            session.add(row)
            await session.commit()
            return row

    async def get_for_code(self, survey_code_id: int) -> List[SurveyAnswer]:
        async with self.session_factory() as session:
            stmt = select(SurveyAnswer).where(
                SurveyAnswer.survey_code_id == survey_code_id
            ).order_by(SurveyAnswer.timestamp, SurveyAnswer.id)
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get_all(self) -> List[SurveyAnswer]:
        async with self.session_factory() as session:
            stmt = select(SurveyAnswer).order_by(SurveyAnswer.timestamp, SurveyAnswer.id)
            result = await session.execute(stmt)
            return list(result.scalars().all())

class SQLAlchemyProjectRepository(AbstractProjectRepository):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def add_company(self, name: str, cnpj: str) -> Company:
        async with self.session_factory() as session:
            company = Company(name=name, cnpj=cnpj)
            session.add(company)
            await session.commit()
            return company

    async def add_project(self, company_id: int, name: str) -> Project:
        async with self.session_factory() as session:
            project = Project(company_id=company_id, name=name)
            session.add(project)
            await session.commit()
            return project

    async def get_project(self, project_id: int) -> Optional[Project]:
        async with self.session_factory() as session:
            stmt = select(Project).where(Project.id == project_id).options(selectinload(Project.company))
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def get_all_projects(self) -> List[Project]:
        async with self.session_factory() as session:
            stmt = select(Project).options(selectinload(Project.company)).order_by(Project.id)
            result = await session.execute(stmt)
            return list(result.scalars().all())
