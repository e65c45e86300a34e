"""Shared fixtures: a throwaway SQLite database per test and the core services on top of it."""

import asyncio
import os

# Settings are read at import time; give them harmless values before any npsbot import
os.environ.setdefault("BOT_TOKEN", "123456:TEST-TOKEN")
os.environ.setdefault("ADMIN_IDS", "[1]")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from npsbot.infrastructure.database import models  # noqa: F401
from npsbot.infrastructure.database.db_helper import Base
from npsbot.infrastructure.repositories.sqlalchemy import (
    SQLAlchemyProjectRepository,
    SQLAlchemySurveyAnswerRepository,
    SQLAlchemySurveyCodeRepository,
)
from npsbot.use_cases.code_registry import CodeRegistry
from npsbot.use_cases.response_collector import ResponseCollector
from npsbot.use_cases.survey import SurveyStateMachine


class FakeClock:
    """Returns a strictly increasing time, one second per call."""

    def __init__(self, start: datetime = datetime(2025, 3, 1, 9, 0, 0)):
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'nps_test.sqlite3'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    await engine.dispose()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def code_repo(session_factory):
    return SQLAlchemySurveyCodeRepository(session_factory)


@pytest.fixture
def answer_repo(session_factory):
    return SQLAlchemySurveyAnswerRepository(session_factory)


@pytest.fixture
def project_repo(session_factory):
    return SQLAlchemyProjectRepository(session_factory)


@pytest.fixture
async def project(project_repo):
    company = await project_repo.add_company(name="ABC Corp", cnpj="12.345.678/0001-90")
    return await project_repo.add_project(company_id=company.id, name="Website relaunch")


@pytest.fixture
def registry(code_repo, clock):
    return CodeRegistry(code_repo, clock=clock)


@pytest.fixture
async def collector(code_repo, answer_repo, clock):
    collector = ResponseCollector(code_repo, answer_repo, clock=clock)
    yield collector
    # let background writes finish before the database goes away
    pending = [task for tasks in collector._pending.values() for task in tasks]
    await asyncio.gather(*pending)


@pytest.fixture
def machine(registry, collector):
    return SurveyStateMachine(registry, collector)


@pytest.fixture
def make_code(code_repo, project, clock):
    """Creates a survey code row with a chosen token."""

    async def _make(code: str = "ABC12345", service_type: str = "experience", scopes=None, name: str = "João Silva"):
        return await code_repo.create_code(
            code=code,
            name=name,
            email=f"{code.lower()}@example.com",
            project_id=project.id,
            service_type=service_type,
            language="pt",
            scopes=scopes or [],
            generated_at=clock(),
        )

    return _make
