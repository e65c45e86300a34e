from datetime import datetime
from typing import List, Optional
from sqlalchemy import JSON, String, Text, ForeignKey, DateTime, Integer, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.ext.asyncio import AsyncAttrs

from npsbot.infrastructure.database.db_helper import Base
from npsbot.domain.enums import Language

class CreatedAtMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

class Company(Base, AsyncAttrs, CreatedAtMixin):
    __tablename__ = "companies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String)
    cnpj: Mapped[str] = mapped_column(String)  # Brazilian company registration number

    projects = relationship("Project", back_populates="company")

class Project(Base, AsyncAttrs, CreatedAtMixin):
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(Integer, ForeignKey("companies.id"))
    name: Mapped[str] = mapped_column(String)

    company = relationship("Company", back_populates="projects")
    survey_codes = relationship("SurveyCode", back_populates="project")

class SurveyCode(Base, AsyncAttrs):
    __tablename__ = "survey_codes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    code: Mapped[str] = mapped_column(String, unique=True, index=True)

    name: Mapped[str] = mapped_column(String)
    email: Mapped[str] = mapped_column(String)
    project_id: Mapped[int] = mapped_column(Integer, ForeignKey("projects.id"))
    service_type: Mapped[str] = mapped_column(String)  # Stores value from ServiceType enum
    language: Mapped[str] = mapped_column(String, default=Language.PT)
    scopes: Mapped[List[str]] = mapped_column(JSON, default=list)

    generated_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())
    # One-way timestamps, only ever written through conditional updates
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    project = relationship("Project", back_populates="survey_codes")
    answers = relationship("SurveyAnswer", back_populates="survey_code")

class SurveyAnswer(Base, AsyncAttrs):
    __tablename__ = "survey_answers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    survey_code_id: Mapped[int] = mapped_column(Integer, ForeignKey("survey_codes.id"), index=True)
    question_id: Mapped[str] = mapped_column(String)
    answer: Mapped[str] = mapped_column(Text)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    survey_code = relationship("SurveyCode", back_populates="answers")
