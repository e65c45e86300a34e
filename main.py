import asyncio
import logging
import sys

from aiogram import Bot, Dispatcher

from npsbot.config.settings import settings
from npsbot.infrastructure.cache.factory import make_fsm_storage
from npsbot.infrastructure.database.db_helper import engine, session_factory
from npsbot.infrastructure.repositories.sqlalchemy import (
    SQLAlchemySurveyCodeRepository,
    SQLAlchemySurveyAnswerRepository,
    SQLAlchemyProjectRepository
)
from npsbot.presentation.handlers import admin, survey
from npsbot.presentation.middlewares.error_handler import ErrorHandlingMiddleware
from npsbot.presentation.middlewares.services import ServicesMiddleware
from npsbot.use_cases.backup import BackupService
from npsbot.use_cases.code_registry import CodeRegistry
from npsbot.use_cases.reporting import ReportService
from npsbot.use_cases.response_collector import ResponseCollector
from npsbot.use_cases.survey import SurveyStateMachine

async def main():
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )

    bot = Bot(token=settings.BOT_TOKEN.get_secret_value())
    dp = Dispatcher(storage=make_fsm_storage())

    code_repo = SQLAlchemySurveyCodeRepository(session_factory)
    answer_repo = SQLAlchemySurveyAnswerRepository(session_factory)
    project_repo = SQLAlchemyProjectRepository(session_factory)

    registry = CodeRegistry(
        code_repo,
        length=settings.CODE_LENGTH,
        alphabet=settings.CODE_ALPHABET,
        max_attempts=settings.CODE_MAX_ATTEMPTS
    )
    collector = ResponseCollector(code_repo, answer_repo)

    # Register Middlewares
    dp.update.outer_middleware(ErrorHandlingMiddleware())
    dp.update.middleware(ServicesMiddleware(
        registry=registry,
        survey_machine=SurveyStateMachine(registry, collector),
        report_service=ReportService(code_repo, answer_repo),
        backup_service=BackupService(session_factory),
        project_repo=project_repo
    ))

    # Admin first: its buttons must win over free-text survey answers
    dp.include_router(admin.router)
    dp.include_router(survey.router)

    logging.info("Starting NPS survey bot...")
    try:
        await bot.delete_webhook(drop_pending_updates=True)
        await dp.start_polling(bot)
    finally:
        await engine.dispose()

if __name__ == "__main__":
    try:
        if sys.platform == "win32":
            asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        logging.info("Bot stopped!")
