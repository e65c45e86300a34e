import io
import logging
import pandas as pd
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from npsbot.infrastructure.database.models import Company, Project, SurveyCode, SurveyAnswer

logger = logging.getLogger(__name__)

class BackupService:
    # Parents first, so the sheets read in the same order a restore would insert them
    MODELS = [
        (Company, "companies"),
        (Project, "projects"),
        (SurveyCode, "survey_codes"),
        (SurveyAnswer, "survey_answers"),
    ]

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create_backup(self) -> bytes:
        """
        Dumps all survey tables to an Excel file and returns the bytes.
        """
        output = io.BytesIO()
        writer = pd.ExcelWriter(output, engine='openpyxl')

        async with self.session_factory() as session:
            for model, sheet_name in self.MODELS:
                stmt = text(f"SELECT * FROM {model.__tablename__}")
                result = await session.execute(stmt)
                rows = result.fetchall()
                keys = list(result.keys())

                if rows:
                    df = pd.DataFrame([dict(zip(keys, row)) for row in rows])

                    # Excel cannot hold timezone-aware datetimes; strings keep the exact value
                    for col in df.columns:
                        if pd.api.types.is_datetime64_any_dtype(df[col]):
                            df[col] = df[col].astype(str)

                    df.to_excel(writer, sheet_name=sheet_name, index=False)
                else:
                    pd.DataFrame(columns=[c.name for c in model.__table__.columns]).to_excel(writer, sheet_name=sheet_name, index=False)
                logger.info(f"Backed up {len(rows)} rows from {sheet_name}")

        writer.close()
        output.seek(0)
        return output.getvalue()
