import string
from typing import List, Optional

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_ignore_empty=True, extra='ignore')

    BOT_TOKEN: SecretStr
    ADMIN_IDS: List[int]

    DATABASE_URL: Optional[str] = None
    REDIS_URL: Optional[str] = None

    CODE_LENGTH: int = 8
    CODE_ALPHABET: str = string.ascii_uppercase + string.digits
    CODE_MAX_ATTEMPTS: int = 5

    LOG_LEVEL: str = "INFO"

    @property
    def database_url(self) -> str:
        return self.DATABASE_URL or "sqlite+aiosqlite:///./data/nps_survey.sqlite3"

settings = Settings()
