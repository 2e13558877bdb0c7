from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database Connection (read-only Chinook store)
    DATABASE_URL: str = "sqlite:///chinook.db"

    # Report parameters
    REPORT_COUNTRY: str = "USA"
    GENRE_TOP_N: Optional[int] = None
    OTHER_MIN_GROUP_SIZE: int = 2

    # How invoices spanning several albums are surfaced
    MULTI_ALBUM_POLICY: Literal["warn", "mixed", "raise"] = "warn"

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
