# farmhub/config.py
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve to the project root (one level up from farmhub/)
BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """
    Application settings, read from FARMHUB_* environment variables
    (or a local .env file).
    """

    model_config = SettingsConfigDict(
        env_prefix="FARMHUB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    project_name: str = "Farmhub API"
    api_version: str = "1.0.0"
    database_url: str = Field(
        default=f"sqlite:///{(BASE_DIR / 'farms.db').as_posix()}",
        description="SQLAlchemy database URL",
    )
    log_level: str = "INFO"

    secret_key: str = Field(default="change_me", description="HMAC key for bearer tokens")
    access_token_expire_minutes: int = 60 * 24


settings = Settings()
