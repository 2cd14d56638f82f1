from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    # Database
    database_url: str | None = Field(default=None, alias="DATABASE_URL")
    # Langfuse tracing; all three keys are needed to enable it
    langfuse_public_key: str | None = Field(default=None, alias="LANGFUSE_PUBLIC_KEY")
    langfuse_secret_key: str | None = Field(default=None, alias="LANGFUSE_SECRET_KEY")
    langfuse_host: str | None = Field(default=None, alias="LANGFUSE_HOST")
    # Recording workers (terminal log, message log, screenshots)
    recording_failure_policy: Literal["continue", "escalate"] = Field(
        default="continue", alias="RECORDING_FAILURE_POLICY"
    )
    recording_failure_threshold: int = Field(default=3, alias="RECORDING_FAILURE_THRESHOLD")
    recording_max_retries: int = Field(default=3, alias="RECORDING_MAX_RETRIES")
    recording_retry_delay: float = Field(default=0.5, alias="RECORDING_RETRY_DELAY")
    development_mode: bool = Field(default=False, alias="DEVELOPMENT_MODE")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def langfuse_enabled(self) -> bool:
        return all([self.langfuse_public_key, self.langfuse_secret_key, self.langfuse_host])

    @property
    def sqlalchemy_database_url(self) -> str:
        """Return SQLAlchemy-compatible database URL, with a local default.

        Default: sqlite:///./redflow.db
        """
        if self.database_url and self.database_url.strip():
            return self.database_url
        return "sqlite:///./redflow.db"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]


def is_development_mode() -> bool:
    """Return True only if DEVELOPMENT_MODE=true is set."""
    try:
        return bool(get_settings().development_mode)
    except Exception:
        return False
