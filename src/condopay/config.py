"""Runtime settings read from CONDOPAY_* environment variables."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PRIMARY_RATE_URL = "https://ve.dolarapi.com/v1/dolares/oficial"
DEFAULT_SECONDARY_RATE_URL = "https://dolarapi.com/v1/dolares/bolivar"


class Settings(BaseSettings):
    """Process-wide configuration.

    The database path and log level are plain click options (with
    ``CONDOPAY_DB_PATH`` and ``CONDOPAY_LOG_LEVEL`` envvars) and live there.
    """

    # Receipts
    evidence_dir: Path = Path.home() / ".condopay" / "evidence"

    # Exchange rate feeds
    rate_primary_url: str = DEFAULT_PRIMARY_RATE_URL
    rate_secondary_url: str = DEFAULT_SECONDARY_RATE_URL
    rate_ttl_seconds: int = Field(default=3600, ge=0)
    rate_timeout_seconds: int = Field(default=8, gt=0)

    # Validation workflow
    validation_attempts: int = Field(default=3, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="CONDOPAY_",
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )
