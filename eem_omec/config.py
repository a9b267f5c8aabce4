"""Application configuration with validation."""
from typing import Optional, Literal
from functools import lru_cache
from pathlib import Path
from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


PROJECT_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings loaded from the environment / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "EEM-OMEC Scoring Engine"
    APP_VERSION: str = "1.0.0"
    APP_ENV: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = False
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "json"

    # API
    API_V1_PREFIX: str = "/api/v1"

    # Rubric
    RUBRIC_CSV_PATH: Path = Field(
        default=PROJECT_ROOT / "data" / "calculo_eem_omec.csv",
        description="CSV file holding one scoring rule per row",
    )
    NUMERIC_TIERS_PATH: Optional[Path] = Field(
        default=None,
        description="Optional JSON file overriding the numeric tier table",
    )

    # KoboToolbox
    KOBO_BASE_URL: str = "https://kf.kobotoolbox.org/api/v2"
    KOBO_FORM_ID: str = ""
    KOBO_API_TOKEN: Optional[SecretStr] = None
    KOBO_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0, le=300)
    KOBO_USER_AGENT: str = "EEM-OMECS/1.0"
    KOBO_PAGE_SIZE: int = Field(default=50, ge=1, le=30000)

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"
    CACHE_ENABLED: bool = True
    CACHE_TTL_RESULTS: int = Field(default=3600, ge=1)  # 1 hour

    @field_validator("KOBO_BASE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Ensure production has the settings it cannot run without."""
        if self.APP_ENV == "production":
            if self.DEBUG:
                raise ValueError("DEBUG must be False in production")
            if self.KOBO_API_TOKEN is None:
                raise ValueError("KOBO_API_TOKEN is required in production")
            if not self.KOBO_FORM_ID:
                raise ValueError("KOBO_FORM_ID is required in production")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
