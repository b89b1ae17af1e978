"""
Centralized configuration management for flashstudy.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    DEFAULT_EASINESS_FACTOR,
    MAX_QUALITY,
    MIN_EASINESS_FACTOR,
    PASSING_QUALITY,
)
from .models import StudyMode
from .scheduler import SM2SchedulerConfig


class Settings(BaseSettings):
    """
    Defines library settings, loaded from environment variables or .env files.
    """

    model_config = SettingsConfigDict(
        env_prefix="FLASHSTUDY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Session defaults ---
    # FLASHSTUDY_DEFAULT_MODE=cram reviews whole decks by default.
    default_mode: StudyMode = StudyMode.STANDARD
    shuffle_by_default: bool = False

    # --- SM-2 tuning ---
    initial_easiness_factor: float = Field(
        default=DEFAULT_EASINESS_FACTOR, ge=MIN_EASINESS_FACTOR
    )
    min_easiness_factor: float = Field(
        default=MIN_EASINESS_FACTOR, ge=MIN_EASINESS_FACTOR
    )
    passing_quality: int = Field(default=PASSING_QUALITY, ge=0, le=MAX_QUALITY)

    def scheduler_config(self) -> SM2SchedulerConfig:
        return SM2SchedulerConfig(
            initial_easiness_factor=self.initial_easiness_factor,
            min_easiness_factor=self.min_easiness_factor,
            passing_quality=self.passing_quality,
        )


def get_settings() -> Settings:
    """Read settings fresh from the environment."""
    return Settings()
