"""
Configuration settings for the cadence scheduling core.

Uses Pydantic Settings for environment variable management with .env file support.
Every numeric range below mirrors what the engines accept, so bad values
are rejected here before an engine ever sees them.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from cadence.study.review_scheduler import ReviewPolicy
from cadence.study.session_timer import CycleConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CADENCE_",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default=f"sqlite:///{Path.home() / '.cadence' / 'state.db'}",
        description="SQLAlchemy connection string for the state store",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # Clock
    # ========================================
    timezone: str = Field(
        default="UTC",
        description="IANA zone used for calendar-day scheduling (e.g. America/Sao_Paulo)",
    )

    # ========================================
    # Flashcards (SM-2 review policy)
    # ========================================
    starting_ease: float = Field(default=2.5, gt=1.0, le=5.0)
    minimum_ease: float = Field(default=1.3, gt=0.0, le=5.0)
    again_ease_penalty: float = Field(default=0.8, ge=0.0, le=2.0)
    easy_bonus_days: int = Field(
        default=2,
        ge=0,
        le=10,
        description="Extra days added to the interval on an 'easy' review",
    )
    hard_penalty_days: int = Field(
        default=1,
        ge=0,
        le=5,
        description="Days removed from the interval on a 'hard' review",
    )
    first_interval_days: int = Field(default=1, ge=1)
    second_interval_days: int = Field(default=6, ge=1)
    mastery_repetitions: int = Field(default=5, ge=1)
    mastery_interval_days: int = Field(default=21, ge=1)
    cards_per_session: int = Field(
        default=20,
        ge=1,
        le=100,
        description="Maximum new cards introduced per study queue",
    )

    # ========================================
    # Focus Mode (Pomodoro)
    # ========================================
    focus_minutes: int = Field(default=25, ge=1, le=90)
    short_break_minutes: int = Field(default=5, ge=1, le=30)
    long_break_minutes: int = Field(default=15, ge=1, le=60)
    sessions_before_long_break: int = Field(default=4, ge=2, le=10)
    auto_start_break: bool = False
    auto_start_focus: bool = False

    # ========================================
    # Notifications
    # ========================================
    sound_enabled: bool = Field(
        default=True,
        description="Ring the terminal bell when a session completes",
    )
    vibration_enabled: bool = Field(
        default=True,
        description="Forwarded to notifiers that can vibrate",
    )

    def review_policy(self) -> ReviewPolicy:
        """Build the SM-2 policy (raises InvalidPolicy on inconsistent bounds)."""
        return ReviewPolicy(
            starting_ease=self.starting_ease,
            minimum_ease=self.minimum_ease,
            again_ease_penalty=self.again_ease_penalty,
            easy_bonus_days=self.easy_bonus_days,
            hard_penalty_days=self.hard_penalty_days,
            initial_steps=(self.first_interval_days, self.second_interval_days),
            mastery_repetitions=self.mastery_repetitions,
            mastery_interval_days=self.mastery_interval_days,
        )

    def cycle_config(self) -> CycleConfig:
        """Build the Pomodoro cycle configuration."""
        return CycleConfig(
            focus_minutes=self.focus_minutes,
            short_break_minutes=self.short_break_minutes,
            long_break_minutes=self.long_break_minutes,
            sessions_before_long_break=self.sessions_before_long_break,
            auto_start_break=self.auto_start_break,
            auto_start_focus=self.auto_start_focus,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
