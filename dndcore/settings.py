"""World-level roll and advancement settings."""

from typing import Optional

from pydantic import BaseModel, Field

from dndcore.config import (
    DEFAULT_ABILITY_SCORE_CAP,
    DEFAULT_CRITICAL_MULTIPLIER,
    DEFAULT_MAX_LEVEL,
    DEFAULT_MULTIPLY_NUMERIC,
    DEFAULT_POWERFUL_CRITICAL,
    DEFAULT_ROLL_MODE,
)


class RollSettings(BaseModel):
    """Settings consulted when a request leaves a value unstated."""

    roll_mode: str = Field(default=DEFAULT_ROLL_MODE, description="Default message visibility mode")
    multiply_numeric: bool = Field(
        default=DEFAULT_MULTIPLY_NUMERIC, description="Multiply numeric damage terms on a critical"
    )
    powerful_critical: bool = Field(
        default=DEFAULT_POWERFUL_CRITICAL, description="Maximize critical dice instead of rolling them"
    )
    critical_multiplier: int = Field(
        default=DEFAULT_CRITICAL_MULTIPLIER, ge=1, description="Default critical dice multiplier"
    )
    max_level: int = Field(default=DEFAULT_MAX_LEVEL, ge=1, description="Highest character level")
    ability_score_cap: int = Field(
        default=DEFAULT_ABILITY_SCORE_CAP, ge=1, description="Highest score an improvement may reach"
    )


class RollSettingsManager:
    """Manages roll settings."""

    def __init__(self, initial_settings: Optional[RollSettings] = None) -> None:
        """Initialize with optional settings."""
        self._settings = initial_settings or RollSettings()

    @property
    def settings(self) -> RollSettings:
        """Get current settings."""
        return self._settings

    def update_settings(self, new_settings: RollSettings) -> None:
        """Update settings."""
        self._settings = new_settings
