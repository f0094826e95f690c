"""Keybinding and input event models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ModifierKey(str, Enum):
    """Modifier keys a binding can require."""

    CONTROL = "Control"
    SHIFT = "Shift"
    ALT = "Alt"


class KeyBinding(BaseModel):
    """A physical key plus the modifiers that must be held with it."""

    model_config = ConfigDict(frozen=True)  # Immutable model

    key: str = Field(description="Physical key code (e.g., 'AltLeft')")
    modifiers: list[ModifierKey] = Field(default_factory=list, description="Modifiers required alongside the key")


class InputEvent(BaseModel):
    """Snapshot of the keyboard state when a roll was triggered."""

    model_config = ConfigDict(frozen=True)  # Immutable model

    down_keys: frozenset[str] = Field(default_factory=frozenset, description="Physical key codes currently held")
    ctrl_key: bool = Field(default=False, description="Control held")
    meta_key: bool = Field(default=False, description="Meta/Command held")
    shift_key: bool = Field(default=False, description="Shift held")
    alt_key: bool = Field(default=False, description="Alt held")

    @property
    def active_modifiers(self) -> dict[ModifierKey, bool]:
        """Which modifiers are active; Meta counts as Control."""
        return {
            ModifierKey.CONTROL: self.ctrl_key or self.meta_key,
            ModifierKey.SHIFT: self.shift_key,
            ModifierKey.ALT: self.alt_key,
        }

    @classmethod
    def holding(cls, *keys: str) -> "InputEvent":
        """Build an event from held key codes, deriving the modifier flags."""
        return cls(
            down_keys=frozenset(keys),
            ctrl_key=any(k.startswith("Control") for k in keys),
            meta_key=any(k.startswith("Meta") for k in keys),
            shift_key=any(k.startswith("Shift") for k in keys),
            alt_key=any(k.startswith("Alt") for k in keys),
        )
