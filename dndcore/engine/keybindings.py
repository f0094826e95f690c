"""Keybinding registry used to detect fast-forward modifier keys."""

import logging
from typing import Optional

from dndcore.config import (
    DEFAULT_D20_ADVANTAGE_KEYS,
    DEFAULT_D20_DISADVANTAGE_KEYS,
    DEFAULT_D20_NORMAL_KEYS,
    DEFAULT_DAMAGE_CRITICAL_KEYS,
    DEFAULT_DAMAGE_NORMAL_KEYS,
)
from dndcore.errors import NotFound
from dndcore.models.keys import InputEvent, KeyBinding

logger = logging.getLogger(__name__)

D20_NORMAL = "d20RollFastForwardNormal"
D20_ADVANTAGE = "d20RollFastForwardAdvantage"
D20_DISADVANTAGE = "d20RollFastForwardDisadvantage"
DAMAGE_NORMAL = "damageRollFastForwardNormal"
DAMAGE_CRITICAL = "damageRollFastForwardCritical"


def _parse_keys(keys: str) -> list[KeyBinding]:
    return [KeyBinding(key=key.strip()) for key in keys.split(",") if key.strip()]


class KeybindingRegistry:
    """Maps named actions to the key bindings that trigger them."""

    def __init__(self, bindings: Optional[dict[str, list[KeyBinding]]] = None) -> None:
        """Initialize with the default fast-forward bindings, overridden by any given."""
        self._bindings: dict[str, list[KeyBinding]] = {
            D20_NORMAL: _parse_keys(DEFAULT_D20_NORMAL_KEYS),
            D20_ADVANTAGE: _parse_keys(DEFAULT_D20_ADVANTAGE_KEYS),
            D20_DISADVANTAGE: _parse_keys(DEFAULT_D20_DISADVANTAGE_KEYS),
            DAMAGE_NORMAL: _parse_keys(DEFAULT_DAMAGE_NORMAL_KEYS),
            DAMAGE_CRITICAL: _parse_keys(DEFAULT_DAMAGE_CRITICAL_KEYS),
        }
        if bindings:
            self._bindings.update(bindings)

    def get(self, action: str) -> list[KeyBinding]:
        """Get bindings for an action."""
        if action not in self._bindings:
            raise NotFound("Keybinding", action)
        return list(self._bindings[action])

    def register(self, action: str, bindings: list[KeyBinding]) -> None:
        """Replace the bindings for an action."""
        self._bindings[action] = list(bindings)

    def actions(self) -> list[str]:
        """List all registered action names."""
        return list(self._bindings)

    def are_keys_pressed(self, event: Optional[InputEvent], action: str) -> bool:
        """
        Determine whether the event fulfils any binding of the action.

        Args:
            event: Input event snapshot, or None when the roll was not user-triggered
            action: Registered action name

        Returns:
            True if a bound key is held together with all of its modifiers
        """
        if event is None:
            return False
        active = event.active_modifiers
        for binding in self.get(action):
            if binding.key not in event.down_keys:
                continue
            if all(active[modifier] for modifier in binding.modifiers):
                logger.debug(f"Keybinding {action} triggered by {binding.key}")
                return True
        return False
