"""Tests for KeybindingRegistry and input events."""

import pytest

from dndcore.engine.keybindings import (
    D20_ADVANTAGE,
    D20_DISADVANTAGE,
    D20_NORMAL,
    DAMAGE_CRITICAL,
    KeybindingRegistry,
)
from dndcore.errors import NotFound
from dndcore.models.keys import InputEvent, KeyBinding, ModifierKey


class TestInputEvent:
    """Test suite for InputEvent."""

    def test_holding_derives_modifiers(self):
        """Test modifier flags are derived from held keys."""
        event = InputEvent.holding("AltLeft", "KeyA")
        assert event.alt_key is True
        assert event.shift_key is False
        assert "KeyA" in event.down_keys

    def test_meta_counts_as_control(self):
        """Test Meta activates the Control modifier."""
        event = InputEvent.holding("MetaLeft")
        assert event.active_modifiers[ModifierKey.CONTROL] is True


class TestKeybindingRegistry:
    """Test suite for KeybindingRegistry."""

    def test_default_actions_registered(self):
        """Test the fast-forward actions exist by default."""
        registry = KeybindingRegistry()
        for action in (D20_NORMAL, D20_ADVANTAGE, D20_DISADVANTAGE, DAMAGE_CRITICAL):
            assert action in registry.actions()
            assert registry.get(action)

    def test_unknown_action_raises(self):
        """Test unknown actions raise NotFound."""
        registry = KeybindingRegistry()
        with pytest.raises(NotFound):
            registry.get("unknownAction")
        with pytest.raises(KeyError):
            registry.are_keys_pressed(InputEvent(), "unknownAction")

    def test_default_advantage_binding(self):
        """Test Alt triggers advantage."""
        registry = KeybindingRegistry()
        assert registry.are_keys_pressed(InputEvent.holding("AltLeft"), D20_ADVANTAGE)
        assert not registry.are_keys_pressed(InputEvent.holding("AltLeft"), D20_DISADVANTAGE)

    def test_no_event_is_never_pressed(self):
        """Test a missing event presses nothing."""
        registry = KeybindingRegistry()
        assert registry.are_keys_pressed(None, D20_ADVANTAGE) is False

    def test_binding_requires_modifiers(self):
        """Test bindings with modifiers need them held."""
        registry = KeybindingRegistry()
        registry.register(D20_ADVANTAGE, [KeyBinding(key="KeyA", modifiers=[ModifierKey.SHIFT])])
        assert not registry.are_keys_pressed(InputEvent.holding("KeyA"), D20_ADVANTAGE)
        assert registry.are_keys_pressed(InputEvent.holding("KeyA", "ShiftLeft"), D20_ADVANTAGE)

    def test_constructor_overrides(self):
        """Test bindings passed to the constructor replace defaults."""
        registry = KeybindingRegistry({D20_NORMAL: [KeyBinding(key="Space")]})
        assert registry.get(D20_NORMAL) == [KeyBinding(key="Space")]
        assert not registry.are_keys_pressed(InputEvent.holding("ShiftLeft"), D20_NORMAL)
