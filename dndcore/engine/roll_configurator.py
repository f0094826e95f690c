"""Turns roll requests into fully specified roll configurations."""

import logging
from typing import Optional

from dndcore.engine.formula import DiceFormula
from dndcore.engine.keybindings import (
    D20_ADVANTAGE,
    D20_DISADVANTAGE,
    D20_NORMAL,
    DAMAGE_CRITICAL,
    DAMAGE_NORMAL,
    KeybindingRegistry,
)
from dndcore.errors import FormulaError, InvalidConfiguration
from dndcore.models.keys import InputEvent
from dndcore.models.rolls import (
    AdvantageMode,
    D20RollConfig,
    DamageRequest,
    DamageRollConfig,
    RollRequest,
)
from dndcore.settings import RollSettings, RollSettingsManager

logger = logging.getLogger(__name__)


class RollConfigurator:
    """Resolves advantage, critical and fast-forward state for roll requests."""

    def __init__(
        self,
        keybindings: Optional[KeybindingRegistry] = None,
        settings: Optional[RollSettings] = None,
        settings_manager: Optional[RollSettingsManager] = None,
    ) -> None:
        """
        Initialize configurator.

        Args:
            keybindings: Registry used for held-key detection
            settings: Defaults for values a request leaves unstated
            settings_manager: Shared manager; later updates to it apply to new rolls
        """
        self.keybindings = keybindings or KeybindingRegistry()
        self.settings_manager = settings_manager or RollSettingsManager(settings)

    @property
    def settings(self) -> RollSettings:
        return self.settings_manager.settings

    def determine_advantage_mode(
        self,
        advantage: Optional[bool] = None,
        disadvantage: Optional[bool] = None,
        fast_forward: Optional[bool] = None,
        event: Optional[InputEvent] = None,
    ) -> tuple[AdvantageMode, bool]:
        """
        Determine the advantage mode and whether the dialog is skipped.

        Explicit flags decide the mode whenever either is stated; held keys only
        decide it when neither is.

        Returns:
            Tuple of (advantage_mode, is_fast_forward)

        Raises:
            InvalidConfiguration: If both advantage and disadvantage are requested
        """
        keys = {
            "normal": self.keybindings.are_keys_pressed(event, D20_NORMAL),
            "advantage": self.keybindings.are_keys_pressed(event, D20_ADVANTAGE),
            "disadvantage": self.keybindings.are_keys_pressed(event, D20_DISADVANTAGE),
        }
        is_ff = fast_forward if fast_forward is not None else any(keys.values())

        if advantage and disadvantage:
            raise InvalidConfiguration("Roll cannot request both advantage and disadvantage")

        if advantage is not None or disadvantage is not None:
            if advantage:
                mode = AdvantageMode.ADVANTAGE
            elif disadvantage:
                mode = AdvantageMode.DISADVANTAGE
            else:
                mode = AdvantageMode.NORMAL
        elif keys["advantage"] and keys["disadvantage"]:
            logger.debug("Advantage and disadvantage keys both held, rolling normally")
            mode = AdvantageMode.NORMAL
        elif keys["advantage"]:
            mode = AdvantageMode.ADVANTAGE
        elif keys["disadvantage"]:
            mode = AdvantageMode.DISADVANTAGE
        else:
            mode = AdvantageMode.NORMAL

        return mode, bool(is_ff)

    def determine_critical_mode(
        self,
        critical: Optional[bool] = None,
        fast_forward: Optional[bool] = None,
        event: Optional[InputEvent] = None,
    ) -> tuple[bool, bool]:
        """
        Determine whether a damage roll is critical and whether the dialog is skipped.

        Returns:
            Tuple of (is_critical, is_fast_forward)
        """
        keys = {
            "normal": self.keybindings.are_keys_pressed(event, DAMAGE_NORMAL),
            "critical": self.keybindings.are_keys_pressed(event, DAMAGE_CRITICAL),
        }
        is_ff = fast_forward if fast_forward is not None else any(keys.values())
        is_critical = bool(critical) or keys["critical"]
        return is_critical, bool(is_ff)

    def configure_d20(self, request: RollRequest) -> D20RollConfig:
        """
        Build the d20 roll configuration for a request.

        Raises:
            InvalidConfiguration: On contradictory flags, bad thresholds or a bad base die
        """
        base = self._validate_base_die(request.base_die)
        self._validate_thresholds(request.critical, request.fumble, base.faces)

        mode, is_ff = self.determine_advantage_mode(
            advantage=request.advantage,
            disadvantage=request.disadvantage,
            fast_forward=request.fast_forward,
            event=request.event,
        )

        data = dict(request.data)
        if request.choose_modifier and not is_ff:
            # Placeholders are filled in once the dialog has picked an ability
            data["mod"] = "@mod"
            if "abilityCheckBonus" in data:
                data["abilityCheckBonus"] = "@abilityCheckBonus"

        formula = " + ".join([request.base_die, *(str(part) for part in request.parts)])
        return D20RollConfig(
            formula=formula,
            data=data,
            advantage_mode=mode,
            fast_forward=is_ff,
            critical=request.critical,
            fumble=request.fumble,
            target_value=request.target_value,
            elven_accuracy=request.elven_accuracy,
            halfling_lucky=request.halfling_lucky,
            reliable_talent=request.reliable_talent,
            choose_modifier=request.choose_modifier,
            title=request.title,
            default_ability=request.default_ability or data.get("defaultAbility"),
            chat_message=request.chat_message,
            roll_mode=request.roll_mode or self.settings.roll_mode,
            flavor=request.flavor or request.title,
        )

    def configure_damage(self, request: DamageRequest) -> DamageRollConfig:
        """
        Build the damage roll configuration for a request.

        Raises:
            InvalidConfiguration: If the request has no formula terms
        """
        if not request.parts:
            raise InvalidConfiguration("Damage roll requires at least one formula term")

        is_critical, is_ff = self.determine_critical_mode(
            critical=request.critical, fast_forward=request.fast_forward, event=request.event
        )
        if is_critical and not request.allow_critical:
            logger.debug("Critical requested for a roll that does not allow criticals, ignoring")

        return DamageRollConfig(
            formula=" + ".join(str(part) for part in request.parts),
            data=dict(request.data),
            damage_type=request.damage_type,
            # Without fast-forward the dialog decides, defaulting to the requested state
            is_critical=is_critical and request.allow_critical,
            allow_critical=request.allow_critical,
            fast_forward=is_ff,
            critical_bonus_dice=request.critical_bonus_dice,
            critical_multiplier=(
                request.critical_multiplier
                if request.critical_multiplier is not None
                else self.settings.critical_multiplier
            ),
            multiply_numeric=(
                request.multiply_numeric if request.multiply_numeric is not None else self.settings.multiply_numeric
            ),
            powerful_critical=(
                request.powerful_critical if request.powerful_critical is not None else self.settings.powerful_critical
            ),
            critical_bonus_damage=request.critical_bonus_damage,
            title=request.title,
            chat_message=request.chat_message,
            roll_mode=request.roll_mode or self.settings.roll_mode,
            flavor=request.flavor or request.title,
        )

    @staticmethod
    def _validate_base_die(base_die: str):
        try:
            formula = DiceFormula.parse(base_die)
        except FormulaError as e:
            raise InvalidConfiguration(f"Invalid base die {base_die!r}: {e}") from e
        dice = formula.dice_terms
        if len(formula.terms) != 1 or len(dice) != 1 or dice[0].number != 1:
            raise InvalidConfiguration(f"Base die must be a single die, got {base_die!r}")
        return dice[0]

    @staticmethod
    def _validate_thresholds(critical: Optional[int], fumble: Optional[int], faces: int) -> None:
        if critical is not None and not 1 <= critical <= faces:
            raise InvalidConfiguration(f"Critical threshold {critical} is outside 1-{faces}")
        if fumble is not None and not 1 <= fumble <= faces:
            raise InvalidConfiguration(f"Fumble threshold {fumble} is outside 1-{faces}")
        if critical is not None and fumble is not None and fumble >= critical:
            raise InvalidConfiguration(f"Fumble threshold {fumble} must be below critical threshold {critical}")
