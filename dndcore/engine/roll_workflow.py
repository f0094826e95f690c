"""Roll workflow: configure, optionally consult a dialog, evaluate, post."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, Union

from dndcore.engine.roll_configurator import RollConfigurator
from dndcore.engine.roll_evaluator import RollEvaluator
from dndcore.errors import InvalidConfiguration
from dndcore.models.character import Character
from dndcore.models.rolls import (
    D20RollConfig,
    D20RollResult,
    DamageRequest,
    DamageRollConfig,
    DamageRollResult,
    RollOutcome,
    RollRequest,
)
from dndcore.models.rules import RulesTable, default_rules

logger = logging.getLogger(__name__)


class RollDialog(ABC):
    """Configuration dialog shown when a roll is not fast-forwarded."""

    @abstractmethod
    async def configure_d20(self, config: D20RollConfig) -> Optional[D20RollConfig]:
        """Return the finalized config, or None if the dialog was dismissed."""

    @abstractmethod
    async def configure_damage(self, config: DamageRollConfig) -> Optional[DamageRollConfig]:
        """Return the finalized config, or None if the dialog was dismissed."""


class MessageChannel(ABC):
    """Destination for evaluated rolls that requested a chat message."""

    @abstractmethod
    async def post(self, result: Union[D20RollResult, DamageRollResult]) -> None:
        """Post a roll result."""


class RollWorkflow:
    """
    Drives a roll from request to result.

    Cancellation is reported as a cancelled RollOutcome, never as a zero total.
    """

    def __init__(
        self,
        configurator: Optional[RollConfigurator] = None,
        evaluator: Optional[RollEvaluator] = None,
        dialog: Optional[RollDialog] = None,
        rules: Optional[RulesTable] = None,
        message_channel: Optional[MessageChannel] = None,
    ) -> None:
        """
        Initialize workflow.

        Args:
            configurator: Resolves request flags into a config
            evaluator: Evaluates finalized configs
            dialog: Consulted for rolls that are not fast-forwarded
            rules: Rules table for ability, skill and tool lookups
            message_channel: Receives results that request a chat message
        """
        self.configurator = configurator or RollConfigurator()
        self.evaluator = evaluator or RollEvaluator()
        self.dialog = dialog
        self.rules = rules or default_rules()
        self.message_channel = message_channel

    async def d20_roll(self, request: RollRequest) -> RollOutcome[D20RollResult]:
        """
        Configure and evaluate a d20 roll.

        Raises:
            InvalidConfiguration: If the request or the dialog's config is invalid
        """
        config = self.configurator.configure_d20(request)
        if not config.fast_forward and self.dialog is not None:
            configured = await self.dialog.configure_d20(config)
            if configured is None:
                logger.info(f"D20 roll cancelled: {request.title or config.formula}")
                return RollOutcome[D20RollResult].cancel()
            config = configured
        config = self._resolve_modifier(config)
        result = self.evaluator.evaluate_d20(config)
        await self._post(result)
        return RollOutcome[D20RollResult].evaluated(result)

    async def damage_roll(self, request: DamageRequest) -> RollOutcome[DamageRollResult]:
        """
        Configure and evaluate a damage roll.

        Raises:
            InvalidConfiguration: If the request has no terms or a term is invalid
        """
        config = self.configurator.configure_damage(request)
        if not config.fast_forward and self.dialog is not None:
            configured = await self.dialog.configure_damage(config)
            if configured is None:
                logger.info(f"Damage roll cancelled: {request.title or config.formula}")
                return RollOutcome[DamageRollResult].cancel()
            config = configured
        result = self.evaluator.evaluate_damage(config)
        await self._post(result)
        return RollOutcome[DamageRollResult].evaluated(result)

    async def _post(self, result: Union[D20RollResult, DamageRollResult]) -> None:
        if self.message_channel is not None and result.chat_message_requested:
            await self.message_channel.post(result)

    @staticmethod
    def _resolve_modifier(config: D20RollConfig) -> D20RollConfig:
        """Fill a '@mod' placeholder left for the dialog from the default ability."""
        if config.data.get("mod") != "@mod":
            return config
        ability = config.default_ability
        abilities = config.data.get("abilities", {})
        if not ability or ability not in abilities:
            raise InvalidConfiguration("No ability was chosen for the roll modifier")
        data = {**config.data, "mod": abilities[ability]["mod"]}
        if data.get("abilityCheckBonus") == "@abilityCheckBonus":
            data["abilityCheckBonus"] = abilities[ability].get("checkBonus", 0)
        return config.model_copy(update={"data": data})

    # Character rolls

    async def ability_check(self, character: Character, ability: str, **options: Any) -> RollOutcome[D20RollResult]:
        """Roll an ability check for a character."""
        key = self.rules.canonical_ability(ability)
        data = character.roll_data(self.rules)
        data["mod"] = data["abilities"][key]["mod"]
        request = RollRequest(
            parts=["@mod"],
            data=data,
            title=f"{self.rules.get_ability(key).label} Check",
            default_ability=key,
            **options,
        )
        return await self.d20_roll(request)

    async def saving_throw(self, character: Character, ability: str, **options: Any) -> RollOutcome[D20RollResult]:
        """Roll a saving throw, including save proficiency."""
        key = self.rules.canonical_ability(ability)
        data = character.roll_data(self.rules)
        data["save"] = data["abilities"][key]["save"]
        request = RollRequest(
            parts=["@save"],
            data=data,
            title=f"{self.rules.get_ability(key).label} Saving Throw",
            default_ability=key,
            **options,
        )
        return await self.d20_roll(request)

    async def skill_check(
        self, character: Character, skill: str, ability: Optional[str] = None, **options: Any
    ) -> RollOutcome[D20RollResult]:
        """
        Roll a skill check.

        Args:
            character: Character making the check
            skill: Skill key or full name
            ability: Ability override; the skill's default ability otherwise

        Raises:
            NotFound: If the skill or ability is not in the rules table
        """
        key = self.rules.canonical_skill(skill)
        config = self.rules.get_skill(key)
        ability_key = self.rules.canonical_ability(ability or config.ability)
        data = character.roll_data(self.rules)
        data["mod"] = data["abilities"][ability_key]["mod"]
        data["prof"] = data["skills"][key]["prof"]
        request = RollRequest(
            parts=["@mod", "@prof"],
            data=data,
            title=f"{config.label} Check",
            default_ability=ability_key,
            **options,
        )
        return await self.d20_roll(request)

    async def tool_check(
        self, character: Character, tool: str, ability: Optional[str] = None, **options: Any
    ) -> RollOutcome[D20RollResult]:
        """
        Roll a tool check.

        Raises:
            NotFound: If the tool or ability is not in the rules table
            InvalidConfiguration: If no ability is given and the tool suggests none
        """
        config = self.rules.get_tool(tool)
        if not (ability or config.ability):
            raise InvalidConfiguration(f"No ability could be resolved for a {config.label} check")
        ability_key = self.rules.canonical_ability(ability or config.ability)
        data = character.roll_data(self.rules)
        data["mod"] = data["abilities"][ability_key]["mod"]
        data["prof"] = data["tools"].get(tool, {}).get("prof", 0)
        request = RollRequest(
            parts=["@mod", "@prof"],
            data=data,
            title=f"{config.label} Check",
            default_ability=ability_key,
            **options,
        )
        return await self.d20_roll(request)
