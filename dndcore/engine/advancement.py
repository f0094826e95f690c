"""Advancement types: level-gated rules applied to a character."""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from dndcore.config import DEFAULT_ABILITY_SCORE, DEFAULT_ADVANCEMENT_ORDER, DEFAULT_ASI_POINTS
from dndcore.engine.roll_evaluator import RollEvaluator
from dndcore.errors import FormulaError, InvalidConfiguration, NotFound
from dndcore.models.advancement import AdvancementNode, AdvancementType, AdvancementUpdates
from dndcore.models.character import Character, ItemRecord
from dndcore.models.rolls import DamageRollConfig
from dndcore.models.rules import RulesTable
from dndcore.settings import RollSettings

logger = logging.getLogger(__name__)


@dataclass
class AdvancementContext:
    """What an advancement may consult while turning a choice into a value."""

    character: Character
    rules: RulesTable
    settings: RollSettings = field(default_factory=RollSettings)
    evaluator: RollEvaluator = field(default_factory=RollEvaluator)


class Advancement:
    """
    Base class for advancement types.

    Subclasses implement `property_updates` and `item_updates`, both pure
    functions of the node's configuration, its stored value and the level.
    """

    type_name: AdvancementType
    order = DEFAULT_ADVANCEMENT_ORDER
    default_title = "Advancement"
    multi_level = False

    def __init__(self, node: AdvancementNode, item: Optional[ItemRecord] = None) -> None:
        self.node = node
        self.item = item

    @property
    def id(self) -> str:
        return self.node.id

    @property
    def title(self) -> str:
        return self.node.title or self.default_title

    @property
    def configuration(self) -> dict[str, Any]:
        return self.node.configuration

    @property
    def value(self) -> dict[str, Any]:
        return self.node.value

    def levels(self, max_level: int) -> list[int]:
        """Levels at which this advancement applies."""
        return [self.node.level] if self.node.level else []

    def applies_at(self, level: int, max_level: int) -> bool:
        return level in self.levels(max_level)

    def available_for(self, character: Character) -> bool:
        """Check the class restriction: primary nodes only on the original class, secondary only on a multiclass."""
        restriction = self.node.class_restriction
        if restriction is None or self.item is None or self.item.type != "class":
            return True
        original = character.is_original_class(self.item.id)
        return original if restriction == "primary" else not original

    def sorting_value_for_level(self, level: int) -> str:
        return f"{self.order:04d} {self.title}"

    def entry_for_level(self, level: int) -> Optional[Any]:
        return self.value.get(str(level))

    # Value lifecycle

    def default_choice(self, level: int) -> Any:
        """Choice used when no flow supplies one."""
        return None

    def prepare_value(self, level: int, choice: Any, context: AdvancementContext) -> Any:
        """Validate a choice and turn it into the value entry stored for the level."""
        return choice if choice is not None else {}

    def finalize_value(self, level: int, entry: Any, items_added: list[ItemRecord]) -> Any:
        """Final transformation of the entry once items have been created."""
        return entry

    def value_with(self, level: int, entry: Any) -> dict[str, Any]:
        return {**self.value, str(level): entry}

    def value_without(self, level: int) -> dict[str, Any]:
        return {key: entry for key, entry in self.value.items() if key != str(level)}

    # Updates

    def baseline(self, path: str) -> int:
        """Value a delta path starts from when the character does not have it yet."""
        return 0

    def property_updates(self, level: int, entry: Any, existing: Any = None, reverse: bool = False) -> dict[str, int]:
        return {}

    def item_updates(self, level: int, entry: Any, existing: Any = None, reverse: bool = False) -> tuple[list[str], list[str]]:
        return [], []

    def compute_updates(self, level: int, updates: Any = None, reverse: bool = False) -> AdvancementUpdates:
        """
        Compute the changes this advancement makes at a level.

        Args:
            level: Level to compute for
            updates: Proposed value entry for the level; only its difference from
                the stored entry is produced
            reverse: Produce the inverse of the stored entry

        Returns:
            AdvancementUpdates with numeric deltas and item changes
        """
        existing = self.entry_for_level(level)
        if reverse:
            if existing is None:
                return AdvancementUpdates()
            deltas = self.property_updates(level, existing, reverse=True)
            add, remove = self.item_updates(level, existing, reverse=True)
        else:
            entry = updates if updates is not None else existing
            if entry is None:
                return AdvancementUpdates()
            previous = existing if updates is not None else None
            deltas = self.property_updates(level, entry, existing=previous)
            add, remove = self.item_updates(level, entry, existing=previous)
        return AdvancementUpdates(
            deltas={path: delta for path, delta in deltas.items() if delta},
            items_add=add,
            items_remove=remove,
        )


class AbilityScoreImprovementAdvancement(Advancement):
    """
    Raise ability scores by a number of points, up to the score cap.

    Configuration: {"points": 2, "fixed": {"str": 1}, "cap": 20}
    Choice: {"str": 1, "dex": 1}
    Value entry: {"assignments": {...}, "applied": {...}} where "applied" is
    the increase that was actually possible under the cap.
    """

    type_name = AdvancementType.ABILITY_SCORE_IMPROVEMENT
    order = 20
    default_title = "Ability Score Improvement"

    @property
    def points(self) -> int:
        return int(self.configuration.get("points", DEFAULT_ASI_POINTS))

    def baseline(self, path: str) -> int:
        return DEFAULT_ABILITY_SCORE if path.startswith("abilities.") else 0

    def default_choice(self, level: int) -> Any:
        return {}

    def prepare_value(self, level: int, choice: Any, context: AdvancementContext) -> Any:
        choice = choice or {}
        if not isinstance(choice, dict):
            raise InvalidConfiguration(f"Ability score improvement choice must be a mapping, got {choice!r}")
        for ability, amount in choice.items():
            context.rules.get_ability(ability)
            if not isinstance(amount, int) or amount < 0:
                raise InvalidConfiguration(f"Invalid increase {amount!r} for {ability}")
        spent = sum(choice.values())
        if spent > self.points:
            raise InvalidConfiguration(f"Assigned {spent} points but only {self.points} are available")

        cap = int(self.configuration.get("cap", context.settings.ability_score_cap))
        totals: dict[str, int] = {}
        for ability, amount in self.configuration.get("fixed", {}).items():
            totals[context.rules.canonical_ability(ability)] = amount
        for ability, amount in choice.items():
            key = context.rules.canonical_ability(ability)
            totals[key] = totals.get(key, 0) + amount

        applied = {}
        for ability, amount in totals.items():
            current = context.character.abilities.get(ability, DEFAULT_ABILITY_SCORE)
            applied[ability] = max(min(current + amount, cap) - current, 0)
        return {"assignments": dict(choice), "applied": applied}

    def property_updates(self, level: int, entry: Any, existing: Any = None, reverse: bool = False) -> dict[str, int]:
        sign = -1 if reverse else 1
        deltas = {f"abilities.{ability}": sign * amount for ability, amount in entry.get("applied", {}).items()}
        if existing:
            for ability, amount in existing.get("applied", {}).items():
                path = f"abilities.{ability}"
                deltas[path] = deltas.get(path, 0) - amount
        return deltas


class HitPointsAdvancement(Advancement):
    """
    Increase maximum hit points every class level.

    Configuration: {"hit_die": "d8"}
    Choice per level: "max", "avg", "roll" or a rolled number.
    Value entry: {"choice": ..., "hp": total gained including Constitution}
    """

    type_name = AdvancementType.HIT_POINTS
    order = 10
    default_title = "Hit Points"
    multi_level = True

    def levels(self, max_level: int) -> list[int]:
        return list(range(1, max_level + 1))

    @property
    def faces(self) -> int:
        hit_die = str(self.configuration.get("hit_die", "d6"))
        try:
            return int(hit_die.lstrip("d"))
        except ValueError:
            raise InvalidConfiguration(f"Invalid hit die {hit_die!r}") from None

    def default_choice(self, level: int) -> Any:
        return "max" if level == 1 else "avg"

    def prepare_value(self, level: int, choice: Any, context: AdvancementContext) -> Any:
        faces = self.faces
        if choice == "max":
            rolled = faces
        elif choice == "avg":
            rolled = faces // 2 + 1
        elif choice == "roll":
            try:
                config = DamageRollConfig(formula=f"1d{faces}", roll_mode=context.settings.roll_mode, chat_message=False)
                rolled = int(context.evaluator.evaluate_damage(config).total)
                logger.debug(f"Rolled {rolled} hit points on 1d{faces} for level {level}")
            except FormulaError as e:
                raise InvalidConfiguration(f"Could not roll hit points: {e}") from e
        elif isinstance(choice, int) and not isinstance(choice, bool):
            if not 1 <= choice <= faces:
                raise InvalidConfiguration(f"Hit point roll {choice} is outside 1-{faces}")
            rolled = choice
        else:
            raise InvalidConfiguration(f"Invalid hit point choice {choice!r}")
        gained = max(rolled + context.character.ability_modifier("con"), 1)
        return {"choice": choice if choice != "roll" else rolled, "hp": gained}

    def property_updates(self, level: int, entry: Any, existing: Any = None, reverse: bool = False) -> dict[str, int]:
        gained = entry.get("hp", 0) - (existing.get("hp", 0) if existing else 0)
        if reverse:
            gained = -gained
        return {"hp.max": gained, "hp.value": gained}


class ItemGrantAdvancement(Advancement):
    """
    Grant items from the compendium at a level.

    Configuration: {"items": [uuid, ...], "optional": false}
    Choice: list of UUIDs to take (all when omitted)
    Value entry: {created item id: uuid} once finalized
    """

    type_name = AdvancementType.ITEM_GRANT
    order = 40
    default_title = "Grant Items"

    @property
    def granted(self) -> list[str]:
        return list(self.configuration.get("items", []))

    def default_choice(self, level: int) -> Any:
        return self.granted

    def prepare_value(self, level: int, choice: Any, context: AdvancementContext) -> Any:
        selected = self.granted if choice is None else list(choice)
        unknown = [uuid_ for uuid_ in selected if uuid_ not in self.granted]
        if unknown:
            raise NotFound("Granted item", unknown[0])
        if not self.configuration.get("optional", False) and set(selected) != set(self.granted):
            raise InvalidConfiguration(f"Advancement {self.id} grants all of its items")
        # Stays a list of UUIDs until finalize_value knows the created item ids
        return selected

    def finalize_value(self, level: int, entry: Any, items_added: list[ItemRecord]) -> Any:
        pending = list(entry)
        finalized = {}
        for item in items_added:
            if item.source_uuid in pending:
                finalized[item.id] = item.source_uuid
                pending.remove(item.source_uuid)
        return finalized

    def item_updates(self, level: int, entry: Any, existing: Any = None, reverse: bool = False) -> tuple[list[str], list[str]]:
        if reverse:
            return [], list(entry)
        wanted = list(entry.values()) if isinstance(entry, dict) else list(entry)
        if not existing:
            return wanted, []
        owned = list(existing.values())
        add = [uuid_ for uuid_ in wanted if uuid_ not in owned]
        remove = [item_id for item_id, uuid_ in existing.items() if uuid_ not in wanted]
        return add, remove


ADVANCEMENT_TYPES: dict[AdvancementType, type[Advancement]] = {
    cls.type_name: cls
    for cls in (AbilityScoreImprovementAdvancement, HitPointsAdvancement, ItemGrantAdvancement)
}


def create_advancement(node: AdvancementNode, item: Optional[ItemRecord] = None) -> Advancement:
    """Instantiate the advancement class for a node."""
    try:
        cls = ADVANCEMENT_TYPES[node.type]
    except KeyError:
        raise NotFound("Advancement type", str(node.type)) from None
    return cls(node, item)
