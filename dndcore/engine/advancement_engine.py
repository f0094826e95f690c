"""Applies and reverses advancements against a document store."""

import asyncio
import logging
import weakref
from abc import ABC, abstractmethod
from typing import Any, Optional

from dndcore.engine.advancement import Advancement, AdvancementContext, create_advancement
from dndcore.engine.roll_evaluator import RollEvaluator
from dndcore.errors import AdvancementOrderError, InvalidConfiguration, NotFound, PartialApplyFailure
from dndcore.helpers.debug import log_async_call
from dndcore.helpers.paths import get_property, has_property
from dndcore.models.advancement import (
    AdvancementOutcome,
    AdvancementState,
    AdvancementStatus,
    ProgressionEntry,
)
from dndcore.models.character import Character, ItemRecord
from dndcore.models.rules import RulesTable, default_rules
from dndcore.persistence.document_store import DocumentStore
from dndcore.settings import RollSettings

logger = logging.getLogger(__name__)


class AdvancementFlow(ABC):
    """Collects a player's choice for an advancement at a level."""

    @abstractmethod
    async def choose(self, advancement: Advancement, level: int, character: Character) -> Optional[Any]:
        """Return the choice, or None if the player dismissed the flow."""


class AdvancementEngine:
    """Level-gated application of advancements with exact reversal."""

    def __init__(
        self,
        store: DocumentStore,
        rules: Optional[RulesTable] = None,
        settings: Optional[RollSettings] = None,
        evaluator: Optional[RollEvaluator] = None,
        flow: Optional[AdvancementFlow] = None,
    ) -> None:
        """
        Initialize engine.

        Args:
            store: Document store holding characters and items
            rules: Rules table for ability lookups
            settings: Level cap and ability score cap
            evaluator: Used by advancements that roll (e.g., hit points)
            flow: Choice provider; defaults are used when absent
        """
        self.store = store
        self.rules = rules or default_rules()
        self.settings = settings or RollSettings()
        self.evaluator = evaluator or RollEvaluator()
        self.flow = flow
        # Locks live only while an operation holds or awaits them
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()
        self._reversed: set[tuple[str, str, str, int]] = set()

    def _lock(self, character_id: str) -> asyncio.Lock:
        lock = self._locks.get(character_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[character_id] = lock
        return lock

    @staticmethod
    def _find(character: Character, item_id: str, advancement_id: str) -> tuple[ItemRecord, Advancement]:
        item = character.items.get(item_id)
        if item is None:
            raise NotFound("Item", item_id)
        node = item.advancement.get(advancement_id)
        if node is None:
            raise NotFound("Advancement", advancement_id)
        return item, create_advancement(node, item)


    @staticmethod
    def _resolve_deltas(
        character: Character, advancement: Advancement, deltas: dict[str, int]
    ) -> tuple[dict[str, Any], list[str]]:
        """
        Turn numeric deltas into absolute partial updates.

        Returns:
            The updates, and the paths the character did not have yet
        """
        data = character.model_dump()
        changes: dict[str, Any] = {}
        created: list[str] = []
        for path, delta in deltas.items():
            current = get_property(data, path)
            if current is None or not has_property(data, path):
                current = advancement.baseline(path)
                created.append(path)
            changes[path] = current + delta
        return changes, created

    @staticmethod
    def _value_path(item_id: str, advancement_id: str) -> str:
        return f"items.{item_id}.advancement.{advancement_id}.value"

    def state(self, character: Character, item_id: str, advancement_id: str, level: int) -> AdvancementState:
        """Lifecycle state of an advancement at a level for a character."""
        _, advancement = self._find(character, item_id, advancement_id)
        if character.progression.has(item_id, advancement_id, level):
            return AdvancementState.APPLIED
        if (character.id, item_id, advancement_id, level) in self._reversed:
            return AdvancementState.REVERSED
        if advancement.available_for(character) and advancement.applies_at(level, self.settings.max_level):
            return AdvancementState.CONFIGURED
        return AdvancementState.UNCONFIGURED

    def _check_apply_order(self, character: Character, item: ItemRecord, advancement: Advancement, level: int) -> None:
        if level > self.settings.max_level:
            raise AdvancementOrderError(f"Level {level} exceeds maximum level {self.settings.max_level}")
        if not advancement.applies_at(level, self.settings.max_level):
            raise InvalidConfiguration(f"Advancement {advancement.id} does not apply at level {level}")
        if not advancement.available_for(character):
            raise InvalidConfiguration(f"Advancement {advancement.id} is restricted to a different class role")
        if character.progression.has(item.id, advancement.id, level):
            raise AdvancementOrderError(f"Advancement {advancement.id} is already applied at level {level}")
        # Every grant below this level has to be in place first
        for node in item.advancement.values():
            other = create_advancement(node, item)
            if not other.available_for(character):
                continue
            for other_level in other.levels(self.settings.max_level):
                if other_level < level and not character.progression.has(item.id, other.id, other_level):
                    raise AdvancementOrderError(
                        f"Cannot apply level {level} before {other.id} at level {other_level}"
                    )

    @staticmethod
    def _check_reverse_order(character: Character, item: ItemRecord, advancement: Advancement, level: int) -> None:
        if not character.progression.has(item.id, advancement.id, level):
            raise AdvancementOrderError(f"Advancement {advancement.id} is not applied at level {level}")
        highest = character.progression.highest_level(item.id)
        if level < highest:
            raise AdvancementOrderError(f"Cannot reverse level {level} while level {highest} is applied")

    async def apply(
        self,
        character_id: str,
        item_id: str,
        advancement_id: str,
        level: int,
        choice: Optional[Any] = None,
    ) -> AdvancementOutcome:
        """
        Apply one advancement at one level.

        Items are created first, then the character's properties, the node's
        value and the progression record are written in one update. If any step
        fails the created items are deleted and nothing is recorded.

        Raises:
            NotFound: If the item or advancement does not exist
            InvalidConfiguration: If the choice is invalid or the level is out of order
            PartialApplyFailure: If the store failed after updates were computed
        """
        async with self._lock(character_id):
            return await self._apply(character_id, item_id, advancement_id, level, choice)

    async def _apply(
        self,
        character_id: str,
        item_id: str,
        advancement_id: str,
        level: int,
        choice: Optional[Any],
    ) -> AdvancementOutcome:
        character = await self.store.get_character(character_id)
        item, advancement = self._find(character, item_id, advancement_id)
        self._check_apply_order(character, item, advancement, level)

        if choice is None and self.flow is not None:
            choice = await self.flow.choose(advancement, level, character)
            if choice is None:
                logger.info(f"Advancement {advancement_id} at level {level} cancelled")
                return AdvancementOutcome(
                    status=AdvancementStatus.CANCELLED, advancement_id=advancement_id, level=level
                )
        elif choice is None:
            choice = advancement.default_choice(level)

        context = AdvancementContext(
            character=character, rules=self.rules, settings=self.settings, evaluator=self.evaluator
        )
        entry = advancement.prepare_value(level, choice, context)
        updates = advancement.compute_updates(level, updates=entry)

        created: list[ItemRecord] = []
        try:
            if updates.items_add:
                created = await self.store.create_items(character_id, updates.items_add)
                if len(created) != len(updates.items_add):
                    raise InvalidConfiguration(
                        f"Created {len(created)} of {len(updates.items_add)} items"
                    )
            removed = []
            if updates.items_remove:
                removed = await self.store.delete_items(character_id, updates.items_remove)

            entry = advancement.finalize_value(level, entry, created)
            changes, created_paths = self._resolve_deltas(character, advancement, updates.deltas)
            changes[self._value_path(item_id, advancement_id)] = advancement.value_with(level, entry)
            entry_record = ProgressionEntry(
                item_id=item_id, advancement_id=advancement_id, level=level, created_paths=created_paths
            )
            changes["progression"] = character.progression.add(entry_record)
            await self.store.update_character(character_id, changes)
        except Exception as e:
            # Any failure from here on undoes the apply
            logger.error(f"Rolling back advancement {advancement_id} at level {level}: {e}", exc_info=True)
            try:
                await self._rollback(character_id, character, item_id, advancement, created)
            except Exception as rollback_error:
                logger.error(f"Rollback of advancement {advancement_id} failed: {rollback_error}", exc_info=True)
            raise PartialApplyFailure(advancement_id, level, e) from e

        self._reversed.discard((character_id, item_id, advancement_id, level))
        logger.info(f"Applied advancement {advancement_id} at level {level} to character {character_id}")
        return AdvancementOutcome(
            status=AdvancementStatus.APPLIED,
            advancement_id=advancement_id,
            level=level,
            updates=updates,
            items_added=[item.id for item in created],
            items_removed=removed,
        )

    async def _rollback(
        self,
        character_id: str,
        snapshot: Character,
        item_id: str,
        advancement: Advancement,
        created: list[ItemRecord],
    ) -> None:
        current = await self.store.get_character(character_id)
        # Created items may be only partly reported when the store failed mid-way
        stray = [
            owned_id for owned_id in current.items
            if owned_id not in snapshot.items
        ]
        ids = list(dict.fromkeys([item.id for item in created] + stray))
        if ids:
            await self.store.delete_items(character_id, ids)
        await self.store.update_character(
            character_id,
            {self._value_path(item_id, advancement.id): advancement.value},
        )

    async def reverse(self, character_id: str, item_id: str, advancement_id: str, level: int) -> AdvancementOutcome:
        """
        Undo one applied advancement at one level.

        Only items this node recorded for the level are deleted, and values the
        apply created are removed again.

        Raises:
            NotFound: If the item or advancement does not exist
            AdvancementOrderError: If the level is not applied or a higher level is
        """
        async with self._lock(character_id):
            return await self._reverse(character_id, item_id, advancement_id, level)

    async def _reverse(self, character_id: str, item_id: str, advancement_id: str, level: int) -> AdvancementOutcome:
        character = await self.store.get_character(character_id)
        item, advancement = self._find(character, item_id, advancement_id)
        self._check_reverse_order(character, item, advancement, level)
        record = character.progression.get(item_id, advancement_id, level)

        updates = advancement.compute_updates(level, reverse=True)
        removed = []
        if updates.items_remove:
            owned = [owned_id for owned_id in updates.items_remove if owned_id in character.items]
            removed = await self.store.delete_items(character_id, owned)

        changes, _ = self._resolve_deltas(character, advancement, updates.deltas)
        for path in record.created_paths:
            if path in changes and changes[path] == advancement.baseline(path):
                del changes[path]
                parent, _, key = path.rpartition(".")
                changes[f"{parent}.-={key}" if parent else f"-={key}"] = None
        changes[self._value_path(item_id, advancement_id)] = advancement.value_without(level)
        changes["progression"] = character.progression.remove(item_id, advancement_id, level)
        await self.store.update_character(character_id, changes)

        self._reversed.add((character_id, item_id, advancement_id, level))
        logger.info(f"Reversed advancement {advancement_id} at level {level} on character {character_id}")
        return AdvancementOutcome(
            status=AdvancementStatus.REVERSED,
            advancement_id=advancement_id,
            level=level,
            updates=updates,
            items_removed=removed,
        )

    def _advancements_at(self, character: Character, item: ItemRecord, level: int) -> list[Advancement]:
        advancements = [create_advancement(node, item) for node in item.advancement.values()]
        applicable = [
            a for a in advancements
            if a.applies_at(level, self.settings.max_level) and a.available_for(character)
        ]
        return sorted(applicable, key=lambda a: a.sorting_value_for_level(level))

    @log_async_call
    async def level_up(
        self, character_id: str, item_id: str, choices: Optional[dict[str, Any]] = None
    ) -> list[AdvancementOutcome]:
        """
        Raise a class item by one level, applying every advancement at that level.

        The level is all-or-nothing: a cancellation or failure reverses the
        advancements already applied for it.

        Returns:
            Outcomes in application order; a single CANCELLED outcome if dismissed
        """
        choices = choices or {}
        character = await self.store.get_character(character_id)
        item = character.items.get(item_id)
        if item is None:
            raise NotFound("Item", item_id)
        level = item.levels + 1
        if character.level + 1 > self.settings.max_level:
            raise AdvancementOrderError(f"Character is already at maximum level {self.settings.max_level}")

        outcomes: list[AdvancementOutcome] = []
        try:
            for advancement in self._advancements_at(character, item, level):
                outcome = await self.apply(
                    character_id, item_id, advancement.id, level, choices.get(advancement.id)
                )
                if outcome.cancelled:
                    await self._undo(character_id, item_id, outcomes)
                    return [outcome]
                outcomes.append(outcome)
        except Exception:
            await self._undo(character_id, item_id, outcomes)
            raise

        async with self._lock(character_id):
            character = await self.store.get_character(character_id)
            await self.store.update_character(
                character_id,
                {f"items.{item_id}.levels": level, "level": character.level + 1},
            )
        return outcomes

    @log_async_call
    async def level_down(self, character_id: str, item_id: str) -> list[AdvancementOutcome]:
        """Reverse every advancement applied at the item's current level."""
        character = await self.store.get_character(character_id)
        item = character.items.get(item_id)
        if item is None:
            raise NotFound("Item", item_id)
        if item.levels < 1:
            raise AdvancementOrderError(f"Item {item_id} has no levels to remove")
        level = item.levels

        outcomes = []
        for advancement in reversed(self._advancements_at(character, item, level)):
            if character.progression.has(item_id, advancement.id, level):
                outcomes.append(await self.reverse(character_id, item_id, advancement.id, level))

        async with self._lock(character_id):
            character = await self.store.get_character(character_id)
            await self.store.update_character(
                character_id,
                {f"items.{item_id}.levels": level - 1, "level": max(character.level - 1, 0)},
            )
        return outcomes

    async def _undo(self, character_id: str, item_id: str, outcomes: list[AdvancementOutcome]) -> None:
        for outcome in reversed(outcomes):
            await self.reverse(character_id, item_id, outcome.advancement_id, outcome.level)
