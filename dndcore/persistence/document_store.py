"""Document store interface and in-memory implementation."""

import copy
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from pydantic import BaseModel

from dndcore.errors import NotFound
from dndcore.helpers.paths import delete_path, get_property, set_path
from dndcore.models.character import Character, ItemRecord

logger = logging.getLogger(__name__)

UPDATE_CHARACTER = "updateCharacter"
CREATE_ITEMS = "createItems"
DELETE_ITEMS = "deleteItems"


def _plain(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump()
    return value


class DocumentStore(ABC):
    """Character and item storage consumed by the advancement engine."""

    @abstractmethod
    async def get_character(self, character_id: str) -> Character:
        """Get a character, raising NotFound when absent."""

    @abstractmethod
    async def update_character(self, character_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        """
        Apply dotted-path partial updates.

        A final segment written as `-=key` removes that key instead of setting it.

        Returns:
            The subset of changes that actually modified the character
        """

    @abstractmethod
    async def create_items(self, character_id: str, uuids: list[str]) -> list[ItemRecord]:
        """Create owned items from compendium UUIDs."""

    @abstractmethod
    async def delete_items(self, character_id: str, item_ids: list[str]) -> list[str]:
        """Delete owned items, returning the ids actually deleted."""


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store with a compendium of item templates."""

    def __init__(self, compendium: Optional[dict[str, ItemRecord]] = None) -> None:
        """
        Initialize store.

        Args:
            compendium: Item templates keyed by UUID
        """
        self._characters: dict[str, Character] = {}
        self._compendium: dict[str, ItemRecord] = dict(compendium or {})
        self._hooks: dict[str, list[Callable[..., None]]] = {}

    def on(self, event: str, callback: Callable[..., None]) -> None:
        """Register a callback invoked after a successful write."""
        self._hooks.setdefault(event, []).append(callback)

    def _call_hooks(self, event: str, *args: Any) -> None:
        for callback in self._hooks.get(event, []):
            callback(*args)

    def add_to_compendium(self, uuid_: str, item: ItemRecord) -> None:
        self._compendium[uuid_] = item

    async def create_character(self, character: Character) -> Character:
        self._characters[character.id] = character
        return character

    async def delete_character(self, character_id: str) -> None:
        if character_id not in self._characters:
            raise NotFound("Character", character_id)
        del self._characters[character_id]

    async def get_character(self, character_id: str) -> Character:
        try:
            return self._characters[character_id]
        except KeyError:
            raise NotFound("Character", character_id) from None

    async def update_character(self, character_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        character = await self.get_character(character_id)
        data = character.model_dump()
        applied = {}
        for path, value in changes.items():
            parent, _, key = path.rpartition(".")
            if key.startswith("-="):
                if delete_path(data, f"{parent}.{key[2:]}" if parent else key[2:]):
                    applied[path] = None
                continue
            if get_property(data, path) == _plain(value):
                continue
            set_path(data, path, copy.deepcopy(value))
            applied[path] = value
        if not applied:
            return {}
        # Validation failure leaves the stored character untouched
        self._characters[character_id] = Character.model_validate(data)
        self._call_hooks(UPDATE_CHARACTER, character_id, applied)
        return applied

    async def create_items(self, character_id: str, uuids: list[str]) -> list[ItemRecord]:
        """Create items one at a time; an unknown UUID stops creation part-way."""
        created = []
        for uuid_ in uuids:
            character = await self.get_character(character_id)
            template = self._compendium.get(uuid_)
            if template is None:
                logger.warning(f"Compendium item {uuid_} not found, created {len(created)} of {len(uuids)}")
                raise NotFound("Item", uuid_)
            item = template.model_copy(
                update={"id": uuid.uuid4().hex[:16], "source_uuid": uuid_}, deep=True
            )
            self._characters[character_id] = character.model_copy(
                update={"items": {**character.items, item.id: item}}
            )
            created.append(item)
        if created:
            self._call_hooks(CREATE_ITEMS, character_id, created)
        return created

    async def delete_items(self, character_id: str, item_ids: list[str]) -> list[str]:
        character = await self.get_character(character_id)
        deleted = [item_id for item_id in item_ids if item_id in character.items]
        if not deleted:
            return []
        remaining = {item_id: item for item_id, item in character.items.items() if item_id not in deleted}
        self._characters[character_id] = character.model_copy(update={"items": remaining})
        self._call_hooks(DELETE_ITEMS, character_id, deleted)
        return deleted
