"""Advancement and character progression models."""

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AdvancementType(str, Enum):
    """Known advancement types."""

    ABILITY_SCORE_IMPROVEMENT = "AbilityScoreImprovement"
    HIT_POINTS = "HitPoints"
    ITEM_GRANT = "ItemGrant"


class AdvancementState(str, Enum):
    """Lifecycle of an advancement node at a given level."""

    UNCONFIGURED = "unconfigured"
    CONFIGURED = "configured"
    APPLIED = "applied"
    REVERSED = "reversed"


class AdvancementStatus(str, Enum):
    """Result status of an apply/reverse request."""

    APPLIED = "applied"
    REVERSED = "reversed"
    CANCELLED = "cancelled"


class AdvancementNode(BaseModel):
    """A level-gated rule stored on an item.

    `configuration` is the authored template and never changes while a
    character levels; `value` holds per-character choices keyed by level.
    """

    id: str = Field(description="Identifier, unique within the owning item")
    type: AdvancementType = Field(description="Advancement type")
    configuration: dict[str, Any] = Field(default_factory=dict, description="Immutable template")
    value: dict[str, Any] = Field(default_factory=dict, description="Per-character state keyed by level")
    level: Optional[int] = Field(default=None, ge=1, description="Single level this applies at")
    title: Optional[str] = Field(default=None, description="Custom title")
    class_restriction: Optional[Literal["primary", "secondary"]] = Field(
        default=None, description="Only apply for the original class or for multiclassing"
    )

    @model_validator(mode="after")
    def check_value_keys(self) -> "AdvancementNode":
        """Value entries must be keyed by level number."""
        for key in self.value:
            if not str(key).isdigit():
                raise ValueError(f"Advancement value keys must be levels, got {key!r}")
        return self


class AdvancementUpdates(BaseModel):
    """Changes an advancement makes to a character at one level.

    `deltas` are numeric increments keyed by dotted character paths so the
    same object can be negated for reversal without reading the character.
    """

    model_config = ConfigDict(frozen=True)  # Immutable model

    deltas: dict[str, int] = Field(default_factory=dict, description="Dotted path -> numeric change")
    items_add: list[str] = Field(default_factory=list, description="Compendium UUIDs of items to create")
    items_remove: list[str] = Field(default_factory=list, description="Ids of owned items to delete")

    @property
    def is_empty(self) -> bool:
        return not (self.deltas or self.items_add or self.items_remove)


class ProgressionEntry(BaseModel):
    """One applied (advancement, level) pair."""

    model_config = ConfigDict(frozen=True)  # Immutable model

    item_id: str = Field(description="Item owning the advancement")
    advancement_id: str = Field(description="Advancement identifier")
    level: int = Field(ge=1, description="Level at which it was applied")
    created_paths: list[str] = Field(
        default_factory=list, description="Character paths that did not exist before it was applied"
    )

    def matches(self, item_id: str, advancement_id: str, level: int) -> bool:
        return (self.item_id, self.advancement_id, self.level) == (item_id, advancement_id, level)


class CharacterProgressionState(BaseModel):
    """Ordered record of applied advancements."""

    model_config = ConfigDict(frozen=True)  # Immutable model

    entries: list[ProgressionEntry] = Field(default_factory=list, description="Applications in order")

    def get(self, item_id: str, advancement_id: str, level: int) -> Optional[ProgressionEntry]:
        return next((entry for entry in self.entries if entry.matches(item_id, advancement_id, level)), None)

    def has(self, item_id: str, advancement_id: str, level: int) -> bool:
        return self.get(item_id, advancement_id, level) is not None

    def for_item(self, item_id: str) -> list[ProgressionEntry]:
        return [entry for entry in self.entries if entry.item_id == item_id]

    def highest_level(self, item_id: str) -> int:
        """Highest level applied for an item, 0 if none."""
        return max((entry.level for entry in self.for_item(item_id)), default=0)

    def add(self, entry: ProgressionEntry) -> "CharacterProgressionState":
        return self.model_copy(update={"entries": [*self.entries, entry]})

    def remove(self, item_id: str, advancement_id: str, level: int) -> "CharacterProgressionState":
        entries = [entry for entry in self.entries if not entry.matches(item_id, advancement_id, level)]
        return self.model_copy(update={"entries": entries})


class AdvancementOutcome(BaseModel):
    """Result of applying or reversing one advancement at one level."""

    model_config = ConfigDict(frozen=True)  # Immutable model

    status: AdvancementStatus
    advancement_id: str
    level: int
    updates: Optional[AdvancementUpdates] = None
    items_added: list[str] = Field(default_factory=list, description="Ids of created items")
    items_removed: list[str] = Field(default_factory=list, description="Ids of deleted items")

    @property
    def cancelled(self) -> bool:
        return self.status == AdvancementStatus.CANCELLED
