"""Exception taxonomy for rule resolution."""

from typing import Optional


class DndCoreError(Exception):
    """Base class for all dndcore errors."""


class InvalidConfiguration(DndCoreError, ValueError):
    """Contradictory or missing required fields in a roll, link or advancement."""


class FormulaError(InvalidConfiguration):
    """A dice formula could not be parsed or evaluated."""


class AdvancementOrderError(InvalidConfiguration):
    """Levels were applied or reversed out of order."""


class NotFound(DndCoreError, KeyError):
    """A referenced ability, skill, tool, item or advancement does not exist."""

    def __init__(self, kind: str, key: str) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} {key!r} not found")

    def __str__(self) -> str:
        return self.args[0]


class PartialApplyFailure(DndCoreError):
    """Advancement items could not all be created; the level was rolled back."""

    def __init__(self, advancement_id: str, level: int, cause: Optional[BaseException] = None) -> None:
        self.advancement_id = advancement_id
        self.level = level
        self.cause = cause
        message = f"Failed to apply advancement {advancement_id} at level {level}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
