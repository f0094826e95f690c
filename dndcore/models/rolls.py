"""Roll request, configuration and result models."""

from enum import Enum
from typing import Any, Generic, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from dndcore.config import (
    DEFAULT_BASE_DIE,
    DEFAULT_CHAT_MESSAGE,
    DEFAULT_CRITICAL_MULTIPLIER,
    DEFAULT_CRITICAL_THRESHOLD,
    DEFAULT_FUMBLE_THRESHOLD,
)
from dndcore.models.keys import InputEvent

Number = Union[int, float]


class AdvantageMode(str, Enum):
    """Advantage state of a d20 roll."""

    NORMAL = "normal"
    ADVANTAGE = "advantage"
    DISADVANTAGE = "disadvantage"


class RollStatus(str, Enum):
    """Whether a roll was performed or the workflow was dismissed."""

    EVALUATED = "evaluated"
    CANCELLED = "cancelled"


class DieResult(BaseModel):
    """A single die within a dice term."""

    faces: int = Field(ge=1, description="Number of faces on the die")
    result: int = Field(description="Face value after min/max modifiers")
    active: bool = Field(default=True, description="Whether the die counts towards the total")
    rerolled: bool = Field(default=False, description="Whether this die was replaced by a reroll")
    maximized: bool = Field(default=False, description="Set to max face instead of being rolled")
    bonus: bool = Field(default=False, description="Extra die added by a critical hit")


class TermResult(BaseModel):
    """Evaluated top-level term of a formula."""

    model_config = ConfigDict(frozen=True)  # Immutable model

    operator: str = Field(default="+", description="Sign joining this term to the previous one")
    formula: str = Field(description="Formula of this term")
    total: Number = Field(description="Unsigned value of this term")
    dice: list[DieResult] = Field(default_factory=list, description="Dice rolled for this term")
    flavor: Optional[str] = Field(default=None, description="Flavor annotation (e.g., damage type)")


class FormulaResult(BaseModel):
    """Numeric breakdown and total of an evaluated formula."""

    model_config = ConfigDict(frozen=True)  # Immutable model

    formula: str = Field(description="Formula that was evaluated")
    total: Number = Field(description="Total of all terms")
    terms: list[TermResult] = Field(default_factory=list, description="Per-term breakdown")

    @property
    def dice(self) -> list[DieResult]:
        """All dice across all terms."""
        return [die for term in self.terms for die in term.dice]


class RollRequest(BaseModel):
    """Request for an ability check, saving throw, skill, tool or attack roll."""

    model_config = ConfigDict(frozen=True)  # Immutable model

    base_die: str = Field(default=DEFAULT_BASE_DIE, description="Die the roll is built around")
    parts: list[Union[str, int]] = Field(default_factory=list, description="Bonus terms, excluding the base die")
    data: dict[str, Any] = Field(default_factory=dict, description="Roll data for @-reference substitution")
    event: Optional[InputEvent] = Field(default=None, description="Input event that triggered the roll")

    advantage: Optional[bool] = Field(default=None, description="Explicit advantage flag (None = unstated)")
    disadvantage: Optional[bool] = Field(default=None, description="Explicit disadvantage flag (None = unstated)")
    critical: Optional[int] = Field(default=DEFAULT_CRITICAL_THRESHOLD, description="Critical threshold, None disables")
    fumble: Optional[int] = Field(default=DEFAULT_FUMBLE_THRESHOLD, description="Fumble threshold, None disables")
    target_value: Optional[int] = Field(default=None, description="Total needed for success (e.g., a DC)")

    elven_accuracy: bool = Field(default=False, description="Roll an extra die when rolling with advantage")
    halfling_lucky: bool = Field(default=False, description="Reroll natural ones once")
    reliable_talent: bool = Field(default=False, description="Treat low d20 results as the minimum")

    fast_forward: Optional[bool] = Field(default=None, description="Skip the configuration dialog")
    choose_modifier: bool = Field(default=False, description="Let the dialog choose the ability modifier")
    title: Optional[str] = Field(default=None, description="Dialog title")
    default_ability: Optional[str] = Field(default=None, description="Ability preselected in the dialog")

    chat_message: bool = Field(default=DEFAULT_CHAT_MESSAGE, description="Whether a message should be posted")
    roll_mode: Optional[str] = Field(default=None, description="Visibility mode for the posted message")
    flavor: Optional[str] = Field(default=None, description="Flavor text for the posted message")


class DamageRequest(BaseModel):
    """Request for a damage or healing roll."""

    model_config = ConfigDict(frozen=True)  # Immutable model

    parts: list[Union[str, int]] = Field(default_factory=list, description="Formula terms")
    data: dict[str, Any] = Field(default_factory=dict, description="Roll data for @-reference substitution")
    event: Optional[InputEvent] = Field(default=None, description="Input event that triggered the roll")
    damage_type: Optional[str] = Field(default=None, description="Damage type key")

    allow_critical: bool = Field(default=True, description="Whether this roll may be a critical hit")
    critical: Optional[bool] = Field(default=None, description="Roll as a critical unless overridden")
    critical_bonus_dice: int = Field(default=0, ge=0, description="Extra dice added on a critical")
    critical_multiplier: Optional[int] = Field(default=None, ge=1, description="Dice multiplier on a critical")
    multiply_numeric: Optional[bool] = Field(default=None, description="Multiply numeric terms on a critical")
    powerful_critical: Optional[bool] = Field(default=None, description="Maximize critical dice instead of rolling them")
    critical_bonus_damage: Optional[str] = Field(default=None, description="Extra term applied only on a critical")

    fast_forward: Optional[bool] = Field(default=None, description="Skip the configuration dialog")
    title: Optional[str] = Field(default=None, description="Dialog title")

    chat_message: bool = Field(default=DEFAULT_CHAT_MESSAGE, description="Whether a message should be posted")
    roll_mode: Optional[str] = Field(default=None, description="Visibility mode for the posted message")
    flavor: Optional[str] = Field(default=None, description="Flavor text for the posted message")


class D20RollConfig(BaseModel):
    """Fully specified d20 roll, ready for a dialog or evaluation."""

    model_config = ConfigDict(frozen=True)  # Immutable model

    formula: str = Field(description="Formula starting with the base die")
    data: dict[str, Any] = Field(default_factory=dict, description="Roll data")
    advantage_mode: AdvantageMode = Field(default=AdvantageMode.NORMAL, description="Resolved advantage mode")
    fast_forward: bool = Field(default=False, description="Whether the dialog is skipped")
    critical: Optional[int] = Field(default=DEFAULT_CRITICAL_THRESHOLD, description="Critical threshold")
    fumble: Optional[int] = Field(default=DEFAULT_FUMBLE_THRESHOLD, description="Fumble threshold")
    target_value: Optional[int] = Field(default=None, description="Total needed for success")
    elven_accuracy: bool = False
    halfling_lucky: bool = False
    reliable_talent: bool = False
    choose_modifier: bool = False
    title: Optional[str] = None
    default_ability: Optional[str] = None
    chat_message: bool = DEFAULT_CHAT_MESSAGE
    roll_mode: str = Field(description="Resolved message visibility mode")
    flavor: Optional[str] = None

    @model_validator(mode="after")
    def check_thresholds(self) -> "D20RollConfig":
        """Fumble must stay below the critical threshold."""
        if self.critical is not None and self.fumble is not None and self.fumble >= self.critical:
            raise ValueError(f"Fumble threshold {self.fumble} must be below critical threshold {self.critical}")
        return self


class DamageRollConfig(BaseModel):
    """Fully specified damage roll, ready for a dialog or evaluation."""

    model_config = ConfigDict(frozen=True)  # Immutable model

    formula: str = Field(description="Damage formula")
    data: dict[str, Any] = Field(default_factory=dict, description="Roll data")
    damage_type: Optional[str] = None
    is_critical: bool = Field(default=False, description="Whether critical rules apply")
    allow_critical: bool = True
    fast_forward: bool = False
    critical_bonus_dice: int = 0
    critical_multiplier: int = DEFAULT_CRITICAL_MULTIPLIER
    multiply_numeric: bool = False
    powerful_critical: bool = False
    critical_bonus_damage: Optional[str] = None
    title: Optional[str] = None
    chat_message: bool = DEFAULT_CHAT_MESSAGE
    roll_mode: str = Field(description="Resolved message visibility mode")
    flavor: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def check_critical_allowed(cls, data: Any) -> Any:
        """A roll that disallows criticals is never critical."""
        if isinstance(data, dict) and data.get("allow_critical") is False:
            data = {**data, "is_critical": False}
        return data


class D20RollResult(BaseModel):
    """Evaluated d20 roll."""

    model_config = ConfigDict(frozen=True)  # Immutable model

    config: D20RollConfig
    formula: str = Field(description="Formula as evaluated, including advantage dice")
    total: Number
    natural: int = Field(description="Value of the kept d20")
    terms: list[TermResult] = Field(default_factory=list)
    is_critical: bool = False
    is_fumble: bool = False
    is_success: Optional[bool] = Field(default=None, description="None when no target value was set")
    chat_message_requested: bool = False

    @property
    def is_failure(self) -> Optional[bool]:
        if self.is_success is None:
            return None
        return not self.is_success


class DamageRollResult(BaseModel):
    """Evaluated damage roll."""

    model_config = ConfigDict(frozen=True)  # Immutable model

    config: DamageRollConfig
    formula: str = Field(description="Formula as evaluated, including critical alterations")
    total: Number
    terms: list[TermResult] = Field(default_factory=list)
    is_critical: bool = False
    damage_type: Optional[str] = None
    chat_message_requested: bool = False


ResultT = TypeVar("ResultT", D20RollResult, DamageRollResult)


class RollOutcome(BaseModel, Generic[ResultT]):
    """Result of a roll workflow: either an evaluated roll or a cancellation."""

    model_config = ConfigDict(frozen=True)  # Immutable model

    status: RollStatus
    result: Optional[ResultT] = None

    @property
    def cancelled(self) -> bool:
        return self.status == RollStatus.CANCELLED

    @classmethod
    def cancel(cls) -> "RollOutcome":
        return cls(status=RollStatus.CANCELLED)

    @classmethod
    def evaluated(cls, result: ResultT) -> "RollOutcome":
        return cls(status=RollStatus.EVALUATED, result=result)
