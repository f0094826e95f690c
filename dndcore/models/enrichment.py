"""Models for inline roll links found in rules text."""

from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

Number = Union[int, float]

LinkType = Literal["check", "skill", "tool", "save", "damage", "item"]


class EnrichmentConfig(BaseModel):
    """Parsed contents of a link such as `[[/check skill=acr dc=15]]`."""

    model_config = ConfigDict(extra="forbid")

    values: list[str] = Field(default_factory=list, description="Positional values without a key")
    ability: Optional[str] = None
    skill: Optional[str] = None
    tool: Optional[str] = None
    dc: Optional[Union[Number, str]] = Field(default=None, description="Number or formula such as '@abilities.int.dc'")
    formula: Optional[str] = None
    type: Optional[str] = Field(default=None, description="Damage type key")
    average: Optional[Union[bool, Number]] = Field(default=None, description="True to compute, or a fixed number")
    format: Optional[Literal["short", "long"]] = None
    passive: bool = False
    label: Optional[str] = None


class RollLink(BaseModel):
    """A resolved link that triggers a roll or item use when activated."""

    model_config = ConfigDict(frozen=True)  # Immutable model

    type: LinkType
    label: str = Field(description="Text shown for the link")
    input: str = Field(description="Original link text")
    ability: Optional[str] = None
    skill: Optional[str] = None
    tool: Optional[str] = None
    dc: Optional[Number] = None
    formula: Optional[str] = None
    damage_type: Optional[str] = None
    average: Optional[Number] = Field(default=None, description="Average shown before the formula")
    item_id: Optional[str] = None
    item_name: Optional[str] = None
    character_id: Optional[str] = Field(default=None, description="Owner of the item to use")


class PassiveCheck(BaseModel):
    """A passive check tag; not rollable."""

    model_config = ConfigDict(frozen=True)  # Immutable model

    label: str
    input: str
    ability: str
    skill: Optional[str] = None
    tool: Optional[str] = None
    dc: Optional[Number] = None


Segment = Union[str, RollLink, PassiveCheck]
