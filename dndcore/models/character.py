"""Character and owned item models."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from dndcore.config import DEFAULT_ABILITY_SCORE
from dndcore.models.advancement import AdvancementNode, CharacterProgressionState
from dndcore.models.rules import RulesTable


class HitPoints(BaseModel):
    """Current and maximum hit points."""

    model_config = ConfigDict(frozen=True)  # Immutable model

    value: int = Field(default=0, description="Current hit points")
    max: int = Field(default=0, ge=0, description="Maximum hit points")


class ItemRecord(BaseModel):
    """An item owned by a character (class, feature, equipment)."""

    model_config = ConfigDict(frozen=True)  # Immutable model

    id: str = Field(description="Unique item identifier on the character")
    name: str = Field(description="Item name")
    type: str = Field(default="feat", description="Item type (class, subclass, feat, weapon, tool...)")
    source_uuid: Optional[str] = Field(default=None, description="Compendium UUID this item was created from")
    levels: int = Field(default=0, ge=0, description="Class levels, for class items")
    advancement: dict[str, AdvancementNode] = Field(
        default_factory=dict, description="Advancements keyed by id"
    )
    system: dict[str, Any] = Field(default_factory=dict, description="Additional item data")


class Character(BaseModel):
    """Complete character record as held by the document store."""

    model_config = ConfigDict(frozen=True)  # Immutable model

    id: str = Field(description="Unique character identifier")
    name: str = Field(description="Character name")
    level: int = Field(default=0, ge=0, description="Total character level")
    abilities: dict[str, int] = Field(default_factory=dict, description="Ability key -> score")
    hp: HitPoints = Field(default_factory=HitPoints, description="Hit points")
    skills: dict[str, float] = Field(
        default_factory=dict, description="Skill key -> proficiency multiplier (0, 0.5, 1, 2)"
    )
    tools: dict[str, float] = Field(default_factory=dict, description="Tool key -> proficiency multiplier")
    saves: list[str] = Field(default_factory=list, description="Abilities with saving throw proficiency")
    items: dict[str, ItemRecord] = Field(default_factory=dict, description="Owned items keyed by id")
    original_class: Optional[str] = Field(
        default=None, description="Id of the first class taken; defaults to the first owned class item"
    )
    progression: CharacterProgressionState = Field(
        default_factory=CharacterProgressionState, description="Applied advancements"
    )

    @property
    def proficiency_bonus(self) -> int:
        return (max(self.level, 1) + 7) // 4

    def is_original_class(self, item_id: str) -> bool:
        """Whether a class item is the character's original class rather than a multiclass."""
        if self.original_class:
            return item_id == self.original_class
        classes = [item.id for item in self.items.values() if item.type == "class"]
        return bool(classes) and classes[0] == item_id

    def ability_modifier(self, ability: str) -> int:
        return (self.abilities.get(ability, DEFAULT_ABILITY_SCORE) - 10) // 2

    def roll_data(self, rules: RulesTable) -> dict[str, Any]:
        """
        Build the data context used for @-references in formulas.

        Args:
            rules: Rules table naming the abilities and skills to expose

        Returns:
            Dict with 'abilities', 'skills', 'tools', 'prof' and 'level' entries
        """
        prof = self.proficiency_bonus
        abilities = {}
        for key, config in rules.abilities.items():
            if config.key:
                continue
            mod = self.ability_modifier(key)
            save = mod + (prof if key in self.saves else 0)
            abilities[key] = {
                "value": self.abilities.get(key, DEFAULT_ABILITY_SCORE),
                "mod": mod,
                "save": save,
                "dc": 8 + mod + prof,
            }
        skills = {}
        for key, config in rules.skills.items():
            if config.key:
                continue
            multiplier = self.skills.get(key, 0)
            bonus = int(prof * multiplier)
            skills[key] = {
                "ability": config.ability,
                "prof": bonus,
                "total": abilities.get(config.ability, {}).get("mod", 0) + bonus,
            }
        tools = {key: {"prof": int(prof * multiplier)} for key, multiplier in self.tools.items()}
        return {
            "abilities": abilities,
            "skills": skills,
            "tools": tools,
            "prof": prof,
            "level": self.level,
        }
