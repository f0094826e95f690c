"""Rules lookup tables (abilities, skills, tools, damage types)."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from dndcore.errors import NotFound


class AbilityConfig(BaseModel):
    """An ability score entry."""

    model_config = ConfigDict(frozen=True)  # Immutable model

    label: str = Field(description="Display label (e.g., 'Dexterity')")
    abbreviation: str = Field(description="Short form (e.g., 'dex')")
    key: Optional[str] = Field(default=None, description="Canonical key when this entry is an alias")


class SkillConfig(BaseModel):
    """A skill entry with its default ability."""

    model_config = ConfigDict(frozen=True)  # Immutable model

    label: str = Field(description="Display label (e.g., 'Acrobatics')")
    ability: str = Field(description="Default ability key used for this skill")
    key: Optional[str] = Field(default=None, description="Canonical key when this entry is an alias")


class ToolConfig(BaseModel):
    """A tool proficiency entry."""

    model_config = ConfigDict(frozen=True)  # Immutable model

    label: str = Field(description="Display label (e.g., \"Thieves' Tools\")")
    uuid: str = Field(description="Compendium UUID of the base tool item")
    ability: Optional[str] = Field(default=None, description="Suggested ability for checks")


class RulesTable(BaseModel):
    """Immutable rules table passed explicitly to every resolver."""

    model_config = ConfigDict(frozen=True)  # Immutable model

    abilities: dict[str, AbilityConfig] = Field(default_factory=dict, description="Ability key -> config")
    skills: dict[str, SkillConfig] = Field(default_factory=dict, description="Skill key -> config")
    tools: dict[str, ToolConfig] = Field(default_factory=dict, description="Tool key -> config")
    damage_types: dict[str, str] = Field(default_factory=dict, description="Damage type key -> label")
    healing_types: dict[str, str] = Field(default_factory=dict, description="Healing type key -> label")

    def get_ability(self, key: str) -> AbilityConfig:
        """Look up an ability, raising NotFound when absent."""
        try:
            return self.abilities[key]
        except KeyError:
            raise NotFound("Ability", key) from None

    def get_skill(self, key: str) -> SkillConfig:
        """Look up a skill, raising NotFound when absent."""
        try:
            return self.skills[key]
        except KeyError:
            raise NotFound("Skill", key) from None

    def get_tool(self, key: str) -> ToolConfig:
        """Look up a tool, raising NotFound when absent."""
        try:
            return self.tools[key]
        except KeyError:
            raise NotFound("Tool", key) from None

    def canonical_ability(self, key: str) -> str:
        """Resolve an ability alias (e.g., 'dexterity') to its key ('dex')."""
        return self.get_ability(key).key or key

    def canonical_skill(self, key: str) -> str:
        """Resolve a skill alias (e.g., 'acrobatics') to its key ('acr')."""
        return self.get_skill(key).key or key

    def is_damage_type(self, key: str) -> bool:
        """Whether the key names a damage or healing type."""
        return key in self.damage_types or key in self.healing_types


def _abilities() -> dict[str, AbilityConfig]:
    base = {
        "str": "Strength",
        "dex": "Dexterity",
        "con": "Constitution",
        "int": "Intelligence",
        "wis": "Wisdom",
        "cha": "Charisma",
    }
    table = {key: AbilityConfig(label=label, abbreviation=key) for key, label in base.items()}
    # Full names are accepted in link text and resolve to the short key
    for key, label in base.items():
        table[label.lower()] = AbilityConfig(label=label, abbreviation=key, key=key)
    return table


def _skills() -> dict[str, SkillConfig]:
    base = {
        "acr": ("Acrobatics", "dex"),
        "ani": ("Animal Handling", "wis"),
        "arc": ("Arcana", "int"),
        "ath": ("Athletics", "str"),
        "dec": ("Deception", "cha"),
        "his": ("History", "int"),
        "ins": ("Insight", "wis"),
        "itm": ("Intimidation", "cha"),
        "inv": ("Investigation", "int"),
        "med": ("Medicine", "wis"),
        "nat": ("Nature", "int"),
        "prc": ("Perception", "wis"),
        "prf": ("Performance", "cha"),
        "per": ("Persuasion", "cha"),
        "rel": ("Religion", "int"),
        "slt": ("Sleight of Hand", "dex"),
        "ste": ("Stealth", "dex"),
        "sur": ("Survival", "wis"),
    }
    table = {key: SkillConfig(label=label, ability=ability) for key, (label, ability) in base.items()}
    for key, (label, ability) in base.items():
        alias = label.lower().replace(" ", "")
        table[alias] = SkillConfig(label=label, ability=ability, key=key)
    return table


def default_rules() -> RulesTable:
    """Build the standard fifth-edition rules table."""
    return RulesTable(
        abilities=_abilities(),
        skills=_skills(),
        tools={
            "alchemist": ToolConfig(label="Alchemist's Supplies", uuid="Compendium.dnd5e.items.SztwZhbhZeCqyAes", ability="int"),
            "brewer": ToolConfig(label="Brewer's Supplies", uuid="Compendium.dnd5e.items.Yg5dYmWYJlnXmHPh", ability="int"),
            "disg": ToolConfig(label="Disguise Kit", uuid="Compendium.dnd5e.items.IBhDAr7WkhWPYLVn", ability="cha"),
            "forg": ToolConfig(label="Forgery Kit", uuid="Compendium.dnd5e.items.cG3m4YlHfbQlLEOx", ability="dex"),
            "herb": ToolConfig(label="Herbalism Kit", uuid="Compendium.dnd5e.items.i89okN7GFTWHsvPy", ability="int"),
            "navg": ToolConfig(label="Navigator's Tools", uuid="Compendium.dnd5e.items.YHCmjsiXxZ9UdUhU", ability="wis"),
            "pois": ToolConfig(label="Poisoner's Kit", uuid="Compendium.dnd5e.items.il2GNi8C0DvGLL9P", ability="int"),
            "thief": ToolConfig(label="Thieves' Tools", uuid="Compendium.dnd5e.items.woWZ1sO5IUVGzo58", ability="dex"),
        },
        damage_types={
            "acid": "Acid",
            "bludgeoning": "Bludgeoning",
            "cold": "Cold",
            "fire": "Fire",
            "force": "Force",
            "lightning": "Lightning",
            "necrotic": "Necrotic",
            "piercing": "Piercing",
            "poison": "Poison",
            "psychic": "Psychic",
            "radiant": "Radiant",
            "slashing": "Slashing",
            "thunder": "Thunder",
        },
        healing_types={
            "healing": "Healing",
            "temphp": "Temporary Healing",
        },
    )
