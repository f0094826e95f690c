"""Data models module for dndcore."""

# Rules
from dndcore.models.rules import AbilityConfig, RulesTable, SkillConfig, ToolConfig, default_rules

# Keys
from dndcore.models.keys import InputEvent, KeyBinding, ModifierKey

# Rolls
from dndcore.models.rolls import (
    AdvantageMode,
    D20RollConfig,
    D20RollResult,
    DamageRequest,
    DamageRollConfig,
    DamageRollResult,
    DieResult,
    FormulaResult,
    RollOutcome,
    RollRequest,
    RollStatus,
    TermResult,
)

# Advancement
from dndcore.models.advancement import (
    AdvancementNode,
    AdvancementOutcome,
    AdvancementState,
    AdvancementStatus,
    AdvancementType,
    AdvancementUpdates,
    CharacterProgressionState,
    ProgressionEntry,
)

# Character
from dndcore.models.character import Character, HitPoints, ItemRecord

# Enrichment
from dndcore.models.enrichment import EnrichmentConfig, PassiveCheck, RollLink

__all__ = [
    # Rules
    "AbilityConfig",
    "SkillConfig",
    "ToolConfig",
    "RulesTable",
    "default_rules",
    # Keys
    "ModifierKey",
    "KeyBinding",
    "InputEvent",
    # Rolls
    "AdvantageMode",
    "RollStatus",
    "DieResult",
    "TermResult",
    "FormulaResult",
    "RollRequest",
    "DamageRequest",
    "D20RollConfig",
    "DamageRollConfig",
    "D20RollResult",
    "DamageRollResult",
    "RollOutcome",
    # Advancement
    "AdvancementType",
    "AdvancementState",
    "AdvancementStatus",
    "AdvancementNode",
    "AdvancementUpdates",
    "ProgressionEntry",
    "CharacterProgressionState",
    "AdvancementOutcome",
    # Character
    "HitPoints",
    "ItemRecord",
    "Character",
    # Enrichment
    "EnrichmentConfig",
    "RollLink",
    "PassiveCheck",
]
