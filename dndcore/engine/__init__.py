"""Rules engine package."""

from dndcore.engine.formula import DiceFormula, evaluate_formula, replace_formula_data, simplify_bonus
from dndcore.engine.keybindings import KeybindingRegistry
from dndcore.engine.roll_configurator import RollConfigurator
from dndcore.engine.roll_evaluator import RollEvaluator
from dndcore.engine.roll_workflow import MessageChannel, RollDialog, RollWorkflow
from dndcore.engine.advancement import (
    AbilityScoreImprovementAdvancement,
    Advancement,
    HitPointsAdvancement,
    ItemGrantAdvancement,
    create_advancement,
)
from dndcore.engine.advancement_engine import AdvancementEngine, AdvancementFlow
from dndcore.engine.enricher import TextEnricher, enrich_text, parse_config

__all__ = [
    "DiceFormula",
    "evaluate_formula",
    "replace_formula_data",
    "simplify_bonus",
    "KeybindingRegistry",
    "RollConfigurator",
    "RollEvaluator",
    "RollDialog",
    "MessageChannel",
    "RollWorkflow",
    "Advancement",
    "AbilityScoreImprovementAdvancement",
    "HitPointsAdvancement",
    "ItemGrantAdvancement",
    "create_advancement",
    "AdvancementEngine",
    "AdvancementFlow",
    "TextEnricher",
    "enrich_text",
    "parse_config",
]
