"""Evaluation of configured d20 and damage rolls."""

import logging
import math
import random
from dataclasses import dataclass
from typing import Any, Optional, Union

from dndcore.config import DEFAULT_HALFLING_LUCKY_REROLL, DEFAULT_MAX_DICE, DEFAULT_RELIABLE_TALENT_MINIMUM
from dndcore.engine.formula import (
    BinaryOp,
    DiceFormula,
    DiceTerm,
    DynamicDiceTerm,
    EvaluationContext,
    FunctionTerm,
    Negate,
    NumericTerm,
    Parenthetical,
)
from dndcore.errors import FormulaError, InvalidConfiguration
from dndcore.models.rolls import (
    AdvantageMode,
    D20RollConfig,
    D20RollResult,
    DamageRollConfig,
    DamageRollResult,
    DieResult,
    Number,
)

logger = logging.getLogger(__name__)


@dataclass
class CriticalDiceTerm:
    """A dice term with extra critical dice, rolled or maximized."""

    base: DiceTerm
    bonus: int
    powerful: bool = False

    @property
    def flavor(self) -> Optional[str]:
        return self.base.flavor

    @property
    def formula(self) -> str:
        if self.powerful:
            return f"{self.base.formula} + {self.bonus * self.base.faces}"
        return DiceTerm(self.base.number + self.bonus, self.base.faces, self.base.modifiers, self.base.flavor).formula

    def evaluate(self, ctx: EvaluationContext, dice: list[DieResult]) -> Number:
        if self.powerful:
            if self.base.number + self.bonus > DEFAULT_MAX_DICE:
                raise FormulaError(f"Too many dice: {self.base.number + self.bonus} (max {DEFAULT_MAX_DICE})")
            rolled = self.base.roll(ctx)
            # Maximized dice are never rolled
            rolled.extend(
                DieResult(faces=self.base.faces, result=self.base.faces, maximized=True, bonus=True)
                for _ in range(self.bonus)
            )
        else:
            pool = DiceTerm(self.base.number + self.bonus, self.base.faces, self.base.modifiers, self.base.flavor)
            rolled = pool.roll(ctx)
            for die in rolled[self.base.number:self.base.number + self.bonus]:
                die.bonus = True
        dice.extend(rolled)
        return sum(die.result for die in rolled if die.active)


@dataclass
class CriticalDynamicDiceTerm:
    """Computed-count dice on a critical; the extra dice follow the count once it is known."""

    base: DynamicDiceTerm
    multiplier: int
    bonus: int = 0
    powerful: bool = False

    @property
    def flavor(self) -> Optional[str]:
        return self.base.flavor

    @property
    def formula(self) -> str:
        extra = f" + {self.bonus}" if self.bonus else ""
        if self.powerful:
            return f"{self.base.formula} + ({self.base.count.formula} * {self.multiplier - 1}{extra}) * {self.base.faces}"
        mods = "".join(f"{name}{'' if value is None else value}" for name, value in self.base.modifiers)
        return f"({self.base.count.formula} * {self.multiplier}{extra})d{self.base.faces}{mods}"

    def evaluate(self, ctx: EvaluationContext, dice: list[DieResult]) -> Number:
        number = int(self.base.count.evaluate(ctx, dice))
        term = DiceTerm(number, self.base.faces, list(self.base.modifiers), self.base.flavor)
        extra = number * (self.multiplier - 1) + self.bonus
        if extra <= 0:
            return term.evaluate(ctx, dice)
        return CriticalDiceTerm(term, extra, powerful=self.powerful).evaluate(ctx, dice)


class RollEvaluator:
    """Evaluates roll configurations; never posts messages itself."""

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        """
        Initialize evaluator.

        Args:
            rng: Random source for dice; seed it for reproducible rolls
        """
        self.rng = rng or random.Random()

    def evaluate_d20(self, config: D20RollConfig) -> D20RollResult:
        """
        Evaluate a d20 roll, applying advantage and roll features to the base die.

        Raises:
            InvalidConfiguration: If the formula is invalid or does not start with a die
        """
        formula = DiceFormula.parse(config.formula, config.data)
        operator, base = formula.terms[0]
        if operator != "+" or not isinstance(base, DiceTerm):
            raise InvalidConfiguration(f"D20 roll formula must start with a die: {config.formula!r}")

        number = base.number
        modifiers = list(base.modifiers)
        if config.halfling_lucky:
            modifiers.append(("r", DEFAULT_HALFLING_LUCKY_REROLL))
        if config.advantage_mode == AdvantageMode.ADVANTAGE:
            number = 3 if config.elven_accuracy else 2
            modifiers.append(("kh", None))
        elif config.advantage_mode == AdvantageMode.DISADVANTAGE:
            number = 2
            modifiers.append(("kl", None))
        if config.reliable_talent:
            modifiers.append(("min", DEFAULT_RELIABLE_TALENT_MINIMUM))

        formula.terms[0] = ("+", DiceTerm(number, base.faces, modifiers, base.flavor))
        evaluated = formula.evaluate(rng=self.rng)
        natural = int(evaluated.terms[0].total)

        is_critical = config.critical is not None and natural >= config.critical
        is_fumble = config.fumble is not None and natural <= config.fumble
        is_success = None
        if config.target_value is not None:
            is_success = evaluated.total >= config.target_value

        logger.debug(f"Rolled {evaluated.formula} = {evaluated.total} (natural {natural})")
        return D20RollResult(
            config=config,
            formula=evaluated.formula,
            total=evaluated.total,
            natural=natural,
            terms=evaluated.terms,
            is_critical=is_critical,
            is_fumble=is_fumble,
            is_success=is_success,
            chat_message_requested=config.chat_message,
        )

    def evaluate_damage(self, config: DamageRollConfig) -> DamageRollResult:
        """
        Evaluate a damage roll.

        On a critical the dice count is multiplied (plus any bonus dice on the
        first dice term) instead of doubling the total.

        Raises:
            InvalidConfiguration: If the formula is invalid
        """
        formula = DiceFormula.parse(config.formula, config.data)
        is_critical = config.is_critical and config.allow_critical
        if is_critical:
            formula = self._apply_critical(formula, config)

        evaluated = formula.evaluate(rng=self.rng)
        logger.debug(f"Rolled damage {evaluated.formula} = {evaluated.total} (critical={is_critical})")
        return DamageRollResult(
            config=config,
            formula=evaluated.formula,
            total=evaluated.total,
            terms=evaluated.terms,
            is_critical=is_critical,
            damage_type=config.damage_type,
            chat_message_requested=config.chat_message,
        )

    @staticmethod
    def _apply_critical(formula: DiceFormula, config: DamageRollConfig) -> DiceFormula:
        multiplier = config.critical_multiplier
        bonus_dice = config.critical_bonus_dice

        def take_bonus() -> int:
            nonlocal bonus_dice
            bonus, bonus_dice = bonus_dice, 0
            return bonus

        def criticalize(node: Any) -> Any:
            if isinstance(node, DiceTerm):
                bonus = node.number * (multiplier - 1) + take_bonus()
                return CriticalDiceTerm(node, bonus, powerful=config.powerful_critical) if bonus else node
            if isinstance(node, DynamicDiceTerm):
                bonus = take_bonus()
                if multiplier == 1 and not bonus:
                    return node
                return CriticalDynamicDiceTerm(node, multiplier, bonus, powerful=config.powerful_critical)
            if isinstance(node, Parenthetical):
                return Parenthetical(criticalize(node.expression), node.flavor)
            if isinstance(node, BinaryOp):
                return BinaryOp(node.operator, criticalize(node.left), criticalize(node.right))
            if isinstance(node, Negate):
                return Negate(criticalize(node.operand))
            if isinstance(node, FunctionTerm):
                return FunctionTerm(node.name, [criticalize(arg) for arg in node.args])
            return node

        terms = []
        for operator, node in formula.terms:
            # Only standalone numbers are multiplied, never those nested in expressions
            if isinstance(node, NumericTerm) and config.multiply_numeric:
                node = NumericTerm(node.value * multiplier, node.flavor)
            else:
                node = criticalize(node)
            terms.append((operator, node))

        if config.critical_bonus_damage:
            extra = DiceFormula.parse(config.critical_bonus_damage, config.data)
            terms.extend(extra.terms)
        return DiceFormula(terms)

    @staticmethod
    def average(
        formula: str,
        data: Optional[dict[str, Any]] = None,
        override: Union[int, float, bool, None] = None,
    ) -> Number:
        """
        Average value of a formula: floor((min + max) / 2).

        Args:
            formula: Formula to average
            data: Roll data for references
            override: Fixed average; a number is returned as-is without evaluating

        Returns:
            The average, or the override when one is given
        """
        if isinstance(override, (int, float)) and not isinstance(override, bool):
            return override
        parsed = DiceFormula.parse(formula, data)
        low = parsed.evaluate(minimize=True).total
        high = parsed.evaluate(maximize=True).total
        return math.floor((low + high) / 2)
