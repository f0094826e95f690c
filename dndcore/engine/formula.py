"""Dice formula parsing and evaluation.

Supports standard notation with arithmetic and a subset of dice modifiers:

    1d20 + @mod + 2, 2d20kh, 8d4dl, 1d20r1, 1d20min10, floor(@level / 2)d6

Dice modifiers: kh/k (keep highest), kl (keep lowest), dh (drop highest),
dl/d (drop lowest), r (reroll once), rr (reroll recursively), min, max.
"""

import logging
import math
import random
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from dndcore.config import DEFAULT_MAX_DICE, DEFAULT_MAX_FACES
from dndcore.errors import FormulaError
from dndcore.helpers.paths import get_property
from dndcore.models.rolls import DieResult, FormulaResult, TermResult

logger = logging.getLogger(__name__)

Number = Union[int, float]

_REFERENCE_RE = re.compile(r"@([a-zA-Z_][\w.\-]*)")

_TOKEN_RE = re.compile(
    r"""\s*(?:
        (?P<dice>(?P<number>\d*)[dD](?P<faces>\d+)(?P<mods>(?:(?:kh|kl|k|dh|dl|d|rr|r|min|max)\d*)*))
      | (?P<num>\d+(?:\.\d+)?)
      | (?P<func>[a-zA-Z_]\w*)(?=\s*\()
      | (?P<op>[-+*/%])
      | (?P<lparen>\()
      | (?P<rparen>\))
      | (?P<comma>,)
      | (?P<flavor>\[[^\]]*\])
    )""",
    re.VERBOSE,
)

_MODIFIER_RE = re.compile(r"(kh|kl|k|dh|dl|d|rr|r|min|max)(\d*)")

_FUNCTIONS = {
    "floor": math.floor,
    "ceil": math.ceil,
    "round": round,
    "abs": abs,
    "min": min,
    "max": max,
}

_MAX_REROLLS = 100


def _normalize(value: Number) -> Number:
    """Collapse integral floats back to int."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def replace_formula_data(
    formula: str, data: Optional[dict[str, Any]] = None, missing: Optional[str] = None
) -> str:
    """
    Replace @-references in a formula with values from roll data.

    Args:
        formula: Formula containing references like '@abilities.dex.mod'
        data: Roll data to resolve references against
        missing: Replacement for unresolved references; None leaves them in place

    Returns:
        Formula with references substituted
    """
    data = data or {}

    def _replace(match: re.Match) -> str:
        value = get_property(data, match.group(1))
        if value is None or isinstance(value, (dict, list)):
            if missing is None:
                return match.group(0)
            logger.debug(f"Unresolved formula reference {match.group(0)} replaced with {missing!r}")
            return missing
        value = str(value).strip()
        # Compound values keep their precedence when spliced into a larger formula
        if re.search(r"[-+*/\s]", value.lstrip("-+")):
            return f"({value})"
        return value

    return _REFERENCE_RE.sub(_replace, formula)


class EvaluationContext:
    """Evaluation state for a single pass over a formula."""

    def __init__(self, rng: random.Random, minimize: bool = False, maximize: bool = False) -> None:
        self.rng = rng
        self.minimize = minimize
        self.maximize = maximize

    @property
    def deterministic(self) -> bool:
        return self.minimize or self.maximize

    def roll_die(self, faces: int) -> int:
        if self.maximize:
            return faces
        if self.minimize:
            return 1
        return self.rng.randint(1, faces)


@dataclass
class DiceTerm:
    """A pool of identical dice with optional modifiers."""

    number: int
    faces: int
    modifiers: list[tuple[str, Optional[int]]] = field(default_factory=list)
    flavor: Optional[str] = None

    @property
    def formula(self) -> str:
        mods = "".join(f"{name}{'' if value is None else value}" for name, value in self.modifiers)
        flavor = f"[{self.flavor}]" if self.flavor else ""
        return f"{self.number}d{self.faces}{mods}{flavor}"

    def roll(self, ctx: EvaluationContext) -> list[DieResult]:
        """Roll the pool and apply modifiers in order."""
        if self.number > DEFAULT_MAX_DICE:
            raise FormulaError(f"Too many dice: {self.number} (max {DEFAULT_MAX_DICE})")
        if self.faces > DEFAULT_MAX_FACES:
            raise FormulaError(f"Too many faces: {self.faces} (max {DEFAULT_MAX_FACES})")
        results = [DieResult(faces=self.faces, result=ctx.roll_die(self.faces)) for _ in range(self.number)]
        for name, value in self.modifiers:
            results = self._apply_modifier(name, value, results, ctx)
        return results

    def evaluate(self, ctx: EvaluationContext, dice: list[DieResult]) -> Number:
        rolled = self.roll(ctx)
        dice.extend(rolled)
        return sum(die.result for die in rolled if die.active)

    def _apply_modifier(
        self, name: str, value: Optional[int], results: list[DieResult], ctx: EvaluationContext
    ) -> list[DieResult]:
        active = [die for die in results if die.active]
        if name in ("r", "rr"):
            target = 1 if value is None else value
            if ctx.deterministic:
                return results
            new_results = []
            for die in results:
                new_results.append(die)
                if not die.active or die.result != target:
                    continue
                attempts = 0
                current = die
                while current.result == target and attempts < (1 if name == "r" else _MAX_REROLLS):
                    current.active = False
                    current.rerolled = True
                    current = DieResult(faces=self.faces, result=ctx.roll_die(self.faces))
                    new_results.append(current)
                    attempts += 1
            return new_results
        if name == "min":
            for die in active:
                die.result = max(die.result, value or 1)
            return results
        if name == "max":
            for die in active:
                die.result = min(die.result, value or self.faces)
            return results

        count = 1 if value is None else value
        ordered = sorted(active, key=lambda die: die.result)
        if name in ("kh", "k"):
            discard = ordered[: max(len(ordered) - count, 0)]
        elif name == "kl":
            discard = ordered[count:]
        elif name == "dh":
            discard = ordered[len(ordered) - count:] if count else []
        elif name in ("dl", "d"):
            discard = ordered[:count]
        else:
            raise FormulaError(f"Unsupported dice modifier: {name}")
        for die in discard:
            die.active = False
        return results


@dataclass
class NumericTerm:
    value: Number
    flavor: Optional[str] = None

    @property
    def formula(self) -> str:
        flavor = f"[{self.flavor}]" if self.flavor else ""
        return f"{self.value}{flavor}"

    def evaluate(self, ctx: EvaluationContext, dice: list[DieResult]) -> Number:
        return self.value


@dataclass
class Parenthetical:
    expression: Any
    flavor: Optional[str] = None

    @property
    def formula(self) -> str:
        flavor = f"[{self.flavor}]" if self.flavor else ""
        return f"({self.expression.formula}){flavor}"

    def evaluate(self, ctx: EvaluationContext, dice: list[DieResult]) -> Number:
        return self.expression.evaluate(ctx, dice)


@dataclass
class FunctionTerm:
    name: str
    args: list[Any]

    @property
    def formula(self) -> str:
        return f"{self.name}({', '.join(arg.formula for arg in self.args)})"

    def evaluate(self, ctx: EvaluationContext, dice: list[DieResult]) -> Number:
        values = [arg.evaluate(ctx, dice) for arg in self.args]
        return _FUNCTIONS[self.name](*values)


@dataclass
class DynamicDiceTerm:
    """Dice whose count is computed, e.g. '(@level)d6' or 'floor(@level / 2)d6'."""

    count: Any
    faces: int
    modifiers: list[tuple[str, Optional[int]]] = field(default_factory=list)
    flavor: Optional[str] = None

    @property
    def formula(self) -> str:
        mods = "".join(f"{name}{'' if value is None else value}" for name, value in self.modifiers)
        return f"{self.count.formula}d{self.faces}{mods}"

    def evaluate(self, ctx: EvaluationContext, dice: list[DieResult]) -> Number:
        number = int(self.count.evaluate(ctx, dice))
        return DiceTerm(number, self.faces, list(self.modifiers), self.flavor).evaluate(ctx, dice)


@dataclass
class Negate:
    operand: Any

    @property
    def formula(self) -> str:
        return f"-{self.operand.formula}"

    def evaluate(self, ctx: EvaluationContext, dice: list[DieResult]) -> Number:
        return -self.operand.evaluate(ctx, dice)


@dataclass
class BinaryOp:
    operator: str
    left: Any
    right: Any

    @property
    def formula(self) -> str:
        return f"{self.left.formula} {self.operator} {self.right.formula}"

    def evaluate(self, ctx: EvaluationContext, dice: list[DieResult]) -> Number:
        left = self.left.evaluate(ctx, dice)
        right = self.right.evaluate(ctx, dice)
        if self.operator == "+":
            return left + right
        if self.operator == "-":
            return left - right
        if self.operator == "*":
            return left * right
        if right == 0:
            raise FormulaError(f"Division by zero in {self.formula}")
        if self.operator == "/":
            return left / right
        return left % right


class _Parser:
    """Recursive descent parser producing term nodes."""

    def __init__(self, formula: str) -> None:
        self.formula = formula
        self.tokens = self._tokenize(formula)
        self.pos = 0

    @staticmethod
    def _tokenize(formula: str) -> list[tuple[str, re.Match]]:
        tokens = []
        pos = 0
        text = formula.rstrip()
        while pos < len(text):
            match = _TOKEN_RE.match(text, pos)
            if not match or match.end() == pos:
                raise FormulaError(f"Unexpected input {text[pos:].strip()!r} in formula {formula!r}")
            tokens.append((match.lastgroup if match.lastgroup not in ("number", "faces", "mods") else "dice", match))
            pos = match.end()
        return tokens

    def _peek(self) -> Optional[str]:
        return self.tokens[self.pos][0] if self.pos < len(self.tokens) else None

    def _peek_text(self) -> Optional[str]:
        if self.pos >= len(self.tokens):
            return None
        kind, match = self.tokens[self.pos]
        return match.group(kind)

    def _next(self) -> tuple[str, re.Match]:
        if self.pos >= len(self.tokens):
            raise FormulaError(f"Unexpected end of formula {self.formula!r}")
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def _expect(self, kind: str) -> re.Match:
        actual, match = self._next()
        if actual != kind:
            raise FormulaError(f"Expected {kind} but found {match.group(actual)!r} in formula {self.formula!r}")
        return match

    def _flavor(self) -> Optional[str]:
        if self._peek() == "flavor":
            _, match = self._next()
            return match.group("flavor")[1:-1].strip() or None
        return None

    def parse(self) -> Any:
        if not self.tokens:
            raise FormulaError("Formula is empty")
        node = self.expression()
        if self.pos != len(self.tokens):
            raise FormulaError(f"Unexpected {self._peek_text()!r} in formula {self.formula!r}")
        return node

    def expression(self) -> Any:
        node = self.product()
        while self._peek() == "op" and self._peek_text() in ("+", "-"):
            _, match = self._next()
            node = BinaryOp(match.group("op"), node, self.product())
        return node

    def product(self) -> Any:
        node = self.unary()
        while self._peek() == "op" and self._peek_text() in ("*", "/", "%"):
            _, match = self._next()
            node = BinaryOp(match.group("op"), node, self.unary())
        return node

    def unary(self) -> Any:
        if self._peek() == "op" and self._peek_text() in ("+", "-"):
            _, match = self._next()
            operand = self.unary()
            return Negate(operand) if match.group("op") == "-" else operand
        return self.primary()

    def primary(self) -> Any:
        kind, match = self._next()
        if kind == "dice":
            number = int(match.group("number") or 1)
            faces = int(match.group("faces"))
            if faces < 1:
                raise FormulaError(f"Dice must have at least one face in formula {self.formula!r}")
            return DiceTerm(number, faces, _parse_modifiers(match.group("mods")), self._flavor())
        if kind == "num":
            return NumericTerm(_normalize(float(match.group("num"))), self._flavor())
        if kind == "func":
            name = match.group("func").lower()
            if name not in _FUNCTIONS:
                raise FormulaError(f"Unknown function {name!r} in formula {self.formula!r}")
            self._expect("lparen")
            args = [self.expression()]
            while self._peek() == "comma":
                self._next()
                args.append(self.expression())
            self._expect("rparen")
            return self._dynamic_dice(FunctionTerm(name, args))
        if kind == "lparen":
            inner = self.expression()
            self._expect("rparen")
            return self._dynamic_dice(Parenthetical(inner, self._flavor()))
        raise FormulaError(f"Unexpected {match.group(kind)!r} in formula {self.formula!r}")

    def _dynamic_dice(self, count: Any) -> Any:
        """Handle a computed count followed directly by 'dN'."""
        if self._peek() != "dice":
            return count
        kind, match = self.tokens[self.pos]
        if match.group("number"):
            return count
        self.pos += 1
        faces = int(match.group("faces"))
        return DynamicDiceTerm(count, faces, _parse_modifiers(match.group("mods")), self._flavor())


def _parse_modifiers(mods: str) -> list[tuple[str, Optional[int]]]:
    return [(name, int(value) if value else None) for name, value in _MODIFIER_RE.findall(mods or "")]


def _has_dice(node: Any) -> bool:
    if isinstance(node, (DiceTerm, DynamicDiceTerm)):
        return True
    if isinstance(node, BinaryOp):
        return _has_dice(node.left) or _has_dice(node.right)
    if isinstance(node, Negate):
        return _has_dice(node.operand)
    if isinstance(node, Parenthetical):
        return _has_dice(node.expression)
    if isinstance(node, FunctionTerm):
        return any(_has_dice(arg) for arg in node.args)
    return False


def _flatten(node: Any, operator: str = "+") -> list[tuple[str, Any]]:
    """Split the top-level additive chain into signed terms."""
    if isinstance(node, BinaryOp) and node.operator in ("+", "-"):
        left = _flatten(node.left, operator)
        right_operator = node.operator if operator == "+" else ("-" if node.operator == "+" else "+")
        return left + _flatten(node.right, right_operator)
    return [(operator, node)]


class DiceFormula:
    """A parsed dice formula split into top-level signed terms."""

    def __init__(self, terms: list[tuple[str, Any]]) -> None:
        self.terms = terms

    @classmethod
    def parse(cls, formula: Union[str, int, float], data: Optional[dict[str, Any]] = None) -> "DiceFormula":
        """
        Parse a formula after substituting roll data.

        Raises:
            FormulaError: If the formula is empty, malformed or has unresolved references
        """
        text = replace_formula_data(str(formula), data)
        unresolved = _REFERENCE_RE.search(text)
        if unresolved:
            raise FormulaError(f"Unresolved reference {unresolved.group(0)} in formula {formula!r}")
        return cls(_flatten(_Parser(text).parse()))

    @property
    def formula(self) -> str:
        parts = []
        for index, (operator, node) in enumerate(self.terms):
            if index == 0:
                parts.append(node.formula if operator == "+" else f"-{node.formula}")
            else:
                parts.append(f"{operator} {node.formula}")
        return " ".join(parts)

    @property
    def dice_terms(self) -> list[DiceTerm]:
        return [node for _, node in self.terms if isinstance(node, DiceTerm)]

    @property
    def is_deterministic(self) -> bool:
        """Whether the formula contains no dice at all."""
        return not any(_has_dice(node) for _, node in self.terms)

    def evaluate(
        self,
        rng: Optional[random.Random] = None,
        minimize: bool = False,
        maximize: bool = False,
    ) -> FormulaResult:
        """
        Evaluate all terms.

        Args:
            rng: Random source; a fresh one is used if omitted
            minimize: Treat every die as rolling its minimum
            maximize: Treat every die as rolling its maximum

        Returns:
            FormulaResult with per-term breakdown and total
        """
        ctx = EvaluationContext(rng or random.Random(), minimize=minimize, maximize=maximize)
        term_results = []
        total: Number = 0
        for operator, node in self.terms:
            dice: list[DieResult] = []
            value = _normalize(node.evaluate(ctx, dice))
            total = total + value if operator == "+" else total - value
            term_results.append(
                TermResult(
                    operator=operator,
                    formula=node.formula,
                    total=value,
                    dice=dice,
                    flavor=getattr(node, "flavor", None),
                )
            )
        return FormulaResult(formula=self.formula, total=_normalize(total), terms=term_results)


def evaluate_formula(
    formula: Union[str, int, float],
    data: Optional[dict[str, Any]] = None,
    rng: Optional[random.Random] = None,
    minimize: bool = False,
    maximize: bool = False,
) -> FormulaResult:
    """Parse and evaluate a formula in one step."""
    return DiceFormula.parse(formula, data).evaluate(rng=rng, minimize=minimize, maximize=maximize)


def simplify_bonus(bonus: Union[str, int, float, None], data: Optional[dict[str, Any]] = None) -> Number:
    """
    Reduce a bonus (number or formula such as '@abilities.int.dc') to a number.

    Returns 0 for empty bonuses and for formulas that cannot be evaluated.
    """
    if isinstance(bonus, (int, float)):
        return bonus
    if not bonus:
        return 0
    try:
        return evaluate_formula(bonus, data).total
    except FormulaError as e:
        logger.warning(f"Could not simplify bonus {bonus!r}: {e}")
        return 0
