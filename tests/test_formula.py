"""Tests for dice formula parsing and evaluation."""

import random

import pytest

from dndcore.engine.formula import (
    DiceFormula,
    DiceTerm,
    NumericTerm,
    evaluate_formula,
    replace_formula_data,
    simplify_bonus,
)
from dndcore.errors import FormulaError, InvalidConfiguration
from dndcore.helpers.paths import get_property


class TestReplaceFormulaData:
    """Test suite for @-reference substitution."""

    def test_replaces_nested_reference(self):
        """Test dotted references resolve against nested dicts."""
        data = {"abilities": {"dex": {"mod": 3}}}
        assert replace_formula_data("1d20 + @abilities.dex.mod", data) == "1d20 + 3"

    def test_compound_values_are_parenthesized(self):
        """Test formula values keep their precedence when substituted."""
        data = {"bonus": "1d4 + 2"}
        assert replace_formula_data("2 * @bonus", data) == "2 * (1d4 + 2)"

    def test_negative_number_is_not_parenthesized(self):
        """Test a plain negative number is substituted as-is."""
        assert replace_formula_data("1d20 + @mod", {"mod": -1}) == "1d20 + -1"

    def test_unresolved_reference_left_in_place(self):
        """Test unknown references stay when no replacement is given."""
        assert replace_formula_data("1d20 + @missing", {}) == "1d20 + @missing"

    def test_unresolved_reference_replaced(self):
        """Test unknown references use the missing replacement."""
        assert replace_formula_data("1d20 + @missing", {}, missing="0") == "1d20 + 0"

    def test_get_property_on_objects(self):
        """Test dotted lookup also walks attributes."""

        class Holder:
            value = {"inner": 5}

        assert get_property({"holder": Holder()}, "holder.value.inner") == 5
        assert get_property({}, "a.b.c") is None


class TestDiceFormulaParsing:
    """Test suite for formula parsing."""

    def test_parse_top_level_terms(self):
        """Test a formula splits into signed terms."""
        formula = DiceFormula.parse("1d20 + 5 - 2")
        operators = [operator for operator, _ in formula.terms]
        assert operators == ["+", "+", "-"]
        assert isinstance(formula.terms[0][1], DiceTerm)
        assert isinstance(formula.terms[1][1], NumericTerm)

    def test_parse_dice_modifiers(self):
        """Test dice modifiers are parsed in order."""
        term = DiceFormula.parse("2d20kh").terms[0][1]
        assert term.number == 2
        assert term.faces == 20
        assert term.modifiers == [("kh", None)]

    def test_parse_flavor(self):
        """Test flavor annotations attach to their term."""
        term = DiceFormula.parse("2d6[fire]").terms[0][1]
        assert term.flavor == "fire"

    def test_formula_round_trip_text(self):
        """Test the normalized formula text."""
        assert DiceFormula.parse("1d20+5").formula == "1d20 + 5"
        assert DiceFormula.parse("d8").formula == "1d8"

    def test_unresolved_reference_raises(self):
        """Test unresolved references are a formula error."""
        with pytest.raises(FormulaError):
            DiceFormula.parse("1d20 + @mod")

    def test_formula_error_is_invalid_configuration(self):
        """Test formula errors are caught as invalid configuration."""
        with pytest.raises(InvalidConfiguration):
            DiceFormula.parse("1d20 +")

    def test_garbage_raises(self):
        """Test unexpected characters raise."""
        with pytest.raises(FormulaError):
            DiceFormula.parse("1d20 $ 4")

    def test_empty_raises(self):
        """Test an empty formula raises."""
        with pytest.raises(FormulaError):
            DiceFormula.parse("")

    def test_unknown_function_raises(self):
        """Test unknown functions raise."""
        with pytest.raises(FormulaError):
            DiceFormula.parse("explode(3)")

    def test_is_deterministic(self):
        """Test deterministic detection."""
        assert DiceFormula.parse("3 + 4").is_deterministic
        assert not DiceFormula.parse("3 + (1d4)").is_deterministic


class TestDiceFormulaEvaluation:
    """Test suite for formula evaluation."""

    def test_arithmetic(self):
        """Test operator precedence."""
        assert evaluate_formula("2 + 3 * 4").total == 14
        assert evaluate_formula("(2 + 3) * 4").total == 20

    def test_functions(self):
        """Test supported math functions."""
        assert evaluate_formula("floor(7 / 2)").total == 3
        assert evaluate_formula("ceil(7 / 2)").total == 4
        assert evaluate_formula("max(2, 9, 4)").total == 9

    def test_integral_division_normalized(self):
        """Test integral floats collapse to int."""
        result = evaluate_formula("6 / 2")
        assert result.total == 3
        assert isinstance(result.total, int)

    def test_division_by_zero(self):
        """Test division by zero raises."""
        with pytest.raises(FormulaError):
            evaluate_formula("4 / 0")

    def test_minimize_and_maximize(self):
        """Test forced minimum and maximum dice."""
        assert evaluate_formula("2d6 + 1", minimize=True).total == 3
        assert evaluate_formula("2d6 + 1", maximize=True).total == 13

    def test_dice_within_range(self):
        """Test rolled dice stay within their faces."""
        rng = random.Random(7)
        for _ in range(50):
            result = evaluate_formula("3d6", rng=rng)
            assert 3 <= result.total <= 18
            assert len(result.dice) == 3

    def test_keep_highest(self):
        """Test kh keeps only the highest die."""
        result = evaluate_formula("4d6kh", rng=random.Random(3))
        active = [die for die in result.dice if die.active]
        assert len(active) == 1
        assert active[0].result == max(die.result for die in result.dice)

    def test_drop_lowest(self):
        """Test dl drops only the lowest die."""
        result = evaluate_formula("4d6dl", rng=random.Random(3))
        inactive = [die for die in result.dice if not die.active]
        assert len(inactive) == 1
        assert result.total == sum(die.result for die in result.dice) - inactive[0].result

    def test_minimum_modifier(self):
        """Test min raises low dice."""
        rng = random.Random(11)
        for _ in range(30):
            assert evaluate_formula("1d20min10", rng=rng).total >= 10

    def test_reroll_once_marks_rerolled(self):
        """Test r1 replaces a natural one with a new die."""
        rng = random.Random(5)
        for _ in range(200):
            result = evaluate_formula("1d20r1", rng=rng)
            rerolled = [die for die in result.dice if die.rerolled]
            active = [die for die in result.dice if die.active]
            assert len(active) == 1
            assert len(result.dice) == 1 + len(rerolled)
            assert all(die.result == 1 for die in rerolled)

    def test_dynamic_dice_count(self):
        """Test computed dice counts."""
        result = evaluate_formula("(@level)d6", {"level": 3}, maximize=True)
        assert result.total == 18

    def test_term_breakdown(self):
        """Test per-term results carry operators and flavor."""
        result = evaluate_formula("2d6[fire] - 1", maximize=True)
        assert [term.operator for term in result.terms] == ["+", "-"]
        assert result.terms[0].flavor == "fire"
        assert result.total == 11


class TestSimplifyBonus:
    """Test suite for bonus simplification."""

    def test_numbers_pass_through(self):
        """Test numeric bonuses are returned unchanged."""
        assert simplify_bonus(4) == 4

    def test_empty_bonus(self):
        """Test empty bonuses are zero."""
        assert simplify_bonus(None) == 0
        assert simplify_bonus("") == 0

    def test_formula_bonus(self):
        """Test formula bonuses resolve against data."""
        assert simplify_bonus("@abilities.int.dc", {"abilities": {"int": {"dc": 15}}}) == 15

    def test_invalid_bonus_is_zero(self):
        """Test unresolvable bonuses degrade to zero."""
        assert simplify_bonus("@abilities.int.dc", {}) == 0
