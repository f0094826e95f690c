"""Tests for advancement types and their pure update computation."""

import pytest
from pydantic import ValidationError

from dndcore.engine.advancement import (
    AbilityScoreImprovementAdvancement,
    AdvancementContext,
    HitPointsAdvancement,
    ItemGrantAdvancement,
    create_advancement,
)
from dndcore.engine.roll_evaluator import RollEvaluator
from dndcore.errors import InvalidConfiguration, NotFound
from dndcore.models.advancement import AdvancementNode, AdvancementType, AdvancementUpdates
from dndcore.models.character import ItemRecord
from dndcore.settings import RollSettings

SECOND_WIND_UUID = "Compendium.dnd5e.classfeatures.secondwind"
FIGHTING_STYLE_UUID = "Compendium.dnd5e.classfeatures.fightingstyle"


@pytest.fixture
def context(character, rules, rng):
    """Advancement context for the test character."""
    return AdvancementContext(character=character, rules=rules, evaluator=RollEvaluator(rng))


def asi(value=None, **configuration):
    node = AdvancementNode(
        id="asi",
        type=AdvancementType.ABILITY_SCORE_IMPROVEMENT,
        level=4,
        configuration=configuration or {"points": 2},
        value=value or {},
    )
    return AbilityScoreImprovementAdvancement(node)


def hit_points(value=None):
    node = AdvancementNode(id="hp", type=AdvancementType.HIT_POINTS, configuration={"hit_die": "d10"}, value=value or {})
    return HitPointsAdvancement(node)


def item_grant(value=None, optional=False):
    node = AdvancementNode(
        id="features",
        type=AdvancementType.ITEM_GRANT,
        level=1,
        configuration={"items": [SECOND_WIND_UUID, FIGHTING_STYLE_UUID], "optional": optional},
        value=value or {},
    )
    return ItemGrantAdvancement(node)


class TestAdvancementNode:
    """Test suite for AdvancementNode validation."""

    def test_value_keys_must_be_levels(self):
        """Test non-level value keys are rejected."""
        with pytest.raises(ValidationError):
            AdvancementNode(id="x", type=AdvancementType.HIT_POINTS, value={"first": 8})

    def test_create_advancement_dispatches_type(self):
        """Test the registry builds the matching class."""
        node = AdvancementNode(id="hp", type=AdvancementType.HIT_POINTS)
        assert isinstance(create_advancement(node), HitPointsAdvancement)

    def test_updates_is_empty(self):
        """Test empty update detection."""
        assert AdvancementUpdates().is_empty
        assert not AdvancementUpdates(deltas={"hp.max": 1}).is_empty


class TestAbilityScoreImprovement:
    """Test suite for ability score improvements."""

    def test_prepare_value_records_applied(self, context):
        """Test the applied increase is stored with the assignment."""
        entry = asi().prepare_value(4, {"dex": 1, "con": 1}, context)
        assert entry == {"assignments": {"dex": 1, "con": 1}, "applied": {"dex": 1, "con": 1}}

    def test_cap_limits_increase(self, context):
        """Test increases stop at the score cap."""
        advancement = asi(points=2, cap=17)
        entry = advancement.prepare_value(4, {"dex": 2}, context)
        assert entry["applied"] == {"dex": 1}

    def test_cap_from_settings(self, character, rules):
        """Test the cap falls back to settings."""
        context = AdvancementContext(character=character, rules=rules, settings=RollSettings(ability_score_cap=16))
        entry = asi().prepare_value(4, {"dex": 2, "str": 0}, context)
        assert entry["applied"] == {"dex": 0, "str": 0}

    def test_too_many_points(self, context):
        """Test spending more than the available points is invalid."""
        with pytest.raises(InvalidConfiguration):
            asi().prepare_value(4, {"dex": 2, "str": 1}, context)

    def test_unknown_ability(self, context):
        """Test unknown abilities raise NotFound."""
        with pytest.raises(NotFound):
            asi().prepare_value(4, {"luck": 1}, context)

    def test_fixed_increase(self, context):
        """Test fixed increases apply without a choice."""
        entry = asi(points=0, fixed={"str": 1}).prepare_value(4, {}, context)
        assert entry["applied"] == {"str": 1}

    def test_compute_updates_forward_and_reverse(self):
        """Test deltas come from the stored entry and negate on reverse."""
        advancement = asi(value={"4": {"assignments": {"dex": 2}, "applied": {"dex": 2}}})
        assert advancement.compute_updates(4).deltas == {"abilities.dex": 2}
        assert advancement.compute_updates(4, reverse=True).deltas == {"abilities.dex": -2}

    def test_compute_updates_diff_against_existing(self):
        """Test a proposed entry only produces its difference."""
        advancement = asi(value={"4": {"assignments": {"dex": 2}, "applied": {"dex": 2}}})
        proposed = {"assignments": {"dex": 1, "str": 1}, "applied": {"dex": 1, "str": 1}}
        assert advancement.compute_updates(4, updates=proposed).deltas == {"abilities.dex": -1, "abilities.str": 1}

    def test_compute_updates_is_pure(self):
        """Test computing updates does not change the node."""
        advancement = asi(value={"4": {"assignments": {"dex": 2}, "applied": {"dex": 2}}})
        before = advancement.node.model_dump_json()
        advancement.compute_updates(4)
        advancement.compute_updates(4, reverse=True)
        assert advancement.node.model_dump_json() == before

    def test_unconfigured_level_has_no_updates(self):
        """Test a level without a value entry produces nothing."""
        assert asi().compute_updates(4).is_empty
        assert asi().compute_updates(4, reverse=True).is_empty


class TestHitPoints:
    """Test suite for hit point advancement."""

    def test_applies_every_level(self):
        """Test hit points apply at every level up to the maximum."""
        assert hit_points().levels(20) == list(range(1, 21))
        assert hit_points().multi_level

    def test_max_and_average(self, context):
        """Test max and average choices include Constitution."""
        assert hit_points().prepare_value(1, "max", context) == {"choice": "max", "hp": 12}
        assert hit_points().prepare_value(2, "avg", context) == {"choice": "avg", "hp": 8}

    def test_rolled_value(self, context):
        """Test a rolled value within the die."""
        assert hit_points().prepare_value(2, 4, context) == {"choice": 4, "hp": 6}
        with pytest.raises(InvalidConfiguration):
            hit_points().prepare_value(2, 11, context)

    def test_roll_choice(self, context):
        """Test rolling stores the rolled number."""
        entry = hit_points().prepare_value(2, "roll", context)
        assert 1 <= entry["choice"] <= 10
        assert entry["hp"] == entry["choice"] + 2

    def test_invalid_choice(self, context):
        """Test unknown choices are invalid."""
        with pytest.raises(InvalidConfiguration):
            hit_points().prepare_value(2, "lots", context)

    def test_default_choice(self):
        """Test first level takes the maximum."""
        assert hit_points().default_choice(1) == "max"
        assert hit_points().default_choice(2) == "avg"

    def test_compute_updates(self):
        """Test hit point deltas touch maximum and current hit points."""
        advancement = hit_points(value={"1": {"choice": "max", "hp": 12}})
        assert advancement.compute_updates(1).deltas == {"hp.max": 12, "hp.value": 12}
        assert advancement.compute_updates(1, reverse=True).deltas == {"hp.max": -12, "hp.value": -12}

    def test_invalid_hit_die(self, context):
        """Test a malformed hit die is invalid."""
        node = AdvancementNode(id="hp", type=AdvancementType.HIT_POINTS, configuration={"hit_die": "dX"})
        with pytest.raises(InvalidConfiguration):
            HitPointsAdvancement(node).prepare_value(1, "max", context)


class TestItemGrant:
    """Test suite for item grants."""

    def test_all_items_by_default(self, context):
        """Test the default choice takes every item."""
        advancement = item_grant()
        entry = advancement.prepare_value(1, None, context)
        assert entry == [SECOND_WIND_UUID, FIGHTING_STYLE_UUID]
        assert advancement.compute_updates(1, updates=entry).items_add == entry

    def test_required_items(self, context):
        """Test non-optional grants need every item."""
        with pytest.raises(InvalidConfiguration):
            item_grant().prepare_value(1, [SECOND_WIND_UUID], context)

    def test_optional_subset(self, context):
        """Test optional grants accept a subset."""
        assert item_grant(optional=True).prepare_value(1, [SECOND_WIND_UUID], context) == [SECOND_WIND_UUID]

    def test_unknown_uuid(self, context):
        """Test items outside the grant are rejected."""
        with pytest.raises(NotFound):
            item_grant(optional=True).prepare_value(1, ["Compendium.other"], context)

    def test_finalize_maps_created_ids(self):
        """Test created item ids are recorded against their source."""
        created = [ItemRecord(id="abc", name="Second Wind", source_uuid=SECOND_WIND_UUID)]
        assert item_grant().finalize_value(1, [SECOND_WIND_UUID], created) == {"abc": SECOND_WIND_UUID}

    def test_reverse_removes_only_recorded_items(self):
        """Test reversal deletes only this node's items at the level."""
        advancement = item_grant(value={"1": {"abc": SECOND_WIND_UUID, "def": FIGHTING_STYLE_UUID}})
        updates = advancement.compute_updates(1, reverse=True)
        assert updates.items_remove == ["abc", "def"]
        assert updates.items_add == []
        assert advancement.compute_updates(2, reverse=True).is_empty

    def test_diff_against_existing(self):
        """Test a changed selection adds and removes only the difference."""
        advancement = item_grant(value={"1": {"abc": SECOND_WIND_UUID}})
        updates = advancement.compute_updates(1, updates=[FIGHTING_STYLE_UUID])
        assert updates.items_add == [FIGHTING_STYLE_UUID]
        assert updates.items_remove == ["abc"]
