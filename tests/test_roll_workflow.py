"""Tests for RollWorkflow."""

import asyncio

import pytest

from dndcore.engine.roll_evaluator import RollEvaluator
from dndcore.engine.roll_workflow import MessageChannel, RollDialog, RollWorkflow
from dndcore.errors import InvalidConfiguration, NotFound
from dndcore.models.keys import InputEvent
from dndcore.models.rolls import AdvantageMode, DamageRequest, RollRequest, RollStatus


class ScriptedDialog(RollDialog):
    """Dialog that records configs and answers with a fixed update or cancels."""

    def __init__(self, cancel=False, **updates):
        self.cancel = cancel
        self.updates = updates
        self.seen = []

    async def configure_d20(self, config):
        self.seen.append(config)
        return None if self.cancel else config.model_copy(update=self.updates)

    async def configure_damage(self, config):
        self.seen.append(config)
        return None if self.cancel else config.model_copy(update=self.updates)


class RecordingChannel(MessageChannel):
    """Message channel that keeps posted results."""

    def __init__(self):
        self.posted = []

    async def post(self, result):
        self.posted.append(result)


@pytest.fixture
def channel():
    """Recording message channel."""
    return RecordingChannel()


class TestD20Workflow:
    """Test suite for the d20 roll workflow."""

    def test_fast_forward_skips_dialog(self, rng, channel):
        """Test fast-forwarded rolls never consult the dialog."""
        dialog = ScriptedDialog()
        workflow = RollWorkflow(evaluator=RollEvaluator(rng), dialog=dialog, message_channel=channel)
        outcome = asyncio.run(workflow.d20_roll(RollRequest(parts=["2"], fast_forward=True)))
        assert outcome.status == RollStatus.EVALUATED
        assert dialog.seen == []
        assert outcome.result.total == outcome.result.natural + 2

    def test_held_key_fast_forwards(self, rng):
        """Test a held advantage key skips the dialog."""
        dialog = ScriptedDialog()
        workflow = RollWorkflow(evaluator=RollEvaluator(rng), dialog=dialog)
        outcome = asyncio.run(workflow.d20_roll(RollRequest(event=InputEvent.holding("AltLeft"))))
        assert dialog.seen == []
        assert outcome.result.config.advantage_mode == AdvantageMode.ADVANTAGE

    def test_dialog_can_change_config(self, rng):
        """Test the dialog's config is the one evaluated."""
        dialog = ScriptedDialog(advantage_mode=AdvantageMode.DISADVANTAGE)
        workflow = RollWorkflow(evaluator=RollEvaluator(rng), dialog=dialog)
        outcome = asyncio.run(workflow.d20_roll(RollRequest()))
        assert len(dialog.seen) == 1
        assert len(outcome.result.terms[0].dice) == 2

    def test_cancel_is_not_a_zero_roll(self, rng, channel):
        """Test a dismissed dialog returns a cancelled outcome without a result."""
        workflow = RollWorkflow(evaluator=RollEvaluator(rng), dialog=ScriptedDialog(cancel=True), message_channel=channel)
        outcome = asyncio.run(workflow.d20_roll(RollRequest()))
        assert outcome.cancelled
        assert outcome.result is None
        assert channel.posted == []

    def test_message_posted_when_requested(self, rng, channel):
        """Test results are posted only when a message was requested."""
        workflow = RollWorkflow(evaluator=RollEvaluator(rng), message_channel=channel)
        asyncio.run(workflow.d20_roll(RollRequest()))
        asyncio.run(workflow.d20_roll(RollRequest(chat_message=False)))
        assert len(channel.posted) == 1

    def test_chosen_modifier_from_default_ability(self, rng, character, rules):
        """Test a modifier placeholder resolves from the default ability without a dialog."""
        workflow = RollWorkflow(evaluator=RollEvaluator(rng))
        request = RollRequest(
            parts=["@mod"], data=character.roll_data(rules), choose_modifier=True, default_ability="dex"
        )
        outcome = asyncio.run(workflow.d20_roll(request))
        assert outcome.result.total == outcome.result.natural + 3

    def test_chosen_modifier_requires_ability(self, rng):
        """Test a modifier placeholder with no ability is invalid."""
        workflow = RollWorkflow(evaluator=RollEvaluator(rng))
        with pytest.raises(InvalidConfiguration):
            asyncio.run(workflow.d20_roll(RollRequest(parts=["@mod"], choose_modifier=True)))


class TestDamageWorkflow:
    """Test suite for the damage roll workflow."""

    def test_dialog_decides_critical(self, rng):
        """Test the dialog can turn a roll critical."""
        workflow = RollWorkflow(evaluator=RollEvaluator(rng), dialog=ScriptedDialog(is_critical=True))
        outcome = asyncio.run(workflow.damage_roll(DamageRequest(parts=["1d8", "3"])))
        assert outcome.result.is_critical is True
        assert outcome.result.formula == "2d8 + 3"

    def test_damage_cancel(self, rng):
        """Test dismissing the damage dialog cancels."""
        workflow = RollWorkflow(evaluator=RollEvaluator(rng), dialog=ScriptedDialog(cancel=True))
        outcome = asyncio.run(workflow.damage_roll(DamageRequest(parts=["1d8"])))
        assert outcome.cancelled

    def test_critical_key_fast_forwards(self, rng, channel):
        """Test the critical key rolls a critical without the dialog."""
        dialog = ScriptedDialog()
        workflow = RollWorkflow(evaluator=RollEvaluator(rng), dialog=dialog, message_channel=channel)
        request = DamageRequest(parts=["1d8"], event=InputEvent.holding("AltLeft"))
        outcome = asyncio.run(workflow.damage_roll(request))
        assert dialog.seen == []
        assert outcome.result.formula == "2d8"
        assert channel.posted == [outcome.result]


class TestCharacterRolls:
    """Test suite for ability, save, skill and tool rolls."""

    def test_ability_check(self, rng, character):
        """Test ability checks add the ability modifier."""
        workflow = RollWorkflow(evaluator=RollEvaluator(rng))
        outcome = asyncio.run(workflow.ability_check(character, "str", fast_forward=True))
        assert outcome.result.total == outcome.result.natural + 2
        assert outcome.result.config.title == "Strength Check"

    def test_ability_check_by_full_name(self, rng, character):
        """Test full ability names resolve to their key."""
        workflow = RollWorkflow(evaluator=RollEvaluator(rng))
        outcome = asyncio.run(workflow.ability_check(character, "dexterity", fast_forward=True))
        assert outcome.result.config.default_ability == "dex"

    def test_saving_throw_includes_proficiency(self, rng, character):
        """Test proficient saves add the proficiency bonus."""
        workflow = RollWorkflow(evaluator=RollEvaluator(rng))
        outcome = asyncio.run(workflow.saving_throw(character, "con", fast_forward=True))
        assert outcome.result.total == outcome.result.natural + 2 + 2

    def test_skill_check_default_ability(self, rng, character):
        """Test a skill uses its default ability."""
        workflow = RollWorkflow(evaluator=RollEvaluator(rng))
        outcome = asyncio.run(workflow.skill_check(character, "acr", fast_forward=True))
        assert outcome.result.config.default_ability == "dex"
        assert outcome.result.total == outcome.result.natural + 3 + 2

    def test_skill_check_ability_override(self, rng, character):
        """Test an explicit ability replaces the skill's default."""
        workflow = RollWorkflow(evaluator=RollEvaluator(rng))
        outcome = asyncio.run(workflow.skill_check(character, "acr", ability="str", fast_forward=True))
        assert outcome.result.config.default_ability == "str"
        assert outcome.result.total == outcome.result.natural + 2 + 2

    def test_expertise(self, rng, character):
        """Test expertise doubles proficiency."""
        workflow = RollWorkflow(evaluator=RollEvaluator(rng))
        outcome = asyncio.run(workflow.skill_check(character, "prc", fast_forward=True))
        assert outcome.result.total == outcome.result.natural + 1 + 4

    def test_tool_check(self, rng, character):
        """Test tool checks use the tool's suggested ability."""
        workflow = RollWorkflow(evaluator=RollEvaluator(rng))
        outcome = asyncio.run(workflow.tool_check(character, "thief", fast_forward=True))
        assert outcome.result.config.default_ability == "dex"
        assert outcome.result.total == outcome.result.natural + 3 + 2

    def test_unknown_skill_blocks(self, rng, character):
        """Test unknown keys raise when rolling directly."""
        workflow = RollWorkflow(evaluator=RollEvaluator(rng))
        with pytest.raises(NotFound):
            asyncio.run(workflow.skill_check(character, "juggling"))
        with pytest.raises(NotFound):
            asyncio.run(workflow.tool_check(character, "lute"))
