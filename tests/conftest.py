"""Pytest configuration and fixtures."""

import asyncio
import random

import pytest

from dndcore.models.advancement import AdvancementNode, AdvancementType
from dndcore.models.character import Character, ItemRecord
from dndcore.models.rules import default_rules
from dndcore.persistence.document_store import InMemoryDocumentStore

SECOND_WIND_UUID = "Compendium.dnd5e.classfeatures.secondwind"
FIGHTING_STYLE_UUID = "Compendium.dnd5e.classfeatures.fightingstyle"


@pytest.fixture
def rules():
    """Standard rules table."""
    return default_rules()


@pytest.fixture
def rng():
    """Seeded random source for reproducible rolls."""
    return random.Random(1234)


@pytest.fixture
def fighter_item():
    """Fighter class item with hit points, a level 1 grant and a level 4 improvement."""
    return ItemRecord(
        id="fighter",
        name="Fighter",
        type="class",
        advancement={
            "hp": AdvancementNode(id="hp", type=AdvancementType.HIT_POINTS, configuration={"hit_die": "d10"}),
            "features": AdvancementNode(
                id="features",
                type=AdvancementType.ITEM_GRANT,
                level=1,
                configuration={"items": [SECOND_WIND_UUID, FIGHTING_STYLE_UUID]},
            ),
            "asi": AdvancementNode(
                id="asi", type=AdvancementType.ABILITY_SCORE_IMPROVEMENT, level=4, configuration={"points": 2}
            ),
        },
    )


@pytest.fixture
def feat_item():
    """Origin feat granting an ability score improvement at level 1."""
    return ItemRecord(
        id="origin",
        name="Resilient",
        type="feat",
        advancement={
            "boost": AdvancementNode(
                id="boost", type=AdvancementType.ABILITY_SCORE_IMPROVEMENT, level=1, configuration={"points": 2}
            ),
        },
    )


@pytest.fixture
def character(fighter_item, feat_item):
    """Level 0 character owning a fighter class and a feat."""
    return Character(
        id="akra",
        name="Akra",
        abilities={"str": 14, "dex": 16, "con": 14, "int": 10, "wis": 12, "cha": 8},
        skills={"acr": 1, "prc": 2},
        tools={"thief": 1},
        saves=["str", "con"],
        items={fighter_item.id: fighter_item, feat_item.id: feat_item},
    )


@pytest.fixture
def compendium():
    """Item templates keyed by UUID."""
    return {
        SECOND_WIND_UUID: ItemRecord(id="secondwind", name="Second Wind", type="feat"),
        FIGHTING_STYLE_UUID: ItemRecord(id="fightingstyle", name="Fighting Style", type="feat"),
    }


@pytest.fixture
def store(compendium, character):
    """In-memory store holding the test character."""
    store = InMemoryDocumentStore(compendium)
    asyncio.run(store.create_character(character))
    return store
