"""Resolution of inline roll links in rules text.

Supported links (an optional `{label}` may follow any of them):

    [[/check ability=dex]]           [[/skill acr dc=20]]
    [[/tool thief ability=int]]      [[/save dex dc=@abilities.int.dc]]
    [[/damage 2d6 bludgeoning average]]
    [[/item Heavy Crossbow]]         [[/item .amUUCouL69OK1GZU]]

Links that cannot be resolved are left as their original text.
"""

import logging
import re
from typing import Any, Optional, Union

from pydantic import ValidationError

from dndcore.engine.formula import replace_formula_data, simplify_bonus
from dndcore.engine.roll_evaluator import RollEvaluator
from dndcore.errors import InvalidConfiguration, NotFound
from dndcore.models.character import Character
from dndcore.models.enrichment import EnrichmentConfig, PassiveCheck, RollLink, Segment
from dndcore.models.rules import RulesTable, default_rules

logger = logging.getLogger(__name__)

LINK_PATTERN = re.compile(
    r"\[\[/(?P<type>check|damage|save|skill|tool|item) (?P<config>[^\]]+)]](?:{(?P<label>[^}]+)})?",
    re.IGNORECASE,
)

_NUMBER_RE = re.compile(r"^-?\d+(?:\.\d+)?$")
_OWNED_ITEM_RE = re.compile(r"^Actor\.(?P<actor>.*?)\.Item\.(?P<item>.*?)$")
_RELATIVE_ID_RE = re.compile(r"^\.(?P<id>\w{16})$")


def _coerce(value: str) -> Union[bool, int, float, str]:
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    if _NUMBER_RE.match(value):
        number = float(value)
        return int(number) if number.is_integer() else number
    return value


def parse_config(text: str) -> EnrichmentConfig:
    """
    Parse the space-separated body of a link into a config.

    `key=value` pairs set fields; bare words are kept as positional values.

    Raises:
        InvalidConfiguration: If a key is not recognized or a value has the wrong type
    """
    fields: dict[str, Any] = {"values": []}
    for part in text.split(" "):
        if not part:
            continue
        key, sep, value = part.partition("=")
        if not sep:
            fields["values"].append(key)
            continue
        if key not in EnrichmentConfig.model_fields or key == "values":
            raise InvalidConfiguration(f"Unknown link option {key!r} in {text!r}")
        fields[key] = _coerce(value)
    try:
        return EnrichmentConfig(**fields)
    except ValidationError as e:
        raise InvalidConfiguration(f"Invalid link options {text!r}: {e}") from e


class TextEnricher:
    """Turns inline links into RollLink and PassiveCheck models."""

    def __init__(
        self,
        rules: Optional[RulesTable] = None,
        roll_data: Optional[dict[str, Any]] = None,
        character: Optional[Character] = None,
        characters: Optional[dict[str, Character]] = None,
    ) -> None:
        """
        Initialize enricher.

        Args:
            rules: Rules table for ability, skill, tool and damage type lookups
            roll_data: Data of the document owning the text; used for '@' references
            character: Owner of the text, for relative item links
            characters: Known characters by id, for 'Actor.<id>.Item.<id>' links
        """
        self.rules = rules or default_rules()
        self.roll_data = roll_data or {}
        self.character = character
        self.characters = characters or {}

    def enrich_text(self, text: str) -> list[Segment]:
        """
        Split text into plain strings and resolved links.

        Unresolvable links stay in the output as their original text.
        """
        segments: list[Segment] = []
        position = 0
        for match in LINK_PATTERN.finditer(text):
            if match.start() > position:
                segments.append(text[position:match.start()])
            segments.append(self.enrich_match(match))
            position = match.end()
        if position < len(text):
            segments.append(text[position:])
        return segments

    def enrich_match(self, match: re.Match) -> Segment:
        """Resolve one link match, returning its original text on failure."""
        link_type = match.group("type").lower()
        label = match.group("label")
        source = match.group(0)
        try:
            config = parse_config(match.group("config"))
            if link_type in ("check", "skill", "tool"):
                return self.enrich_check(config, label, source)
            if link_type == "save":
                return self.enrich_save(config, label, source)
            if link_type == "damage":
                return self.enrich_damage(config, label, source)
            return self.enrich_item(config, label, source)
        except (NotFound, InvalidConfiguration) as e:
            logger.warning(f"Could not enrich {source}: {e}")
            return source

    def _resolve_dc(self, dc: Union[int, float, str, None]) -> Union[int, float, None]:
        if dc is None or isinstance(dc, (int, float)):
            return dc
        return simplify_bonus(dc, self.roll_data)

    def enrich_check(self, config: EnrichmentConfig, label: Optional[str], source: str) -> Union[RollLink, PassiveCheck]:
        """
        Resolve an ability, skill or tool check.

        A skill without an explicit ability uses the skill's default ability.

        Raises:
            NotFound: If an ability, skill or tool key is unknown
            InvalidConfiguration: If no ability can be determined
        """
        updates: dict[str, Any] = {}
        for value in config.values:
            if value in self.rules.abilities:
                updates["ability"] = value
            elif value in self.rules.skills:
                updates["skill"] = value
            elif value in self.rules.tools:
                updates["tool"] = value
            elif _NUMBER_RE.match(value):
                updates["dc"] = _coerce(value)
            elif value == "passive":
                updates["passive"] = True
            elif value in ("short", "long"):
                updates["format"] = value
            else:
                raise InvalidConfiguration(f"Unrecognized check value {value!r}")
        config = config.model_copy(update=updates)

        skill = tool = None
        ability = config.ability
        if config.skill:
            skill_config = self.rules.get_skill(config.skill)
            skill = skill_config.key or config.skill
            ability = ability or skill_config.ability
        if config.tool:
            tool = config.tool
            tool_config = self.rules.get_tool(tool)
            ability = ability or tool_config.ability
        if not ability:
            raise InvalidConfiguration("No ability provided for check")
        ability_config = self.rules.get_ability(ability)
        ability = ability_config.key or ability
        dc = self._resolve_dc(config.dc)

        if not label:
            check = ability_config.label
            if skill:
                check = f"{check} ({self.rules.get_skill(skill).label})"
            elif tool:
                check = f"{check} ({self.rules.get_tool(tool).label})"
            if config.passive:
                if config.format == "long":
                    label = f"passive {check} score of {dc} or higher"
                else:
                    label = f"DC {dc} passive {check}"
            else:
                if dc:
                    check = f"DC {dc} {check}"
                label = f"{check} ability check" if config.format == "long" else f"{check} check"

        if config.passive:
            return PassiveCheck(label=label, input=source, ability=ability, skill=skill, tool=tool, dc=dc)
        link_type = "skill" if skill else "tool" if tool else "check"
        return RollLink(type=link_type, label=label, input=source, ability=ability, skill=skill, tool=tool, dc=dc)

    def enrich_save(self, config: EnrichmentConfig, label: Optional[str], source: str) -> RollLink:
        """
        Resolve a saving throw.

        Raises:
            NotFound: If the ability is unknown
            InvalidConfiguration: If no ability is given
        """
        ability = config.ability
        dc = config.dc
        for value in config.values:
            if value in self.rules.abilities:
                ability = value
            elif _NUMBER_RE.match(value):
                dc = _coerce(value)
            elif value in ("short", "long"):
                config = config.model_copy(update={"format": value})
            else:
                raise InvalidConfiguration(f"Unrecognized save value {value!r}")
        if not ability:
            raise InvalidConfiguration("No ability provided for saving throw")
        ability_config = self.rules.get_ability(ability)
        ability = ability_config.key or ability
        dc = self._resolve_dc(dc)

        if not label:
            label = ability_config.label
            if dc:
                label = f"DC {dc} {label}"
            if config.format == "long":
                label = f"{label} saving throw"
        return RollLink(type="save", label=label, input=source, ability=ability, dc=dc)

    def enrich_damage(self, config: EnrichmentConfig, label: Optional[str], source: str) -> RollLink:
        """
        Resolve a damage link.

        `average` alone (or `average=true`) computes floor((min + max) / 2);
        a numeric `average` is shown as given.

        Raises:
            InvalidConfiguration: If no formula remains after removing type and flags
        """
        parts = [config.formula] if config.formula else []
        damage_type = config.type
        average = config.average
        for value in config.values:
            if self.rules.is_damage_type(value):
                damage_type = value
            elif value == "average":
                average = True
            else:
                parts.append(value)
        formula = replace_formula_data(" ".join(parts), self.roll_data)
        if not formula:
            raise InvalidConfiguration("Damage link has no formula")

        shown_average = None
        if average is True:
            shown_average = RollEvaluator.average(formula)
        elif average is not None and average is not False:
            shown_average = RollEvaluator.average(formula, override=average)

        if not label:
            type_label = self.rules.damage_types.get(damage_type) or self.rules.healing_types.get(damage_type or "", "")
            label = formula if shown_average is None else f"{shown_average} ({formula})"
            if type_label:
                label = f"{label} {type_label.lower()}"
        return RollLink(
            type="damage",
            label=label,
            input=source,
            formula=formula,
            damage_type=damage_type,
            average=shown_average,
        )

    def enrich_item(self, config: EnrichmentConfig, label: Optional[str], source: str) -> RollLink:
        """
        Resolve an item use link by owned-item path, relative id or name.

        Raises:
            NotFound: If an owned-item path or relative id does not resolve
        """
        given = " ".join(config.values)
        owned = _OWNED_ITEM_RE.match(given)
        if owned:
            owner = self._find_character(owned.group("actor"))
            item = self._find_item(owner, owned.group("item"))
            return RollLink(
                type="item", label=label or item.name, input=source, item_id=item.id, character_id=owner.id
            )

        relative = _RELATIVE_ID_RE.match(given)
        if relative:
            if self.character is None:
                raise NotFound("Item", given)
            item = self._find_item(self.character, relative.group("id"))
            return RollLink(
                type="item", label=label or item.name, input=source, item_id=item.id, character_id=self.character.id
            )
        if given.startswith("."):
            raise NotFound("Item", given)

        return RollLink(type="item", label=label or given, input=source, item_name=given)

    def _find_character(self, id_or_name: str) -> Character:
        if id_or_name in self.characters:
            return self.characters[id_or_name]
        for character in self.characters.values():
            if character.name == id_or_name:
                return character
        raise NotFound("Character", id_or_name)

    @staticmethod
    def _find_item(character: Character, id_or_name: str):
        if id_or_name in character.items:
            return character.items[id_or_name]
        for item in character.items.values():
            if item.name == id_or_name:
                return item
        raise NotFound("Item", id_or_name)


def enrich_text(
    text: str, roll_data: Optional[dict[str, Any]] = None, rules: Optional[RulesTable] = None
) -> list[Segment]:
    """Resolve every link in text against roll data."""
    return TextEnricher(rules=rules, roll_data=roll_data).enrich_text(text)
