"""Central configuration defaults and constants for dndcore."""

import os

# Roll Defaults
DEFAULT_BASE_DIE = os.getenv("DNDCORE_BASE_DIE", "1d20")
DEFAULT_CRITICAL_THRESHOLD = int(os.getenv("DNDCORE_CRITICAL_THRESHOLD", "20"))
DEFAULT_FUMBLE_THRESHOLD = int(os.getenv("DNDCORE_FUMBLE_THRESHOLD", "1"))
DEFAULT_ROLL_MODE = os.getenv("DNDCORE_ROLL_MODE", "publicroll")
DEFAULT_CHAT_MESSAGE = os.getenv("DNDCORE_CHAT_MESSAGE", "true").lower() in ("true", "1", "yes", "on")

# Critical Damage Defaults
DEFAULT_CRITICAL_MULTIPLIER = int(os.getenv("DNDCORE_CRITICAL_MULTIPLIER", "2"))
DEFAULT_MULTIPLY_NUMERIC = os.getenv("DNDCORE_MULTIPLY_NUMERIC", "false").lower() in ("true", "1", "yes", "on")  # criticalDamageModifiers
DEFAULT_POWERFUL_CRITICAL = os.getenv("DNDCORE_POWERFUL_CRITICAL", "false").lower() in ("true", "1", "yes", "on")  # criticalDamageMaxDice

# Roll Feature Thresholds
DEFAULT_RELIABLE_TALENT_MINIMUM = int(os.getenv("DNDCORE_RELIABLE_TALENT_MINIMUM", "10"))
DEFAULT_HALFLING_LUCKY_REROLL = int(os.getenv("DNDCORE_HALFLING_LUCKY_REROLL", "1"))

# Formula Limits
DEFAULT_MAX_DICE = int(os.getenv("DNDCORE_MAX_DICE", "1000"))
DEFAULT_MAX_FACES = int(os.getenv("DNDCORE_MAX_FACES", "1000"))

# Advancement Defaults
DEFAULT_MAX_LEVEL = int(os.getenv("DNDCORE_MAX_LEVEL", "20"))
DEFAULT_ABILITY_SCORE = int(os.getenv("DNDCORE_ABILITY_SCORE", "10"))  # Score assumed for an ability the character lacks
DEFAULT_ABILITY_SCORE_CAP = int(os.getenv("DNDCORE_ABILITY_SCORE_CAP", "20"))
DEFAULT_ASI_POINTS = int(os.getenv("DNDCORE_ASI_POINTS", "2"))
DEFAULT_ADVANCEMENT_ORDER = int(os.getenv("DNDCORE_ADVANCEMENT_ORDER", "100"))

# Keybinding Defaults
# Comma-separated physical key codes; an action is triggered by any of them
DEFAULT_D20_NORMAL_KEYS = os.getenv("DNDCORE_D20_NORMAL_KEYS", "ShiftLeft,ShiftRight")
DEFAULT_D20_ADVANTAGE_KEYS = os.getenv("DNDCORE_D20_ADVANTAGE_KEYS", "AltLeft,AltRight")
DEFAULT_D20_DISADVANTAGE_KEYS = os.getenv("DNDCORE_D20_DISADVANTAGE_KEYS", "ControlLeft,ControlRight,MetaLeft,MetaRight")
DEFAULT_DAMAGE_NORMAL_KEYS = os.getenv("DNDCORE_DAMAGE_NORMAL_KEYS", "ShiftLeft,ShiftRight,ControlLeft,ControlRight,MetaLeft,MetaRight")
DEFAULT_DAMAGE_CRITICAL_KEYS = os.getenv("DNDCORE_DAMAGE_CRITICAL_KEYS", "AltLeft,AltRight")
