"""
Default reward lookup.

The base reward is keyed by template title. Keep every use of that
mapping behind calculate_default_reward so the key can change later.
"""
from decimal import Decimal, ROUND_HALF_UP

from chorecoins.constants import (
    BASE_REWARDS, DEFAULT_BASE_REWARD, DIFFICULTY_MULTIPLIERS, Difficulty
)


def base_reward_for(title: str) -> int:
    """Base coins for a chore title, falling back to the default"""
    return BASE_REWARDS.get((title or "").strip(), DEFAULT_BASE_REWARD)


def calculate_default_reward(title: str, difficulty=Difficulty.EASY) -> int:
    """
    Default reward = base reward x difficulty multiplier, rounded half up.

    EASY=1, MEDIUM=1.5, HARD=2
    """
    try:
        multiplier = DIFFICULTY_MULTIPLIERS[Difficulty(difficulty)]
    except ValueError:
        multiplier = 1.0
    raw = Decimal(base_reward_for(title)) * Decimal(str(multiplier))
    return int(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
