"""
Level progression.

This module is the single definition of the XP -> level curve. Stores
never persist a level; they derive it through ``level_for_xp`` whenever a
player record is built.
"""
import math

XP_PER_LEVEL_STEP = 100


def level_for_xp(xp: int) -> int:
    """Level reached with ``xp`` experience: floor(sqrt(xp / 100)) + 1."""
    if xp < 0:
        raise ValueError(f"XP cannot be negative: {xp}")
    return math.isqrt(xp // XP_PER_LEVEL_STEP) + 1


def xp_for_level(level: int) -> int:
    """Minimum XP at which ``level`` is reached (inverse of ``level_for_xp``)."""
    if level < 1:
        raise ValueError(f"Level must be at least 1: {level}")
    return (level - 1) ** 2 * XP_PER_LEVEL_STEP


def next_level_xp(xp: int) -> int:
    """XP threshold of the level after the one ``xp`` is currently in."""
    return xp_for_level(level_for_xp(xp) + 1)
