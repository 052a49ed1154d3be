"""Account-level calculations (stake sizing)."""

from tickrisk.engine.account.position_sizing import (
    HALF_KELLY,
    MAX_STAKE_FRACTION,
    MIN_STAKE_FRACTION,
    calc_consistency_multiplier,
    calc_kelly_edge,
    calc_kelly_fraction,
    clamp_stake,
    shrink_win_rate,
)

__all__ = [
    "HALF_KELLY",
    "MAX_STAKE_FRACTION",
    "MIN_STAKE_FRACTION",
    "calc_consistency_multiplier",
    "calc_kelly_edge",
    "calc_kelly_fraction",
    "clamp_stake",
    "shrink_win_rate",
]
