"""Small numeric and formatting helpers shared by the risk factors."""

from __future__ import annotations

from collections.abc import Sequence

SECONDS_PER_DAY = 86_400
HOURS_PER_DAY = 24


def clamp(value: float, lower: float = 0.0, upper: float = 1.0) -> float:
    return max(lower, min(upper, value))


def percent(value: float) -> str:
    """Format a 0-1 value as a whole percentage, e.g. ``0.347`` -> ``"35%"``."""
    return f"{round(value * 100)}%"


def pick_bucket(
    value: float,
    ladder: Sequence[tuple[float, float, str]],
    default: tuple[float, str],
) -> tuple[float, str]:
    """Return ``(score, label)`` for the first ladder step whose bound ``value`` does not exceed.

    Args:
        value: Measured value.
        ladder: ``(upper_bound, score, label)`` steps in ascending bound order.
        default: ``(score, label)`` used when ``value`` exceeds every bound.
    """
    for upper_bound, score, label in ladder:
        if value <= upper_bound:
            return score, label
    return default


def truncate_address(address: str) -> str:
    """Shorten a wallet address for explanations: ``0x1234...abcd``."""
    if len(address) <= 10:
        return address
    return f"{address[:6]}...{address[-4:]}"
