"""
Conflict resolution between competing dial settings.

Only the strongest signals are treated as authoritative instructions;
weaker ones are kept as advisory and near-neutral dials are dropped.
"""

from dataclasses import dataclass
from typing import Iterable, Tuple

from .tone_vector import ToneDimension, ToneWeight, weigh

# Weights at or below this magnitude carry no instruction value
NEUTRAL_THRESHOLD = 0.1

MAX_PRIMARY = 3


@dataclass(frozen=True)
class ConflictResolution:
    """Ordered primary and secondary tone weights, strongest first."""
    primary: Tuple[ToneWeight, ...]
    secondary: Tuple[ToneWeight, ...]

    @property
    def is_empty(self) -> bool:
        return not self.primary and not self.secondary


def resolve(dimensions: Iterable[ToneDimension]) -> ConflictResolution:
    """Rank dimensions by strength and split them into primary/secondary.

    Args:
        dimensions: Dial settings in request order

    Returns:
        ConflictResolution with at most MAX_PRIMARY primary entries. Ties keep
        the original dimension order.
    """
    weights = [weigh(dimension) for dimension in dimensions]
    significant = [w for w in weights if w.magnitude > NEUTRAL_THRESHOLD]
    # sorted() is stable, so equal magnitudes stay in request order
    ranked = sorted(significant, key=lambda w: w.magnitude, reverse=True)
    return ConflictResolution(
        primary=tuple(ranked[:MAX_PRIMARY]),
        secondary=tuple(ranked[MAX_PRIMARY:]),
    )
