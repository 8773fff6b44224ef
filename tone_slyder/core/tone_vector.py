"""
Tone vector normalization and instruction bucketing.

Maps raw dial positions onto a bipolar [-1.0, 1.0] scale and turns the
resulting weights into qualitative instruction levels.
"""

from dataclasses import dataclass
from enum import Enum


class ToneLevel(Enum):
    """Qualitative strength of a tone instruction."""
    VERY_LOW = "very low"
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    VERY_HIGH = "very high"


# Bucket breakpoints on |weight|, inclusive on the low side
MODERATE_CEILING = 0.2
STRONG_CEILING = 0.5


@dataclass(frozen=True)
class ToneDimension:
    """One dial setting supplied with a request."""
    dimension: str
    value: int
    min_value: int = 10
    max_value: int = 90

    def __post_init__(self):
        """Validate the dial range is usable."""
        if not self.dimension:
            raise ValueError("dimension cannot be empty")
        if self.min_value >= self.max_value:
            raise ValueError("min_value must be below max_value")


@dataclass(frozen=True)
class ToneWeight:
    """Normalized weight and bucketed level derived from a ToneDimension."""
    dimension: str
    weight: float
    level: ToneLevel

    @property
    def magnitude(self) -> float:
        return abs(self.weight)


def normalize(raw_value: float, min_value: float, max_value: float) -> float:
    """Map a dial value onto [-1.0, 1.0] centred on the range midpoint.

    Out-of-range values are clamped, not rejected.
    """
    clamped = max(min_value, min(max_value, raw_value))
    mid = (min_value + max_value) / 2
    half_range = (max_value - min_value) / 2
    return (clamped - mid) / half_range


def bucket(weight: float) -> ToneLevel:
    """Convert a normalized weight to a qualitative level."""
    magnitude = abs(weight)
    if magnitude <= MODERATE_CEILING:
        return ToneLevel.MODERATE
    if magnitude <= STRONG_CEILING:
        return ToneLevel.LOW if weight < 0 else ToneLevel.HIGH
    return ToneLevel.VERY_LOW if weight < 0 else ToneLevel.VERY_HIGH


def weigh(dimension: ToneDimension) -> ToneWeight:
    """Normalize and bucket a single dimension."""
    weight = normalize(dimension.value, dimension.min_value, dimension.max_value)
    return ToneWeight(dimension=dimension.dimension, weight=weight, level=bucket(weight))
