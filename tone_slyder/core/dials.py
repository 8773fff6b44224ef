"""
Dial catalogue and tone presets.

Static definitions of the core tone dials and the built-in presets.
"""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Tuple

from .tone_vector import ToneDimension

DEFAULT_MIN = 10
DEFAULT_MAX = 90
DEFAULT_VALUE = 50


@dataclass(frozen=True)
class DialSpec:
    """Declared domain and description of a tone dial."""
    id: str
    label: str
    description: str
    category: str
    min_value: int = DEFAULT_MIN
    max_value: int = DEFAULT_MAX
    default_value: int = DEFAULT_VALUE
    step: int = 1


@dataclass(frozen=True)
class TonePreset:
    """Named set of dial values."""
    id: str
    name: str
    description: str
    dial_values: Tuple[Tuple[str, int], ...]
    tags: Tuple[str, ...] = ()

    def as_mapping(self) -> Dict[str, int]:
        return dict(self.dial_values)


CORE_DIALS: Dict[str, DialSpec] = {
    spec.id: spec for spec in (
        DialSpec(
            id="formality",
            label="Formality",
            description="Casual vs. professional language, from colloquial to polite",
            category="tone",
        ),
        DialSpec(
            id="conversational",
            label="Conversational",
            description="Dialog-like, friendly tone with personal pronouns and informal phrasing",
            category="tone",
        ),
        DialSpec(
            id="informativeness",
            label="Informativeness",
            description="Detail and factual density, adding or removing elaboration",
            category="content",
        ),
        DialSpec(
            id="authoritativeness",
            label="Authoritativeness",
            description="Confidence level, from caution and neutrality to assertive expert phrasing",
            category="tone",
        ),
    )
}


DEFAULT_PRESETS: Tuple[TonePreset, ...] = (
    TonePreset(
        id="business",
        name="Business",
        description="Professional, formal tone suitable for business communications",
        dial_values=(("formality", 80), ("conversational", 30),
                     ("informativeness", 70), ("authoritativeness", 85)),
        tags=("business", "professional", "formal"),
    ),
    TonePreset(
        id="academic",
        name="Academic",
        description="Scholarly tone for research papers and academic writing",
        dial_values=(("formality", 85), ("conversational", 10),
                     ("informativeness", 90), ("authoritativeness", 80)),
        tags=("academic", "scholarly", "research"),
    ),
    TonePreset(
        id="social",
        name="Social",
        description="Casual, friendly tone for social media and personal communications",
        dial_values=(("formality", 20), ("conversational", 85),
                     ("informativeness", 40), ("authoritativeness", 30)),
        tags=("social", "casual", "friendly"),
    ),
    TonePreset(
        id="editorial",
        name="Editorial",
        description="Balanced tone for articles, blogs, and editorial content",
        dial_values=(("formality", 60), ("conversational", 50),
                     ("informativeness", 75), ("authoritativeness", 70)),
        tags=("editorial", "balanced", "journalism"),
    ),
)


def get_dial(dial_id: str) -> DialSpec:
    """Look up a dial, falling back to a default-range spec for custom dials."""
    spec = CORE_DIALS.get(dial_id)
    if spec is None:
        return DialSpec(id=dial_id, label=dial_id, description="", category="custom")
    return spec


def list_presets() -> List[TonePreset]:
    return list(DEFAULT_PRESETS)


def get_preset(preset_id: str) -> TonePreset:
    """Get a built-in preset by id.

    Raises:
        KeyError: If no preset has that id
    """
    for preset in DEFAULT_PRESETS:
        if preset.id == preset_id:
            return preset
    raise KeyError(f"Unknown preset: {preset_id}")


def dimensions_from_values(dial_values: Mapping[str, int]) -> List[ToneDimension]:
    """Build ToneDimensions from a dial mapping, preserving its order."""
    dimensions = []
    for dial_id, value in dial_values.items():
        spec = get_dial(dial_id)
        dimensions.append(ToneDimension(
            dimension=dial_id,
            value=value,
            min_value=spec.min_value,
            max_value=spec.max_value,
        ))
    return dimensions
