"""
Request validation.

Rejects malformed requests before the pipeline runs. Validation errors
are never retried.
"""

from typing import Iterable, Mapping, Optional

from .dials import get_dial
from .metering import TIER_POLICIES, TierPolicy
from .pricing import PRICING_TABLE, PricingTable

MAX_TEXT_LENGTH = 10000
MAX_GUARDRAIL_TERMS = 50
MAX_BATCH_SIZE = 10


class RequestValidationError(ValueError):
    """Raised when a rewrite request is malformed."""


def validate_text(text) -> None:
    if not isinstance(text, str) or not text.strip():
        raise RequestValidationError("text is required and cannot be empty")
    if len(text) > MAX_TEXT_LENGTH:
        raise RequestValidationError(
            f"text is {len(text)} characters; maximum is {MAX_TEXT_LENGTH}"
        )


def validate_dial_values(dial_values: Mapping[str, int]) -> None:
    if not isinstance(dial_values, Mapping):
        raise RequestValidationError("dial values must be a mapping of dial id to value")
    for dial_id, value in dial_values.items():
        if not isinstance(dial_id, str) or not dial_id.strip():
            raise RequestValidationError("dial ids must be non-empty strings")
        # bool is an int subclass but never a dial position
        if isinstance(value, bool) or not isinstance(value, int):
            raise RequestValidationError(f"dial '{dial_id}' must be an integer, got {value!r}")
        spec = get_dial(dial_id)
        if not spec.min_value <= value <= spec.max_value:
            raise RequestValidationError(
                f"dial '{dial_id}' must be between {spec.min_value} and {spec.max_value}, got {value}"
            )


def validate_terms(terms: Iterable[str], label: str) -> None:
    terms = list(terms)
    if len(terms) > MAX_GUARDRAIL_TERMS:
        raise RequestValidationError(f"at most {MAX_GUARDRAIL_TERMS} {label} terms are allowed")
    for term in terms:
        if not isinstance(term, str) or not term.strip():
            raise RequestValidationError(f"{label} terms must be non-empty strings")


def validate_model(model: str, table: Optional[PricingTable] = None) -> None:
    table = table or PRICING_TABLE
    if not table.supports(model):
        raise RequestValidationError(f"Unsupported model: {model}. Choose one of: {table.models}")


def validate_tier(tier: str, tiers: Optional[Mapping[str, TierPolicy]] = None) -> None:
    tiers = tiers if tiers is not None else TIER_POLICIES
    if tier not in tiers:
        raise RequestValidationError(f"Unknown tier: {tier}")


def validate_batch_size(count: int) -> None:
    if not 1 <= count <= MAX_BATCH_SIZE:
        raise RequestValidationError(f"Batch size must be between 1 and {MAX_BATCH_SIZE} texts")


def validate_rewrite_request(
    text: str,
    dial_values: Mapping[str, int],
    required: Iterable[str] = (),
    banned: Iterable[str] = (),
    model: str = "gpt-3.5-turbo",
    table: Optional[PricingTable] = None,
    tier: Optional[str] = None,
    tiers: Optional[Mapping[str, TierPolicy]] = None,
) -> None:
    """Validate raw request fields.

    The tier is checked only when given.

    Raises:
        RequestValidationError: On the first malformed field
    """
    validate_text(text)
    validate_dial_values(dial_values)
    validate_terms(required, "required")
    validate_terms(banned, "banned")
    validate_model(model, table)
    if tier is not None:
        validate_tier(tier, tiers)
