"""
Request fingerprinting for response deduplication.

Two requests that differ only in text case or surrounding whitespace,
guardrail ordering, or dial mapping order share a fingerprint.
"""

import hashlib
import json
from typing import Any, Dict, Mapping

from .guardrails import Guardrails


def canonicalize(
    text: str,
    dial_values: Mapping[str, int],
    guardrails: Guardrails,
    model: str,
) -> Dict[str, Any]:
    """Build the canonical structure a fingerprint is derived from."""
    return {
        "text": text.strip().lower(),
        "dials": [[dial_id, dial_values[dial_id]] for dial_id in sorted(dial_values)],
        "required": sorted(guardrails.required),
        "banned": sorted(guardrails.banned),
        "model": model,
    }


def fingerprint(
    text: str,
    dial_values: Mapping[str, int],
    guardrails: Guardrails,
    model: str,
) -> str:
    """Return a stable hex cache key for a rewrite request."""
    canonical = canonicalize(text, dial_values, guardrails, model)
    encoded = json.dumps(canonical, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()
