"""
Guardrail terms and compliance verification.

Guardrails are required terms that must survive a rewrite and banned
terms that must not appear in its output. Verification is advisory: it
reports violations as data and never raises.

Checks:
1. Required terms - present in the original but missing from the candidate
2. Banned terms - present anywhere in the candidate
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Tuple


class ViolationKind(Enum):
    """Kinds of guardrail violations."""
    REQUIRED_REMOVED = "required_removed"
    BANNED_PRESENT = "banned_present"


@dataclass(frozen=True)
class GuardrailViolation:
    """A single guardrail breach found in a candidate rewrite."""
    kind: ViolationKind
    term: str

    @property
    def message(self) -> str:
        if self.kind == ViolationKind.REQUIRED_REMOVED:
            return f'Required word/phrase "{self.term}" was removed'
        return f'Banned word/phrase "{self.term}" appears in output'

    def __str__(self) -> str:
        return self.message


def _display_terms(terms: Iterable[str]) -> Tuple[str, ...]:
    """First spelling of each term, deduplicated and sorted case-insensitively."""
    spellings: Dict[str, str] = {}
    for term in terms:
        if term and term.strip():
            stripped = term.strip()
            spellings.setdefault(stripped.lower(), stripped)
    return tuple(spellings[key] for key in sorted(spellings))


@dataclass(frozen=True)
class Guardrails:
    """Required and banned terms as the user spelled them.

    Case variants of a term collapse to the first spelling given. Matching
    and fingerprinting use the lowercased sets; prompts show the spelling.
    """
    required_terms: Tuple[str, ...] = ()
    banned_terms: Tuple[str, ...] = ()

    @classmethod
    def from_terms(cls, required: Iterable[str] = (), banned: Iterable[str] = ()) -> "Guardrails":
        return cls(required_terms=_display_terms(required), banned_terms=_display_terms(banned))

    @property
    def required(self) -> FrozenSet[str]:
        return frozenset(term.lower() for term in self.required_terms)

    @property
    def banned(self) -> FrozenSet[str]:
        return frozenset(term.lower() for term in self.banned_terms)

    @property
    def is_empty(self) -> bool:
        return not self.required_terms and not self.banned_terms


def count_occurrences(text: str, term: str) -> int:
    """Count non-overlapping case-insensitive occurrences of a literal term."""
    if not term:
        return 0
    return text.lower().count(term.lower())


def verify(original_text: str, candidate_text: str, guardrails: Guardrails) -> List[GuardrailViolation]:
    """Check a candidate rewrite against guardrail constraints.

    Args:
        original_text: Text submitted for rewriting
        candidate_text: Text returned by the provider
        guardrails: Required and banned terms

    Returns:
        Violations in a stable order (required terms first, each group
        sorted); empty on full compliance
    """
    violations = []

    # A required term absent from the original has nothing to preserve
    for term in guardrails.required_terms:
        if count_occurrences(original_text, term) > 0 and count_occurrences(candidate_text, term) == 0:
            violations.append(GuardrailViolation(ViolationKind.REQUIRED_REMOVED, term))

    for term in guardrails.banned_terms:
        if count_occurrences(candidate_text, term) > 0:
            violations.append(GuardrailViolation(ViolationKind.BANNED_PRESENT, term))

    return violations
