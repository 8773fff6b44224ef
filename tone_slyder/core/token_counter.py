"""
Token counting and usage tracking.

Holds provider-reported token counts and the 60/40 input/output split
convention used whenever a provider only reports a total.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

# Share of a token total assumed to be prompt (input) tokens
INPUT_SHARE = Decimal("0.6")


@dataclass(frozen=True)
class TokenUsage:
    """Token usage data for cost calculation.

    Contains exact token counts without model-specific logic.
    """
    prompt_tokens: int
    completion_tokens: int

    def __post_init__(self):
        """Validate token counts are not negative."""
        if self.prompt_tokens < 0:
            raise ValueError("prompt_tokens cannot be negative")
        if self.completion_tokens < 0:
            raise ValueError("completion_tokens cannot be negative")

    @property
    def total_tokens(self) -> int:
        """Total tokens used (prompt + completion)."""
        return self.prompt_tokens + self.completion_tokens

    @classmethod
    def from_total(cls, total_tokens: int) -> "TokenUsage":
        """Estimate a prompt/completion split from a total (60% / 40%).

        The prompt share is rounded half-up; the completion share is the
        remainder so the split always sums back to the total.
        """
        if total_tokens < 0:
            raise ValueError("total_tokens cannot be negative")
        prompt = int((Decimal(total_tokens) * INPUT_SHARE).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        return cls(prompt_tokens=prompt, completion_tokens=total_tokens - prompt)
