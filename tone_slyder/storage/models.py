"""
Data models for storage layer.

Defines the per-user monthly usage record.
"""

from dataclasses import dataclass, replace
from decimal import Decimal


@dataclass(frozen=True)
class UserUsageRecord:
    """Cumulative usage of one user in one calendar month.

    Records are immutable; an update produces a new record with higher
    totals. Totals never decrease within a month.
    """
    user_id: str
    month_year: str  # "2024-01"
    rewrites_count: int = 0
    tokens_used: int = 0
    cost_usd: Decimal = Decimal("0")

    def __post_init__(self):
        """Validate totals are not negative."""
        if self.rewrites_count < 0:
            raise ValueError("rewrites_count cannot be negative")
        if self.tokens_used < 0:
            raise ValueError("tokens_used cannot be negative")
        if self.cost_usd < 0:
            raise ValueError("cost_usd cannot be negative")

    def add(self, tokens: int, cost: Decimal) -> "UserUsageRecord":
        """Return a record with one more rewrite and the given tokens and cost."""
        if tokens < 0 or cost < 0:
            raise ValueError("usage increments cannot be negative")
        return replace(
            self,
            rewrites_count=self.rewrites_count + 1,
            tokens_used=self.tokens_used + tokens,
            cost_usd=self.cost_usd + cost,
        )
