"""
Pricing calculations and rate management.

Handles cost computations for the supported text-generation models.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional
from decimal import Decimal, ROUND_UP

from .token_counter import TokenUsage

# Costs are kept at 4 decimal places, the precision of a usage record
COST_PRECISION = Decimal("0.0001")

# Token count assumed for a typical request when pre-checking a budget
TYPICAL_REQUEST_TOKENS = 2000


@dataclass(frozen=True)
class ModelPricing:
    """Per-token pricing for a specific model."""
    prompt_cost_per_1k: Decimal  # Cost per 1K input tokens
    completion_cost_per_1k: Decimal  # Cost per 1K output tokens

    def __post_init__(self):
        """Validate prices are not negative."""
        if self.prompt_cost_per_1k < 0:
            raise ValueError("prompt_cost_per_1k cannot be negative")
        if self.completion_cost_per_1k < 0:
            raise ValueError("completion_cost_per_1k cannot be negative")

    def raw_cost(self, usage: TokenUsage) -> Decimal:
        """Unrounded cost of the usage at these rates."""
        return (usage.prompt_tokens * self.prompt_cost_per_1k
                + usage.completion_tokens * self.completion_cost_per_1k) / 1000


@dataclass(frozen=True)
class PricingTable:
    """Fixed pricing table for supported models."""
    prices: Mapping[str, ModelPricing]

    def __post_init__(self):
        """Copy prices into a read-only view."""
        object.__setattr__(self, "prices", MappingProxyType(dict(self.prices)))

    def get_pricing(self, model: str) -> ModelPricing:
        """Get pricing for a specific model.

        Args:
            model: Model identifier

        Returns:
            ModelPricing for the model

        Raises:
            ValueError: If model is not supported
        """
        if model not in self.prices:
            raise ValueError(f"Unsupported model: {model}")
        return self.prices[model]

    def supports(self, model: str) -> bool:
        return model in self.prices

    @property
    def models(self):
        """Model ids in declaration order."""
        return list(self.prices)


# Fixed pricing table - no dynamic fetching
PRICING_TABLE = PricingTable({
    "gpt-3.5-turbo": ModelPricing(
        prompt_cost_per_1k=Decimal("0.0015"),
        completion_cost_per_1k=Decimal("0.002")
    ),
    "gpt-4": ModelPricing(
        prompt_cost_per_1k=Decimal("0.03"),
        completion_cost_per_1k=Decimal("0.06")
    ),
    "gpt-4-turbo": ModelPricing(
        prompt_cost_per_1k=Decimal("0.01"),
        completion_cost_per_1k=Decimal("0.03")
    ),
    "claude-3-haiku": ModelPricing(
        prompt_cost_per_1k=Decimal("0.00025"),
        completion_cost_per_1k=Decimal("0.00125")
    ),
    "claude-3-sonnet": ModelPricing(
        prompt_cost_per_1k=Decimal("0.003"),
        completion_cost_per_1k=Decimal("0.015")
    ),
})


def calculate_cost(model: str, usage: TokenUsage, table: Optional[PricingTable] = None) -> Decimal:
    """Calculate total cost for model usage with conservative rounding.

    Args:
        model: Model identifier
        usage: Token usage data
        table: Pricing table to use (defaults to PRICING_TABLE)

    Returns:
        Total cost rounded UP to 4 decimal places

    Raises:
        ValueError: If model is not supported
    """
    pricing = (table or PRICING_TABLE).get_pricing(model)
    return pricing.raw_cost(usage).quantize(COST_PRECISION, rounding=ROUND_UP)


def estimate_cost(model: str, total_tokens: int, table: Optional[PricingTable] = None) -> Decimal:
    """Estimate cost for a token total using the 60/40 input/output split."""
    return calculate_cost(model, TokenUsage.from_total(total_tokens), table)
