"""
Tiered usage metering and quota enforcement.

Tracks per-user monthly rewrite counts, tokens and cost, and decides
whether a user may make another request.

Quota check order:
1. Model access - the model must be in the tier's allowed set
2. Rewrite cap - monthly rewrite count below the tier cap
3. Budget cap - accumulated monthly cost below the tier budget
4. Budget headroom - a typical request must not push cost over budget

check_quota and record_usage are separate calls. Two concurrent requests
from a user near a cap can both pass the check and both be recorded, so
caps are soft limits and can be overshot by the number of in-flight
requests. Each record update itself is atomic per (user, month).
"""

import calendar
import logging
import math
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from types import MappingProxyType
from typing import Callable, Dict, FrozenSet, List, Mapping, Optional, Tuple

from .pricing import (
    PRICING_TABLE,
    TYPICAL_REQUEST_TOKENS,
    PricingTable,
    calculate_cost,
    estimate_cost,
)
from .token_counter import TokenUsage
from tone_slyder.storage.models import UserUsageRecord
from tone_slyder.storage.repository import InMemoryUsageStore, UsageStore

logger = logging.getLogger(__name__)

FREE_TIER = "free"

# How often stale months are dropped from the working set
STALE_EVICTION_SECONDS = 3600

# Default text length for an estimate when the caller gives none
DEFAULT_ESTIMATE_TEXT_LENGTH = 1000


@dataclass(frozen=True)
class TierPolicy:
    """Monthly limits and model access for a subscription tier."""
    monthly_rewrites: int
    monthly_budget_usd: Decimal
    models: FrozenSet[str]
    rate_limit_per_hour: int
    fail_open: bool = True  # allow requests when usage state can't be read

    def __post_init__(self):
        """Validate limits are positive."""
        if self.monthly_rewrites <= 0:
            raise ValueError("monthly_rewrites must be > 0")
        if self.monthly_budget_usd <= 0:
            raise ValueError("monthly_budget_usd must be > 0")
        if self.rate_limit_per_hour <= 0:
            raise ValueError("rate_limit_per_hour must be > 0")
        if not self.models:
            raise ValueError("models cannot be empty")


TIER_POLICIES: Mapping[str, TierPolicy] = MappingProxyType({
    "free": TierPolicy(
        monthly_rewrites=100,
        monthly_budget_usd=Decimal("5"),
        models=frozenset({"gpt-3.5-turbo"}),
        rate_limit_per_hour=30,
        fail_open=False
    ),
    "premium": TierPolicy(
        monthly_rewrites=1000,
        monthly_budget_usd=Decimal("50"),
        models=frozenset({"gpt-3.5-turbo", "gpt-4", "claude-3-haiku", "claude-3-sonnet"}),
        rate_limit_per_hour=300
    ),
    "enterprise": TierPolicy(
        monthly_rewrites=10000,
        monthly_budget_usd=Decimal("500"),
        models=frozenset({"gpt-3.5-turbo", "gpt-4", "claude-3-haiku", "claude-3-sonnet", "gpt-4-turbo"}),
        rate_limit_per_hour=1000
    ),
})


@dataclass(frozen=True)
class QuotaDecision:
    """Outcome of a quota check."""
    allowed: bool
    reason: Optional[str] = None
    usage: Optional[UserUsageRecord] = None
    policy: Optional[TierPolicy] = None


@dataclass(frozen=True)
class Utilization:
    rewrites_percent: int
    budget_percent: int
    days_left_in_month: int


@dataclass(frozen=True)
class UsageSnapshot:
    """Current month usage with limits and utilization."""
    usage: UserUsageRecord
    tier: str
    policy: TierPolicy
    utilization: Utilization

    @property
    def can_make_requests(self) -> bool:
        return self.utilization.rewrites_percent < 100 and self.utilization.budget_percent < 100

    @property
    def approaching_80_percent(self) -> bool:
        return self.utilization.rewrites_percent >= 80 or self.utilization.budget_percent >= 80

    @property
    def approaching_95_percent(self) -> bool:
        return self.utilization.rewrites_percent >= 95 or self.utilization.budget_percent >= 95


@dataclass(frozen=True)
class ModelOffer:
    """A priced model and whether a tier may use it."""
    model: str
    input_per_1k: Decimal
    output_per_1k: Decimal
    available: bool


def month_key(moment: datetime) -> str:
    """Month-year key for a point in time, e.g. "2024-01"."""
    return f"{moment.year:04d}-{moment.month:02d}"


def _percent(part: Decimal, whole: Decimal) -> int:
    return int((Decimal(part) / Decimal(whole) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class UsageMeter:
    """Per-user monthly usage accounting with tier quotas.

    The meter keeps a working copy of each active (user, month) record and
    writes every update through to the store. A new calendar month means a
    new key, so the first access in a month starts from a zeroed record.
    """

    def __init__(
        self,
        store: Optional[UsageStore] = None,
        pricing: PricingTable = PRICING_TABLE,
        tiers: Optional[Mapping[str, TierPolicy]] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store if store is not None else InMemoryUsageStore()
        self.pricing = pricing
        tiers = tiers if tiers is not None else TIER_POLICIES
        if FREE_TIER in tiers and tiers[FREE_TIER].fail_open:
            raise ValueError(f"The {FREE_TIER} tier must fail closed")
        self.tiers = MappingProxyType(dict(tiers))
        self._clock = clock
        self._guard = threading.Lock()
        self._key_locks: Dict[Tuple[str, str], threading.Lock] = {}
        self._working: Dict[Tuple[str, str], UserUsageRecord] = {}
        self._last_eviction = time.monotonic()

    def policy_for(self, tier: str) -> TierPolicy:
        """Get the policy for a tier.

        Raises:
            ValueError: If the tier is unknown
        """
        if tier not in self.tiers:
            raise ValueError(f"Unknown tier: {tier}")
        return self.tiers[tier]

    def current_month(self) -> str:
        return month_key(self._clock())

    def check_quota(self, user_id: str, model: str, tier: str = FREE_TIER) -> QuotaDecision:
        """Decide whether the user may make one more request with the model."""
        policy = self.policy_for(tier)

        # Model access is decided before any usage state is read
        if model not in policy.models:
            return self._deny(
                user_id,
                f"Model {model} not available for {tier} tier. Please upgrade your plan.",
                None, policy
            )

        try:
            usage = self._current_record(user_id)
        except Exception:
            logger.exception("Error checking quota for user %s (model %s)", user_id, model)
            return QuotaDecision(
                allowed=policy.fail_open,
                reason="Unable to verify quota. Please try again.",
                policy=policy
            )

        if usage.rewrites_count >= policy.monthly_rewrites:
            return self._deny(
                user_id,
                f"Monthly rewrite limit ({policy.monthly_rewrites}) exceeded. "
                "Please upgrade or wait for next month.",
                usage, policy
            )

        if usage.cost_usd >= policy.monthly_budget_usd:
            return self._deny(
                user_id,
                f"Monthly budget limit (${policy.monthly_budget_usd}) exceeded. "
                "Please upgrade or wait for next month.",
                usage, policy
            )

        estimated = self.estimate_request_cost(model)
        if usage.cost_usd + estimated > policy.monthly_budget_usd:
            remaining = policy.monthly_budget_usd - usage.cost_usd
            return self._deny(
                user_id,
                f"Estimated cost would exceed monthly budget. Remaining budget: ${remaining:.2f}",
                usage, policy
            )

        return QuotaDecision(allowed=True, usage=usage, policy=policy)

    def record_usage(
        self,
        user_id: str,
        model: str,
        total_tokens: int,
        input_tokens: Optional[int] = None,
        output_tokens: Optional[int] = None,
    ) -> Optional[UserUsageRecord]:
        """Add one rewrite and its tokens and cost to the user's month.

        Failures are logged, never raised. Returns the updated record, or
        None if recording failed.
        """
        try:
            cost = self.calculate_cost(model, total_tokens, input_tokens, output_tokens)
            key = (user_id, self.current_month())
            with self._lock_for(key):
                current = self._load(key)
                updated = current.add(total_tokens, cost)
                self._remember(key, updated)
                try:
                    self.store.put(updated)
                except Exception:
                    logger.exception("Failed to persist usage for user %s", user_id)
        except Exception:
            logger.exception(
                "Error recording usage for user %s (model %s, %s tokens)",
                user_id, model, total_tokens
            )
            return None

        logger.info(
            "Usage recorded: user=%s model=%s tokens=%d cost=%s monthly_total=%d",
            user_id, model, total_tokens, cost, updated.rewrites_count
        )
        return updated

    def get_usage(self, user_id: str, tier: str = FREE_TIER) -> UsageSnapshot:
        """Current month usage, limits and utilization for a user."""
        policy = self.policy_for(tier)
        usage = self._current_record(user_id)
        today = self._clock()
        days_in_month = calendar.monthrange(today.year, today.month)[1]
        return UsageSnapshot(
            usage=usage,
            tier=tier,
            policy=policy,
            utilization=Utilization(
                rewrites_percent=_percent(Decimal(usage.rewrites_count), Decimal(policy.monthly_rewrites)),
                budget_percent=_percent(usage.cost_usd, policy.monthly_budget_usd),
                days_left_in_month=days_in_month - today.day
            )
        )

    def calculate_cost(
        self,
        model: str,
        total_tokens: int,
        input_tokens: Optional[int] = None,
        output_tokens: Optional[int] = None,
    ) -> Decimal:
        """Exact cost when the input/output split is known, 60/40 estimate otherwise."""
        if input_tokens is not None and output_tokens is not None:
            usage = TokenUsage(prompt_tokens=input_tokens, completion_tokens=output_tokens)
            return calculate_cost(model, usage, self.pricing)
        return estimate_cost(model, total_tokens, self.pricing)

    def estimate_request_cost(self, model: str, estimated_tokens: int = TYPICAL_REQUEST_TOKENS) -> Decimal:
        return estimate_cost(model, estimated_tokens, self.pricing)

    def estimate_for_text(self, model: str, text_length: Optional[int] = None) -> Tuple[int, Decimal]:
        """Estimate tokens and cost for a text of the given length.

        Assumes ~4 characters per token plus 30% overhead.
        """
        length = text_length or DEFAULT_ESTIMATE_TEXT_LENGTH
        tokens = math.ceil(Decimal(length) / 4 * Decimal("1.3"))
        return tokens, self.estimate_request_cost(model, tokens)

    def models_for_tier(self, tier: str) -> List[ModelOffer]:
        policy = self.policy_for(tier)
        offers = []
        for model in self.pricing.models:
            pricing = self.pricing.get_pricing(model)
            offers.append(ModelOffer(
                model=model,
                input_per_1k=pricing.prompt_cost_per_1k,
                output_per_1k=pricing.completion_cost_per_1k,
                available=model in policy.models
            ))
        return offers

    def _deny(
        self,
        user_id: str,
        reason: str,
        usage: Optional[UserUsageRecord],
        policy: TierPolicy,
    ) -> QuotaDecision:
        logger.info("Quota denied for user %s: %s", user_id, reason)
        return QuotaDecision(allowed=False, reason=reason, usage=usage, policy=policy)

    def _current_record(self, user_id: str) -> UserUsageRecord:
        key = (user_id, self.current_month())
        with self._lock_for(key):
            return self._load(key)

    def _load(self, key: Tuple[str, str]) -> UserUsageRecord:
        """Working copy for a key; caller must hold the key lock."""
        record = self._working.get(key)
        if record is None:
            user_id, month_year = key
            record = self.store.get(user_id, month_year) or UserUsageRecord(user_id=user_id, month_year=month_year)
            self._remember(key, record)
        return record

    def _remember(self, key: Tuple[str, str], record: UserUsageRecord) -> None:
        with self._guard:
            self._working[key] = record

    def _lock_for(self, key: Tuple[str, str]) -> threading.Lock:
        with self._guard:
            self._evict_stale_locked(key[1])
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.Lock()
            return lock

    def _evict_stale_locked(self, current_month: str) -> None:
        """Drop working records from past months; caller must hold the guard."""
        now = time.monotonic()
        if now - self._last_eviction < STALE_EVICTION_SECONDS:
            return
        for key in [k for k in self._working if k[1] != current_month]:
            self._working.pop(key, None)
            self._key_locks.pop(key, None)
        self._last_eviction = now
        logger.debug("Usage working set cleaned, %d entries remaining", len(self._working))
