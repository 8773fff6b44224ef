"""
Rewrite pipeline orchestration.

Runs one request end to end:

    Received -> Normalized -> Fingerprinted -> CacheChecked
        -> CacheHit -> Done
        -> CacheMiss -> QuotaChecked
            -> Denied (QuotaExceededError)
            -> Allowed -> ProviderCalled -> Verified
                -> [RetriedOnce] -> UsageRecorded -> Cached -> Done

A guardrail violation triggers at most one retry with a stricter payload.
The retry's text is kept only if it has strictly fewer violations.
Every provider call made for a request is metered.
"""

import logging
import math
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from tone_slyder.core.cache import DEFAULT_TTL_SECONDS, ResponseCache
from tone_slyder.core.conflicts import ConflictResolution, resolve
from tone_slyder.core.dials import dimensions_from_values
from tone_slyder.core.fingerprint import fingerprint
from tone_slyder.core.guardrails import Guardrails, GuardrailViolation, verify
from tone_slyder.core.metering import FREE_TIER, QuotaDecision, TierPolicy, UsageMeter
from tone_slyder.core.pricing import PricingTable
from tone_slyder.core.prompt import assemble, strengthen
from tone_slyder.core.validation import (
    RequestValidationError,
    validate_batch_size,
    validate_rewrite_request,
)
from tone_slyder.sdk.provider import ProviderError, ProviderResponse, TextGenerationProvider

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-3.5-turbo"
ANONYMOUS_USER = "anonymous"


class PipelineState(Enum):
    RECEIVED = "received"
    NORMALIZED = "normalized"
    FINGERPRINTED = "fingerprinted"
    CACHE_CHECKED = "cache_checked"
    CACHE_HIT = "cache_hit"
    QUOTA_CHECKED = "quota_checked"
    DENIED = "denied"
    PROVIDER_CALLED = "provider_called"
    VERIFIED = "verified"
    RETRIED_ONCE = "retried_once"
    USAGE_RECORDED = "usage_recorded"
    CACHED = "cached"
    DONE = "done"


class QuotaExceededError(Exception):
    """Raised when a user may not make the request."""

    def __init__(self, decision: QuotaDecision):
        super().__init__(decision.reason or "Request not allowed")
        self.decision = decision


@dataclass(frozen=True)
class RewriteRequest:
    """Immutable input of one pipeline run."""
    text: str
    dial_values: Tuple[Tuple[str, int], ...]
    guardrails: Guardrails = Guardrails()
    model: str = DEFAULT_MODEL
    user_id: str = ANONYMOUS_USER
    tier: str = FREE_TIER

    @classmethod
    def create(
        cls,
        text: str,
        dial_values: Mapping[str, int],
        required: Iterable[str] = (),
        banned: Iterable[str] = (),
        model: str = DEFAULT_MODEL,
        user_id: Optional[str] = None,
        tier: str = FREE_TIER,
        pricing: Optional[PricingTable] = None,
        tiers: Optional[Mapping[str, TierPolicy]] = None,
    ) -> "RewriteRequest":
        """Validate raw fields and build a request.

        Raises:
            RequestValidationError: If any field is malformed
        """
        required = list(required)
        banned = list(banned)
        validate_rewrite_request(
            text, dial_values, required, banned, model, pricing, tier=tier, tiers=tiers
        )
        return cls(
            text=text,
            dial_values=tuple(dial_values.items()),
            guardrails=Guardrails.from_terms(required, banned),
            model=model,
            user_id=user_id or ANONYMOUS_USER,
            tier=tier
        )

    @property
    def dials(self) -> Dict[str, int]:
        return dict(self.dial_values)


@dataclass(frozen=True)
class RewriteResult:
    """What a caller gets back for a rewrite."""
    rewritten_text: str
    original_text: str
    model: str
    processing_time_ms: int
    tokens_used: int
    guardrail_violations: Tuple[str, ...] = ()
    cached: bool = False
    trace: Tuple[PipelineState, ...] = field(default=(), compare=False)


@dataclass(frozen=True)
class PreparedRequest:
    resolution: ConflictResolution
    payload: str
    cache_key: str


@dataclass(frozen=True)
class RewriteMetrics:
    original_words: int
    rewritten_words: int
    word_change_ratio: float
    estimated_tokens: int
    processing_time_ms: int


@dataclass(frozen=True)
class BatchItemError:
    index: int
    message: str


@dataclass(frozen=True)
class BatchResult:
    """Per-text outcomes; results[i] is None where errors has an entry for i."""
    results: Tuple[Optional[RewriteResult], ...]
    errors: Tuple[BatchItemError, ...]


def calculate_metrics(original_text: str, rewritten_text: str, processing_time_ms: int) -> RewriteMetrics:
    original_words = len(original_text.split())
    rewritten_words = len(rewritten_text.split())
    return RewriteMetrics(
        original_words=original_words,
        rewritten_words=rewritten_words,
        word_change_ratio=rewritten_words / original_words if original_words else 0.0,
        estimated_tokens=math.ceil((len(original_text) + len(rewritten_text)) / 4),
        processing_time_ms=processing_time_ms
    )


def prepare(request: RewriteRequest) -> PreparedRequest:
    """Resolve dials, assemble the payload and fingerprint the request."""
    resolution = resolve(dimensions_from_values(request.dials))
    payload = assemble(request.text, resolution, request.guardrails)
    cache_key = fingerprint(request.text, request.dials, request.guardrails, request.model)
    return PreparedRequest(resolution=resolution, payload=payload, cache_key=cache_key)


class RewritePipeline:
    """Composes resolution, assembly, caching, metering and the provider.

    Each call runs independently; the cache and meter are shared and
    thread-safe. Two simultaneous misses on one fingerprint both call the
    provider and the later cache write wins.
    """

    def __init__(
        self,
        provider: TextGenerationProvider,
        meter: UsageMeter,
        cache: Optional[ResponseCache] = None,
        cache_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.provider = provider
        self.meter = meter
        self.cache = cache if cache is not None else ResponseCache(default_ttl=cache_ttl)
        self.cache_ttl = cache_ttl
        self._clock = clock

    def rewrite(self, request: RewriteRequest) -> RewriteResult:
        """Run the full pipeline for one request.

        Raises:
            QuotaExceededError: If the user's tier or usage denies the request
            ProviderError: If a provider call fails
        """
        start = self._clock()
        trace = [PipelineState.RECEIVED]
        logger.info(
            "Rewrite request received: user=%s text_length=%d dials=%d model=%s",
            request.user_id, len(request.text), len(request.dial_values), request.model
        )

        prepared = prepare(request)
        trace += [PipelineState.NORMALIZED, PipelineState.FINGERPRINTED]
        logger.debug(
            "Resolved %d primary and %d secondary instructions",
            len(prepared.resolution.primary), len(prepared.resolution.secondary)
        )

        cached = self._cache_get(prepared.cache_key)
        trace.append(PipelineState.CACHE_CHECKED)
        if cached is not None:
            logger.info("Cache hit for user %s", request.user_id)
            trace += [PipelineState.CACHE_HIT, PipelineState.DONE]
            return replace(
                cached,
                processing_time_ms=self._elapsed_ms(start),
                cached=True,
                trace=tuple(trace)
            )

        decision = self.meter.check_quota(request.user_id, request.model, request.tier)
        trace.append(PipelineState.QUOTA_CHECKED)
        if not decision.allowed:
            trace.append(PipelineState.DENIED)
            raise QuotaExceededError(decision)

        responses: List[ProviderResponse] = []
        try:
            final_text, violations = self._generate(request, prepared.payload, responses, trace)
        finally:
            # Whatever was generated has been paid for, even if a retry failed
            if responses:
                self._record(request, responses)
        trace.append(PipelineState.USAGE_RECORDED)

        tokens_used = sum(r.total_tokens for r in responses)
        result = RewriteResult(
            rewritten_text=final_text,
            original_text=request.text,
            model=request.model,
            processing_time_ms=self._elapsed_ms(start),
            tokens_used=tokens_used,
            guardrail_violations=tuple(v.message for v in violations)
        )

        self._cache_set(prepared.cache_key, result)
        trace += [PipelineState.CACHED, PipelineState.DONE]
        result = replace(result, trace=tuple(trace))

        metrics = calculate_metrics(request.text, final_text, result.processing_time_ms)
        logger.info(
            "Rewrite completed: user=%s time_ms=%d tokens=%d word_change_ratio=%.2f violations=%d",
            request.user_id, metrics.processing_time_ms, tokens_used,
            metrics.word_change_ratio, len(violations)
        )
        return result

    def rewrite_batch(
        self,
        texts: Sequence[str],
        dial_values: Mapping[str, int],
        required: Iterable[str] = (),
        banned: Iterable[str] = (),
        model: str = DEFAULT_MODEL,
        user_id: Optional[str] = None,
        tier: str = FREE_TIER,
    ) -> BatchResult:
        """Rewrite up to 10 texts with shared settings.

        Each text runs the full pipeline. A failing item is reported in
        errors and the rest continue.

        Raises:
            RequestValidationError: If the batch size is out of range
        """
        validate_batch_size(len(texts))
        required = list(required)
        banned = list(banned)

        results: List[Optional[RewriteResult]] = []
        errors: List[BatchItemError] = []
        for index, text in enumerate(texts):
            try:
                request = RewriteRequest.create(
                    text, dial_values, required, banned,
                    model=model, user_id=user_id, tier=tier,
                    pricing=self.meter.pricing, tiers=self.meter.tiers
                )
                results.append(self.rewrite(request))
            except (RequestValidationError, QuotaExceededError, ProviderError) as e:
                logger.warning("Batch item %d failed: %s", index, e)
                results.append(None)
                errors.append(BatchItemError(index=index, message=str(e)))
        return BatchResult(results=tuple(results), errors=tuple(errors))

    def _generate(
        self,
        request: RewriteRequest,
        payload: str,
        responses: List[ProviderResponse],
        trace: List[PipelineState],
    ) -> Tuple[str, List[GuardrailViolation]]:
        """First attempt plus at most one guardrail retry."""
        first = self.provider.complete(payload, request.model)
        responses.append(first)
        trace.append(PipelineState.PROVIDER_CALLED)

        violations = verify(request.text, first.text, request.guardrails)
        trace.append(PipelineState.VERIFIED)
        if not violations:
            return first.text, violations

        logger.warning(
            "Guardrail violations detected, retrying with stricter prompt: %s",
            [v.message for v in violations]
        )
        retry = self.provider.complete(strengthen(payload), request.model)
        responses.append(retry)
        trace.append(PipelineState.RETRIED_ONCE)

        retry_violations = verify(request.text, retry.text, request.guardrails)
        if len(retry_violations) < len(violations):
            return retry.text, retry_violations
        return first.text, violations

    def _record(self, request: RewriteRequest, responses: List[ProviderResponse]) -> None:
        total = sum(r.total_tokens for r in responses)
        usages = [r.usage for r in responses]
        input_tokens = output_tokens = None
        if all(u is not None for u in usages):
            input_tokens = sum(u.prompt_tokens for u in usages)
            output_tokens = sum(u.completion_tokens for u in usages)
        self.meter.record_usage(request.user_id, request.model, total, input_tokens, output_tokens)

    def _cache_get(self, key: str) -> Optional[RewriteResult]:
        try:
            return self.cache.get(key)
        except Exception:
            logger.exception("Cache lookup failed, treating as miss")
            return None

    def _cache_set(self, key: str, result: RewriteResult) -> None:
        try:
            self.cache.set(key, result, self.cache_ttl)
        except Exception:
            logger.exception("Cache write failed, result not cached")

    def _elapsed_ms(self, start: float) -> int:
        return int(round((self._clock() - start) * 1000))
