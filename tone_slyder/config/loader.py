"""
Configuration management and loading.

Built-in tier, pricing, cache and provider settings, optionally
overridden section by section from a YAML file.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping

import yaml

from tone_slyder.core.cache import DEFAULT_SWEEP_INTERVAL_SECONDS, DEFAULT_TTL_SECONDS
from tone_slyder.core.metering import FREE_TIER, TIER_POLICIES, TierPolicy
from tone_slyder.core.pricing import PRICING_TABLE, ModelPricing, PricingTable


@dataclass(frozen=True)
class CacheSettings:
    """Response cache settings."""
    ttl_seconds: int = DEFAULT_TTL_SECONDS
    sweep_interval_seconds: int = DEFAULT_SWEEP_INTERVAL_SECONDS

    def __post_init__(self):
        """Validate durations are positive."""
        if self.ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        if self.sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be > 0")


@dataclass(frozen=True)
class ProviderSettings:
    """Text-generation provider settings."""
    default_model: str = "gpt-3.5-turbo"
    temperature: float = 0.4
    max_tokens: int = 2000

    def __post_init__(self):
        """Validate sampling settings."""
        if not 0 <= self.temperature <= 2:
            raise ValueError("temperature must be between 0 and 2")
        if self.max_tokens <= 0:
            raise ValueError("max_tokens must be > 0")


@dataclass(frozen=True)
class PipelineConfig:
    """Complete pipeline configuration, read-only at runtime."""
    pricing: PricingTable = PRICING_TABLE
    tiers: Mapping[str, TierPolicy] = field(default_factory=lambda: TIER_POLICIES)
    cache: CacheSettings = CacheSettings()
    provider: ProviderSettings = ProviderSettings()

    def __post_init__(self):
        """Validate every referenced model is priced and freeze the tier table."""
        object.__setattr__(self, "tiers", MappingProxyType(dict(self.tiers)))
        for tier, policy in self.tiers.items():
            unpriced = sorted(m for m in policy.models if not self.pricing.supports(m))
            if unpriced:
                raise ValueError(f"Tier '{tier}' allows models without pricing: {unpriced}")
        if not self.pricing.supports(self.provider.default_model):
            raise ValueError(f"Default model '{self.provider.default_model}' has no pricing")


def default_config() -> PipelineConfig:
    return PipelineConfig()


def load_pipeline_config(path: str) -> PipelineConfig:
    """Load and validate pipeline configuration from a YAML file.

    Strict validation ensures no silent misconfigurations that could
    lead to unexpected cost overruns.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated PipelineConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Pipeline config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    _reject_unknown(raw_config, {'pricing', 'tiers', 'cache', 'provider'}, "configuration")

    pricing = PRICING_TABLE
    if 'pricing' in raw_config:
        pricing = _parse_pricing(_section(raw_config, 'pricing'))

    tiers = dict(TIER_POLICIES)
    if 'tiers' in raw_config:
        tiers_data = _section(raw_config, 'tiers')
        if not tiers_data:
            raise ValueError("'tiers' must define at least one tier")
        tiers = {
            name: _parse_tier(name, _section(tiers_data, name, f"tiers.{name}"), f"tiers.{name}")
            for name in tiers_data
        }

    cache = CacheSettings()
    if 'cache' in raw_config:
        cache_data = _section(raw_config, 'cache')
        _reject_unknown(cache_data, {'ttl_seconds', 'sweep_interval_seconds'}, "cache")
        cache = CacheSettings(
            ttl_seconds=_positive_int(cache_data.get('ttl_seconds', DEFAULT_TTL_SECONDS), "cache.ttl_seconds"),
            sweep_interval_seconds=_positive_int(
                cache_data.get('sweep_interval_seconds', DEFAULT_SWEEP_INTERVAL_SECONDS),
                "cache.sweep_interval_seconds"
            )
        )

    provider = ProviderSettings()
    if 'provider' in raw_config:
        provider_data = _section(raw_config, 'provider')
        _reject_unknown(provider_data, {'default_model', 'temperature', 'max_tokens'}, "provider")
        temperature = provider_data.get('temperature', provider.temperature)
        if isinstance(temperature, bool) or not isinstance(temperature, (int, float)):
            raise ValueError("'provider.temperature' must be a number")
        default_model = provider_data.get('default_model', provider.default_model)
        if not isinstance(default_model, str) or not default_model:
            raise ValueError("'provider.default_model' must be a non-empty string")
        provider = ProviderSettings(
            default_model=default_model,
            temperature=float(temperature),
            max_tokens=_positive_int(provider_data.get('max_tokens', provider.max_tokens), "provider.max_tokens")
        )

    return PipelineConfig(pricing=pricing, tiers=tiers, cache=cache, provider=provider)


def _section(data: Dict, key: str, path: str = None) -> Dict:
    value = data[key]
    if not isinstance(value, dict):
        raise ValueError(f"'{path or key}' must be a dictionary")
    return value


def _reject_unknown(data: Dict, allowed: set, path: str) -> None:
    unknown_keys = set(data.keys()) - allowed
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")


def _positive_int(value: Any, path: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"'{path}' must be a positive integer")
    return value


def _decimal(value: Any, path: str) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"'{path}' must be a number")
    try:
        # str() keeps 0.0015 from turning into a binary float expansion
        result = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"'{path}' must be a number")
    if not result.is_finite() or result < 0:
        raise ValueError(f"'{path}' must be >= 0")
    return result


def _parse_pricing(data: Dict) -> PricingTable:
    if not data:
        raise ValueError("'pricing' must define at least one model")
    prices = {}
    for model in data:
        path = f"pricing.{model}"
        model_data = _section(data, model, path)
        _reject_unknown(model_data, {'input_per_1k', 'output_per_1k'}, path)
        for key in ('input_per_1k', 'output_per_1k'):
            if key not in model_data:
                raise ValueError(f"Missing required '{key}' in {path}")
        prices[str(model)] = ModelPricing(
            prompt_cost_per_1k=_decimal(model_data['input_per_1k'], f"{path}.input_per_1k"),
            completion_cost_per_1k=_decimal(model_data['output_per_1k'], f"{path}.output_per_1k")
        )
    return PricingTable(prices)


def _parse_tier(name: str, data: Dict, path: str) -> TierPolicy:
    """Parse and validate a tier policy.

    The free tier always fails closed; other tiers fail open unless
    configured otherwise.

    Raises:
        ValueError: If the tier configuration is invalid
    """
    required = {'monthly_rewrites', 'monthly_budget_usd', 'models', 'rate_limit_per_hour'}
    _reject_unknown(data, required | {'fail_open'}, path)
    for key in sorted(required):
        if key not in data:
            raise ValueError(f"Missing required '{key}' in {path}")

    models = data['models']
    if not isinstance(models, list) or not models or not all(isinstance(m, str) and m for m in models):
        raise ValueError(f"'models' in {path} must be a non-empty list of model ids")

    budget = _decimal(data['monthly_budget_usd'], f"{path}.monthly_budget_usd")
    if budget <= 0:
        raise ValueError(f"'monthly_budget_usd' in {path} must be > 0")

    fail_open = data.get('fail_open', name != FREE_TIER)
    if not isinstance(fail_open, bool):
        raise ValueError(f"'fail_open' in {path} must be true or false")
    if fail_open and name == FREE_TIER:
        raise ValueError(f"'fail_open' in {path} cannot be true for the {FREE_TIER} tier")

    return TierPolicy(
        monthly_rewrites=_positive_int(data['monthly_rewrites'], f"{path}.monthly_rewrites"),
        monthly_budget_usd=budget,
        models=frozenset(models),
        rate_limit_per_hour=_positive_int(data['rate_limit_per_hour'], f"{path}.rate_limit_per_hour"),
        fail_open=fail_open
    )
