"""
CLI interface for Tone Slyder.

Provides command-line access to rewriting, usage and catalogue lookups.
"""

import logging
import sys
from decimal import Decimal
from typing import Dict, List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from tone_slyder.config.loader import PipelineConfig, default_config, load_pipeline_config
from tone_slyder.core.cache import ResponseCache
from tone_slyder.core.dials import CORE_DIALS, get_preset, list_presets
from tone_slyder.core.metering import FREE_TIER, UsageMeter
from tone_slyder.core.validation import RequestValidationError
from tone_slyder.pipeline.orchestrator import QuotaExceededError, RewritePipeline, RewriteRequest
from tone_slyder.sdk.openai_client import build_provider
from tone_slyder.sdk.provider import ProviderError
from tone_slyder.storage.db import DEFAULT_DB_PATH
from tone_slyder.storage.repository import SqliteUsageStore, initialize_schema

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        "-l",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
):
    """Tone Slyder CLI."""
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        console.print(f"[red]Unknown log level:[/] {escape(log_level)}")
        sys.exit(EXIT_CODE_FAIL)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True
    )
    if ctx.invoked_subcommand is None:
        console.print("Tone Slyder - Use --help to see available commands")


def _load_config(path: Optional[str]) -> PipelineConfig:
    try:
        return load_pipeline_config(path) if path else default_config()
    except Exception as e:
        console.print(f"[red]Error loading config:[/] {escape(str(e))}")
        sys.exit(EXIT_CODE_FAIL)


def _build_meter(config: PipelineConfig, db: str) -> UsageMeter:
    initialize_schema(db)
    return UsageMeter(store=SqliteUsageStore(db), pricing=config.pricing, tiers=config.tiers)


def _parse_dials(dials: List[str]) -> Dict[str, int]:
    """Parse repeated name=value options."""
    values = {}
    for item in dials:
        name, sep, raw = item.partition("=")
        if not sep or not name.strip():
            raise RequestValidationError(f"Invalid dial '{item}', expected name=value")
        try:
            values[name.strip()] = int(raw)
        except ValueError:
            raise RequestValidationError(f"Dial '{name.strip()}' must be an integer, got '{raw}'")
    return values


def _format_currency(amount: Decimal) -> str:
    return f"${amount:,.4f}"


@app.command()
def init(
    db: str = typer.Option(DEFAULT_DB_PATH, "--db", help="SQLite database path")
):
    """Initialize the usage database."""
    try:
        initialize_schema(db)
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {escape(str(e))}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def rewrite(
    text: str = typer.Argument(..., help="Text to rewrite"),
    dial: List[str] = typer.Option([], "--dial", "-d", help="Dial setting as name=value (repeatable)"),
    preset: Optional[str] = typer.Option(None, "--preset", "-p", help="Start from a built-in preset"),
    require: List[str] = typer.Option([], "--require", "-r", help="Term that must survive (repeatable)"),
    ban: List[str] = typer.Option([], "--ban", "-b", help="Term that must not appear (repeatable)"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model id"),
    user: str = typer.Option("local", "--user", "-u", help="User id to meter against"),
    tier: str = typer.Option(FREE_TIER, "--tier", "-t", help="Subscription tier"),
    db: str = typer.Option(DEFAULT_DB_PATH, "--db", help="SQLite database path"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="YAML config file")
):
    """Rewrite text with the given tone dials and guardrails."""
    cfg = _load_config(config)
    try:
        dial_values = get_preset(preset).as_mapping() if preset else {}
        dial_values.update(_parse_dials(dial))
        request = RewriteRequest.create(
            text, dial_values, require, ban,
            model=model or cfg.provider.default_model,
            user_id=user,
            tier=tier,
            pricing=cfg.pricing,
            tiers=cfg.tiers
        )
        pipeline = RewritePipeline(
            provider=build_provider(cfg.provider.temperature, cfg.provider.max_tokens),
            meter=_build_meter(cfg, db),
            cache=ResponseCache(cfg.cache.ttl_seconds, cfg.cache.sweep_interval_seconds),
            cache_ttl=cfg.cache.ttl_seconds
        )
        result = pipeline.rewrite(request)
    except KeyError as e:
        console.print(f"[red]Error:[/] {escape(str(e.args[0]))}")
        sys.exit(EXIT_CODE_FAIL)
    except ValueError as e:
        console.print(f"[red]Invalid request:[/] {escape(str(e))}")
        sys.exit(EXIT_CODE_FAIL)
    except QuotaExceededError as e:
        console.print(f"[bold yellow]Not allowed:[/] {escape(str(e))}")
        sys.exit(EXIT_CODE_FAIL)
    except ProviderError as e:
        console.print(f"[red]Rewrite failed:[/] {escape(str(e))}")
        sys.exit(EXIT_CODE_FAIL)

    console.print(escape(result.rewritten_text))
    console.print(
        f"\n[dim]model={result.model} tokens={result.tokens_used} "
        f"time={result.processing_time_ms}ms cached={result.cached}[/]"
    )
    for violation in result.guardrail_violations:
        console.print(f"[yellow]Guardrail:[/] {escape(violation)}")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def usage(
    user: str = typer.Option("local", "--user", "-u", help="User id"),
    tier: str = typer.Option(FREE_TIER, "--tier", "-t", help="Subscription tier"),
    db: str = typer.Option(DEFAULT_DB_PATH, "--db", help="SQLite database path"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="YAML config file")
):
    """Show this month's usage and limits for a user."""
    cfg = _load_config(config)
    try:
        snapshot = _build_meter(cfg, db).get_usage(user, tier)
    except Exception as e:
        console.print(f"[red]Error:[/] {escape(str(e))}")
        sys.exit(EXIT_CODE_FAIL)

    table = Table(title=f"Usage for {escape(user)} ({snapshot.usage.month_year}, {tier} tier)")
    table.add_column("Metric")
    table.add_column("Used", justify="right")
    table.add_column("Limit", justify="right")
    table.add_column("Utilization", justify="right")
    table.add_row(
        "Rewrites",
        str(snapshot.usage.rewrites_count),
        str(snapshot.policy.monthly_rewrites),
        f"{snapshot.utilization.rewrites_percent}%"
    )
    table.add_row(
        "Budget",
        _format_currency(snapshot.usage.cost_usd),
        _format_currency(snapshot.policy.monthly_budget_usd),
        f"{snapshot.utilization.budget_percent}%"
    )
    table.add_row("Tokens", f"{snapshot.usage.tokens_used:,}", "-", "-")
    console.print(table)
    console.print(f"Days left in month: {snapshot.utilization.days_left_in_month}")
    if not snapshot.can_make_requests:
        console.print("[bold red]Monthly limit reached[/]")
    elif snapshot.approaching_95_percent:
        console.print("[bold yellow]Above 95% of a monthly limit[/]")
    elif snapshot.approaching_80_percent:
        console.print("[yellow]Above 80% of a monthly limit[/]")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def estimate(
    text_length: Optional[int] = typer.Option(None, "--length", "-n", help="Text length in characters"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model id"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="YAML config file")
):
    """Estimate tokens and cost for a text length."""
    cfg = _load_config(config)
    model = model or cfg.provider.default_model
    meter = UsageMeter(pricing=cfg.pricing, tiers=cfg.tiers)
    try:
        tokens, cost = meter.estimate_for_text(model, text_length)
    except ValueError as e:
        console.print(f"[red]Error:[/] {escape(str(e))}")
        sys.exit(EXIT_CODE_FAIL)
    console.print(f"Model: {model}")
    console.print(f"Estimated tokens: {tokens:,}")
    console.print(f"Estimated cost: {_format_currency(cost)}")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def models(
    tier: str = typer.Option(FREE_TIER, "--tier", "-t", help="Subscription tier"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="YAML config file")
):
    """List priced models and which are available to a tier."""
    cfg = _load_config(config)
    try:
        offers = UsageMeter(pricing=cfg.pricing, tiers=cfg.tiers).models_for_tier(tier)
    except ValueError as e:
        console.print(f"[red]Error:[/] {escape(str(e))}")
        sys.exit(EXIT_CODE_FAIL)

    table = Table(title=f"Models for {tier} tier")
    table.add_column("Model")
    table.add_column("Input / 1K", justify="right")
    table.add_column("Output / 1K", justify="right")
    table.add_column("Available")
    for offer in offers:
        table.add_row(
            offer.model,
            f"${offer.input_per_1k}",
            f"${offer.output_per_1k}",
            "[green]yes[/]" if offer.available else "[dim]no[/]"
        )
    console.print(table)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def presets():
    """List built-in tone presets."""
    table = Table(title="Presets")
    table.add_column("Id")
    table.add_column("Name")
    table.add_column("Dials")
    for preset in list_presets():
        dials = ", ".join(f"{name}={value}" for name, value in preset.dial_values)
        table.add_row(preset.id, preset.name, dials)
    console.print(table)


@app.command()
def dials():
    """List the core tone dials and their ranges."""
    table = Table(title="Core dials")
    table.add_column("Id")
    table.add_column("Range", justify="right")
    table.add_column("Default", justify="right")
    table.add_column("Description")
    for spec in CORE_DIALS.values():
        table.add_row(spec.id, f"{spec.min_value}-{spec.max_value}", str(spec.default_value), spec.description)
    console.print(table)


if __name__ == "__main__":
    app()
