"""CLI entrypoint for the LST Oracle."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import time
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import Annotated, TypeVar

import requests
import typer

from .domain import AssetKind, FeedSnapshot, RegistryStrategy
from .errors import OracleError, PriceChangeExceedsLimit
from .feeds.source import FeedSource
from .formatter import print_status
from .logger import setup_logging
from .oracle import PriceOracle
from .settings import OracleSettings
from .state import AppState
from .store import StateStore, state_to_dict

T = TypeVar("T")


class StopAction(str, Enum):
    ON = "on"
    OFF = "off"


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    add_help_option=True,
    pretty_exceptions_enable=True,
    pretty_exceptions_short=True,
    pretty_exceptions_show_locals=False,
    rich_markup_mode="rich",
    help="Price/APY attestation store for liquid staking tokens.",
)

AssetArg = Annotated[
    str,
    typer.Argument(help="Asset kind, e.g. JitoSOL, mSOL or SOL."),
]
FeedArg = Annotated[
    str,
    typer.Argument(help="Feed snapshot location: a JSON file path or http(s) URL."),
]
NowOption = Annotated[
    int | None,
    typer.Option(
        "--now",
        help="Unix timestamp to record instead of the current wall-clock time.",
    ),
]


def _build_logger() -> logging.Logger:
    """Build a logger instance."""
    return logging.getLogger("lst_oracle")


def _parse_asset(value: str) -> AssetKind:
    try:
        return AssetKind.parse(value)
    except ValueError as e:
        choices = ", ".join(asset.value for asset in AssetKind)
        raise typer.BadParameter(f"{e}. Choose from: {choices}") from e


def _now(now: int | None) -> int:
    return now if now is not None else int(time.time())


def _fetch(state: AppState, *locations: str) -> list[FeedSnapshot]:
    source = FeedSource(
        timeout=state.settings.feed_timeout,
        max_tries=state.settings.feed_max_tries,
    )

    async def _fetch_all() -> list[FeedSnapshot]:
        return list(await asyncio.gather(*(source.fetch(loc) for loc in locations)))

    return asyncio.run(_fetch_all())


def _load(state: AppState) -> PriceOracle:
    try:
        return state.store.load(state.settings)
    except OracleError as e:
        state.logger.error("%s", e)
        raise typer.Exit(code=1) from e


def _run_update(
    state: AppState,
    locations: tuple[str, ...],
    update: Callable[[PriceOracle, list[FeedSnapshot]], T],
) -> T:
    """Load the oracle, apply ``update`` and persist the result.

    A rejected price jump still persists the tripped emergency stop.
    """
    oracle = _load(state)
    try:
        snapshots = _fetch(state, *locations)
        result = update(oracle, snapshots)
    except PriceChangeExceedsLimit as e:
        state.store.save(oracle)
        state.logger.error("%s", e)
        state.logger.error("Emergency stop activated; further updates are blocked")
        raise typer.Exit(code=1) from e
    except (OracleError, requests.exceptions.RequestException) as e:
        state.logger.error("%s", e)
        raise typer.Exit(code=1) from e
    state.store.save(oracle)
    return result


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to a TOML config file (can include [lst_oracle] table).",
        ),
    ] = None,
    state_path: Annotated[
        Path | None,
        typer.Option("--state", "-s", help="Path to the oracle state file."),
    ] = None,
    registry_strategy: Annotated[
        RegistryStrategy | None,
        typer.Option("--registry", help="Asset registry used by 'init'."),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            help="Override logging verbosity (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL).",
        ),
    ] = None,
):
    """Load configuration and prepare the state store."""
    if config_path:
        os.environ["LST_ORACLE_CONFIG"] = str(config_path)

    init_kwargs: dict[str, Path | RegistryStrategy | str] = {}
    if state_path is not None:
        init_kwargs["state_path"] = state_path
    if registry_strategy is not None:
        init_kwargs["registry_strategy"] = registry_strategy
    if log_level is not None:
        init_kwargs["log_level"] = log_level.upper()

    settings = OracleSettings(**init_kwargs)
    setup_logging(settings.log_level)
    ctx.obj = AppState(
        settings=settings,
        logger=_build_logger(),
        store=StateStore(settings.state_path),
    )


@app.command()
def init(
    ctx: typer.Context,
    authority: Annotated[
        str, typer.Argument(help="Identity allowed to toggle the emergency stop.")
    ],
    feed_authority: Annotated[
        str | None,
        typer.Option("--feed-authority", help="Owner every feed snapshot must carry."),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", help="Replace an existing oracle state."),
    ] = False,
):
    """Create a new oracle with zeroed records."""
    state: AppState = ctx.obj
    if state.store.exists() and not force:
        raise typer.BadParameter(
            f"{state.store.path} already exists; pass --force to replace it",
            param_hint="--force",
        )
    oracle = PriceOracle.initialize(authority, state.settings, feed_authority)
    state.store.save(oracle)
    typer.echo(f"Initialized oracle at {state.store.path}")


@app.command("update-price")
def update_price(ctx: typer.Context, asset: AssetArg, feed: FeedArg, now: NowOption = None):
    """Update an asset's price from a scalar feed."""
    kind = _parse_asset(asset)
    ts = _now(now)
    price = _run_update(
        ctx.obj, (feed,), lambda oracle, snaps: oracle.update_price(kind, snaps[0], ts)
    )
    typer.echo(f"{kind.value} price: {price}")


@app.command("update-apy")
def update_apy(ctx: typer.Context, asset: AssetArg, feed: FeedArg, now: NowOption = None):
    """Update an asset's APY from a scalar feed."""
    kind = _parse_asset(asset)
    ts = _now(now)
    apy = _run_update(
        ctx.obj, (feed,), lambda oracle, snaps: oracle.update_apy(kind, snaps[0], ts)
    )
    typer.echo(f"{kind.value} APY: {apy}")


@app.command("update-price-and-apy")
def update_price_and_apy(
    ctx: typer.Context,
    asset: AssetArg,
    price_feed: Annotated[str, typer.Argument(help="Price feed snapshot location.")],
    apy_feed: Annotated[str, typer.Argument(help="APY feed snapshot location.")],
    now: NowOption = None,
):
    """Update an asset's price and APY together."""
    kind = _parse_asset(asset)
    ts = _now(now)
    price, apy = _run_update(
        ctx.obj,
        (price_feed, apy_feed),
        lambda oracle, snaps: oracle.update_price_and_apy(kind, snaps[0], snaps[1], ts),
    )
    typer.echo(f"{kind.value} price: {price}, APY: {apy}")


@app.command("update-all")
def update_all(ctx: typer.Context, feed: FeedArg, now: NowOption = None):
    """Update every liquid staking token from a packed multi-asset feed."""
    ts = _now(now)
    applied = _run_update(
        ctx.obj, (feed,), lambda oracle, snaps: oracle.update_prices_and_apys(snaps[0], ts)
    )
    for kind, (price, apy) in applied.items():
        typer.echo(f"{kind.value} price: {price}, APY: {apy}")


@app.command("update-base-price")
def update_base_price(ctx: typer.Context, feed: FeedArg, now: NowOption = None):
    """Update the SOL price from a JSON result feed."""
    ts = _now(now)
    price = _run_update(
        ctx.obj, (feed,), lambda oracle, snaps: oracle.update_base_price(snaps[0], ts)
    )
    typer.echo(f"{AssetKind.SOL.value} price: {price}")


def _read(state: AppState, reader: Callable[[PriceOracle], float]) -> float:
    oracle = _load(state)
    try:
        return reader(oracle)
    except OracleError as e:
        state.logger.error("%s", e)
        raise typer.Exit(code=1) from e


@app.command()
def price(ctx: typer.Context, asset: AssetArg):
    """Print an asset's current price. Allowed while stopped."""
    kind = _parse_asset(asset)
    typer.echo(_read(ctx.obj, lambda oracle: oracle.get_current_price(kind)))


@app.command()
def apy(ctx: typer.Context, asset: AssetArg):
    """Print an asset's current APY. Allowed while stopped."""
    kind = _parse_asset(asset)
    typer.echo(_read(ctx.obj, lambda oracle: oracle.get_current_apy(kind)))


@app.command()
def status(
    ctx: typer.Context,
    as_json: Annotated[
        bool, typer.Option("--json", help="Print raw state as JSON.")
    ] = False,
):
    """Show the emergency state and every asset record."""
    state: AppState = ctx.obj
    oracle = _load(state)
    if as_json:
        typer.echo(json.dumps(state_to_dict(oracle), indent=2))
        return
    print_status(oracle)


@app.command("emergency-stop")
def emergency_stop(
    ctx: typer.Context,
    action: Annotated[
        StopAction, typer.Argument(help="'on' to stop updates, 'off' to resume.")
    ],
    caller: Annotated[
        str, typer.Option("--caller", help="Identity requesting the change.")
    ],
):
    """Set or clear the emergency stop (authority only)."""
    state: AppState = ctx.obj
    oracle = _load(state)
    try:
        oracle.set_emergency_stop(action is StopAction.ON, caller)
    except OracleError as e:
        state.logger.error("%s", e)
        raise typer.Exit(code=1) from e
    state.store.save(oracle)
    typer.echo(f"Emergency stop: {'on' if oracle.is_emergency_stopped() else 'off'}")


@app.command("show-config")
def show_config(ctx: typer.Context):
    """Print effective config and exit."""
    state: AppState = ctx.obj
    typer.echo(json.dumps(state.settings.as_safe_dict(), indent=2))


def run() -> None:
    """Entrypoint used by the console script."""
    app()


if __name__ == "__main__":
    run()
