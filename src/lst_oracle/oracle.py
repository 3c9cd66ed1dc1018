"""Oracle facade tying feed validation, the registry, the ledger and the
emergency gate together.

Every mutating operation follows the same sequence:

1. refuse if the emergency stop is set
2. validate and decode the feed snapshot
3. resolve the asset's slot (registering it on first use)
4. apply the ledger update, tripping the emergency stop on a volatility breach
5. record ``last_global_update``

Work happens on copies of the header and ledger that replace the live state
only when every step succeeds. The only state that survives a failure is the
emergency stop set in step 4.

Timestamps are trusted as given. A ``now`` earlier than a record's
``last_update_time`` moves it backwards.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterator
from contextlib import contextmanager

from . import control
from .control import EmergencyState
from .domain import AssetKind, FeedSnapshot, OracleHeader, PriceRecord, RegistryStrategy
from .errors import AssetNotFound, DataNotAvailable, PriceChangeExceedsLimit
from .feeds.decoder import JsonResultDecoder, PackedFeedDecoder
from .feeds.validator import FeedValidator
from .ledger import PriceLedger
from .registry import build_registry
from .settings import OracleSettings

logger = logging.getLogger(__name__)


def ledger_capacity(header: OracleHeader) -> int:
    if header.registry_strategy is RegistryStrategy.STATIC:
        return len(AssetKind)
    return header.max_assets


class PriceOracle:
    """Price/APY attestation store."""

    def __init__(
        self, header: OracleHeader, ledger: PriceLedger, config: OracleSettings
    ):
        expected = ledger_capacity(header)
        if ledger.capacity != expected:
            raise ValueError(
                f"Ledger has {ledger.capacity} slots, header requires {expected}"
            )
        self.header = header
        self.ledger = ledger
        self.config = config
        self.validator = FeedValidator(config)
        self.packed_decoder = PackedFeedDecoder()
        self.json_decoder = JsonResultDecoder()

    @classmethod
    def initialize(
        cls,
        authority: str,
        config: OracleSettings,
        feed_authority: str | None = None,
    ) -> PriceOracle:
        """Create a running oracle with zeroed records."""
        strategy = config.registry_strategy
        header = OracleHeader(
            authority=authority,
            feed_authority=feed_authority or config.feed_authority,
            registry_strategy=strategy,
            max_assets=config.max_assets,
            assets=list(AssetKind) if strategy is RegistryStrategy.STATIC else [],
        )
        ledger = PriceLedger(ledger_capacity(header))
        logger.info(
            "Price oracle initialized with authority %s (%s registry, %d slots)",
            authority,
            strategy.value,
            ledger.capacity,
        )
        return cls(header, ledger, config)

    @contextmanager
    def _write(self, now: int) -> Iterator[tuple[OracleHeader, PriceLedger]]:
        control.check_not_stopped(self.header)
        header = copy.deepcopy(self.header)
        ledger = self.ledger.copy()
        try:
            yield header, ledger
        except PriceChangeExceedsLimit as e:
            control.trip(self.header, e.message)
            raise
        header.last_global_update = now
        self.header = header
        self.ledger = ledger

    def update_price(self, asset: AssetKind, snapshot: FeedSnapshot, now: int) -> float:
        with self._write(now) as (header, ledger):
            price = self.validator.validate_price(snapshot, now, header.feed_authority)
            slot = build_registry(header).register(asset)
            ledger.apply_price_update(slot, price, now, self.config.price_change_limit)
        logger.info("Price updated for %s: %s", asset.value, price)
        return price

    def update_apy(self, asset: AssetKind, snapshot: FeedSnapshot, now: int) -> float:
        with self._write(now) as (header, ledger):
            apy = self.validator.validate_apy(snapshot, now, header.feed_authority)
            slot = build_registry(header).register(asset)
            ledger.apply_apy_update(slot, apy, now)
        logger.info("APY updated for %s: %s", asset.value, apy)
        return apy

    def update_price_and_apy(
        self,
        asset: AssetKind,
        price_snapshot: FeedSnapshot,
        apy_snapshot: FeedSnapshot,
        now: int,
    ) -> tuple[float, float]:
        with self._write(now) as (header, ledger):
            price = self.validator.validate_price(
                price_snapshot, now, header.feed_authority
            )
            apy = self.validator.validate_apy(apy_snapshot, now, header.feed_authority)
            slot = build_registry(header).register(asset)
            ledger.apply_price_and_apy_update(
                slot, price, apy, now, self.config.price_change_limit
            )
        logger.info("Price and APY updated for %s: price=%s, apy=%s", asset.value, price, apy)
        return price, apy

    def update_prices_and_apys(
        self, snapshot: FeedSnapshot, now: int
    ) -> dict[AssetKind, tuple[float, float]]:
        """Apply a packed multi-asset feed to every liquid staking token.

        The batch is all-or-nothing: one rejected asset leaves every record
        unchanged.
        """
        with self._write(now) as (header, ledger):
            self.validator.validate_source(snapshot, now, header.feed_authority)
            reading = self.packed_decoder.decode(snapshot)
            registry = build_registry(header)
            applied: dict[AssetKind, tuple[float, float]] = {}
            for asset, price, apy in reading.pairs():
                slot = registry.register(asset)
                ledger.apply_price_and_apy_update(
                    slot, price, apy, now, self.config.price_change_limit
                )
                applied[asset] = (price, apy)
        logger.info("All prices and APYs updated at timestamp %d", now)
        return applied

    def update_base_price(self, snapshot: FeedSnapshot, now: int) -> float:
        """Update the base asset price from a JSON result feed.

        The stored SOL APY is kept as is rather than reset to zero, so a yield
        written through ``update_apy`` survives base price refreshes.
        """
        with self._write(now) as (header, ledger):
            self.validator.validate_source(snapshot, now, header.feed_authority)
            price = self.json_decoder.decode(snapshot)
            slot = build_registry(header).register(AssetKind.SOL)
            ledger.apply_price_update(slot, price, now, self.config.price_change_limit)
        logger.info("%s price updated: %s", AssetKind.SOL.value, price)
        return price

    def _read_slot(self, asset: AssetKind) -> int:
        try:
            return build_registry(self.header).slot_for(asset)
        except AssetNotFound as e:
            raise DataNotAvailable(f"No data available for {asset.value}") from e

    def get_record(self, asset: AssetKind) -> PriceRecord:
        """Return the record for ``asset``. Allowed while stopped.

        Raises:
            DataNotAvailable: If the asset has never been updated
        """
        slot = self._read_slot(asset)
        try:
            return self.ledger.record(slot)
        except DataNotAvailable as e:
            raise DataNotAvailable(f"No data available for {asset.value}") from e

    def get_current_price(self, asset: AssetKind) -> float:
        return self.get_record(asset).price

    def get_current_apy(self, asset: AssetKind) -> float:
        return self.get_record(asset).apy

    def set_emergency_stop(self, stop: bool, caller: str) -> None:
        control.set_emergency_stop(self.header, stop, caller)

    def is_emergency_stopped(self) -> bool:
        return self.header.emergency_stop

    def emergency_state(self) -> EmergencyState:
        return control.state(self.header)
