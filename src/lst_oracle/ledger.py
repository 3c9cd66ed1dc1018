"""Per-slot price and APY records with the volatility gate."""

from __future__ import annotations

import logging
import math
from dataclasses import replace

from .constants import PRICE_CHANGE_LIMIT
from .domain import PriceRecord
from .errors import DataNotAvailable, InvalidPrice, PriceChangeExceedsLimit

logger = logging.getLogger(__name__)


def relative_change(old_price: float, new_price: float) -> float:
    """Return ``|new - old| / old``.

    Raises:
        ValueError: If old_price is zero
    """
    if old_price == 0.0:
        raise ValueError("old_price cannot be zero")
    return abs(new_price - old_price) / old_price


class PriceLedger:
    """Fixed-size collection of price records addressed by slot."""

    def __init__(self, capacity: int, records: list[PriceRecord] | None = None):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        if records is None:
            records = [PriceRecord() for _ in range(capacity)]
        if len(records) != capacity:
            raise ValueError(
                f"Expected {capacity} records, got {len(records)}"
            )
        self._records = list(records)

    @property
    def capacity(self) -> int:
        return len(self._records)

    @property
    def records(self) -> list[PriceRecord]:
        return list(self._records)

    def copy(self) -> PriceLedger:
        return PriceLedger(self.capacity, self._records)

    def _check_slot(self, slot: int) -> None:
        if not 0 <= slot < len(self._records):
            raise IndexError(f"Slot {slot} out of range 0..{len(self._records) - 1}")

    def _checked_price_record(
        self, slot: int, new_price: float, now: int, max_relative_change: float
    ) -> PriceRecord:
        """Return the record that a price update would produce, without storing it."""
        self._check_slot(slot)
        if not math.isfinite(new_price) or new_price < 0.0:
            raise InvalidPrice(f"Price must be finite and non-negative, got {new_price}")

        current = self._records[slot]
        old = current.price
        if old == 0.0:
            logger.debug("Slot %d has no baseline price, accepting %s", slot, new_price)
            return replace(
                current, price=new_price, previous_price=new_price, last_update_time=now
            )

        change = relative_change(old, new_price)
        if change > max_relative_change:
            raise PriceChangeExceedsLimit(
                f"Price change {change:.2%} exceeds {max_relative_change:.0%} limit "
                f"for slot {slot}. Old price: {old}, New price: {new_price}",
                old_price=old,
                new_price=new_price,
            )

        return replace(
            current, price=new_price, previous_price=old, last_update_time=now
        )

    def apply_price_update(
        self,
        slot: int,
        new_price: float,
        now: int,
        max_relative_change: float = PRICE_CHANGE_LIMIT,
    ) -> None:
        """Store a new price for ``slot`` if it passes the volatility gate.

        Raises:
            InvalidPrice: If the price is negative or not finite
            PriceChangeExceedsLimit: If the relative change exceeds the limit;
                the record is left untouched
        """
        self._records[slot] = self._checked_price_record(
            slot, new_price, now, max_relative_change
        )
        logger.debug("Price updated for slot %d: %s", slot, new_price)

    def apply_apy_update(self, slot: int, new_apy: float, now: int) -> None:
        self._check_slot(slot)
        self._records[slot] = replace(
            self._records[slot], apy=new_apy, last_update_time=now
        )
        logger.debug("APY updated for slot %d: %s", slot, new_apy)

    def apply_price_and_apy_update(
        self,
        slot: int,
        new_price: float,
        new_apy: float,
        now: int,
        max_relative_change: float = PRICE_CHANGE_LIMIT,
    ) -> None:
        """Store price and APY together; neither is written if the price fails."""
        record = self._checked_price_record(slot, new_price, now, max_relative_change)
        self._records[slot] = replace(record, apy=new_apy)
        logger.debug(
            "Price and APY updated for slot %d: price=%s, apy=%s",
            slot,
            new_price,
            new_apy,
        )

    def record(self, slot: int) -> PriceRecord:
        """Return the record for ``slot``.

        Raises:
            DataNotAvailable: If the slot has never been updated
        """
        self._check_slot(slot)
        current = self._records[slot]
        if not current.initialized:
            raise DataNotAvailable(f"No data available for slot {slot}")
        return current

    def get_price(self, slot: int) -> float:
        return self.record(slot).price

    def get_apy(self, slot: int) -> float:
        return self.record(slot).apy
