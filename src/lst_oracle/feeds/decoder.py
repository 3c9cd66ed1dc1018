from __future__ import annotations

import json
import logging
import math
from abc import ABC, abstractmethod
from decimal import MAX_EMAX, MIN_EMIN, Context, Decimal, localcontext
from typing import Generic, TypeVar

from ..constants import (
    I128_MAX,
    I128_MIN,
    I32_MAX,
    I32_MIN,
    PACKED_FEED_VALUE_COUNT,
)
from ..domain import FeedSnapshot, MultiAssetReading, ScaledDecimal
from ..errors import InvalidFeedData, NonFinite

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Wide enough to hold any 128-bit mantissa and 32-bit scale without rounding
_EXACT = Context(prec=50, Emax=MAX_EMAX, Emin=MIN_EMIN)


def decode(mantissa: int, scale: int) -> float:
    """Convert a scaled decimal to a float.

    Computes ``mantissa * 10**(-scale)`` exactly with ``Decimal`` and rounds
    once to the nearest double, so ``(12345, 2)`` is ``123.45`` and
    ``(10**30, 320)`` is ``1e-290``.

    Args:
        mantissa: Signed 128-bit mantissa.
        scale: Signed 32-bit decimal scale.

    Returns:
        The decoded value.

    Raises:
        NonFinite: If the inputs are out of range, the result overflows a
            double, or a non-zero mantissa underflows to zero.
    """
    if not I128_MIN <= mantissa <= I128_MAX:
        raise NonFinite(f"Mantissa {mantissa} outside the 128-bit range")
    if not I32_MIN <= scale <= I32_MAX:
        raise NonFinite(f"Scale {scale} outside the 32-bit range")

    with localcontext(_EXACT) as ctx:
        value = float(ctx.scaleb(Decimal(mantissa), -scale))

    if not math.isfinite(value):
        raise NonFinite(
            f"Decoded value is not finite: mantissa={mantissa}, scale={scale}"
        )
    if value == 0.0 and mantissa != 0:
        raise NonFinite(
            f"Decoded value underflows to zero: mantissa={mantissa}, scale={scale}"
        )
    return value


def decode_scaled(decimal: ScaledDecimal) -> float:
    return decode(decimal.mantissa, decimal.scale)


def _parse_number(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"{text!r} is not finite")
    return value


class BaseFeedDecoder(ABC, Generic[T]):
    """Turns a feed snapshot into a typed reading."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name for this decoder."""
        pass

    @abstractmethod
    def decode(self, snapshot: FeedSnapshot) -> T:
        pass


class ScalarFeedDecoder(BaseFeedDecoder[float]):
    """Single value carried in the aggregator result."""

    @property
    def name(self) -> str:
        return "scalar"

    def decode(self, snapshot: FeedSnapshot) -> float:
        return decode_scaled(snapshot.result)


class PackedFeedDecoder(BaseFeedDecoder[MultiAssetReading]):
    """Comma-separated ``price,apy`` pairs for every liquid staking token.

    Entries that do not parse as numbers are skipped; the remaining count
    must be exactly the expected number of values.
    """

    def __init__(self, expected_values: int = PACKED_FEED_VALUE_COUNT):
        if expected_values <= 0 or expected_values % 2:
            raise ValueError("expected_values must be a positive even number")
        self.expected_values = expected_values

    @property
    def name(self) -> str:
        return "packed"

    def decode(self, snapshot: FeedSnapshot) -> MultiAssetReading:
        if snapshot.payload is None:
            raise InvalidFeedData("Packed feed snapshot carries no payload")

        values: list[float] = []
        for raw in snapshot.payload.split(","):
            try:
                values.append(_parse_number(raw.strip()))
            except ValueError:
                logger.debug("Skipping unparsable packed feed entry %r", raw)

        if len(values) != self.expected_values:
            raise InvalidFeedData(
                f"Packed feed has {len(values)} values, expected {self.expected_values}"
            )

        return MultiAssetReading(prices=tuple(values[0::2]), apys=tuple(values[1::2]))


class JsonResultDecoder(BaseFeedDecoder[float]):
    """JSON object payload with a ``result`` field, e.g. ``{"result": "156.1"}``."""

    @property
    def name(self) -> str:
        return "json"

    def decode(self, snapshot: FeedSnapshot) -> float:
        if snapshot.payload is None:
            raise InvalidFeedData("JSON feed snapshot carries no payload")
        try:
            body = json.loads(snapshot.payload)
        except json.JSONDecodeError as e:
            raise InvalidFeedData(f"Feed payload is not valid JSON: {e}") from e

        if not isinstance(body, dict) or "result" not in body:
            raise InvalidFeedData("Feed payload has no 'result' field")

        result = body["result"]
        if isinstance(result, bool) or not isinstance(result, (str, int, float)):
            raise InvalidFeedData(f"Unsupported 'result' value: {result!r}")
        try:
            return _parse_number(str(result))
        except ValueError as e:
            raise InvalidFeedData(f"Invalid 'result' value: {e}") from e
