from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..domain import FeedSnapshot
from ..errors import ExceedsConfidenceInterval, InvalidFeedAccount, StaleData
from .decoder import BaseFeedDecoder, ScalarFeedDecoder, decode_scaled

if TYPE_CHECKING:
    from ..settings import OracleSettings

logger = logging.getLogger(__name__)


def check_source(
    snapshot: FeedSnapshot, now: int, max_age_seconds: int, feed_authority: str
) -> int:
    """Check feed ownership and freshness, returning the feed age in seconds.

    Raises:
        InvalidFeedAccount: If the feed is not owned by ``feed_authority``
        StaleData: If the feed is older than ``max_age_seconds``
    """
    if snapshot.owner != feed_authority:
        raise InvalidFeedAccount(
            f"Invalid feed owner: expected {feed_authority}, found {snapshot.owner}"
        )

    age = now - snapshot.timestamp
    if age > max_age_seconds:
        raise StaleData(f"Feed data is stale (age: {age}s, max: {max_age_seconds}s)")
    return age


def validate(
    snapshot: FeedSnapshot,
    now: int,
    max_age_seconds: int,
    confidence_bound: float,
    feed_authority: str,
    *,
    relative: bool = False,
    decoder: BaseFeedDecoder[float] | None = None,
) -> float:
    """Check a feed snapshot and return its decoded value.

    Args:
        snapshot: Raw feed snapshot
        now: Current unix time in seconds
        max_age_seconds: Maximum allowed age of the feed's last update
        confidence_bound: Maximum allowed confidence band
        feed_authority: Identity that must own the feed
        relative: Compare the band relative to the value instead of absolutely
        decoder: Strategy that reads the value, scalar result by default

    Returns:
        The decoded feed value, unchanged

    Raises:
        InvalidFeedAccount: If the feed is not owned by ``feed_authority``
        StaleData: If the feed is older than ``max_age_seconds``
        NonFinite: If the value or confidence band cannot be decoded
        ExceedsConfidenceInterval: If the confidence band exceeds the bound
    """
    age = check_source(snapshot, now, max_age_seconds, feed_authority)

    value = (decoder or ScalarFeedDecoder()).decode(snapshot)
    std_dev = abs(decode_scaled(snapshot.std_deviation))

    if relative:
        if value == 0.0:
            band = 0.0 if std_dev == 0.0 else float("inf")
        else:
            band = std_dev / abs(value)
    else:
        band = std_dev

    if band > confidence_bound:
        kind = "relative" if relative else "absolute"
        raise ExceedsConfidenceInterval(
            f"Feed {kind} confidence band {band:.6g} exceeds bound {confidence_bound}"
        )

    logger.debug(
        "Feed validated: value=%s, age=%ss, confidence band=%.6g", value, age, band
    )
    return value


class FeedValidator:
    """Binds configured thresholds to the price and APY call sites."""

    def __init__(self, config: OracleSettings):
        self.config = config
        self.max_age = config.max_data_age
        self.price_confidence_bound = config.price_confidence_bound
        self.apy_confidence_bound = config.apy_confidence_bound
        self.decoder = ScalarFeedDecoder()

    @property
    def name(self) -> str:
        return "Feed Validator"

    def validate_price(
        self, snapshot: FeedSnapshot, now: int, feed_authority: str
    ) -> float:
        return validate(
            snapshot,
            now,
            self.max_age,
            self.price_confidence_bound,
            feed_authority,
            decoder=self.decoder,
        )

    def validate_apy(
        self, snapshot: FeedSnapshot, now: int, feed_authority: str
    ) -> float:
        return validate(
            snapshot,
            now,
            self.max_age,
            self.apy_confidence_bound,
            feed_authority,
            relative=True,
            decoder=self.decoder,
        )

    def validate_source(
        self, snapshot: FeedSnapshot, now: int, feed_authority: str
    ) -> None:
        """Check a feed whose readings travel in the payload.

        The numeric confidence band does not apply to packed and JSON feeds.
        """
        check_source(snapshot, now, self.max_age, feed_authority)
