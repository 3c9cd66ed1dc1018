"""Price/APY attestation store for liquid staking tokens."""

from __future__ import annotations

from .domain import AssetKind, FeedSnapshot, OracleHeader, PriceRecord, ScaledDecimal
from .oracle import PriceOracle
from .settings import OracleSettings

__all__ = [
    "AssetKind",
    "FeedSnapshot",
    "OracleHeader",
    "OracleSettings",
    "PriceOracle",
    "PriceRecord",
    "ScaledDecimal",
]
