"""Domain models for the oracle."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from ..constants import MAX_ASSETS


class AssetKind(str, Enum):
    """Supported assets. Declaration order is the static slot order."""

    JUPSOL = "JupSOL"
    VSOL = "vSOL"
    BSOL = "bSOL"
    MSOL = "mSOL"
    HSOL = "hSOL"
    JITOSOL = "JitoSOL"
    SOL = "SOL"

    @property
    def ordinal(self) -> int:
        return _ORDINALS[self]

    @property
    def is_base(self) -> bool:
        return self is AssetKind.SOL

    @classmethod
    def liquid_staking_tokens(cls) -> tuple[AssetKind, ...]:
        """Assets covered by the packed multi-asset feed, in packed order."""
        return tuple(asset for asset in cls if not asset.is_base)

    @classmethod
    def parse(cls, value: str) -> AssetKind:
        """Look up an asset by value or member name, case-insensitively."""
        needle = value.strip().lower()
        for asset in cls:
            if needle in (asset.value.lower(), asset.name.lower()):
                return asset
        raise ValueError(f"Unknown asset: {value}")


_ORDINALS: dict[AssetKind, int] = {asset: i for i, asset in enumerate(AssetKind)}


class RegistryStrategy(str, Enum):
    STATIC = "static"
    DYNAMIC = "dynamic"


@dataclass(frozen=True)
class ScaledDecimal:
    """Feed decimal encoded as ``mantissa * 10**(-scale)``."""

    mantissa: int
    scale: int


@dataclass(frozen=True)
class FeedSnapshot:
    """Read-only view of an external aggregator account."""

    result: ScaledDecimal
    timestamp: int
    owner: str
    std_deviation: ScaledDecimal = ScaledDecimal(0, 0)
    payload: str | None = None


@dataclass(frozen=True)
class MultiAssetReading:
    """Prices and APYs decoded from a packed feed, in packed order."""

    prices: tuple[float, ...]
    apys: tuple[float, ...]

    def pairs(self) -> list[tuple[AssetKind, float, float]]:
        return [
            (asset, price, apy)
            for asset, price, apy in zip(
                AssetKind.liquid_staking_tokens(), self.prices, self.apys
            )
        ]


@dataclass(frozen=True)
class PriceRecord:
    """Per-asset ledger entry. ``last_update_time == 0`` means never written."""

    price: float = 0.0
    previous_price: float = 0.0
    apy: float = 0.0
    last_update_time: int = 0

    @property
    def initialized(self) -> bool:
        return self.last_update_time != 0


@dataclass
class OracleHeader:
    """Singleton control block shared by every operation."""

    authority: str
    feed_authority: str
    emergency_stop: bool = False
    last_global_update: int = 0
    registry_strategy: RegistryStrategy = RegistryStrategy.STATIC
    max_assets: int = MAX_ASSETS
    assets: list[AssetKind] = field(default_factory=list)

    @property
    def asset_count(self) -> int:
        return len(self.assets)
