"""Asset registries mapping asset kinds to ledger slots."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from .constants import MAX_ASSETS
from .domain import AssetKind, OracleHeader, RegistryStrategy
from .errors import AssetNotFound, MaxAssetsReached

logger = logging.getLogger(__name__)


class BaseAssetRegistry(ABC):
    """Base class for all asset registries."""

    @property
    @abstractmethod
    def capacity(self) -> int:
        """Number of ledger slots this registry can address."""
        pass

    @property
    @abstractmethod
    def assets(self) -> list[AssetKind]:
        """Registered assets in slot order."""
        pass

    @property
    def asset_count(self) -> int:
        return len(self.assets)

    @abstractmethod
    def slot_for(self, asset: AssetKind) -> int:
        """Return the slot of an asset."""
        pass

    @abstractmethod
    def register(self, asset: AssetKind) -> int:
        """Ensure an asset has a slot and return it."""
        pass


class StaticAssetRegistry(BaseAssetRegistry):
    """Slot index equals the asset's position in ``AssetKind``."""

    @property
    def capacity(self) -> int:
        return len(AssetKind)

    @property
    def assets(self) -> list[AssetKind]:
        return list(AssetKind)

    def slot_for(self, asset: AssetKind) -> int:
        return asset.ordinal

    def register(self, asset: AssetKind) -> int:
        return asset.ordinal


class DynamicAssetRegistry(BaseAssetRegistry):
    """Slots are handed out on first use, up to ``max_assets``.

    ``registered`` is shared with the caller, which persists it.
    """

    def __init__(
        self, registered: list[AssetKind] | None = None, max_assets: int = MAX_ASSETS
    ):
        if max_assets <= 0:
            raise ValueError("max_assets must be positive")
        self._registered = registered if registered is not None else []
        if len(self._registered) > max_assets:
            raise ValueError(
                f"{len(self._registered)} registered assets exceed capacity {max_assets}"
            )
        self._max_assets = max_assets

    @property
    def capacity(self) -> int:
        return self._max_assets

    @property
    def assets(self) -> list[AssetKind]:
        return list(self._registered)

    def _find(self, asset: AssetKind) -> int | None:
        for slot, registered in enumerate(self._registered):
            if registered is asset:
                return slot
        return None

    def slot_for(self, asset: AssetKind) -> int:
        slot = self._find(asset)
        if slot is None:
            raise AssetNotFound(f"Asset {asset.value} is not registered")
        return slot

    def register(self, asset: AssetKind) -> int:
        slot = self._find(asset)
        if slot is not None:
            return slot
        if len(self._registered) >= self._max_assets:
            raise MaxAssetsReached(
                f"Cannot register {asset.value}: all {self._max_assets} slots in use"
            )
        self._registered.append(asset)
        slot = len(self._registered) - 1
        logger.info("Registered %s in slot %d", asset.value, slot)
        return slot


def build_registry(header: OracleHeader) -> BaseAssetRegistry:
    """Create the registry selected by the header's strategy."""
    if header.registry_strategy is RegistryStrategy.STATIC:
        return StaticAssetRegistry()
    return DynamicAssetRegistry(header.assets, header.max_assets)
