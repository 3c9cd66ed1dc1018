"""JSON persistence for the oracle header and ledger."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import asdict
from pathlib import Path
from typing import Any

from .domain import AssetKind, OracleHeader, PriceRecord, RegistryStrategy
from .errors import StateStoreError
from .ledger import PriceLedger
from .oracle import PriceOracle
from .settings import OracleSettings

logger = logging.getLogger(__name__)


def header_to_dict(header: OracleHeader) -> dict[str, Any]:
    data = asdict(header)
    data["registry_strategy"] = header.registry_strategy.value
    data["assets"] = [asset.value for asset in header.assets]
    data["asset_count"] = header.asset_count
    return data


def header_from_dict(data: dict[str, Any]) -> OracleHeader:
    return OracleHeader(
        authority=data["authority"],
        feed_authority=data["feed_authority"],
        emergency_stop=bool(data["emergency_stop"]),
        last_global_update=int(data["last_global_update"]),
        registry_strategy=RegistryStrategy(data["registry_strategy"]),
        max_assets=int(data["max_assets"]),
        assets=[AssetKind(value) for value in data["assets"]],
    )


def state_to_dict(oracle: PriceOracle) -> dict[str, Any]:
    return {
        "header": header_to_dict(oracle.header),
        "records": [asdict(record) for record in oracle.ledger.records],
    }


def state_from_dict(data: dict[str, Any], config: OracleSettings) -> PriceOracle:
    header = header_from_dict(data["header"])
    records = [
        PriceRecord(
            price=float(r["price"]),
            previous_price=float(r["previous_price"]),
            apy=float(r["apy"]),
            last_update_time=int(r["last_update_time"]),
        )
        for r in data["records"]
    ]
    return PriceOracle(header, PriceLedger(len(records), records), config)


class StateStore:
    """Loads and saves oracle state as a single JSON document."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self, config: OracleSettings) -> PriceOracle:
        """Load the oracle stored at ``path``.

        Raises:
            StateStoreError: If the file is missing or malformed
        """
        if not self.path.exists():
            raise StateStoreError(
                f"No oracle state at {self.path}; run 'init' first"
            )
        try:
            data = json.loads(self.path.read_text())
            return state_from_dict(data, config)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise StateStoreError(f"Invalid oracle state in {self.path}: {e}") from e

    def save(self, oracle: PriceOracle) -> None:
        """Write state atomically (temp file in the same directory + replace)."""
        payload = json.dumps(state_to_dict(oracle), indent=2)
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise StateStoreError(f"Failed to write oracle state to {self.path}: {e}") from e
        logger.debug("Oracle state saved to %s", self.path)
