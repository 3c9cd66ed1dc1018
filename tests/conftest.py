"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from lst_oracle.domain import FeedSnapshot, ScaledDecimal
from lst_oracle.settings import OracleSettings

from tests.helpers import FEED_AUTHORITY, NOW

SnapshotFactory = Callable[..., FeedSnapshot]


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep user config files and LST_ORACLE_* variables out of the tests."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    for key in ("LST_ORACLE_CONFIG", "LST_ORACLE_REGISTRY_STRATEGY", "LST_ORACLE_MAX_ASSETS"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def config(tmp_path) -> OracleSettings:
    return OracleSettings(
        state_path=tmp_path / "state.json",
        feed_authority=FEED_AUTHORITY,
    )


@pytest.fixture
def dynamic_config(tmp_path) -> OracleSettings:
    return OracleSettings(
        state_path=tmp_path / "state.json",
        feed_authority=FEED_AUTHORITY,
        registry_strategy="dynamic",
    )


@pytest.fixture
def make_snapshot() -> SnapshotFactory:
    """Build a snapshot whose result is ``mantissa * 10**-scale``."""

    def _make(
        mantissa: int = 10_000,
        scale: int = 2,
        *,
        timestamp: int = NOW,
        owner: str = FEED_AUTHORITY,
        std_mantissa: int = 0,
        std_scale: int = 0,
        payload: str | None = None,
    ) -> FeedSnapshot:
        return FeedSnapshot(
            result=ScaledDecimal(mantissa, scale),
            timestamp=timestamp,
            owner=owner,
            std_deviation=ScaledDecimal(std_mantissa, std_scale),
            payload=payload,
        )

    return _make
