"""Application state container."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .settings import OracleSettings
from .store import StateStore


@dataclass
class AppState:
    """Container for application-wide state and dependencies.

    Passed to every CLI command to avoid global state and enable testing.
    """

    settings: OracleSettings
    logger: logging.Logger
    store: StateStore
