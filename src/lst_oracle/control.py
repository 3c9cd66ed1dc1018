"""Emergency stop gate.

Two states: RUNNING and STOPPED. Any caller may move the oracle to STOPPED
through ``trip``; only the authority may clear it.
"""

from __future__ import annotations

import logging
from enum import Enum

from .domain import OracleHeader
from .errors import Stopped, Unauthorized

logger = logging.getLogger(__name__)


class EmergencyState(str, Enum):
    RUNNING = "running"
    STOPPED = "stopped"


def state(header: OracleHeader) -> EmergencyState:
    return EmergencyState.STOPPED if header.emergency_stop else EmergencyState.RUNNING


def check_not_stopped(header: OracleHeader) -> None:
    """Raise ``Stopped`` if the emergency stop is set."""
    if header.emergency_stop:
        raise Stopped("Emergency stop is activated. Update aborted.")


def set_emergency_stop(header: OracleHeader, stop: bool, caller: str) -> None:
    """Set or clear the emergency stop on behalf of ``caller``.

    Raises:
        Unauthorized: If ``caller`` is not the header's authority
    """
    if caller != header.authority:
        raise Unauthorized(
            f"Caller {caller} is not the oracle authority; emergency stop unchanged"
        )

    previous = state(header)
    header.emergency_stop = stop
    logger.warning(
        "Emergency stop set to %s by %s (%s -> %s)",
        stop,
        caller,
        previous.value,
        state(header).value,
    )


def trip(header: OracleHeader, reason: str) -> None:
    """Stop the oracle without authorization."""
    if not header.emergency_stop:
        header.emergency_stop = True
        logger.warning("Emergency stop tripped: %s", reason)
