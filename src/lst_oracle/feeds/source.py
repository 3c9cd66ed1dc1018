"""Load feed snapshots from files or HTTP endpoints."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import backoff
import requests
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from ..constants import FEED_RETRY_STATUS_CODES
from ..domain import FeedSnapshot, ScaledDecimal
from ..errors import InvalidFeedData

logger = logging.getLogger(__name__)


class ScaledDecimalModel(BaseModel):
    mantissa: int
    scale: int

    model_config = ConfigDict(extra="forbid")


class FeedSnapshotModel(BaseModel):
    """Wire format of a feed snapshot document."""

    result: ScaledDecimalModel
    timestamp: int
    owner: str
    std_deviation: ScaledDecimalModel = Field(
        default_factory=lambda: ScaledDecimalModel(mantissa=0, scale=0)
    )
    payload: str | None = None

    model_config = ConfigDict(extra="ignore")

    def to_snapshot(self) -> FeedSnapshot:
        return FeedSnapshot(
            result=ScaledDecimal(self.result.mantissa, self.result.scale),
            timestamp=self.timestamp,
            owner=self.owner,
            std_deviation=ScaledDecimal(
                self.std_deviation.mantissa, self.std_deviation.scale
            ),
            payload=self.payload,
        )


def parse_snapshot(data: Any) -> FeedSnapshot:
    """Build a snapshot from a decoded JSON document.

    Raises:
        InvalidFeedData: If the document does not match the snapshot format
    """
    try:
        return FeedSnapshotModel.model_validate(data).to_snapshot()
    except PydanticValidationError as e:
        raise InvalidFeedData(f"Malformed feed snapshot: {e}") from e


def snapshot_to_dict(snapshot: FeedSnapshot) -> dict[str, Any]:
    data: dict[str, Any] = {
        "result": {
            "mantissa": snapshot.result.mantissa,
            "scale": snapshot.result.scale,
        },
        "timestamp": snapshot.timestamp,
        "owner": snapshot.owner,
        "std_deviation": {
            "mantissa": snapshot.std_deviation.mantissa,
            "scale": snapshot.std_deviation.scale,
        },
    }
    if snapshot.payload is not None:
        data["payload"] = snapshot.payload
    return data


def _should_giveup(e: Exception) -> bool:
    if isinstance(e, requests.exceptions.JSONDecodeError):
        return True
    return (
        isinstance(e, requests.exceptions.HTTPError)
        and e.response is not None
        and e.response.status_code not in FEED_RETRY_STATUS_CODES
    )


class FeedSource:
    """Reads snapshots from a local JSON file or an ``http(s)://`` URL."""

    def __init__(self, timeout: float = 10.0, max_tries: int = 5):
        self.timeout = timeout
        self.max_tries = max_tries

    async def _http_get_json(self, url: str) -> Any:
        @backoff.on_exception(
            backoff.expo,
            requests.exceptions.RequestException,
            max_tries=self.max_tries,
            giveup=_should_giveup,
            jitter=backoff.full_jitter,
        )
        async def _get_with_retry() -> Any:
            response = await asyncio.to_thread(
                requests.get, url, timeout=self.timeout
            )
            response.raise_for_status()
            return response.json()

        return await _get_with_retry()

    async def fetch(self, location: str) -> FeedSnapshot:
        """Load a snapshot from ``location``.

        Raises:
            InvalidFeedData: If the document is missing or malformed
            requests.exceptions.RequestException: If the HTTP fetch fails
        """
        if location.startswith(("http://", "https://")):
            logger.debug("Fetching feed snapshot from %s", location)
            try:
                data = await self._http_get_json(location)
            except requests.exceptions.JSONDecodeError as e:
                raise InvalidFeedData(f"Feed endpoint returned invalid JSON: {e}") from e
        else:
            path = Path(location)
            logger.debug("Reading feed snapshot from %s", path)
            try:
                data = json.loads(path.read_text())
            except FileNotFoundError as e:
                raise InvalidFeedData(f"Feed snapshot file not found: {path}") from e
            except json.JSONDecodeError as e:
                raise InvalidFeedData(f"Feed snapshot is not valid JSON: {e}") from e

        return parse_snapshot(data)
