from __future__ import annotations

from .decoder import (
    BaseFeedDecoder,
    JsonResultDecoder,
    PackedFeedDecoder,
    ScalarFeedDecoder,
    decode,
    decode_scaled,
)
from .source import FeedSource, parse_snapshot, snapshot_to_dict
from .validator import FeedValidator, check_source, validate

__all__ = [
    "BaseFeedDecoder",
    "FeedSource",
    "FeedValidator",
    "JsonResultDecoder",
    "PackedFeedDecoder",
    "ScalarFeedDecoder",
    "check_source",
    "decode",
    "decode_scaled",
    "parse_snapshot",
    "snapshot_to_dict",
    "validate",
]
