from __future__ import annotations

import json

import pytest

from lst_oracle.domain import AssetKind
from lst_oracle.errors import InvalidFeedData, NonFinite
from lst_oracle.feeds.decoder import (
    JsonResultDecoder,
    PackedFeedDecoder,
    ScalarFeedDecoder,
    decode,
)


def test_decode_scaled_decimal():
    assert decode(12345, 2) == 123.45
    assert decode(12340000, 5) == 123.4


def test_decode_zero_and_negative_scale():
    assert decode(0, 8) == 0.0
    assert decode(42, 0) == 42.0
    assert decode(5, -3) == 5000.0
    assert decode(-250, 1) == -25.0


def test_decode_large_mantissa():
    assert decode(15610523850000000000000000000, 26) == pytest.approx(156.1052385)


@pytest.mark.parametrize(
    "mantissa,scale,expected",
    [
        (10**30, 320, 1e-290),
        (10**20, 310, 1e-290),
        (12345, 309, 1.2345e-305),
        (0, 1000, 0.0),
        (1, -308, 1e308),
    ],
)
def test_decode_representable_results_past_the_double_exponent(mantissa, scale, expected):
    assert decode(mantissa, scale) == expected


@pytest.mark.parametrize(
    "mantissa,scale",
    [
        (1, 1000),
        (1, -1000),
        (2**127 - 1, -300),
    ],
)
def test_decode_rejects_non_finite(mantissa, scale):
    with pytest.raises(NonFinite):
        decode(mantissa, scale)


def test_decode_rejects_underflow_of_non_zero_mantissa():
    with pytest.raises(NonFinite, match="underflows"):
        decode(1, 400)


def test_decode_rejects_out_of_range_inputs():
    with pytest.raises(NonFinite, match="128-bit"):
        decode(2**127, 0)
    with pytest.raises(NonFinite, match="32-bit"):
        decode(1, 2**31)


def test_scalar_decoder_uses_result(make_snapshot):
    snapshot = make_snapshot(15025, 2)
    assert ScalarFeedDecoder().decode(snapshot) == 150.25


def test_packed_decoder_splits_prices_and_apys(make_snapshot):
    values = [
        "160.1", "0.071",
        "150.2", "0.072",
        "170.3", "0.073",
        "180.4", "0.074",
        "190.5", "0.075",
        "200.6", "0.076",
    ]
    snapshot = make_snapshot(payload=",".join(values))

    reading = PackedFeedDecoder().decode(snapshot)

    assert reading.prices == (160.1, 150.2, 170.3, 180.4, 190.5, 200.6)
    assert reading.apys == (0.071, 0.072, 0.073, 0.074, 0.075, 0.076)
    pairs = reading.pairs()
    assert [asset for asset, _, _ in pairs] == list(AssetKind.liquid_staking_tokens())
    assert AssetKind.SOL not in [asset for asset, _, _ in pairs]


def test_packed_decoder_skips_garbage_entries(make_snapshot):
    payload = "1,2,abc,3,4,5,6,7,8,9,10,11,12"
    reading = PackedFeedDecoder().decode(make_snapshot(payload=payload))
    assert reading.prices == (1.0, 3.0, 5.0, 7.0, 9.0, 11.0)


@pytest.mark.parametrize(
    "payload",
    [
        "1,2,3,4,5,6,7,8,9,10,11",
        "1,2,3,4,5,6,7,8,9,10,11,12,13",
        "",
        "1,2,3,4,5,6,7,8,9,10,11,inf",
    ],
)
def test_packed_decoder_fails_closed(make_snapshot, payload):
    with pytest.raises(InvalidFeedData):
        PackedFeedDecoder().decode(make_snapshot(payload=payload))


def test_packed_decoder_requires_payload(make_snapshot):
    with pytest.raises(InvalidFeedData, match="no payload"):
        PackedFeedDecoder().decode(make_snapshot())


def test_json_decoder_reads_result(make_snapshot):
    payload = json.dumps({"result": "156.1052385"})
    assert JsonResultDecoder().decode(make_snapshot(payload=payload)) == 156.1052385

    payload = json.dumps({"result": 42})
    assert JsonResultDecoder().decode(make_snapshot(payload=payload)) == 42.0


@pytest.mark.parametrize(
    "payload",
    [
        "not json",
        json.dumps(["result", "1"]),
        json.dumps({"value": "1"}),
        json.dumps({"result": "abc"}),
        json.dumps({"result": True}),
        json.dumps({"result": None}),
    ],
)
def test_json_decoder_rejects_bad_payloads(make_snapshot, payload):
    with pytest.raises(InvalidFeedData):
        JsonResultDecoder().decode(make_snapshot(payload=payload))
