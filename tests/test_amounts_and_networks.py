from __future__ import annotations

from datetime import timedelta, timezone
from decimal import Decimal

import pytest

from eigen_indexer.app.domain import amounts
from eigen_indexer.app.domain.metrics import Frequency
from eigen_indexer.app.domain.networks import HOLESKY, MAINNET, get_network


def test_uint256_max_renders_exactly():
    value = 2**256 - 1
    assert amounts.to_decimal_string(value) == str(value)


@pytest.mark.parametrize("value", [True, 1.5, "12"])
def test_to_decimal_string_rejects_non_integers(value):
    with pytest.raises(TypeError):
        amounts.to_decimal_string(value)


def test_to_amount_coercions():
    assert amounts.to_amount(None) == 0
    assert amounts.to_amount(0.1) == Decimal("0.1")
    assert amounts.to_amount("115792089237316195423570985008687907853269984665640564039457584007913129639935") == Decimal(
        2**256 - 1
    )


def test_add_keeps_full_precision():
    half = Decimal(2**255)
    assert amounts.add(half, half) == Decimal(2**256)


def test_safe_ratio_zero_denominator():
    assert amounts.safe_ratio(Decimal(5), Decimal(0)) == 0
    assert amounts.safe_ratio(Decimal(1), Decimal(4)) == Decimal("0.25")


def test_round_and_output_boundary():
    assert amounts.round_to(Decimal("0.66666"), 3) == Decimal("0.667")

    integral = amounts.to_number(Decimal("2.000"))
    assert integral == 2 and isinstance(integral, int)
    assert amounts.to_number(Decimal("0.25")) == 0.25


def test_get_network_is_case_insensitive():
    assert get_network(" Mainnet ") is MAINNET
    assert get_network("holesky") is HOLESKY


def test_get_network_unknown():
    with pytest.raises(ValueError, match="Unsupported network"):
        get_network("goerli")


def test_genesis_constants():
    assert MAINNET.genesis_block == 17_000_000
    assert HOLESKY.genesis_block == 1_159_609
    assert MAINNET.genesis_time.tzinfo is timezone.utc
    assert int(MAINNET.genesis_time.timestamp() * 1000) == 1_680_911_891_000


def test_frequency_parse_and_offsets():
    assert Frequency.parse("1d") is Frequency.DAILY
    assert Frequency.parse(Frequency.WEEKLY) is Frequency.WEEKLY
    assert Frequency.parse("2h") is Frequency.HOURLY
    assert Frequency.WEEKLY.offset == timedelta(days=7)
    assert Frequency.HOURLY.offset_ms == 3_600_000
