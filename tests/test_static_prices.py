from __future__ import annotations

from decimal import Decimal

from eigen_indexer.app.infrastructure.prices.static_eth_prices import StaticEthPriceLookup


async def test_prices_are_keyed_by_lowercase_address():
    lookup = StaticEthPriceLookup({"0xABCD": "1.05", "0xbeac0": 1})

    prices = await lookup.current_prices()

    assert prices == {"0xabcd": Decimal("1.05"), "0xbeac0": Decimal(1)}


async def test_returned_mapping_is_a_copy():
    lookup = StaticEthPriceLookup({"0xabcd": "2"})

    first = await lookup.current_prices()
    first["0xabcd"] = Decimal(0)  # type: ignore[index]

    assert (await lookup.current_prices())["0xabcd"] == 2
