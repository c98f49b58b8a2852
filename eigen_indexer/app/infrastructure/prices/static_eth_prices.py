from __future__ import annotations

from decimal import Decimal
from typing import Mapping

from eigen_indexer.app.domain import amounts


class StaticEthPriceLookup:
    """
    EthPriceLookup over a fixed strategy -> ETH price table.

    Addresses are compared lowercased; a strategy with no entry prices at 0.
    """

    def __init__(self, prices: Mapping[str, Decimal | str | int]) -> None:
        self._prices = {address.lower(): amounts.to_amount(price) for address, price in prices.items()}

    async def current_prices(self) -> Mapping[str, Decimal]:
        return dict(self._prices)
