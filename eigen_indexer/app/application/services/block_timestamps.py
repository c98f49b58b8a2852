from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from eigen_indexer.app.domain.ports.out import BlockTimestampIndex, ChainReader

logger = logging.getLogger(__name__)


class BlockTimestampResolver:
    """
    Resolves block timestamps for one batch.

    The persisted index is read first for the whole batch range; blocks it does
    not know are fetched from RPC once each and written back to the index.
    """

    def __init__(self, *, reader: ChainReader, index: BlockTimestampIndex) -> None:
        self._reader = reader
        self._index = index

    async def resolve(
        self,
        block_numbers: Iterable[int],
        *,
        from_block: int,
        to_block: int,
    ) -> dict[int, datetime]:
        wanted = sorted(set(block_numbers))
        if not wanted:
            return {}

        known = await self._index.get_range(from_block, to_block)
        missing = [n for n in wanted if n not in known]

        fetched: dict[int, datetime] = {}
        for n in missing:
            fetched[n] = await self._reader.get_block_timestamp(n)

        if fetched:
            logger.debug(
                "Fetched %s block timestamps from RPC for blocks=[%s, %s]",
                len(fetched),
                from_block,
                to_block,
            )
            await self._index.save(fetched)

        return {n: known.get(n) or fetched[n] for n in wanted}
