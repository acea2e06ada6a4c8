import logging

from cdp_history.core.cache import SingleFlightCache

from .log_source import LogSource

logger = logging.getLogger(__name__)


class BlockTimestampResolver:
    """Block → timestamp lookups for one history computation, one fetch per block"""

    def __init__(self, source: LogSource):
        self.source = source
        self.calls = 0
        self._cache = SingleFlightCache("block timestamps")

    async def _fetch(self, block: int) -> int:
        self.calls += 1
        return await self.source.get_block_timestamp(block)

    async def resolve(self, block: int) -> int:
        return await self._cache.get_or_compute(block, lambda: self._fetch(block))
