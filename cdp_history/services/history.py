"""
CDP event history

Scans CDP manager, Vat and Dai adapter logs for one CDP and merges them
into a single timeline, newest block first.

Pipeline:
- plan four primary queries (open, manager frob, vat frob, give)
- run them concurrently
- correlate each family into HistoryEvents (manager frobs look up the
  matching Dai adapter log in the same block)
- attach block timestamps, one lookup per block
- sort by (block, precedence) descending

Results are cached per CDP id for the lifetime of the service. A failed
computation stays failed; build a new service to retry.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Iterable, List, Optional

from cdp_history.core.cache import SingleFlightCache
from cdp_history.core.config import Settings, settings
from cdp_history.core.logging_config import setup_logging

from .correlator import FAMILIES, CorrelationContext
from .log_source import LogSource
from .models import PRECEDENCE, ContractAddresses, HistoryEvent, LogQuery, PositionContext
from .planner import plan_queries, start_block
from .timestamps import BlockTimestampResolver

logger = logging.getLogger(__name__)


async def merge_history(
    groups: Iterable[Iterable[Optional[HistoryEvent]]],
    resolver: BlockTimestampResolver
) -> List[HistoryEvent]:
    """Flatten, attach timestamps and order newest first. Inputs are left untouched."""
    events = [event for group in groups for event in group if event is not None]

    timestamps = await asyncio.gather(*(resolver.resolve(event.block) for event in events))
    stamped = [replace(event, timestamp=ts) for event, ts in zip(events, timestamps)]

    # sorted() is stable with reverse=True, so same-rank events keep log order
    return sorted(
        stamped,
        key=lambda e: (e.block, PRECEDENCE[e.kind]),
        reverse=True
    )


class EventHistoryService:
    def __init__(
        self,
        source: LogSource,
        contracts: ContractAddresses,
        network_id: Optional[int] = None
    ):
        self.source = source
        self.contracts = contracts
        self.network_id = network_id
        self.cache = SingleFlightCache("CDP history")

    async def close(self):
        """Close the underlying log source"""
        await self.source.close()

    async def get_history(self, position: PositionContext) -> List[HistoryEvent]:
        """
        Ordered action history of a CDP.
        Concurrent and repeated calls for the same id share one computation.
        """
        if position.id in self.cache:
            logger.info(f"Cache HIT for CDP {position.id}")
        else:
            logger.info(f"Cache MISS for CDP {position.id} - scanning logs")
        task = self.cache.get_or_compute(position.id, lambda: self._compute(position))
        # Shielded so a cancelled caller does not cancel the shared computation
        return await asyncio.shield(task)

    async def _run_family(self, query: LogQuery, ctx: CorrelationContext) -> List[HistoryEvent]:
        logs = await self.source.get_logs(
            list(query.addresses),
            list(query.topics),
            from_block=query.from_block,
            to_block=query.to_block
        )
        logger.debug(f"CDP {ctx.position.id}: {len(logs)} {query.family.value} logs")
        return await FAMILIES[query.family].correlate(logs, ctx)

    async def _compute(self, position: PositionContext) -> List[HistoryEvent]:
        ctx = CorrelationContext(position=position, contracts=self.contracts, source=self.source)
        queries = plan_queries(position, self.contracts, start_block(self.network_id))

        try:
            groups = await asyncio.gather(*(self._run_family(q, ctx) for q in queries))
            history = await merge_history(groups, BlockTimestampResolver(self.source))
        except Exception as e:
            logger.error(f"History for CDP {position.id} failed: {e}")
            raise

        logger.info(f"CDP {position.id}: {len(history)} events")
        return history


# Global service instance with lifecycle management
_history_service: Optional[EventHistoryService] = None
_service_lock: Optional[asyncio.Lock] = None

async def get_history_service(config: Settings = settings) -> EventHistoryService:
    """Shared EventHistoryService backed by JSON-RPC"""
    global _history_service, _service_lock
    if _history_service is not None:
        return _history_service

    # Created lazily so the lock binds to the running loop
    if _service_lock is None:
        _service_lock = asyncio.Lock()

    async with _service_lock:
        if _history_service is None:
            from cdp_history.services.rpc import JsonRpcLogSource
            setup_logging(config.log_level)
            source = JsonRpcLogSource.from_settings(config)
            try:
                network_id = config.network_id or await source.get_network_id()
            except Exception:
                await source.close()
                raise
            _history_service = EventHistoryService(
                source,
                ContractAddresses.from_settings(config),
                network_id=network_id
            )
    return _history_service

async def get_event_history(position: PositionContext) -> List[HistoryEvent]:
    service = await get_history_service()
    return await service.get_history(position)

async def close_history_service():
    """Cleanup on shutdown"""
    global _history_service, _service_lock
    if _history_service:
        await _history_service.close()
        _history_service = None
    _service_lock = None
