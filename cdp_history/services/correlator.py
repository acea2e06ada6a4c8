"""
Turns raw logs of each query family into HistoryEvents.

Every family but MANAGER_FROB maps one log to at most one event. Manager
frob logs only carry normalized debt, so the Dai adapter join/exit of the
same block and proxy is looked up to get the actual Dai amount.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Tuple

from cdp_history.core.errors import DecodeError
from cdp_history.core.units import bytes32_to_string, from_wad

from .abi import decode_address_topic, decode_note_data, decode_uint_topic, topic_hex
from .log_source import LogSource
from .models import (
    ContractAddresses,
    EventKind,
    Family,
    HistoryEvent,
    PositionContext,
    RawLog,
)
from .signatures import (
    DAI_EXIT,
    DAI_JOIN,
    GIVE,
    MANAGER_FROB,
    NEW_CDP,
    VAT_FROB,
    EventSignature,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CorrelationContext:
    position: PositionContext
    contracts: ContractAddresses
    source: LogSource


def _require_topics(log: RawLog, count: int, signature: EventSignature) -> None:
    if len(log.topics) < count:
        raise DecodeError(
            signature.text,
            f"expected {count} topics in log of tx {log.tx_hash}, got {len(log.topics)}"
        )


Correlate = Callable[[List[RawLog], CorrelationContext], Awaitable[List[HistoryEvent]]]


@dataclass(frozen=True)
class FamilySpec:
    signature: EventSignature
    correlate: Correlate


async def correlate_open(logs: List[RawLog], ctx: CorrelationContext) -> List[HistoryEvent]:
    return [
        HistoryEvent(
            kind=EventKind.OPEN,
            block=log.block,
            tx_hash=log.tx_hash,
            position_id=ctx.position.id,
            ilk=ctx.position.ilk
        )
        for log in logs
    ]


async def correlate_give(logs: List[RawLog], ctx: CorrelationContext) -> List[HistoryEvent]:
    events = []
    for log in logs:
        _require_topics(log, 4, GIVE)
        previous_owner = decode_address_topic(log.topics[1])
        kind = EventKind.MIGRATE if previous_owner == ctx.contracts.migration else EventKind.GIVE
        events.append(HistoryEvent(
            kind=kind,
            block=log.block,
            tx_hash=log.tx_hash,
            position_id=decode_uint_topic(log.topics[2]),
            ilk=ctx.position.ilk,
            previous_owner=previous_owner,
            new_owner=decode_address_topic(log.topics[3])
        ))
    return events


async def correlate_vat_frob(logs: List[RawLog], ctx: CorrelationContext) -> List[HistoryEvent]:
    events = []
    for log in logs:
        # dart is ignored: turning it into Dai needs the ilk rate
        decoded = decode_note_data(VAT_FROB, log.data)
        dink = decoded["dink"]
        if dink == 0:
            continue
        events.append(HistoryEvent(
            kind=EventKind.WITHDRAW if dink < 0 else EventKind.DEPOSIT,
            block=log.block,
            tx_hash=log.tx_hash,
            position_id=ctx.position.id,
            ilk=bytes32_to_string(decoded["ilk"]),
            gem=ctx.position.gem,
            adapter=log.address.lower(),
            amount=from_wad(abs(dink))
        ))
    return events


async def _adapter_logs_for(log: RawLog, dart: int, ctx: CorrelationContext) -> List[RawLog]:
    """Dai adapter join (wipe) or exit (draw) logs in the same block for the same proxy"""
    signature = DAI_JOIN if dart < 0 else DAI_EXIT
    proxy_topic = topic_hex(log.topics[1])
    return await ctx.source.get_logs(
        [ctx.contracts.dai_join, ctx.contracts.sai_join],
        [signature.topic, proxy_topic],
        from_block=log.block,
        to_block=log.block
    )


def _debt_event(kind: EventKind, log: RawLog, ctx: CorrelationContext) -> HistoryEvent:
    _require_topics(log, 4, DAI_JOIN if kind == EventKind.PAY_BACK else DAI_EXIT)
    return HistoryEvent(
        kind=kind,
        block=log.block,
        tx_hash=log.tx_hash,
        position_id=ctx.position.id,
        ilk=ctx.position.ilk,
        adapter=log.address.lower(),
        proxy=decode_address_topic(log.topics[1]),
        recipient=decode_address_topic(log.topics[2]),
        amount=from_wad(decode_uint_topic(log.topics[3]))
    )


async def correlate_manager_frob(logs: List[RawLog], ctx: CorrelationContext) -> List[HistoryEvent]:
    # Decode everything first so a bad log fails before any secondary query
    pending: List[Tuple[RawLog, int]] = []
    for log in logs:
        _require_topics(log, 2, MANAGER_FROB)
        dart = decode_note_data(MANAGER_FROB, log.data)["dart"]
        if dart != 0:
            pending.append((log, dart))

    matches = await asyncio.gather(*(_adapter_logs_for(log, dart, ctx) for log, dart in pending))

    events = []
    for (log, dart), adapter_logs in zip(pending, matches):
        if not adapter_logs:
            logger.warning(
                f"No Dai adapter log for CDP {ctx.position.id} frob at block {log.block} "
                f"(tx {log.tx_hash}); skipping"
            )
            continue
        kind = EventKind.PAY_BACK if dart < 0 else EventKind.GENERATE
        events.extend(_debt_event(kind, adapter_log, ctx) for adapter_log in adapter_logs)
    return events


FAMILIES: Dict[Family, FamilySpec] = {
    Family.OPEN: FamilySpec(NEW_CDP, correlate_open),
    Family.MANAGER_FROB: FamilySpec(MANAGER_FROB, correlate_manager_frob),
    Family.VAT_FROB: FamilySpec(VAT_FROB, correlate_vat_frob),
    Family.GIVE: FamilySpec(GIVE, correlate_give),
}
