import asyncio
import itertools

import pytest
from eth_abi import encode as abi_encode

from cdp_history.services.abi import pad_topic
from cdp_history.services.log_source import LogSource
from cdp_history.services.models import ContractAddresses, PositionContext, RawLog
from cdp_history.services.signatures import (
    DAI_EXIT,
    DAI_JOIN,
    GIVE,
    MANAGER_FROB,
    NEW_CDP,
    VAT_FROB,
)

WAD = 10 ** 18

CDP_MANAGER = "0x" + "a1" * 20
VAT = "0x" + "b2" * 20
DAI_JOIN_ADDR = "0x" + "c3" * 20
SAI_JOIN_ADDR = "0x" + "c4" * 20
MIGRATION = "0x" + "d5" * 20
URN = "0x" + "e6" * 20
PROXY = "0x" + "f7" * 20
OWNER = "0x" + "17" * 20


def note_data(signature, args, prefix=b""):
    """DSNote data blob: msg.value, bytes offset, calldata length, padded calldata"""
    calldata = signature.selector + abi_encode([p.type for p in signature.data_params], args)
    padded = calldata + b"\x00" * (-len(calldata) % 32)
    return prefix + abi_encode(["uint256", "uint256", "uint256"], [0, 64, len(calldata)]) + padded


def topic(value):
    return bytes.fromhex(pad_topic(value)[2:])


def sig_topic(signature):
    return bytes.fromhex(signature.topic[2:])


class StubLogSource(LogSource):
    """In-memory chain that records every call it receives"""

    def __init__(self, logs=(), timestamps=None):
        self.logs = list(logs)
        self.timestamps = timestamps or {}
        self.log_calls = []
        self.timestamp_calls = []
        self.closed = False

    @staticmethod
    def _matches(topic_filter, topics):
        for i, wanted in enumerate(topic_filter):
            if wanted is None:
                continue
            if i >= len(topics) or "0x" + topics[i].hex() != wanted.lower():
                return False
        return True

    async def get_logs(self, addresses, topics, from_block, to_block=None):
        addresses = [addresses] if isinstance(addresses, str) else list(addresses)
        self.log_calls.append((tuple(addresses), tuple(topics), from_block, to_block))
        await asyncio.sleep(0)
        return [
            log for log in self.logs
            if log.address in addresses
            and self._matches(topics, log.topics)
            and log.block >= from_block
            and (to_block is None or log.block <= to_block)
        ]

    async def get_block_timestamp(self, block):
        self.timestamp_calls.append(block)
        await asyncio.sleep(0)
        return self.timestamps.get(block, 1_570_000_000 + block * 15)

    async def close(self):
        self.closed = True


class FakeChain:
    """Builds MCD-shaped logs for one CDP"""

    def __init__(self, cdp_id):
        self.cdp_id = cdp_id
        self.logs = []
        self._tx = itertools.count(1)

    def _add(self, address, block, topics, data=b""):
        log = RawLog(
            address=address,
            block=block,
            tx_hash="0x%064x" % next(self._tx),
            topics=tuple(topics),
            data=data
        )
        self.logs.append(log)
        return log

    def open(self, block, owner=OWNER):
        return self._add(CDP_MANAGER, block, [
            sig_topic(NEW_CDP), topic(PROXY), topic(owner), topic(self.cdp_id)
        ])

    def vat_frob(self, block, dink, dart=0, ilk=b"ETH-A", prefix=b""):
        data = note_data(VAT_FROB, [ilk.ljust(32, b"\x00"), URN, URN, URN, dink, dart], prefix)
        return self._add(VAT, block, [
            sig_topic(VAT_FROB), topic("0x" + ilk.ljust(32, b"\x00").hex()), topic(URN), topic(URN)
        ], data)

    def manager_frob(self, block, dart, dink=0, proxy=PROXY, prefix=b""):
        data = note_data(MANAGER_FROB, [self.cdp_id, dink, dart], prefix)
        return self._add(CDP_MANAGER, block, [
            sig_topic(MANAGER_FROB), topic(proxy), topic(self.cdp_id), topic(dink % 2 ** 256)
        ], data)

    def dai_adapter(self, block, wad, join=True, proxy=PROXY, recipient=OWNER, adapter=DAI_JOIN_ADDR):
        signature = DAI_JOIN if join else DAI_EXIT
        return self._add(adapter, block, [
            sig_topic(signature), topic(proxy), topic(recipient), topic(wad)
        ], note_data(signature, [recipient, wad]))

    def give(self, block, previous_owner, new_owner):
        return self._add(CDP_MANAGER, block, [
            sig_topic(GIVE), topic(previous_owner), topic(self.cdp_id), topic(new_owner)
        ], note_data(GIVE, [self.cdp_id, new_owner]))

    def source(self, **kwargs):
        return StubLogSource(self.logs, **kwargs)


@pytest.fixture
def contracts():
    return ContractAddresses(
        cdp_manager=CDP_MANAGER,
        vat=VAT,
        dai_join=DAI_JOIN_ADDR,
        sai_join=SAI_JOIN_ADDR,
        migration=MIGRATION
    )


@pytest.fixture
def position():
    return PositionContext(id=42, ilk="ETH-A", gem="ETH", urn=URN)


@pytest.fixture
def chain(position):
    return FakeChain(position.id)
