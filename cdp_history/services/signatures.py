"""
Event signature table for the MCD contracts touched by a CDP.

Most MCD actions are recorded through DSNote/LibNote anonymous logs: topic 0
is the 4-byte selector of the called function right-padded to 32 bytes, the
following topics hold the caller and the first arguments, and the data blob
embeds the raw calldata. NewCdp is a regular Solidity event.
"""

from dataclasses import dataclass
from functools import cached_property
from typing import Tuple

from eth_utils import keccak

TOPIC_SIZE = 32


@dataclass(frozen=True)
class Param:
    name: str
    type: str
    indexed: bool = False


@dataclass(frozen=True)
class EventSignature:
    name: str
    params: Tuple[Param, ...]
    style: str = "note"  # 'note' (selector topic) or 'event' (keccak topic)

    @property
    def text(self) -> str:
        """Canonical signature, e.g. frob(uint256,int256,int256)"""
        return f"{self.name}({','.join(p.type for p in self.params)})"

    @cached_property
    def selector(self) -> bytes:
        return keccak(text=self.text)[:4]

    @cached_property
    def topic(self) -> str:
        if self.style == "event":
            digest = keccak(text=self.text)
        else:
            digest = self.selector.ljust(TOPIC_SIZE, b"\x00")
        return "0x" + digest.hex()

    @property
    def data_params(self) -> Tuple[Param, ...]:
        """Parameters packed into the data blob, in declared order"""
        return tuple(p for p in self.params if not p.indexed)


NEW_CDP = EventSignature(
    "NewCdp",
    (
        Param("usr", "address", indexed=True),
        Param("own", "address", indexed=True),
        Param("cdp", "uint256", indexed=True),
    ),
    style="event",
)

# DssCdpManager.frob(cdp, dink, dart)
MANAGER_FROB = EventSignature(
    "frob",
    (
        Param("cdp", "uint256"),
        Param("dink", "int256"),
        Param("dart", "int256"),  # Normalized debt; would need vat.ilks[ilk].rate
    ),
)

# Vat.frob(ilk, u, v, w, dink, dart)
VAT_FROB = EventSignature(
    "frob",
    (
        Param("ilk", "bytes32"),
        Param("u", "address"),  # urn handler
        Param("v", "address"),
        Param("w", "address"),
        Param("dink", "int256"),
        Param("dart", "int256"),
    ),
)

GIVE = EventSignature(
    "give",
    (
        Param("cdp", "uint256"),
        Param("dst", "address"),
    ),
)

DAI_JOIN = EventSignature(
    "join",
    (
        Param("usr", "address"),
        Param("wad", "uint256"),
    ),
)

DAI_EXIT = EventSignature(
    "exit",
    (
        Param("usr", "address"),
        Param("wad", "uint256"),
    ),
)

SIGNATURES = {
    "NEW_CDP": NEW_CDP,
    "MANAGER_FROB": MANAGER_FROB,
    "VAT_FROB": VAT_FROB,
    "GIVE": GIVE,
    "DAI_JOIN": DAI_JOIN,
    "DAI_EXIT": DAI_EXIT,
}
