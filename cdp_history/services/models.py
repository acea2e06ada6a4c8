"""
Shared types for CDP event history.
Raw logs come in from a LogSource; HistoryEvents go out to callers.
"""

import re
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, validator

from cdp_history.core.config import Settings
from cdp_history.core.units import format_amount

ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


class EventKind(str, Enum):
    OPEN = "OPEN"
    DEPOSIT = "DEPOSIT"
    WITHDRAW = "WITHDRAW"
    GENERATE = "GENERATE"
    PAY_BACK = "PAY_BACK"
    GIVE = "GIVE"
    MIGRATE = "MIGRATE"


# Intra-block ordering observed on mainnet; sorted descending
PRECEDENCE: Dict[EventKind, int] = {
    EventKind.OPEN: 0,
    EventKind.DEPOSIT: 1,
    EventKind.GIVE: 1,
    EventKind.MIGRATE: 1,
    EventKind.GENERATE: 2,
    EventKind.PAY_BACK: 2,
    EventKind.WITHDRAW: 3,
}


class Family(str, Enum):
    """Log query families, one primary query each"""
    OPEN = "open"
    MANAGER_FROB = "manager_frob"
    VAT_FROB = "vat_frob"
    GIVE = "give"


@dataclass(frozen=True)
class RawLog:
    """One log as returned by eth_getLogs"""
    address: str                     # Emitting contract, lowercased
    block: int
    tx_hash: str
    topics: Tuple[bytes, ...]        # 32 bytes each
    data: bytes = b""


@dataclass(frozen=True)
class LogQuery:
    """Filter for one eth_getLogs call"""
    family: Family
    addresses: Tuple[str, ...]
    topics: Tuple[Optional[str], ...]  # None is a wildcard slot
    from_block: int
    to_block: Optional[int] = None     # None means latest


@dataclass(frozen=True)
class HistoryEvent:
    """A single action on a CDP. Fields beyond the identity block depend on kind."""
    # Identity
    kind: EventKind
    block: int
    tx_hash: str
    position_id: int
    ilk: str

    # DEPOSIT / WITHDRAW
    gem: Optional[str] = None
    # DEPOSIT / WITHDRAW / GENERATE / PAY_BACK
    adapter: Optional[str] = None
    amount: Optional[Decimal] = None
    # GENERATE / PAY_BACK
    proxy: Optional[str] = None
    recipient: Optional[str] = None
    # GIVE / MIGRATE
    previous_owner: Optional[str] = None
    new_owner: Optional[str] = None

    # Set by the history merger
    timestamp: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly view without the fields this kind does not use"""
        out: Dict[str, Any] = {
            "type": self.kind.value,
            "block": self.block,
            "txHash": self.tx_hash,
            "id": self.position_id,
            "ilk": self.ilk,
        }
        optional = {
            "gem": self.gem,
            "adapter": self.adapter,
            "proxy": self.proxy,
            "recipient": self.recipient,
            "prevOwner": self.previous_owner,
            "newOwner": self.new_owner,
            "amount": format_amount(self.amount) if self.amount is not None else None,
            "timestamp": self.timestamp,
        }
        out.update({k: v for k, v in optional.items() if v is not None})
        return out


def _check_address(v: str) -> str:
    if not ADDRESS_RE.match(v):
        raise ValueError(f"Address {v} does not match 0x[40 hex chars]")
    return v.lower()


class PositionContext(BaseModel):
    """Starting parameters for one CDP, supplied by the caller"""
    id: int
    ilk: str                 # Collateral type, e.g. "ETH-A"
    gem: str                 # Collateral currency symbol, e.g. "ETH"
    urn: str                 # Urn handler address holding the vault in the Vat

    @validator("id")
    def positive_id(cls, v):
        if v <= 0:
            raise ValueError("CDP ids start at 1")
        return v

    @validator("urn")
    def valid_urn(cls, v):
        return _check_address(v)


class ContractAddresses(BaseModel):
    cdp_manager: str
    vat: str
    dai_join: str
    sai_join: str            # Legacy adapter used during the SCD migration
    migration: str

    @validator("cdp_manager", "vat", "dai_join", "sai_join", "migration")
    def valid_address(cls, v):
        return _check_address(v)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ContractAddresses":
        return cls(
            cdp_manager=settings.cdp_manager,
            vat=settings.mcd_vat,
            dai_join=settings.mcd_join_dai,
            sai_join=settings.mcd_join_sai,
            migration=settings.migration
        )
