"""
Builds the primary log queries covering every action that can touch a CDP.
"""

import logging
from typing import List, Optional

from .abi import pad_topic
from .models import ContractAddresses, Family, LogQuery, PositionContext
from .correlator import FAMILIES

logger = logging.getLogger(__name__)

GENESIS_BLOCK = 1

# No MCD events exist below these heights
# 8600000 is 2019-09-22 on mainnet and 2018-09-04 on kovan
HISTORY_FLOOR = {
    1: 8600000,   # mainnet
    42: 8600000,  # kovan
}


def start_block(network_id: Optional[int]) -> int:
    """Earliest block worth scanning on a network"""
    return HISTORY_FLOOR.get(network_id, GENESIS_BLOCK)


def plan_queries(
    position: PositionContext,
    contracts: ContractAddresses,
    from_block: int
) -> List[LogQuery]:
    """One query per family; they are independent and may run concurrently"""
    cdp_topic = pad_topic(position.id)
    urn_topic = pad_topic(position.urn)

    # Topic slots after the event topic, per family
    filters = [
        (Family.OPEN, contracts.cdp_manager, (None, None, cdp_topic)),
        (Family.MANAGER_FROB, contracts.cdp_manager, (None, cdp_topic)),
        (Family.VAT_FROB, contracts.vat, (None, urn_topic)),
        (Family.GIVE, contracts.cdp_manager, (None, cdp_topic)),
    ]

    queries = [
        LogQuery(
            family=family,
            addresses=(address,),
            topics=(FAMILIES[family].signature.topic,) + slots,
            from_block=from_block
        )
        for family, address, slots in filters
    ]
    logger.debug(f"Planned {len(queries)} queries for CDP {position.id} from block {from_block}")
    return queries
