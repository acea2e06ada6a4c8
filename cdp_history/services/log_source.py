"""
Interface the history engine consumes for chain access.
The JSON-RPC implementation lives in rpc.py; tests use an in-memory stub.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Union

from .models import RawLog


class LogSource(ABC):
    """Executes log queries and resolves block timestamps"""

    @abstractmethod
    async def get_logs(
        self,
        addresses: Union[str, Sequence[str]],
        topics: Sequence[Optional[str]],
        from_block: int,
        to_block: Optional[int] = None
    ) -> List[RawLog]:
        """Logs matching the filter; to_block=None means latest"""
        pass

    @abstractmethod
    async def get_block_timestamp(self, block: int) -> int:
        """Unix timestamp of a block"""
        pass

    async def close(self) -> None:
        """Release transport resources"""
        pass
