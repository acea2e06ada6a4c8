import httpx
import itertools
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from eth_utils import to_bytes

from cdp_history.core.config import Settings
from cdp_history.core.errors import ErrorCode, QueryError
from cdp_history.core.retry import CircuitBreaker, retry_on_transport

from .log_source import LogSource
from .models import RawLog

logger = logging.getLogger(__name__)


def _quantity(value: Union[str, int]) -> int:
    return value if isinstance(value, int) else int(value, 16)


def _block_param(block: Optional[int]) -> str:
    return "latest" if block is None else hex(block)


def parse_log(raw: Dict[str, Any]) -> RawLog:
    """eth_getLogs result entry → RawLog"""
    return RawLog(
        address=raw["address"].lower(),
        block=_quantity(raw["blockNumber"]),
        tx_hash=raw["transactionHash"].lower(),
        topics=tuple(to_bytes(hexstr=t) for t in raw.get("topics", [])),
        data=to_bytes(hexstr=raw.get("data") or "0x")
    )


class JsonRpcLogSource(LogSource):
    def __init__(
        self,
        rpc_url: str,
        timeout: float = 30.0,
        max_connections: int = 10,
        retry_attempts: int = 3,
        retry_max_wait: float = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.rpc_url = rpc_url
        self.client = httpx.AsyncClient(  # ASYNC CLIENT
            timeout=timeout,
            limits=httpx.Limits(max_connections=max_connections, max_keepalive_connections=max_connections // 2),
            transport=transport
        )
        self.circuit_breaker = CircuitBreaker(failure_threshold=3, timeout_seconds=60)
        self._ids = itertools.count(1)
        self._post = retry_on_transport(
            attempts=retry_attempts,
            min_wait=min(1, retry_max_wait),
            max_wait=retry_max_wait
        )(self._post_once)

    @classmethod
    def from_settings(cls, config: Settings) -> "JsonRpcLogSource":
        return cls(
            config.rpc_url,
            timeout=config.rpc_timeout,
            max_connections=config.rpc_max_connections,
            retry_attempts=config.rpc_retry_attempts
        )

    async def close(self):
        """Close HTTP client"""
        await self.client.aclose()

    async def _post_once(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = await self.client.post(self.rpc_url, json=payload)
        response.raise_for_status()
        return response.json()

    async def call(self, method: str, params: List[Any]) -> Any:
        """Single JSON-RPC call with retries; failures surface as QueryError"""
        self.circuit_breaker.ensure_closed("JSON-RPC endpoint")

        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            body = await self._post(payload)
        except httpx.HTTPStatusError as e:
            self.circuit_breaker.record_failure()
            raise QueryError(method, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            self.circuit_breaker.record_failure()
            logger.error(f"Transport error calling {method}: {e}")
            raise QueryError(method, str(e) or type(e).__name__) from e
        except ValueError as e:
            # 200 with a body that is not JSON, e.g. a proxy error page
            self.circuit_breaker.record_failure()
            raise QueryError(method, f"invalid JSON response: {e}", code=ErrorCode.RPC_ERROR) from e

        if not isinstance(body, dict):
            self.circuit_breaker.record_failure()
            raise QueryError(
                method,
                f"expected a JSON-RPC object, got {type(body).__name__}",
                code=ErrorCode.RPC_ERROR
            )

        self.circuit_breaker.record_success()

        if "error" in body:
            error = body["error"]
            raise QueryError(
                method,
                f"{error.get('code')} {error.get('message')}",
                code=ErrorCode.RPC_ERROR
            )
        return body.get("result")

    async def get_logs(
        self,
        addresses: Union[str, Sequence[str]],
        topics: Sequence[Optional[str]],
        from_block: int,
        to_block: Optional[int] = None
    ) -> List[RawLog]:
        address = addresses if isinstance(addresses, str) else list(addresses)
        log_filter = {
            "address": address,
            "topics": list(topics),
            "fromBlock": _block_param(from_block),
            "toBlock": _block_param(to_block),
        }
        result = await self.call("eth_getLogs", [log_filter])
        logger.debug(f"eth_getLogs {topics[0] if topics else ''} returned {len(result or [])} logs")
        return [parse_log(entry) for entry in result or []]

    async def get_block_timestamp(self, block: int) -> int:
        result = await self.call("eth_getBlockByNumber", [hex(block), False])
        if result is None:
            raise QueryError("eth_getBlockByNumber", f"block {block} not found")
        return _quantity(result["timestamp"])

    async def get_network_id(self) -> int:
        return _quantity(await self.call("eth_chainId", []))

