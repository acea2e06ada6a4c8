from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception
)
import httpx
from datetime import datetime, timedelta
from cdp_history.core.errors import ServiceUnavailableError

class CircuitBreaker:
    """Simple circuit breaker to prevent cascade failures"""
    def __init__(self, failure_threshold: int = 3, timeout_seconds: int = 60):
        self.failure_threshold = failure_threshold
        self.timeout = timedelta(seconds=timeout_seconds)
        self.failures = 0
        self.last_failure_time = None
        self.state = "closed"  # closed, open, half_open

    def record_success(self):
        """Reset on success"""
        self.failures = 0
        self.state = "closed"
        self.last_failure_time = None

    def record_failure(self):
        """Increment failure count"""
        self.failures += 1
        self.last_failure_time = datetime.utcnow()
        if self.failures >= self.failure_threshold:
            self.state = "open"

    def can_attempt(self) -> bool:
        """Check if we can make a request"""
        if self.state == "closed":
            return True

        if self.state == "open":
            # Check if timeout has passed
            if datetime.utcnow() - self.last_failure_time > self.timeout:
                self.state = "half_open"
                return True
            return False

        # half_open state - allow one request to test
        return True

    def ensure_closed(self, service: str):
        if not self.can_attempt():
            raise ServiceUnavailableError(service)


def is_transient(exc: BaseException) -> bool:
    """Transport faults and 5xx responses are worth another attempt; 4xx are not"""
    if isinstance(exc, httpx.HTTPStatusError):
        return 500 <= exc.response.status_code < 600
    return isinstance(exc, httpx.TransportError)


# Retry decorator for RPC calls (don't retry on 4xx errors)
def retry_on_transport(attempts: int = 3, min_wait: float = 1, max_wait: float = 10):
    return retry(
        retry=retry_if_exception(is_transient),
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=2, min=min_wait, max=max_wait),
        reraise=True
    )
