from enum import Enum
from pydantic import BaseModel
from typing import Optional

class ErrorCode(str, Enum):
    DECODE_ERROR = "DECODE_ERROR"
    RPC_ERROR = "RPC_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    NETWORK_ERROR = "NETWORK_ERROR"

class ErrorResponse(BaseModel):
    error_code: ErrorCode
    message: str  # User-friendly message
    details: Optional[str] = None  # Technical details
    position_id: Optional[int] = None

# Custom Exception Classes
class HistoryError(Exception):
    def __init__(self, code: ErrorCode, user_msg: str, details: str = None):
        self.code = code
        self.user_msg = user_msg
        self.details = details
        super().__init__(user_msg)

    def to_response(self, position_id: Optional[int] = None) -> ErrorResponse:
        return ErrorResponse(
            error_code=self.code,
            message=self.user_msg,
            details=self.details,
            position_id=position_id
        )

class DecodeError(HistoryError):
    def __init__(self, signature: str, details: str):
        super().__init__(
            ErrorCode.DECODE_ERROR,
            "Could not decode event log.",
            f"{signature}: {details}"
        )
        self.signature = signature

class QueryError(HistoryError):
    def __init__(self, method: str, details: str, code: ErrorCode = ErrorCode.NETWORK_ERROR):
        super().__init__(
            code,
            "Log query failed. Please try again.",
            f"{method}: {details}"
        )
        self.method = method

class ServiceUnavailableError(HistoryError):
    def __init__(self, service: str):
        super().__init__(
            ErrorCode.SERVICE_UNAVAILABLE,
            "Service temporarily unavailable. Please try again.",
            f"{service} is unreachable or circuit breaker is open"
        )
