"""
Tagged results returned by the order and settlement services

Core operations never raise across the service boundary for expected
failures. They return a ServiceResult carrying a stable status flag, a
human-readable message and, on failure, an ErrorCode.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class ResultStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class ErrorKind(str, Enum):
    """How a caller is expected to react to a failure"""
    VALIDATION = "validation"   # caller-fixable, never retried automatically
    CONFLICT = "conflict"       # must not be blindly retried
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"     # infrastructure, may be retried with care
    AUTH = "auth"
    FORBIDDEN = "forbidden"


class ErrorCode(str, Enum):
    NO_ITEMS = "NoItems"
    RESTAURANT_UNAVAILABLE = "RestaurantUnavailable"
    TABLE_NOT_FOUND = "TableNotFound"
    ITEM_UNAVAILABLE = "ItemUnavailable"
    SPLIT_MISMATCH = "SplitMismatch"
    INVALID_TRANSITION = "InvalidTransition"
    NO_UNPAID_ORDERS = "NoUnpaidOrders"

    DUPLICATE_GROUP_PAYMENT = "DuplicateGroupPayment"
    SPLIT_ALREADY_PAID = "SplitAlreadyPaid"

    ORDER_NOT_FOUND = "OrderNotFound"
    PAYMENT_NOT_FOUND = "PaymentNotFound"
    SPLIT_NOT_FOUND = "SplitNotFound"

    ORDER_CREATION_FAILED = "OrderCreationFailed"
    STATUS_UPDATE_FAILED = "StatusUpdateFailed"
    SETTLEMENT_FAILED = "SettlementFailed"
    GATEWAY_ERROR = "GatewayError"

    AUTHENTICATION_FAILED = "AuthenticationFailed"
    FORBIDDEN = "Forbidden"

    @property
    def kind(self) -> ErrorKind:
        return _ERROR_KINDS[self]


_ERROR_KINDS = {
    ErrorCode.NO_ITEMS: ErrorKind.VALIDATION,
    ErrorCode.RESTAURANT_UNAVAILABLE: ErrorKind.VALIDATION,
    ErrorCode.TABLE_NOT_FOUND: ErrorKind.VALIDATION,
    ErrorCode.ITEM_UNAVAILABLE: ErrorKind.VALIDATION,
    ErrorCode.SPLIT_MISMATCH: ErrorKind.VALIDATION,
    ErrorCode.INVALID_TRANSITION: ErrorKind.VALIDATION,
    ErrorCode.NO_UNPAID_ORDERS: ErrorKind.VALIDATION,
    ErrorCode.DUPLICATE_GROUP_PAYMENT: ErrorKind.CONFLICT,
    ErrorCode.SPLIT_ALREADY_PAID: ErrorKind.CONFLICT,
    ErrorCode.ORDER_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.PAYMENT_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.SPLIT_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.ORDER_CREATION_FAILED: ErrorKind.TRANSIENT,
    ErrorCode.STATUS_UPDATE_FAILED: ErrorKind.TRANSIENT,
    ErrorCode.SETTLEMENT_FAILED: ErrorKind.TRANSIENT,
    ErrorCode.GATEWAY_ERROR: ErrorKind.TRANSIENT,
    ErrorCode.AUTHENTICATION_FAILED: ErrorKind.AUTH,
    ErrorCode.FORBIDDEN: ErrorKind.FORBIDDEN,
}


@dataclass
class ServiceResult(Generic[T]):
    status: ResultStatus
    message: str
    data: Optional[T] = None
    error: Optional[ErrorCode] = None

    @property
    def ok(self) -> bool:
        return self.status == ResultStatus.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "success": self.ok,
            "status": self.status.value,
            "message": self.message,
        }
        if self.error is not None:
            body["error"] = self.error.value
        if self.data is not None:
            body["data"] = self.data
        return body


def success(message: str, data: Any = None) -> ServiceResult:
    return ServiceResult(status=ResultStatus.SUCCESS, message=message, data=data)


def failure(error: ErrorCode, message: str, data: Any = None) -> ServiceResult:
    return ServiceResult(status=ResultStatus.FAILED, message=message, data=data, error=error)
