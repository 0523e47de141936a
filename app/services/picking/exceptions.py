"""Picking session errors.

Lifecycle errors are caller errors: retrying without changing the input
fails the same way. Scan validation outcomes are not exceptions; they come
back inside ScanResult.
"""
import uuid
from typing import Any, Dict, Optional


class PickingSessionError(Exception):
    """Base class for picking session request failures."""

    code = "PICKING_ERROR"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message, **self.details}


class SessionNotFoundError(PickingSessionError):
    code = "SESSION_NOT_FOUND"

    def __init__(self, session_id: uuid.UUID):
        super().__init__(f"Picking session {session_id} not found", session_id=str(session_id))


class SessionNotActiveError(PickingSessionError):
    code = "SESSION_NOT_ACTIVE"

    def __init__(self, session_id: uuid.UUID, status: str, operation: Optional[str] = None):
        message = f"Picking session {session_id} is {status}"
        if operation:
            message += f", cannot {operation}"
        super().__init__(message, session_id=str(session_id), status=status)


class NotPausedError(PickingSessionError):
    code = "NOT_PAUSED"

    def __init__(self, session_id: uuid.UUID, status: str):
        super().__init__(
            f"Picking session {session_id} is not paused (status: {status})",
            session_id=str(session_id),
            status=status,
        )


class NoOrdersAvailableError(PickingSessionError):
    code = "NO_ORDERS_AVAILABLE"

    def __init__(self, warehouse_id: uuid.UUID):
        super().__init__(
            "No orders available for picking",
            warehouse_id=str(warehouse_id),
        )


class InvalidStrategyError(PickingSessionError):
    code = "INVALID_STRATEGY"

    def __init__(self, strategy_id: str):
        super().__init__(f"Invalid picking strategy: {strategy_id}", strategy=strategy_id)


class ItemNotFoundError(PickingSessionError):
    code = "ITEM_NOT_FOUND"

    def __init__(self, sku: str):
        super().__init__(f"Item {sku} is not part of this picking session", sku=sku)


class QuantityExceededError(PickingSessionError):
    code = "QUANTITY_EXCEEDED"

    def __init__(self, sku: str, required: int, already_picked: int):
        super().__init__(
            f"Maximum quantity reached for {sku} ({required})",
            sku=sku,
            required=required,
            already_picked=already_picked,
        )


class InvalidQuantityError(PickingSessionError):
    code = "INVALID_QUANTITY"


class SessionConcurrencyError(PickingSessionError):
    """The durable row changed under us; another process wrote this session."""

    code = "SESSION_CONFLICT"

    def __init__(self, session_id: uuid.UUID, expected_version: int):
        super().__init__(
            f"Picking session {session_id} was modified concurrently",
            session_id=str(session_id),
            expected_version=expected_version,
        )
