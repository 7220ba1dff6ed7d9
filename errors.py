"""
Error taxonomy raised by the ordering core.

The HTTP layer in main.py maps every OrderingError to a JSON envelope using
the status_code carried on the exception.
"""

from typing import Optional


class OrderingError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(OrderingError, ValueError):
    """Bad input: empty items, blank name, unknown status, missing identity."""

    status_code = 400


class InvalidTransitionError(ValidationError):
    status_code = 409

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move order from '{current}' to '{target}'")
        self.current = current
        self.target = target


class NotFoundError(OrderingError):
    status_code = 404

    def __init__(self, kind: str, identifier: Optional[str] = None):
        label = kind.capitalize()
        message = f"{label} not found" if identifier is None else f"{label} {identifier} not found"
        super().__init__(message)
        self.kind = kind
        self.identifier = identifier


class ConsistencyError(OrderingError):
    """A concurrent transition or a half-applied points award was detected."""

    status_code = 409


class DuplicateAwardError(ConsistencyError):
    def __init__(self, order_id: str):
        super().__init__(f"Points for order {order_id} were already awarded")
        self.order_id = order_id
