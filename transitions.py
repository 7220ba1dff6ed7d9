"""
Order status state machine.

pending -> preparing -> ready -> completed, with cancellation from any
non-terminal state and forward skips allowed (staff may mark a pending order
ready or completed directly). completed and cancelled are terminal.
"""

from typing import Dict, FrozenSet

import config
from errors import InvalidTransitionError, ValidationError
from schemas import OrderStatus

TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({
        OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.COMPLETED, OrderStatus.CANCELLED,
    }),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY, OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL = frozenset(s for s, targets in TRANSITIONS.items() if not targets)


def parse_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        valid = ", ".join(s.value for s in OrderStatus)
        raise ValidationError(f"Invalid status '{value}'. Valid statuses: {valid}")


def check_transition(current, target, strict: bool = None) -> bool:
    """Validate current -> target.

    Returns False when target equals current (a no-op re-submission), True
    when the status really changes. Raises InvalidTransitionError for moves
    the table does not allow.
    """
    current, target = OrderStatus(current), OrderStatus(target)
    if current == target:
        return False
    if strict is None:
        strict = config.STRICT_STATUS_TRANSITIONS
    if strict and target not in TRANSITIONS[current]:
        raise InvalidTransitionError(current.value, target.value)
    return True


def enters_completed(previous, target) -> bool:
    """True only for the write that moves an order into completed."""
    return OrderStatus(target) == OrderStatus.COMPLETED and OrderStatus(previous) != OrderStatus.COMPLETED
