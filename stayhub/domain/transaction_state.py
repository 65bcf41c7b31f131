"""Provider transaction state machine.

States travel over the wire as signed integers: the sign marks cancellation
and the magnitude the stage the transaction was canceled from.
"""

from enum import Enum

from stayhub.core.exceptions import ValidationError


class TransactionState(Enum):
    """Internal transaction states."""

    PENDING = "pending"
    PAID = "paid"
    PENDING_CANCELED = "pending_canceled"
    PAID_CANCELED = "paid_canceled"

    @property
    def wire_value(self) -> int:
        return _WIRE_VALUES[self]

    @classmethod
    def from_wire(cls, value: int) -> "TransactionState":
        for state, wire in _WIRE_VALUES.items():
            if wire == value:
                return state
        raise ValidationError(f"Unknown transaction state: {value}")

    @property
    def is_canceled(self) -> bool:
        return self in (TransactionState.PENDING_CANCELED, TransactionState.PAID_CANCELED)

    @property
    def is_live(self) -> bool:
        return not self.is_canceled

    def canceled(self) -> "TransactionState":
        """Return the cancellation state reachable from this one."""
        if self is TransactionState.PENDING:
            return TransactionState.PENDING_CANCELED
        if self is TransactionState.PAID:
            return TransactionState.PAID_CANCELED
        raise ValidationError(f"Transaction already canceled: {self.value}")


_WIRE_VALUES = {
    TransactionState.PENDING: 1,
    TransactionState.PAID: 2,
    TransactionState.PENDING_CANCELED: -1,
    TransactionState.PAID_CANCELED: -2,
}

TRANSACTION_TRANSITIONS = {
    TransactionState.PENDING: {TransactionState.PAID, TransactionState.PENDING_CANCELED},
    TransactionState.PAID: {TransactionState.PAID_CANCELED},
    TransactionState.PENDING_CANCELED: set(),
    TransactionState.PAID_CANCELED: set(),
}


def assert_transaction_transition(current: TransactionState, target: TransactionState) -> None:
    allowed = TRANSACTION_TRANSITIONS.get(current, set())
    if target not in allowed:
        raise ValidationError(
            f"Invalid transaction transition: {current.value} → {target.value}"
        )


def source_state_for(target: TransactionState) -> TransactionState:
    """Return the single state from which ``target`` may be entered."""
    for current, allowed in TRANSACTION_TRANSITIONS.items():
        if target in allowed:
            return current
    raise ValidationError(f"No transition leads to {target.value}")
