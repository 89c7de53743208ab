"""
Transaction state machine.

Idle -> Active -> (Committed | RolledBack) -> Idle. The manager only tracks
state and the connection pinned for the transaction; the engine performs
the driver calls.
"""

from enum import Enum
from typing import Any, Optional

from ..exceptions import NestedTransaction, NoActiveTransaction


class TransactionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class TransactionManager:
    """
    Tracks the single transaction allowed per connection source.

    ``last_outcome`` keeps the terminal state of the previous transaction
    (COMMITTED or ROLLED_BACK) after the manager has returned to IDLE.
    """

    def __init__(self):
        self.state = TransactionState.IDLE
        self.last_outcome: Optional[TransactionState] = None
        self.connection: Any = None

    @property
    def active(self) -> bool:
        return self.state is TransactionState.ACTIVE

    def begin(self, connection) -> None:
        """
        Enter ACTIVE, pinning ``connection`` for the transaction's lifetime.

        Raises:
            NestedTransaction: If a transaction is already active
        """
        if self.active:
            raise NestedTransaction()
        self.connection = connection
        self.state = TransactionState.ACTIVE

    def ensure_active(self, action: str) -> Any:
        """
        Return the pinned connection.

        Raises:
            NoActiveTransaction: If no transaction is active
        """
        if not self.active:
            raise NoActiveTransaction(action)
        return self.connection

    def finish(self, outcome: TransactionState) -> Any:
        """Record the outcome, return to IDLE and hand back the pinned connection."""
        connection = self.connection
        self.last_outcome = outcome
        self.state = TransactionState.IDLE
        self.connection = None
        return connection

    def __repr__(self) -> str:
        return f"TransactionManager(state={self.state.value})"
