"""
Expense workflow state definitions.

An expense's position in the approval chain is a single WorkflowState value
(phase + level). The ``status`` and ``current_approval_level`` columns on the
Expense model are derived from it and are never written independently.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ApprovalLevel(str, Enum):
    """Authority tier a step is assigned to."""

    MANAGER = "manager"
    FINANCE = "finance"
    ADMIN = "admin"
    COMPLETED = "completed"


class Phase(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


class ExpenseStatus(str, Enum):
    """Flat status strings as stored and exposed over the API."""

    PENDING = "pending"
    PENDING_MANAGER = "pending_manager"
    PENDING_FINANCE = "pending_finance"
    PENDING_ADMIN = "pending_admin"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


STEP_LEVELS = (ApprovalLevel.MANAGER, ApprovalLevel.FINANCE, ApprovalLevel.ADMIN)


@dataclass(frozen=True)
class WorkflowState:
    phase: Phase
    level: Optional[ApprovalLevel] = None

    @classmethod
    def pending(cls, level):
        level = ApprovalLevel(level)
        if level not in STEP_LEVELS:
            raise ValueError(f"'{level.value}' is not an approval step level")
        return cls(Phase.PENDING, level)

    @classmethod
    def approved(cls):
        return cls(Phase.APPROVED, ApprovalLevel.COMPLETED)

    @classmethod
    def rejected(cls):
        return cls(Phase.REJECTED, ApprovalLevel.COMPLETED)

    @classmethod
    def paid(cls):
        return cls(Phase.PAID, ApprovalLevel.COMPLETED)

    @classmethod
    def from_columns(cls, status, level):
        """Rebuilds the state from the stored (status, current_approval_level) pair."""
        status = ExpenseStatus(status)
        level = ApprovalLevel(level) if level else None
        if status == ExpenseStatus.PENDING:
            return cls(Phase.PENDING, level)
        if status.value.startswith("pending_"):
            return cls.pending(status.value[len("pending_"):])
        return cls(Phase(status.value), level)

    @property
    def status(self) -> ExpenseStatus:
        if self.phase == Phase.PENDING:
            if self.level is None or self.level == ApprovalLevel.COMPLETED:
                return ExpenseStatus.PENDING
            return ExpenseStatus(f"pending_{self.level.value}")
        return ExpenseStatus(self.phase.value)

    @property
    def is_pending(self) -> bool:
        return self.phase == Phase.PENDING

    @property
    def is_terminal(self) -> bool:
        return self.phase in (Phase.REJECTED, Phase.PAID)
