"""
Multi-level approval workflow.

An expense above the first tier gets one ApprovalStep per triggered level,
fixed at submission. Approvers act only at the expense's current level; each
approval moves the claim to the next pending step or completes it, a single
rejection ends it.
"""

import logging
import math
from collections import namedtuple
from datetime import datetime
from flask import current_app
from sqlalchemy.orm.exc import StaleDataError
from reimburse.constants import Role, StepStatus, NotificationEvent
from reimburse.exceptions import NotFoundError, ForbiddenError, ValidationError, InvalidStateError, ConflictError
from reimburse.extensions import db
from reimburse.models import Expense, ApprovalStep
from reimburse.states import ApprovalLevel, ExpenseStatus, WorkflowState, STEP_LEVELS
from reimburse.services.notification_service import get_notifier

logger = logging.getLogger(__name__)

# (threshold, level): the level is added when amount is strictly greater
DEFAULT_TIERS = (
    (5000, ApprovalLevel.MANAGER),
    (25000, ApprovalLevel.FINANCE),
    (50000, ApprovalLevel.ADMIN),
)

WorkflowPlan = namedtuple('WorkflowPlan', ['levels', 'initial_state'])


def configured_tiers():
    cfg = current_app.config
    return (
        (cfg.get('MANAGER_APPROVAL_ABOVE', 5000), ApprovalLevel.MANAGER),
        (cfg.get('FINANCE_APPROVAL_ABOVE', 25000), ApprovalLevel.FINANCE),
        (cfg.get('ADMIN_APPROVAL_ABOVE', 50000), ApprovalLevel.ADMIN),
    )


def parse_amount(amount):
    if isinstance(amount, bool):
        raise ValidationError("Amount must be a number")
    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise ValidationError("Amount must be a number")
    if math.isnan(value) or math.isinf(value) or value <= 0:
        raise ValidationError("Amount must be greater than zero")
    return value


def initialize_workflow(amount, tiers=DEFAULT_TIERS):
    """
    Computes the required approval levels for an amount.

    Every tier whose threshold the amount exceeds is included, in tier order.
    No tier triggered means the claim is approved on submission.
    """
    value = parse_amount(amount)
    levels = [level for threshold, level in tiers if value > threshold]
    if not levels:
        return WorkflowPlan([], WorkflowState.approved())
    return WorkflowPlan(levels, WorkflowState.pending(levels[0]))


def apply_plan(expense, plan):
    """Attaches the steps and initial state to a new expense."""
    expense.approval_workflow = [
        ApprovalStep(position=idx, level=level.value, status=StepStatus.PENDING)
        for idx, level in enumerate(plan.levels)
    ]
    expense.apply_state(plan.initial_state)
    return expense


def can_act(role, level):
    """Admin acts at any step level; manager and finance only at their own."""
    if not level or level not in {l.value for l in STEP_LEVELS}:
        return False
    if role == Role.ADMIN:
        return True
    return (role == Role.MANAGER and level == ApprovalLevel.MANAGER.value) or \
           (role == Role.FINANCE and level == ApprovalLevel.FINANCE.value)


class WorkflowService:

    APPROVER_ROLES = (Role.MANAGER, Role.FINANCE, Role.ADMIN)

    @staticmethod
    def get_expense(expense_id):
        expense = Expense.query.filter_by(expense_id=expense_id).first()
        if not expense:
            raise NotFoundError("Expense not found", expense_id=expense_id)
        return expense

    @staticmethod
    def _guard(expense, actor, action, expected_level=None, expected_version=None):
        """Checks run before any mutation. Returns the step to act on."""
        level = expense.current_approval_level

        if actor.role not in WorkflowService.APPROVER_ROLES:
            raise ForbiddenError(f"You cannot {action} at {level} level", level=level)

        if expected_level and expected_level != level:
            raise ConflictError(
                f"Expense is at {level} level, not {expected_level}",
                level=level, expected_level=expected_level)
        if expected_version is not None and expected_version != expense.version:
            raise ConflictError(
                "Expense was modified since it was loaded",
                version=expense.version, expected_version=expected_version)

        step = expense.active_step()
        if step is None:
            raise InvalidStateError(
                f"Expense {expense.expense_id} has no pending approval step",
                status=expense.status, level=level)

        if not can_act(actor.role, level):
            raise ForbiddenError(f"You cannot {action} at {level} level", level=level)
        return step

    @staticmethod
    def commit(expense):
        try:
            db.session.commit()
        except StaleDataError:
            db.session.rollback()
            raise ConflictError(
                "Expense was modified by another request, reload and try again",
                expense_id=expense.expense_id)

    @staticmethod
    def approve_at_level(expense_id, actor, comments=None, expected_level=None, expected_version=None):
        """Approves the pending step at the current level. Returns (expense, next_level)."""
        expense = WorkflowService.get_expense(expense_id)
        step = WorkflowService._guard(expense, actor, 'approve', expected_level, expected_version)
        acted_level = step.level

        step.status = StepStatus.APPROVED
        step.approver_id = actor.id
        step.comments = comments or 'Approved'
        step.action_date = datetime.utcnow()

        next_step = expense.next_pending_step()
        if next_step:
            expense.apply_state(WorkflowState.pending(next_step.level))
        else:
            expense.apply_state(WorkflowState.approved())

        WorkflowService.commit(expense)
        logger.info("Expense %s approved at %s level by user %s -> %s",
                    expense.expense_id, acted_level, actor.id, expense.current_approval_level)

        if not next_step:
            get_notifier().notify(NotificationEvent.APPROVED, expense, expense.employee.email)

        return expense, expense.current_approval_level

    @staticmethod
    def reject_at_level(expense_id, actor, reason, expected_level=None, expected_version=None):
        """Rejects the pending step at the current level. Final."""
        reason = (reason or '').strip()
        if not reason:
            raise ValidationError("Rejection reason is required")

        expense = WorkflowService.get_expense(expense_id)
        step = WorkflowService._guard(expense, actor, 'reject', expected_level, expected_version)
        acted_level = step.level
        now = datetime.utcnow()

        step.status = StepStatus.REJECTED
        step.approver_id = actor.id
        step.comments = reason
        step.action_date = now

        expense.apply_state(WorkflowState.rejected())
        expense.rejected_by_id = actor.id
        expense.rejected_at = now
        expense.rejection_reason = reason

        WorkflowService.commit(expense)
        logger.info("Expense %s rejected at %s level by user %s", expense.expense_id, acted_level, actor.id)

        get_notifier().notify(NotificationEvent.REJECTED, expense, expense.employee.email, reason=reason)
        return expense

    @staticmethod
    def get_pending_approvals(role, level=None):
        """Expenses waiting at a level the role may act on, newest first."""
        query = Expense.query
        if role == Role.MANAGER:
            query = query.filter_by(current_approval_level=ApprovalLevel.MANAGER.value,
                                    status=ExpenseStatus.PENDING_MANAGER.value)
        elif role == Role.FINANCE:
            query = query.filter_by(current_approval_level=ApprovalLevel.FINANCE.value,
                                    status=ExpenseStatus.PENDING_FINANCE.value)
        elif role == Role.ADMIN:
            query = query.filter(Expense.status.like('pending%'))
            if level:
                query = query.filter(Expense.current_approval_level == level)
        else:
            return []
        return query.order_by(Expense.created_at.desc(), Expense.id.desc()).all()

    @staticmethod
    def get_workflow_history(expense_id):
        expense = WorkflowService.get_expense(expense_id)
        return {
            'expense_id': expense.expense_id,
            'workflow': [s.to_dict() for s in expense.approval_workflow],
            'current_level': expense.current_approval_level,
            'status': expense.status,
            'version': expense.version,
        }
