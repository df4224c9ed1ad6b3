import logging
from datetime import datetime
from reimburse.constants import Role, NotificationEvent
from reimburse.exceptions import ForbiddenError, ValidationError, InvalidStateError
from reimburse.states import Phase, WorkflowState
from reimburse.services.notification_service import get_notifier
from reimburse.services.workflow_service import WorkflowService

logger = logging.getLogger(__name__)


class PaymentService:

    @staticmethod
    def process_payment(expense_id, method, reference, actor):
        """Settles an approved expense. approved -> paid is one-way."""
        if actor.role != Role.ADMIN:
            raise ForbiddenError("Only admins can process payments")
        method = (method or '').strip()
        if not method:
            raise ValidationError("Payment method is required")

        expense = WorkflowService.get_expense(expense_id)
        if expense.state.phase != Phase.APPROVED:
            raise InvalidStateError("Only approved expenses can be paid", status=expense.status)

        expense.apply_state(WorkflowState.paid())
        expense.paid_at = datetime.utcnow()
        expense.payment_method = method
        expense.payment_reference = (reference or '').strip() or None
        expense.paid_by_id = actor.id

        WorkflowService.commit(expense)
        logger.info("Expense %s paid by user %s via %s", expense.expense_id, actor.id, method)

        get_notifier().notify(NotificationEvent.PAID, expense, expense.employee.email)
        return expense
