import logging
from sqlalchemy import func
from reimburse.constants import Role, NotificationEvent
from reimburse.exceptions import ForbiddenError, ValidationError
from reimburse.extensions import db
from reimburse.models import Expense, ExpenseComment, Category
from reimburse.utils import save_file, format_public_id
from reimburse.services.notification_service import get_notifier
from reimburse.services.policy_service import check_compliance
from reimburse.services.workflow_service import WorkflowService, initialize_workflow, apply_plan, \
    configured_tiers, parse_amount

logger = logging.getLogger(__name__)


class ExpenseService:

    @staticmethod
    def submit_expense(category_id, amount, date, vendor, description, actor,
                       receipt=None, acknowledge_violations=False):
        """
        Creates an expense with its approval chain.
        Returns (expense, compliance report). Non-compliant claims are accepted.
        """
        vendor = (vendor or '').strip()
        description = (description or '').strip()
        if not vendor or not description or date is None:
            raise ValidationError("Vendor, date and description are required")
        amount = parse_amount(amount)

        category = db.session.get(Category, category_id) if category_id else None
        if not category:
            raise ValidationError("Category not found")

        report = check_compliance(category.id, amount, vendor, date, actor)
        if not report['is_compliant'] and not acknowledge_violations:
            logger.warning("User %s submitted a non-compliant expense without acknowledging %d violation(s)",
                           actor.id, len(report['violations']))

        plan = initialize_workflow(amount, configured_tiers())
        expense = Expense(
            employee_id=actor.id,
            category=category,
            amount=amount,
            date=date,
            vendor=vendor,
            description=description,
            receipt=save_file(receipt, f"receipt_{actor.id}"),
            policy_violations=report['violations'],
        )
        apply_plan(expense, plan)

        db.session.add(expense)
        db.session.flush()
        expense.expense_id = format_public_id('EXP', expense.id, 4)
        db.session.commit()
        logger.info("Expense %s submitted by user %s: %s (%s)",
                    expense.expense_id, actor.id, amount, expense.status)

        notifier = get_notifier()
        notifier.expense_submitted(expense)
        if not plan.levels:
            notifier.notify(NotificationEvent.APPROVED, expense, actor.email)

        return expense, report

    @staticmethod
    def get_my_expenses(actor):
        return Expense.query.filter_by(employee_id=actor.id) \
            .order_by(Expense.created_at.desc(), Expense.id.desc()).all()

    @staticmethod
    def get_all_expenses(status=None):
        query = Expense.query
        if status:
            query = query.filter_by(status=status)
        return query.order_by(Expense.created_at.desc(), Expense.id.desc()).all()

    @staticmethod
    def get_expense_for(expense_id, actor):
        """Owners, approvers and admins may read an expense."""
        expense = WorkflowService.get_expense(expense_id)
        if actor.role == Role.EMPLOYEE and expense.employee_id != actor.id:
            raise ForbiddenError("You cannot view this expense")
        return expense

    @staticmethod
    def add_comment(expense_id, message, actor):
        message = (message or '').strip()
        if not message:
            raise ValidationError("Comment cannot be empty")
        expense = ExpenseService.get_expense_for(expense_id, actor)
        comment = ExpenseComment(expense=expense, user_id=actor.id, message=message)
        db.session.add(comment)
        db.session.commit()
        return comment

    @staticmethod
    def get_stats(actor):
        """Count and total amount of the actor's expenses, by status."""
        rows = db.session.query(Expense.status, func.count(Expense.id), func.sum(Expense.amount)) \
            .filter(Expense.employee_id == actor.id) \
            .group_by(Expense.status).all()
        by_status = {status: {'count': count, 'total': float(total or 0)} for status, count, total in rows}
        return {
            'by_status': by_status,
            'total_count': sum(s['count'] for s in by_status.values()),
            'total_amount': sum(s['total'] for s in by_status.values()),
        }
