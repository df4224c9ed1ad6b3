"""
Outbound notifications.

``NotificationDispatcher.notify`` is called after a transition has been
committed. It renders the mail, hands it to Celery with ``.delay()`` and
records the attempt in ``NotificationLog``. It never raises for delivery
problems: the result dict carries ``success`` and ``error`` instead.
"""

import logging
from datetime import datetime
from flask import current_app, render_template
from sqlalchemy.exc import SQLAlchemyError
from reimburse.constants import NotificationEvent
from reimburse.extensions import db
from reimburse.models import Expense, NotificationLog, Ticket
from reimburse.tasks import send_async_email

logger = logging.getLogger(__name__)

GREEN = '#16a34a'
RED = '#dc2626'
BLUE = '#2563eb'


def _money(amount):
    return f"₹{amount:,.2f}"


def _expense_rows(expense):
    return [('Expense ID', expense.expense_id), ('Vendor', expense.vendor), ('Amount', _money(expense.amount))]


def _ticket_rows(ticket):
    rows = [('Ticket ID', ticket.ticket_id), ('Subject', ticket.subject)]
    if ticket.expense_id:
        rows.append(('Related Expense', ticket.expense_id))
    return rows


def build_message(event_type, obj, extra):
    """Returns (subject, template context) for an event."""
    if event_type == NotificationEvent.SUBMITTED:
        rows = _expense_rows(obj) + [('Employee', obj.employee.name if obj.employee else ''),
                                     ('Description', obj.description)]
        if obj.current_approval_level and obj.current_approval_level != 'completed':
            rows.append(('Awaiting', f"{obj.current_approval_level.title()} approval"))
        return f"New Expense - {obj.expense_id}", dict(
            heading='New Expense Submission', color=BLUE, rows=rows,
            body='Please review this expense in the dashboard.')

    if event_type == NotificationEvent.APPROVED:
        return f"Expense Approved - {obj.expense_id}", dict(
            heading='Expense Approved!', color=GREEN,
            rows=_expense_rows(obj) + [('Status', 'APPROVED')],
            body='Payment will be processed soon.')

    if event_type == NotificationEvent.REJECTED:
        return f"Expense Rejected - {obj.expense_id}", dict(
            heading='Expense Rejected', color=RED,
            rows=_expense_rows(obj) + [('Reason', extra.get('reason') or obj.rejection_reason)])

    if event_type == NotificationEvent.PAID:
        return f"Payment Processed - {obj.expense_id}", dict(
            heading='Payment Processed!', color=GREEN,
            rows=_expense_rows(obj) + [('Payment Method', obj.payment_method),
                                       ('Reference', obj.payment_reference or '-')],
            body='Amount should reflect in 2-3 business days.')

    if event_type == NotificationEvent.TICKET_RAISED:
        rows = _ticket_rows(obj) + [('Employee', obj.employee.name if obj.employee else ''),
                                    ('Category', obj.category.replace('_', ' ').upper())]
        return f"New Ticket - {obj.ticket_id}", dict(
            heading='New Support Ticket', color=BLUE, rows=rows, quote=obj.description)

    if event_type == NotificationEvent.TICKET_REPLIED:
        return f"Reply on Ticket {obj.ticket_id}", dict(
            heading='New Reply on Your Ticket', color=BLUE,
            rows=_ticket_rows(obj), quote=extra.get('message'))

    if event_type == NotificationEvent.TICKET_RESOLVED:
        return f"Ticket Resolved - {obj.ticket_id}", dict(
            heading='Your Ticket Has Been Resolved', color=GREEN,
            rows=_ticket_rows(obj) + [('Status', 'RESOLVED')],
            body='If you still face issues, please raise a new ticket.')

    if event_type == NotificationEvent.PASSWORD_RESET:
        return 'Password Reset Request', dict(
            heading='Password Reset Request', color=BLUE, greeting=f"Hi {obj.name},",
            body="If you didn't request this, please ignore this email.")

    if event_type == NotificationEvent.PASSWORD_CHANGED:
        return 'Password Changed Successfully', dict(
            heading='Password Changed Successfully', color=GREEN, greeting=f"Hi {obj.name},",
            rows=[('Date', datetime.utcnow().strftime('%d %b %Y %H:%M UTC'))],
            body="If you didn't make this change, please contact support immediately.")

    raise ValueError(f"Unknown notification event: {event_type}")


def _reference(obj):
    if isinstance(obj, Expense):
        return obj.expense_id
    if isinstance(obj, Ticket):
        return obj.ticket_id
    return None


class NotificationDispatcher:

    def __init__(self, directory):
        self.directory = directory

    def notify(self, event_type, obj, recipient, **extra):
        """Fire-and-forget. Returns {'success': bool, 'error': str|None}."""
        if not recipient:
            logger.warning("No recipient for %s notification (%s)", event_type, _reference(obj))
            return {'success': False, 'error': 'No recipient'}

        subject = None
        try:
            subject, context = build_message(event_type, obj, extra)
            body_html = render_template(
                'email/notification.html',
                sender_name=current_app.config.get('MAIL_SENDER_NAME'),
                current_year=datetime.now().year,
                **context)
            send_async_email.delay(subject, recipient, body_html, is_html=True)
            result = {'success': True, 'error': None}
            logger.info("Queued %s notification for %s", event_type, recipient)
        except Exception as e:
            logger.error("Notification %s to %s failed (non-critical): %s", event_type, recipient, e)
            result = {'success': False, 'error': str(e)}

        self._record(event_type, obj, recipient, subject, result)
        return result

    def notify_all(self, event_type, obj, recipients, **extra):
        return [self.notify(event_type, obj, r, **extra) for r in recipients]

    # --- Convenience routing (recipients come from the role directory) ---

    def expense_submitted(self, expense):
        level = expense.current_approval_level
        if expense.state.is_pending:
            recipients = self.directory.approver_emails(level)
        else:
            recipients = self.directory.admin_emails()
        return self.notify_all(NotificationEvent.SUBMITTED, expense, recipients)

    def ticket_raised(self, ticket):
        return self.notify_all(NotificationEvent.TICKET_RAISED, ticket, self.directory.admin_emails())

    def _record(self, event_type, obj, recipient, subject, result):
        try:
            db.session.add(NotificationLog(
                event_type=event_type,
                recipient=recipient,
                subject=subject,
                reference=_reference(obj),
                success=result['success'],
                error=result['error'],
            ))
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to record notification log: %s", e)


def get_notifier():
    """The dispatcher registered on the current app by create_app."""
    return current_app.extensions['notifier']
