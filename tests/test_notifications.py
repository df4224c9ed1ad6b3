from conftest import EXPENSE_DATE, make_user
from reimburse.constants import Role, NotificationEvent
from reimburse.extensions import mail
from reimburse.models import NotificationLog
from reimburse.services.expense_service import ExpenseService
from reimburse.services.notification_service import get_notifier, build_message
from reimburse.services.user_service import UserService
from reimburse.services.workflow_service import WorkflowService
from reimburse.services.directory import RoleDirectory
from reimburse.tasks import send_async_email


def submit(users, category, amount):
    expense, _ = ExpenseService.submit_expense(
        category.id, amount, EXPENSE_DATE, 'Indigo', 'Flight', users[Role.EMPLOYEE])
    return expense


def test_submission_goes_to_first_level_approvers(users, category, mailbox):
    expense = submit(users, category, 30000)
    subject = f"New Expense - {expense.expense_id}"

    assert [m['subject'] for m in mailbox.to('manager@acme.com')] == [subject]
    assert mailbox.to('finance@acme.com') == []
    assert mailbox.to('employee@acme.com') == []


def test_auto_approved_submission_tells_admins_and_employee(users, category, mailbox):
    expense = submit(users, category, 900)

    assert [m['subject'] for m in mailbox.to('admin@acme.com')] == [f"New Expense - {expense.expense_id}"]
    assert [m['subject'] for m in mailbox.to('employee@acme.com')] == [f"Expense Approved - {expense.expense_id}"]


def test_final_approval_and_rejection_notify_employee(users, category, mailbox):
    approved = submit(users, category, 8000)
    rejected = submit(users, category, 8000)
    WorkflowService.approve_at_level(approved.expense_id, users[Role.MANAGER])
    WorkflowService.reject_at_level(rejected.expense_id, users[Role.MANAGER], 'Missing receipt')

    to_employee = mailbox.to('employee@acme.com')
    assert [m['subject'] for m in to_employee] == [
        f"Expense Approved - {approved.expense_id}",
        f"Expense Rejected - {rejected.expense_id}",
    ]
    assert 'Missing receipt' in to_employee[1]['body']


def test_intermediate_approval_is_silent(users, category, mailbox):
    expense = submit(users, category, 30000)
    mailbox.sent.clear()
    WorkflowService.approve_at_level(expense.expense_id, users[Role.MANAGER])
    assert mailbox.sent == []


def test_failed_delivery_never_breaks_the_transition(users, category, mailbox):
    mailbox.fail = True
    expense = submit(users, category, 8000)
    expense, _ = WorkflowService.approve_at_level(expense.expense_id, users[Role.MANAGER])

    assert expense.status == 'approved'
    failures = NotificationLog.query.filter_by(success=False).all()
    assert {log.event_type for log in failures} == {NotificationEvent.SUBMITTED, NotificationEvent.APPROVED}
    assert all('broker unreachable' in log.error for log in failures)


def test_every_attempt_is_logged(users, category):
    expense = submit(users, category, 30000)
    log = NotificationLog.query.one()
    assert log.event_type == NotificationEvent.SUBMITTED
    assert log.recipient == 'manager@acme.com'
    assert log.reference == expense.expense_id
    assert log.success is True
    assert log.error is None


def test_missing_recipient_reports_failure(users, category, mailbox):
    expense = submit(users, category, 30000)
    result = get_notifier().notify(NotificationEvent.PAID, expense, None)
    assert result == {'success': False, 'error': 'No recipient'}


def test_password_change_notifies_user(users, mailbox):
    UserService.change_password(users[Role.EMPLOYEE], 'secret123', 'new-secret')
    assert mailbox.subjects() == ['Password Changed Successfully']
    assert users[Role.EMPLOYEE].check_password('new-secret')


def test_directory_falls_back_to_admins(ctx):
    make_user(Role.ADMIN)
    directory = RoleDirectory()
    assert directory.approver_emails('finance') == ['admin@acme.com']
    assert directory.approver_emails(None) == ['admin@acme.com']

    make_user(Role.FINANCE)
    assert directory.approver_emails('finance') == ['finance@acme.com']


def test_every_event_has_a_message(users, category):
    expense = submit(users, category, 30000)
    for event in (NotificationEvent.SUBMITTED, NotificationEvent.APPROVED,
                  NotificationEvent.REJECTED, NotificationEvent.PAID):
        subject, context = build_message(event, expense, {'reason': 'x'})
        assert expense.expense_id in subject
        assert context['heading']


def test_account_events_render(users, mailbox):
    employee = users[Role.EMPLOYEE]
    for event in (NotificationEvent.PASSWORD_RESET, NotificationEvent.PASSWORD_CHANGED):
        assert get_notifier().notify(event, employee, employee.email)['success'] is True
    assert mailbox.subjects() == ['Password Reset Request', 'Password Changed Successfully']
    assert 'Hi Employee User,' in mailbox.sent[0]['body']


def test_mail_task_sends_through_flask_mail(ctx):
    ctx.extensions['mail'].default_sender = 'noreply@acme.com'
    with mail.record_messages() as outbox:
        result = send_async_email.run('Hello', 'employee@acme.com', '<p>Hi</p>')
    assert result == 'Email sent to employee@acme.com'
    assert outbox[0].recipients == ['employee@acme.com']
    assert outbox[0].html == '<p>Hi</p>'
