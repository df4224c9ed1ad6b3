import pytest

from conftest import make_user
from reimburse.constants import Role, TicketStatus
from reimburse.exceptions import ForbiddenError, ValidationError, NotFoundError
from reimburse.services.ticket_service import TicketService


def raise_ticket(user, **overrides):
    data = {
        'subject': 'Payment not received',
        'category': 'payment_not_received',
        'description': 'EXP0001 was approved last week',
        'expense_id': 'EXP0001',
    }
    data.update(overrides)
    return TicketService.create_ticket(data, user)


def test_create_notifies_admins(users, mailbox):
    ticket = raise_ticket(users[Role.EMPLOYEE])

    assert ticket.ticket_id == 'TKT001'
    assert ticket.status == TicketStatus.OPEN
    assert ticket.priority == 'medium'
    assert ticket.expense_id == 'EXP0001'
    assert [m['subject'] for m in mailbox.to('admin@acme.com')] == ['New Ticket - TKT001']


def test_invalid_category(users):
    with pytest.raises(ValidationError):
        raise_ticket(users[Role.EMPLOYEE], category='complaint')


def test_reply_moves_open_ticket_in_progress(users, mailbox):
    ticket = raise_ticket(users[Role.EMPLOYEE])
    mailbox.sent.clear()

    ticket = TicketService.add_reply(ticket.ticket_id, 'Any update?', users[Role.EMPLOYEE])
    assert ticket.status == TicketStatus.IN_PROGRESS
    assert mailbox.sent == []

    ticket = TicketService.add_reply(ticket.ticket_id, 'Processing today', users[Role.ADMIN])
    assert len(ticket.replies) == 2
    assert [m['subject'] for m in mailbox.to('employee@acme.com')] == ['Reply on Ticket TKT001']


def test_resolve_stamps_resolver_and_notifies(users, mailbox):
    ticket = raise_ticket(users[Role.EMPLOYEE])
    ticket = TicketService.update_status(ticket.ticket_id, TicketStatus.RESOLVED, users[Role.ADMIN])

    assert ticket.resolved_by_id == users[Role.ADMIN].id
    assert ticket.resolved_at is not None
    assert 'Ticket Resolved - TKT001' in [m['subject'] for m in mailbox.to('employee@acme.com')]

    mailbox.sent.clear()
    TicketService.update_status(ticket.ticket_id, TicketStatus.CLOSED, users[Role.ADMIN])
    assert mailbox.sent == []


def test_only_admin_changes_status(users):
    ticket = raise_ticket(users[Role.EMPLOYEE])
    with pytest.raises(ForbiddenError):
        TicketService.update_status(ticket.ticket_id, TicketStatus.CLOSED, users[Role.EMPLOYEE])


def test_tickets_are_private_to_owner_and_admin(users):
    ticket = raise_ticket(users[Role.EMPLOYEE])
    colleague = make_user(Role.EMPLOYEE, name='Colleague', email='colleague@acme.com')

    with pytest.raises(ForbiddenError):
        TicketService.get_ticket(ticket.ticket_id, colleague)
    assert TicketService.get_ticket(ticket.ticket_id, users[Role.ADMIN]) is ticket
    assert TicketService.get_my_tickets(colleague) == []
    with pytest.raises(NotFoundError):
        TicketService.get_ticket('TKT999', users[Role.ADMIN])
