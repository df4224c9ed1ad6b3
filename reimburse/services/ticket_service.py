import logging
from datetime import datetime
from reimburse.constants import Role, TicketCategory, TicketStatus, TicketPriority, NotificationEvent
from reimburse.exceptions import NotFoundError, ForbiddenError, ValidationError
from reimburse.extensions import db
from reimburse.models import Ticket, TicketReply
from reimburse.utils import format_public_id
from reimburse.services.notification_service import get_notifier

logger = logging.getLogger(__name__)


class TicketService:

    @staticmethod
    def create_ticket(data, actor):
        subject = (data.get('subject') or '').strip()
        description = (data.get('description') or '').strip()
        category = data.get('category')
        priority = data.get('priority') or TicketPriority.MEDIUM

        if not subject or not description:
            raise ValidationError("Subject and description are required")
        if category not in TicketCategory.ALL:
            raise ValidationError("Invalid ticket category", allowed=list(TicketCategory.ALL))
        if priority not in TicketPriority.ALL:
            raise ValidationError("Invalid ticket priority", allowed=list(TicketPriority.ALL))

        ticket = Ticket(
            employee_id=actor.id,
            expense_id=(data.get('expense_id') or '').strip() or None,
            subject=subject,
            category=category,
            description=description,
            priority=priority,
            status=TicketStatus.OPEN,
        )
        db.session.add(ticket)
        db.session.flush()
        ticket.ticket_id = format_public_id('TKT', ticket.id, 3)
        db.session.commit()
        logger.info("Ticket %s raised by user %s", ticket.ticket_id, actor.id)

        get_notifier().ticket_raised(ticket)
        return ticket

    @staticmethod
    def get_my_tickets(actor):
        return Ticket.query.filter_by(employee_id=actor.id) \
            .order_by(Ticket.created_at.desc(), Ticket.id.desc()).all()

    @staticmethod
    def get_all_tickets(status=None):
        query = Ticket.query
        if status:
            query = query.filter_by(status=status)
        return query.order_by(Ticket.created_at.desc(), Ticket.id.desc()).all()

    @staticmethod
    def get_ticket(ticket_id, actor):
        ticket = Ticket.query.filter_by(ticket_id=ticket_id).first()
        if not ticket:
            raise NotFoundError("Ticket not found", ticket_id=ticket_id)
        if actor.role != Role.ADMIN and ticket.employee_id != actor.id:
            raise ForbiddenError("You cannot view this ticket")
        return ticket

    @staticmethod
    def add_reply(ticket_id, message, actor):
        message = (message or '').strip()
        if not message:
            raise ValidationError("Reply cannot be empty")

        ticket = TicketService.get_ticket(ticket_id, actor)
        ticket.replies.append(TicketReply(user_id=actor.id, message=message))
        if ticket.status == TicketStatus.OPEN:
            ticket.status = TicketStatus.IN_PROGRESS
        db.session.commit()

        if actor.role == Role.ADMIN and ticket.employee:
            get_notifier().notify(NotificationEvent.TICKET_REPLIED, ticket, ticket.employee.email, message=message)
        return ticket

    @staticmethod
    def update_status(ticket_id, status, actor):
        if actor.role != Role.ADMIN:
            raise ForbiddenError("Only admins can change ticket status")
        if status not in TicketStatus.ALL:
            raise ValidationError("Invalid ticket status", allowed=list(TicketStatus.ALL))

        ticket = TicketService.get_ticket(ticket_id, actor)
        previous = ticket.status
        ticket.status = status
        if status in (TicketStatus.RESOLVED, TicketStatus.CLOSED):
            ticket.resolved_by_id = actor.id
            ticket.resolved_at = datetime.utcnow()
        db.session.commit()
        logger.info("Ticket %s: %s -> %s by user %s", ticket.ticket_id, previous, status, actor.id)

        if status == TicketStatus.RESOLVED and previous != TicketStatus.RESOLVED and ticket.employee:
            get_notifier().notify(NotificationEvent.TICKET_RESOLVED, ticket, ticket.employee.email)
        return ticket
