class Role:
    """User roles for permissions."""
    EMPLOYEE = 'employee'
    MANAGER = 'manager'
    FINANCE = 'finance'
    ADMIN = 'admin'

    ALL = (EMPLOYEE, MANAGER, FINANCE, ADMIN)


class StepStatus:
    """Status of a single approval step."""
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'


class TicketCategory:
    REJECTION_DISPUTE = 'rejection_dispute'
    PAYMENT_NOT_RECEIVED = 'payment_not_received'
    GENERAL_QUERY = 'general_query'
    OTHER = 'other'

    ALL = (REJECTION_DISPUTE, PAYMENT_NOT_RECEIVED, GENERAL_QUERY, OTHER)


class TicketStatus:
    OPEN = 'open'
    IN_PROGRESS = 'in_progress'
    RESOLVED = 'resolved'
    CLOSED = 'closed'

    ALL = (OPEN, IN_PROGRESS, RESOLVED, CLOSED)


class TicketPriority:
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'
    URGENT = 'urgent'

    ALL = (LOW, MEDIUM, HIGH, URGENT)


class NotificationEvent:
    """Outbound notification event types."""
    SUBMITTED = 'submitted'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    PAID = 'paid'
    TICKET_RAISED = 'ticket_raised'
    TICKET_REPLIED = 'ticket_replied'
    TICKET_RESOLVED = 'ticket_resolved'
    PASSWORD_RESET = 'password_reset'
    PASSWORD_CHANGED = 'password_changed'
