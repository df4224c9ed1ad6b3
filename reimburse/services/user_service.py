import logging
from sqlalchemy import or_
from reimburse.constants import Role, NotificationEvent
from reimburse.exceptions import NotFoundError, ForbiddenError, ValidationError
from reimburse.extensions import db
from reimburse.models import User, Expense, ApprovalStep, ExpenseComment, Policy, Ticket, TicketReply
from reimburse.services.notification_service import get_notifier

logger = logging.getLogger(__name__)

DEFAULT_PASSWORD = 'pass123'
MIN_PASSWORD_LENGTH = 6


class UserService:
    @staticmethod
    def authenticate(email, password):
        user = User.query.filter_by(email=(email or '').strip().lower()).first()
        if not user or not user.check_password(password):
            raise ValidationError("Invalid email or password")
        return user

    @staticmethod
    def list_users():
        return User.query.order_by(User.name).all()

    @staticmethod
    def create_or_update_user(data):
        """
        Creates a new user or updates an existing one.
        Expects data dictionary with: id, name, email, department, role, password.
        """
        user_id = data.get('id')
        name = (data.get('name') or '').strip()
        email = (data.get('email') or '').strip().lower()
        department = data.get('department')
        role = data.get('role') or Role.EMPLOYEE

        if not name or not email:
            raise ValidationError("User Name and Email are mandatory fields.")
        if role not in Role.ALL:
            raise ValidationError("Invalid role", allowed=list(Role.ALL))

        if user_id:
            user = db.session.get(User, user_id)
            if not user:
                raise NotFoundError("User not found.")
            clash = User.query.filter(User.email == email, User.id != user.id).first()
            if clash:
                raise ValidationError("User with this email already exists.")
            user.name = name
            user.email = email
            user.department = department
            user.role = role
        else:
            if User.query.filter_by(email=email).first():
                raise ValidationError("User with this email already exists.")
            user = User(name=name, email=email, department=department, role=role)
            user.set_password(data.get('password') or DEFAULT_PASSWORD)
            db.session.add(user)

        db.session.commit()
        return user

    @staticmethod
    def delete_user(user_id):
        """Deletes a user, protecting admins."""
        user = db.session.get(User, user_id)
        if not user:
            raise NotFoundError("User not found.")
        if user.role == Role.ADMIN:
            raise ForbiddenError("Cannot delete an Administrator.")
        if UserService.has_history(user):
            raise ValidationError("User has expenses, tickets or policies and cannot be deleted")
        db.session.delete(user)
        db.session.commit()
        return True

    @staticmethod
    def has_history(user):
        """True when any claim, approval, ticket or policy row points at the user."""
        uid = user.id
        return any(query.first() is not None for query in (
            Expense.query.filter(or_(Expense.employee_id == uid, Expense.rejected_by_id == uid,
                                     Expense.paid_by_id == uid)),
            ApprovalStep.query.filter_by(approver_id=uid),
            ExpenseComment.query.filter_by(user_id=uid),
            Ticket.query.filter(or_(Ticket.employee_id == uid, Ticket.resolved_by_id == uid)),
            TicketReply.query.filter_by(user_id=uid),
            Policy.query.filter_by(created_by_id=uid),
        ))

    @staticmethod
    def change_password(user, current_password, new_password):
        if not user.check_password(current_password):
            raise ValidationError("Current password is incorrect")
        if not new_password or len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        user.set_password(new_password)
        db.session.commit()
        logger.info("Password changed for user %s", user.id)

        get_notifier().notify(NotificationEvent.PASSWORD_CHANGED, user, user.email)
        return True
