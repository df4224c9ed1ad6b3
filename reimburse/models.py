from datetime import datetime
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from reimburse.extensions import db
from reimburse.constants import Role, StepStatus, TicketStatus, TicketPriority
from reimburse.states import WorkflowState


def _iso(value):
    return value.isoformat() if value else None


class User(UserMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256))
    role = db.Column(db.String(20), nullable=False, default=Role.EMPLOYEE)
    department = db.Column(db.String(50))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'role': self.role,
            'department': self.department,
        }

    def summary(self):
        return {'id': self.id, 'name': self.name, 'email': self.email}


class Category(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.String(255), default='')
    budget_limit = db.Column(db.Float, default=0)
    require_receipt = db.Column(db.Boolean, default=True)
    per_day_limit = db.Column(db.Float)
    approval_threshold = db.Column(db.Float, default=5000)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'budget_limit': self.budget_limit,
            'require_receipt': self.require_receipt,
            'per_day_limit': self.per_day_limit,
            'approval_threshold': self.approval_threshold,
        }


class Policy(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    policy_id = db.Column(db.String(10), unique=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=False)
    # NULL category means the policy applies to every category
    category_id = db.Column(db.Integer, db.ForeignKey('category.id'))

    # Rules
    max_amount = db.Column(db.Float)
    requires_receipt = db.Column(db.Boolean, default=True)
    requires_approval_above = db.Column(db.Float, default=5000)
    allowed_vendors = db.Column(db.JSON, default=list)
    blocked_vendors = db.Column(db.JSON, default=list)
    max_per_day = db.Column(db.Float)
    max_per_month = db.Column(db.Float)
    requires_manager_approval = db.Column(db.Boolean, default=True)

    is_active = db.Column(db.Boolean, default=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey('user.id'))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    category = db.relationship('Category')
    created_by = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'policy_id': self.policy_id,
            'name': self.name,
            'description': self.description,
            'category': self.category.to_dict() if self.category else None,
            'rules': {
                'max_amount': self.max_amount,
                'requires_receipt': self.requires_receipt,
                'requires_approval_above': self.requires_approval_above,
                'allowed_vendors': self.allowed_vendors or [],
                'blocked_vendors': self.blocked_vendors or [],
                'max_per_day': self.max_per_day,
                'max_per_month': self.max_per_month,
                'requires_manager_approval': self.requires_manager_approval,
            },
            'is_active': self.is_active,
            'created_by': self.created_by.name if self.created_by else None,
        }


class Expense(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    expense_id = db.Column(db.String(20), unique=True, index=True)
    employee_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey('category.id'), nullable=False)
    amount = db.Column(db.Float, nullable=False)
    date = db.Column(db.Date, nullable=False)
    vendor = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    receipt = db.Column(db.String(200))

    # Workflow (written only through apply_state)
    status = db.Column(db.String(20), nullable=False, index=True)
    current_approval_level = db.Column(db.String(20), index=True)

    # Rejection
    rejected_by_id = db.Column(db.Integer, db.ForeignKey('user.id'))
    rejected_at = db.Column(db.DateTime)
    rejection_reason = db.Column(db.Text)

    # Payment
    paid_at = db.Column(db.DateTime)
    payment_method = db.Column(db.String(50))
    payment_reference = db.Column(db.String(100))
    paid_by_id = db.Column(db.Integer, db.ForeignKey('user.id'))

    # Compliance snapshot taken at submission
    policy_violations = db.Column(db.JSON, default=list)

    version = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Concurrent updates of the same row fail with StaleDataError at flush
    __mapper_args__ = {'version_id_col': version}

    employee = db.relationship('User', foreign_keys=[employee_id])
    category = db.relationship('Category')
    rejected_by = db.relationship('User', foreign_keys=[rejected_by_id])
    paid_by = db.relationship('User', foreign_keys=[paid_by_id])
    approval_workflow = db.relationship(
        'ApprovalStep', back_populates='expense',
        order_by='ApprovalStep.position', cascade='all, delete-orphan')
    comments = db.relationship(
        'ExpenseComment', back_populates='expense',
        order_by='ExpenseComment.created_at', cascade='all, delete-orphan')

    @property
    def state(self):
        return WorkflowState.from_columns(self.status, self.current_approval_level)

    def apply_state(self, state):
        """Writes status and current level together from one WorkflowState."""
        self.status = state.status.value
        self.current_approval_level = state.level.value if state.level else None

    def active_step(self):
        """The step at the current level that is still pending, if any."""
        for step in self.approval_workflow:
            if step.level == self.current_approval_level and step.status == StepStatus.PENDING:
                return step
        return None

    def next_pending_step(self):
        return next((s for s in self.approval_workflow if s.status == StepStatus.PENDING), None)

    def to_dict(self, include_workflow=True):
        data = {
            'id': self.id,
            'expense_id': self.expense_id,
            'employee': self.employee.summary() if self.employee else None,
            'category': {'id': self.category.id, 'name': self.category.name} if self.category else None,
            'amount': self.amount,
            'date': _iso(self.date),
            'vendor': self.vendor,
            'description': self.description,
            'receipt': self.receipt,
            'status': self.status,
            'current_approval_level': self.current_approval_level,
            'rejected_by': None,
            'paid_at': _iso(self.paid_at),
            'payment_method': self.payment_method,
            'payment_reference': self.payment_reference,
            'paid_by': self.paid_by.summary() if self.paid_by else None,
            'policy_violations': self.policy_violations or [],
            'version': self.version,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }
        if self.rejected_by_id:
            data['rejected_by'] = {
                'user': self.rejected_by.summary() if self.rejected_by else None,
                'rejected_at': _iso(self.rejected_at),
                'reason': self.rejection_reason,
            }
        if include_workflow:
            data['approval_workflow'] = [s.to_dict() for s in self.approval_workflow]
            data['comments'] = [c.to_dict() for c in self.comments]
        return data


class ApprovalStep(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    expense_pk = db.Column(db.Integer, db.ForeignKey('expense.id'), nullable=False)
    position = db.Column(db.Integer, nullable=False)
    level = db.Column(db.String(20), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=StepStatus.PENDING)
    approver_id = db.Column(db.Integer, db.ForeignKey('user.id'))
    comments = db.Column(db.Text)
    action_date = db.Column(db.DateTime)

    expense = db.relationship('Expense', back_populates='approval_workflow')
    approver = db.relationship('User')

    __table_args__ = (db.UniqueConstraint('expense_pk', 'position'),)

    def to_dict(self):
        return {
            'level': self.level,
            'status': self.status,
            'approver': self.approver.to_dict() if self.approver else None,
            'comments': self.comments,
            'action_date': _iso(self.action_date),
        }


class ExpenseComment(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    expense_pk = db.Column(db.Integer, db.ForeignKey('expense.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'))
    message = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    expense = db.relationship('Expense', back_populates='comments')
    user = db.relationship('User')

    def to_dict(self):
        return {
            'user': self.user.summary() if self.user else None,
            'message': self.message,
            'created_at': _iso(self.created_at),
        }


class Ticket(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    ticket_id = db.Column(db.String(10), unique=True)
    employee_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    # Free-text reference to an EXPnnnn id, not a foreign key
    expense_id = db.Column(db.String(20))
    subject = db.Column(db.String(200), nullable=False)
    category = db.Column(db.String(30), nullable=False)
    description = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=TicketStatus.OPEN)
    priority = db.Column(db.String(10), nullable=False, default=TicketPriority.MEDIUM)
    resolved_by_id = db.Column(db.Integer, db.ForeignKey('user.id'))
    resolved_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    employee = db.relationship('User', foreign_keys=[employee_id])
    resolved_by = db.relationship('User', foreign_keys=[resolved_by_id])
    replies = db.relationship(
        'TicketReply', back_populates='ticket',
        order_by='TicketReply.created_at', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'ticket_id': self.ticket_id,
            'employee': self.employee.summary() if self.employee else None,
            'expense_id': self.expense_id,
            'subject': self.subject,
            'category': self.category,
            'description': self.description,
            'status': self.status,
            'priority': self.priority,
            'replies': [r.to_dict() for r in self.replies],
            'resolved_by': self.resolved_by.summary() if self.resolved_by else None,
            'resolved_at': _iso(self.resolved_at),
            'created_at': _iso(self.created_at),
        }


class TicketReply(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    ticket_pk = db.Column(db.Integer, db.ForeignKey('ticket.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'))
    message = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    ticket = db.relationship('Ticket', back_populates='replies')
    user = db.relationship('User')

    def to_dict(self):
        return {
            'user': {'id': self.user.id, 'name': self.user.name, 'role': self.user.role} if self.user else None,
            'message': self.message,
            'created_at': _iso(self.created_at),
        }


class NotificationLog(db.Model):
    """Outbound mail audit, one row per dispatch attempt."""
    id = db.Column(db.Integer, primary_key=True)
    event_type = db.Column(db.String(30), nullable=False)
    recipient = db.Column(db.String(120))
    subject = db.Column(db.String(200))
    reference = db.Column(db.String(20))
    success = db.Column(db.Boolean, default=False)
    error = db.Column(db.Text)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow)
