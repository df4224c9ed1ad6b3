from sqlalchemy import func
from reimburse.exceptions import NotFoundError, ValidationError
from reimburse.extensions import db
from reimburse.models import User, Category, Policy, Expense, Ticket
from reimburse.constants import TicketStatus
from reimburse.states import ExpenseStatus, STEP_LEVELS


def get_dashboard_stats():
    """Calculates all statistics for the admin dashboard."""
    by_status = dict(
        db.session.query(Expense.status, func.count(Expense.id)).group_by(Expense.status).all()
    )
    pending = Expense.query.filter(Expense.status.like('pending%'))
    return {
        'users': User.query.count(),
        'categories': Category.query.count(),
        'policies': Policy.query.filter_by(is_active=True).count(),
        'total': Expense.query.count(),
        'by_status': {s.value: by_status.get(s.value, 0) for s in ExpenseStatus},
        'pending': pending.count(),
        'pending_by_level': {
            level.value: pending.filter(Expense.current_approval_level == level.value).count()
            for level in STEP_LEVELS
        },
        'paid_amount': float(
            db.session.query(func.coalesce(func.sum(Expense.amount), 0.0))
            .filter(Expense.status == ExpenseStatus.PAID.value).scalar() or 0
        ),
        'open_tickets': Ticket.query.filter(
            Ticket.status.in_([TicketStatus.OPEN, TicketStatus.IN_PROGRESS])).count(),
        'req_by_category': {
            name: count for name, count in db.session.query(Category.name, func.count(Expense.id))
            .join(Expense, Expense.category_id == Category.id).group_by(Category.name).all()
        },
    }


# --- CATEGORIES ---

CATEGORY_NUMBERS = ('budget_limit', 'per_day_limit', 'approval_threshold')


def _category_fields(data):
    fields = {}
    if 'name' in data:
        name = (data.get('name') or '').strip()
        if not name:
            raise ValidationError("Category name is required")
        fields['name'] = name
    if 'description' in data:
        fields['description'] = (data.get('description') or '').strip()
    if 'require_receipt' in data:
        fields['require_receipt'] = bool(data['require_receipt'])
    for key in CATEGORY_NUMBERS:
        if key not in data:
            continue
        value = data[key]
        if value in (None, ''):
            fields[key] = None
            continue
        try:
            fields[key] = float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{key} must be a number")
    return fields


def list_categories():
    return Category.query.order_by(Category.name).all()


def get_category(category_id):
    category = db.session.get(Category, category_id)
    if not category:
        raise NotFoundError("Category not found")
    return category


def create_category(data):
    fields = _category_fields(data)
    if 'name' not in fields:
        raise ValidationError("Category name is required")
    if Category.query.filter_by(name=fields['name']).first():
        raise ValidationError("Category already exists")
    category = Category(**fields)
    db.session.add(category)
    db.session.commit()
    return category


def update_category(category_id, data):
    category = get_category(category_id)
    fields = _category_fields(data)
    if 'name' in fields:
        clash = Category.query.filter(Category.name == fields['name'], Category.id != category.id).first()
        if clash:
            raise ValidationError("Category already exists")
    for key, value in fields.items():
        setattr(category, key, value)
    db.session.commit()
    return category


def delete_category(category_id):
    category = get_category(category_id)
    if Expense.query.filter_by(category_id=category.id).first():
        raise ValidationError("Category has expenses and cannot be deleted")
    Policy.query.filter_by(category_id=category.id).delete()
    db.session.delete(category)
    db.session.commit()
    return True
