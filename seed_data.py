"""Seeds demo users, categories and policies. Safe to run more than once."""
from reimburse import create_app
from reimburse.constants import Role
from reimburse.extensions import db
from reimburse.models import User, Category, Policy
from reimburse.utils import format_public_id

app = create_app()

USERS = [
    ('Admin User', 'admin@company.com', Role.ADMIN, 'Administration'),
    ('Finance User', 'finance@company.com', Role.FINANCE, 'Finance'),
    ('Manager User', 'manager@company.com', Role.MANAGER, 'Operations'),
    ('Employee User', 'employee@company.com', Role.EMPLOYEE, 'Operations'),
]

CATEGORIES = [
    # name, description, budget_limit, per_day_limit
    ('Travel', 'Flights, trains and cabs', 100000, None),
    ('Food', 'Meals during business travel', 20000, 1000),
    ('Accommodation', 'Hotel stays', 80000, 6000),
    ('Office Supplies', 'Stationery and small equipment', 15000, None),
]

POLICIES = [
    # name, category, rules
    ('Meal Policy', 'Food', {'max_amount': 2000, 'max_per_day': 1000}),
    ('Hotel Policy', 'Accommodation', {'max_amount': 8000, 'max_per_month': 60000}),
    ('Travel Vendors', 'Travel', {'allowed_vendors': ['IRCTC', 'Indigo', 'Uber', 'Ola']}),
    ('General Spend', None, {'blocked_vendors': ['Casino', 'Liquor'], 'requires_approval_above': 5000}),
]


def seed():
    for name, email, role, dept in USERS:
        if not User.query.filter_by(email=email).first():
            user = User(name=name, email=email, role=role, department=dept)
            user.set_password('pass123')
            db.session.add(user)
            print(f"Added user {email}")

    for name, desc, budget, per_day in CATEGORIES:
        if not Category.query.filter_by(name=name).first():
            db.session.add(Category(name=name, description=desc, budget_limit=budget, per_day_limit=per_day))
            print(f"Added category {name}")
    db.session.commit()

    admin = User.query.filter_by(role=Role.ADMIN).first()
    for name, category_name, rules in POLICIES:
        if Policy.query.filter_by(name=name).first():
            continue
        category = Category.query.filter_by(name=category_name).first() if category_name else None
        fields = {'allowed_vendors': [], 'blocked_vendors': [], **rules}
        policy = Policy(name=name, description=f"{name} rules", category=category,
                        created_by_id=admin.id, **fields)
        db.session.add(policy)
        db.session.flush()
        policy.policy_id = format_public_id('POL', policy.id, 3)
        print(f"Added policy {policy.policy_id} {name}")
    db.session.commit()


if __name__ == '__main__':
    with app.app_context():
        seed()
    print("Seeding complete.")
