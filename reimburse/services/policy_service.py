"""
Spending policy evaluation and policy management.

The compliance check is advisory: it reports violations and warnings but
never blocks a submission and never writes anything.
"""

import calendar
import logging
from datetime import date as date_type
from sqlalchemy import func, or_
from reimburse.exceptions import NotFoundError, ValidationError
from reimburse.extensions import db
from reimburse.models import Policy, Category, Expense
from reimburse.utils import format_public_id

logger = logging.getLogger(__name__)

HIGH = 'high'
MEDIUM = 'medium'


def _money(amount):
    return f"₹{amount:,.2f}"


def _vendor_matches(vendor, terms):
    vendor = (vendor or '').lower()
    return any(term and term.lower() in vendor for term in terms)


def _finding(policy, rule, message, severity):
    return {
        'policy_id': policy.policy_id,
        'policy_name': policy.name,
        'rule': rule,
        'message': message,
        'severity': severity,
    }


def evaluate_policy(policy, amount, vendor, day_total=0.0, month_total=0.0):
    """
    Checks one policy. day_total / month_total are the employee's existing
    same-category spend for the expense's calendar day and month.
    Returns (violations, warnings).
    """
    violations, warnings = [], []
    blocked = policy.blocked_vendors or []
    allowed = policy.allowed_vendors or []

    # A zero or empty limit means "no limit"
    if policy.max_amount and amount > policy.max_amount:
        violations.append(_finding(
            policy, 'maxAmount',
            f"Amount {_money(amount)} exceeds policy limit of {_money(policy.max_amount)}", HIGH))

    if blocked and _vendor_matches(vendor, blocked):
        violations.append(_finding(policy, 'blockedVendor', f'Vendor "{vendor}" is in the blocked list', HIGH))

    if allowed and not _vendor_matches(vendor, allowed):
        warnings.append(_finding(
            policy, 'allowedVendors', f'Vendor "{vendor}" is not in the approved vendor list', MEDIUM))

    if policy.max_per_day:
        new_total = day_total + amount
        if new_total > policy.max_per_day:
            violations.append(_finding(
                policy, 'maxPerDay',
                f"Daily limit exceeded: {_money(new_total)} (limit: {_money(policy.max_per_day)})", HIGH))

    if policy.max_per_month:
        new_total = month_total + amount
        if new_total > policy.max_per_month:
            violations.append(_finding(
                policy, 'maxPerMonth',
                f"Monthly limit exceeded: {_money(new_total)} (limit: {_money(policy.max_per_month)})", HIGH))

    threshold = policy.requires_approval_above
    if policy.requires_manager_approval and threshold is not None and amount > threshold:
        warnings.append(_finding(
            policy, 'requiresManagerApproval',
            f"Amount exceeds {_money(threshold)}. Manager approval required.", MEDIUM))

    return violations, warnings


def build_report(violations, warnings):
    is_compliant = len(violations) == 0
    return {
        'is_compliant': is_compliant,
        'violations': violations,
        'warnings': warnings,
        'summary': {
            'total_violations': len(violations),
            'total_warnings': len(warnings),
            'status': 'approved' if is_compliant else 'needs_review',
        },
    }


def evaluate_policies(policies, amount, vendor, day_total=0.0, month_total=0.0):
    violations, warnings = [], []
    for policy in policies:
        v, w = evaluate_policy(policy, amount, vendor, day_total, month_total)
        violations.extend(v)
        warnings.extend(w)
    return build_report(violations, warnings)


def month_bounds(day):
    last = calendar.monthrange(day.year, day.month)[1]
    return date_type(day.year, day.month, 1), date_type(day.year, day.month, last)


def spend_total(employee_id, category_id, start, end):
    """Sum of the employee's same-category expenses dated start..end inclusive."""
    total = db.session.query(func.coalesce(func.sum(Expense.amount), 0.0)).filter(
        Expense.employee_id == employee_id,
        Expense.category_id == category_id,
        Expense.date >= start,
        Expense.date <= end,
    ).scalar()
    return float(total or 0.0)


def active_policies_for(category_id):
    return Policy.query.filter(
        Policy.is_active.is_(True),
        or_(Policy.category_id == category_id, Policy.category_id.is_(None))
    ).order_by(Policy.id).all()


def check_compliance(category_id, amount, vendor, day, actor):
    """Advisory compliance report for a proposed expense. Read-only."""
    policies = active_policies_for(category_id)

    day_total = month_total = 0.0
    if any(p.max_per_day for p in policies):
        day_total = spend_total(actor.id, category_id, day, day)
    if any(p.max_per_month for p in policies):
        month_total = spend_total(actor.id, category_id, *month_bounds(day))

    report = evaluate_policies(policies, amount, vendor, day_total, month_total)
    if not report['is_compliant']:
        logger.info("Compliance check for user %s: %d violation(s)", actor.id, len(report['violations']))
    return report


# --- POLICY MANAGEMENT ---

RULE_FIELDS = ('max_amount', 'requires_receipt', 'requires_approval_above', 'allowed_vendors',
               'blocked_vendors', 'max_per_day', 'max_per_month', 'requires_manager_approval')
NUMERIC_RULES = ('max_amount', 'requires_approval_above', 'max_per_day', 'max_per_month')
LIST_RULES = ('allowed_vendors', 'blocked_vendors')


def _clean_rules(data):
    # Rules may arrive nested under "rules" or flat on the payload
    source = dict(data.get('rules') or {})
    for key in RULE_FIELDS:
        if key in data and key not in source:
            source[key] = data[key]

    rules = {}
    for key, value in source.items():
        if key not in RULE_FIELDS:
            continue
        if key in NUMERIC_RULES:
            if value in (None, ''):
                value = None
            else:
                try:
                    value = float(value)
                except (TypeError, ValueError):
                    raise ValidationError(f"{key} must be a number")
                if value < 0:
                    raise ValidationError(f"{key} cannot be negative")
        elif key in LIST_RULES:
            if isinstance(value, str):
                value = [v for v in value.split(',')]
            value = [str(v).strip() for v in (value or []) if str(v).strip()]
        else:
            value = bool(value)
        rules[key] = value
    return rules


def _resolve_category(category_id):
    if category_id in (None, ''):
        return None
    category = db.session.get(Category, category_id)
    if not category:
        raise ValidationError("Category not found")
    return category


class PolicyService:

    @staticmethod
    def get_policy(policy_pk):
        policy = db.session.get(Policy, policy_pk)
        if not policy:
            raise NotFoundError("Policy not found")
        return policy

    @staticmethod
    def list_policies(active_only=False):
        query = Policy.query
        if active_only:
            query = query.filter(Policy.is_active.is_(True))
        return query.order_by(Policy.created_at.desc(), Policy.id.desc()).all()

    @staticmethod
    def create_policy(data, actor):
        name = (data.get('name') or '').strip()
        description = (data.get('description') or '').strip()
        if not name or not description:
            raise ValidationError("Policy name and description are mandatory fields.")

        policy = Policy(
            name=name,
            description=description,
            category=_resolve_category(data.get('category')),
            is_active=bool(data.get('is_active', True)),
            created_by_id=actor.id,
            allowed_vendors=[],
            blocked_vendors=[],
        )
        for key, value in _clean_rules(data).items():
            setattr(policy, key, value)

        db.session.add(policy)
        db.session.flush()
        policy.policy_id = format_public_id('POL', policy.id, 3)
        db.session.commit()
        logger.info("Policy %s created by user %s", policy.policy_id, actor.id)
        return policy

    @staticmethod
    def update_policy(policy_pk, data):
        policy = PolicyService.get_policy(policy_pk)
        if 'name' in data:
            if not (data['name'] or '').strip():
                raise ValidationError("Policy name cannot be empty.")
            policy.name = data['name'].strip()
        if 'description' in data:
            policy.description = (data['description'] or '').strip()
        if 'category' in data:
            policy.category = _resolve_category(data['category'])
        if 'is_active' in data:
            policy.is_active = bool(data['is_active'])
        for key, value in _clean_rules(data).items():
            setattr(policy, key, value)
        db.session.commit()
        return policy

    @staticmethod
    def delete_policy(policy_pk):
        policy = PolicyService.get_policy(policy_pk)
        db.session.delete(policy)
        db.session.commit()
        return True
