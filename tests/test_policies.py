from datetime import date

import pytest

from conftest import EXPENSE_DATE, make_category, make_policy
from reimburse.constants import Role
from reimburse.exceptions import ValidationError, NotFoundError
from reimburse.models import Policy
from reimburse.services.expense_service import ExpenseService
from reimburse.services.policy_service import evaluate_policy, evaluate_policies, check_compliance, \
    month_bounds, PolicyService


def policy(**rules):
    fields = {'policy_id': 'POL001', 'name': 'Meals', 'allowed_vendors': [], 'blocked_vendors': [],
              'requires_manager_approval': False}
    fields.update(rules)
    return Policy(**fields)


def rules_of(findings):
    return [f['rule'] for f in findings]


class TestEvaluatePolicy:

    def test_max_amount(self):
        violations, _ = evaluate_policy(policy(max_amount=2000), 2500, 'Cafe')
        assert rules_of(violations) == ['maxAmount']
        assert violations[0]['severity'] == 'high'
        assert violations[0]['policy_id'] == 'POL001'
        assert '₹2,500.00' in violations[0]['message']

    def test_zero_max_amount_means_no_limit(self):
        violations, _ = evaluate_policy(policy(max_amount=0), 2500, 'Cafe')
        assert violations == []

    def test_blocked_vendor_is_case_insensitive_substring(self):
        violations, _ = evaluate_policy(policy(blocked_vendors=['casino']), 100, 'Grand CASINO Goa')
        assert rules_of(violations) == ['blockedVendor']

    def test_vendor_outside_allowed_list_is_a_warning(self):
        p = policy(allowed_vendors=['Uber', 'Ola'])
        violations, warnings = evaluate_policy(p, 100, 'Rapido')
        assert violations == []
        assert rules_of(warnings) == ['allowedVendors']
        assert warnings[0]['severity'] == 'medium'
        assert evaluate_policy(p, 100, 'Uber India') == ([], [])

    def test_daily_limit_counts_existing_spend(self):
        p = policy(max_per_day=1000)
        violations, _ = evaluate_policy(p, 500, 'Cafe', day_total=600)
        assert rules_of(violations) == ['maxPerDay']
        assert evaluate_policy(p, 300, 'Cafe', day_total=600) == ([], [])

    def test_monthly_limit(self):
        violations, _ = evaluate_policy(policy(max_per_month=10000), 2000, 'Cafe', month_total=9000)
        assert rules_of(violations) == ['maxPerMonth']

    def test_manager_approval_warning(self):
        p = policy(requires_manager_approval=True, requires_approval_above=5000)
        _, warnings = evaluate_policy(p, 6000, 'Cafe')
        assert rules_of(warnings) == ['requiresManagerApproval']
        assert evaluate_policy(p, 5000, 'Cafe') == ([], [])


def test_report_summary():
    report = evaluate_policies([policy(max_amount=100), policy(allowed_vendors=['Uber'])], 500, 'Ola')
    assert report['is_compliant'] is False
    assert report['summary'] == {'total_violations': 1, 'total_warnings': 1, 'status': 'needs_review'}

    clean = evaluate_policies([], 500, 'Ola')
    assert clean['is_compliant'] is True
    assert clean['summary']['status'] == 'approved'


def test_month_bounds():
    assert month_bounds(date(2024, 2, 10)) == (date(2024, 2, 1), date(2024, 2, 29))
    assert month_bounds(date(2023, 12, 31)) == (date(2023, 12, 1), date(2023, 12, 31))


def test_compliance_uses_stored_spend(users, category):
    make_policy('Daily cap', category=category, max_per_day=1000)
    employee = users[Role.EMPLOYEE]
    ExpenseService.submit_expense(category.id, 600, EXPENSE_DATE, 'Cafe', 'Lunch', employee)

    assert check_compliance(category.id, 500, 'Cafe', EXPENSE_DATE, employee)['is_compliant'] is False
    assert check_compliance(category.id, 300, 'Cafe', EXPENSE_DATE, employee)['is_compliant'] is True
    # A different day starts from zero
    assert check_compliance(category.id, 500, 'Cafe', date(2024, 3, 16), employee)['is_compliant'] is True


def test_compliance_scopes_spend_by_user_and_category(users, category):
    other_category = make_category('Food')
    make_policy('Daily cap', category=category, max_per_day=1000)
    ExpenseService.submit_expense(other_category.id, 900, EXPENSE_DATE, 'Cafe', 'Lunch', users[Role.EMPLOYEE])
    ExpenseService.submit_expense(category.id, 900, EXPENSE_DATE, 'Cab', 'Ride', users[Role.MANAGER])

    report = check_compliance(category.id, 500, 'Cab', EXPENSE_DATE, users[Role.EMPLOYEE])
    assert report['is_compliant'] is True


def test_global_and_inactive_policies(users, category):
    make_policy('Global block', blocked_vendors=['Liquor'])
    make_policy('Old cap', category=category, max_amount=10, is_active=False)

    report = check_compliance(category.id, 500, 'Liquor Store', EXPENSE_DATE, users[Role.EMPLOYEE])
    assert rules_of(report['violations']) == ['blockedVendor']


def test_non_compliant_submission_is_kept_with_snapshot(users, category):
    make_policy('Cap', category=category, max_amount=1000)
    expense, report = ExpenseService.submit_expense(
        category.id, 1500, EXPENSE_DATE, 'Cafe', 'Team lunch', users[Role.EMPLOYEE])

    assert report['is_compliant'] is False
    assert expense.status == 'approved'
    assert rules_of(expense.policy_violations) == ['maxAmount']


class TestPolicyService:

    def test_create_assigns_public_id(self, users, category):
        created = PolicyService.create_policy({
            'name': 'Travel', 'description': 'Travel rules', 'category': category.id,
            'rules': {'max_amount': '5000', 'allowed_vendors': 'Uber, Ola'},
        }, users[Role.ADMIN])

        assert created.policy_id == 'POL001'
        assert created.max_amount == 5000.0
        assert created.allowed_vendors == ['Uber', 'Ola']
        assert created.to_dict()['rules']['max_amount'] == 5000.0

    def test_flat_rule_keys_are_accepted(self, users):
        created = PolicyService.create_policy(
            {'name': 'Flat', 'description': 'd', 'max_per_day': 800}, users[Role.ADMIN])
        assert created.max_per_day == 800.0
        assert created.category is None

    def test_validation(self, users):
        with pytest.raises(ValidationError):
            PolicyService.create_policy({'name': 'No description'}, users[Role.ADMIN])
        with pytest.raises(ValidationError):
            PolicyService.create_policy(
                {'name': 'n', 'description': 'd', 'rules': {'max_amount': 'lots'}}, users[Role.ADMIN])
        with pytest.raises(ValidationError):
            PolicyService.create_policy({'name': 'n', 'description': 'd', 'category': 999}, users[Role.ADMIN])

    def test_update_list_and_delete(self, users):
        created = PolicyService.create_policy({'name': 'P', 'description': 'd'}, users[Role.ADMIN])
        PolicyService.update_policy(created.id, {'is_active': False, 'rules': {'max_per_month': 20000}})

        assert PolicyService.list_policies(active_only=True) == []
        assert PolicyService.get_policy(created.id).max_per_month == 20000.0

        PolicyService.delete_policy(created.id)
        with pytest.raises(NotFoundError):
            PolicyService.get_policy(created.id)
