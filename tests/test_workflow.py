import pytest

from reimburse.constants import Role
from reimburse.exceptions import ValidationError
from reimburse.states import ApprovalLevel, ExpenseStatus, Phase, WorkflowState
from reimburse.services.workflow_service import initialize_workflow, can_act, parse_amount

MANAGER = ApprovalLevel.MANAGER
FINANCE = ApprovalLevel.FINANCE
ADMIN = ApprovalLevel.ADMIN


@pytest.mark.parametrize('amount, levels', [
    (1, []),
    (5000, []),
    (5001, [MANAGER]),
    (25000, [MANAGER]),
    (25001, [MANAGER, FINANCE]),
    (50000, [MANAGER, FINANCE]),
    (50001, [MANAGER, FINANCE, ADMIN]),
])
def test_levels_follow_strict_thresholds(amount, levels):
    plan = initialize_workflow(amount)
    assert plan.levels == levels


def test_small_amount_is_approved_on_submission():
    plan = initialize_workflow(5000)
    assert plan.initial_state == WorkflowState.approved()
    assert plan.initial_state.status == ExpenseStatus.APPROVED
    assert plan.initial_state.level == ApprovalLevel.COMPLETED


def test_initial_state_points_at_first_level():
    plan = initialize_workflow(60000)
    assert plan.initial_state.phase == Phase.PENDING
    assert plan.initial_state.level == MANAGER
    assert plan.initial_state.status == ExpenseStatus.PENDING_MANAGER


def test_custom_tiers():
    tiers = ((100, MANAGER), (1000, ADMIN))
    assert initialize_workflow(500, tiers).levels == [MANAGER]
    assert initialize_workflow(5000, tiers).levels == [MANAGER, ADMIN]


@pytest.mark.parametrize('bad', [0, -10, 'abc', None, float('nan'), float('inf'), True])
def test_invalid_amounts_are_rejected(bad):
    with pytest.raises(ValidationError):
        initialize_workflow(bad)


def test_numeric_strings_are_accepted():
    assert parse_amount('5001.50') == 5001.5


def test_pending_admin_status_exists():
    assert WorkflowState.pending('admin').status == ExpenseStatus.PENDING_ADMIN


def test_pending_requires_a_step_level():
    with pytest.raises(ValueError):
        WorkflowState.pending(ApprovalLevel.COMPLETED)


def test_state_rebuilds_from_columns():
    state = WorkflowState.from_columns('pending_finance', 'finance')
    assert state == WorkflowState.pending(FINANCE)
    assert WorkflowState.from_columns('paid', 'completed').is_terminal
    assert not WorkflowState.from_columns('approved', 'completed').is_terminal


@pytest.mark.parametrize('role, level, allowed', [
    (Role.MANAGER, 'manager', True),
    (Role.MANAGER, 'finance', False),
    (Role.FINANCE, 'finance', True),
    (Role.FINANCE, 'manager', False),
    (Role.FINANCE, 'admin', False),
    (Role.ADMIN, 'manager', True),
    (Role.ADMIN, 'finance', True),
    (Role.ADMIN, 'admin', True),
    (Role.ADMIN, 'completed', False),
    (Role.EMPLOYEE, 'manager', False),
    (Role.MANAGER, None, False),
])
def test_can_act(role, level, allowed):
    assert can_act(role, level) is allowed
