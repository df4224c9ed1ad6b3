from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from reimburse.forms import ApproveForm, RejectForm
from reimburse.services.expense_service import ExpenseService
from reimburse.services.workflow_service import WorkflowService

approvals_bp = Blueprint('approvals', __name__)


@approvals_bp.route('/pending')
@login_required
def pending():
    expenses = WorkflowService.get_pending_approvals(current_user.role, level=request.args.get('level'))
    return jsonify({'expenses': [e.to_dict() for e in expenses], 'count': len(expenses)})


@approvals_bp.route('/<expense_id>/approve', methods=['POST'])
@login_required
def approve(expense_id):
    form = ApproveForm().validate_or_raise()
    expense, next_level = WorkflowService.approve_at_level(
        expense_id, current_user,
        comments=form.comments.data,
        expected_level=form.level.data or None,
        expected_version=form.version.data,
    )
    return jsonify({
        'message': f"Expense {expense.status.replace('_', ' ')}",
        'expense': expense.to_dict(),
        'next_level': next_level,
    })


@approvals_bp.route('/<expense_id>/reject', methods=['POST'])
@login_required
def reject(expense_id):
    form = RejectForm().validate_or_raise()
    expense = WorkflowService.reject_at_level(
        expense_id, current_user, form.reason.data,
        expected_level=form.level.data or None,
        expected_version=form.version.data,
    )
    return jsonify({'message': 'Expense rejected', 'expense': expense.to_dict()})


@approvals_bp.route('/<expense_id>/workflow')
@login_required
def workflow(expense_id):
    ExpenseService.get_expense_for(expense_id, current_user)
    return jsonify(WorkflowService.get_workflow_history(expense_id))
