from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from reimburse.forms import ExpenseForm, CommentForm, PaymentForm
from reimburse.services.expense_service import ExpenseService
from reimburse.services.payment_service import PaymentService
from reimburse.utils import admin_required

expenses_bp = Blueprint('expenses', __name__)


@expenses_bp.route('', methods=['POST'])
@login_required
def submit_expense():
    """Accepts JSON or multipart (with a receipt file)."""
    form = ExpenseForm().validate_or_raise()
    expense, report = ExpenseService.submit_expense(
        category_id=form.category.data,
        amount=form.amount.data,
        date=form.date.data,
        vendor=form.vendor.data,
        description=form.description.data,
        actor=current_user,
        receipt=form.receipt.data,
        acknowledge_violations=form.acknowledge_violations.data,
    )
    return jsonify({
        'message': 'Expense submitted successfully',
        'expense': expense.to_dict(),
        'compliance': report,
    }), 201


@expenses_bp.route('/my-expenses')
@login_required
def my_expenses():
    expenses = ExpenseService.get_my_expenses(current_user)
    return jsonify({'expenses': [e.to_dict(include_workflow=False) for e in expenses]})


@expenses_bp.route('/stats')
@login_required
def stats():
    return jsonify(ExpenseService.get_stats(current_user))


@expenses_bp.route('', methods=['GET'])
@login_required
@admin_required
def all_expenses():
    expenses = ExpenseService.get_all_expenses(status=request.args.get('status'))
    return jsonify({'expenses': [e.to_dict(include_workflow=False) for e in expenses]})


@expenses_bp.route('/<expense_id>')
@login_required
def get_expense(expense_id):
    expense = ExpenseService.get_expense_for(expense_id, current_user)
    return jsonify({'expense': expense.to_dict()})


@expenses_bp.route('/<expense_id>/comment', methods=['POST'])
@login_required
def add_comment(expense_id):
    form = CommentForm().validate_or_raise()
    comment = ExpenseService.add_comment(expense_id, form.message.data, current_user)
    return jsonify({'message': 'Comment added', 'comment': comment.to_dict()}), 201


@expenses_bp.route('/<expense_id>/payment', methods=['POST'])
@login_required
def process_payment(expense_id):
    form = PaymentForm().validate_or_raise()
    expense = PaymentService.process_payment(
        expense_id, form.payment_method.data, form.payment_reference.data, current_user)
    return jsonify({'message': 'Payment processed successfully', 'expense': expense.to_dict()})
