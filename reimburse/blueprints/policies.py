from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from reimburse.forms import ComplianceForm
from reimburse.services.policy_service import PolicyService, check_compliance
from reimburse.utils import admin_required

policies_bp = Blueprint('policies', __name__)


@policies_bp.route('/check-compliance', methods=['POST'])
@login_required
def compliance():
    form = ComplianceForm().validate_or_raise()
    report = check_compliance(form.category_id.data, form.amount.data, form.vendor.data,
                              form.date.data, current_user)
    return jsonify(report)


@policies_bp.route('', methods=['GET'])
@login_required
def list_policies():
    return jsonify({'policies': [p.to_dict() for p in PolicyService.list_policies()]})


@policies_bp.route('/active')
@login_required
def active_policies():
    return jsonify({'policies': [p.to_dict() for p in PolicyService.list_policies(active_only=True)]})


@policies_bp.route('', methods=['POST'])
@login_required
@admin_required
def create_policy():
    policy = PolicyService.create_policy(request.get_json(silent=True) or {}, current_user)
    return jsonify({'message': 'Policy created', 'policy': policy.to_dict()}), 201


@policies_bp.route('/<int:policy_id>')
@login_required
def get_policy(policy_id):
    return jsonify({'policy': PolicyService.get_policy(policy_id).to_dict()})


@policies_bp.route('/<int:policy_id>', methods=['PUT'])
@login_required
@admin_required
def update_policy(policy_id):
    policy = PolicyService.update_policy(policy_id, request.get_json(silent=True) or {})
    return jsonify({'message': 'Policy updated', 'policy': policy.to_dict()})


@policies_bp.route('/<int:policy_id>', methods=['DELETE'])
@login_required
@admin_required
def delete_policy(policy_id):
    PolicyService.delete_policy(policy_id)
    return jsonify({'message': 'Policy deleted'})
