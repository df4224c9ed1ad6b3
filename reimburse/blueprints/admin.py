from flask import Blueprint, request, jsonify
from flask_login import login_required
from reimburse.services import admin_service
from reimburse.services.user_service import UserService
from reimburse.utils import admin_required

admin_bp = Blueprint('admin', __name__)


@admin_bp.route('/stats')
@login_required
@admin_required
def stats():
    return jsonify(admin_service.get_dashboard_stats())


@admin_bp.route('/users', methods=['GET'])
@login_required
@admin_required
def list_users():
    return jsonify({'users': [u.to_dict() for u in UserService.list_users()]})


@admin_bp.route('/users', methods=['POST'])
@login_required
@admin_required
def save_user():
    """Creates a user, or updates one when the payload carries an id."""
    data = request.get_json(silent=True) or {}
    user = UserService.create_or_update_user(data)
    return jsonify({'message': 'User saved', 'user': user.to_dict()}), 200 if data.get('id') else 201


@admin_bp.route('/users/<int:user_id>', methods=['DELETE'])
@login_required
@admin_required
def delete_user(user_id):
    UserService.delete_user(user_id)
    return jsonify({'message': 'User deleted'})
