from flask import Blueprint, jsonify
from flask_wtf.csrf import generate_csrf
from flask_login import login_user, logout_user, login_required, current_user
from reimburse.forms import LoginForm, ChangePasswordForm
from reimburse.services.user_service import UserService

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/login', methods=['POST'])
def login():
    form = LoginForm().validate_or_raise()
    user = UserService.authenticate(form.email.data, form.password.data)
    login_user(user)
    return jsonify({'message': 'Logged in', 'user': user.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'message': 'Logged out'})


@auth_bp.route('/me')
@login_required
def me():
    return jsonify({'user': current_user.to_dict()})


@auth_bp.route('/csrf-token')
@login_required
def csrf_token():
    """Token for form and multipart uploads, sent back as X-CSRFToken."""
    return jsonify({'csrf_token': generate_csrf()})


@auth_bp.route('/change-password', methods=['POST'])
@login_required
def change_password():
    form = ChangePasswordForm().validate_or_raise()
    UserService.change_password(current_user, form.current_password.data, form.new_password.data)
    return jsonify({'message': 'Password changed successfully'})
