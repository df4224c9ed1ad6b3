from flask import Blueprint, request, jsonify
from flask_login import login_required
from reimburse.services import admin_service
from reimburse.utils import admin_required

categories_bp = Blueprint('categories', __name__)


@categories_bp.route('', methods=['GET'])
@login_required
def list_categories():
    return jsonify({'categories': [c.to_dict() for c in admin_service.list_categories()]})


@categories_bp.route('', methods=['POST'])
@login_required
@admin_required
def create_category():
    category = admin_service.create_category(request.get_json(silent=True) or {})
    return jsonify({'message': 'Category created', 'category': category.to_dict()}), 201


@categories_bp.route('/<int:category_id>')
@login_required
def get_category(category_id):
    return jsonify({'category': admin_service.get_category(category_id).to_dict()})


@categories_bp.route('/<int:category_id>', methods=['PUT'])
@login_required
@admin_required
def update_category(category_id):
    category = admin_service.update_category(category_id, request.get_json(silent=True) or {})
    return jsonify({'message': 'Category updated', 'category': category.to_dict()})


@categories_bp.route('/<int:category_id>', methods=['DELETE'])
@login_required
@admin_required
def delete_category(category_id):
    admin_service.delete_category(category_id)
    return jsonify({'message': 'Category deleted'})
