from flask import Blueprint, jsonify
from sqlalchemy import text
from reimburse.extensions import db

main_bp = Blueprint('main', __name__)


@main_bp.route('/health')
def health():
    db.session.execute(text('SELECT 1'))
    return jsonify({'status': 'ok', 'database': 'connected'})
