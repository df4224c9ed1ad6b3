import logging
from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException
from config import Config
from .extensions import db, login_manager, mail, migrate, celery, csrf
from .exceptions import ReimburseError
from .models import User
from .celery_utils import init_celery
from .services.directory import RoleDirectory
from .services.notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s')

    # Initialize Extensions
    db.init_app(app)
    mail.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)

    # Initialize Celery
    init_celery(app, celery)

    # Recipients for outbound mail are resolved by role
    app.extensions['notifier'] = NotificationDispatcher(RoleDirectory())

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'message': 'Authentication required', 'error': 'UNAUTHORIZED'}), 401

    @app.before_request
    def protect_form_posts():
        # Cross-site HTML forms cannot send JSON, so only other bodies carry a token
        if not app.config['WTF_CSRF_ENABLED'] or request.is_json:
            return
        if request.mimetype or request.content_length:
            csrf.protect()

    register_error_handlers(app)

    # Register Blueprints
    from .blueprints.main import main_bp
    from .blueprints.auth import auth_bp
    from .blueprints.admin import admin_bp
    from .blueprints.expenses import expenses_bp
    from .blueprints.approvals import approvals_bp
    from .blueprints.policies import policies_bp
    from .blueprints.categories import categories_bp
    from .blueprints.tickets import tickets_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(admin_bp, url_prefix='/admin')
    app.register_blueprint(expenses_bp, url_prefix='/api/expenses')
    app.register_blueprint(approvals_bp, url_prefix='/api/approvals')
    app.register_blueprint(policies_bp, url_prefix='/api/policies')
    app.register_blueprint(categories_bp, url_prefix='/api/categories')
    app.register_blueprint(tickets_bp, url_prefix='/api/tickets')

    # Create DB Tables (use 'flask db upgrade' once migrations exist)
    with app.app_context():
        db.create_all()

    return app


def register_error_handlers(app):

    @app.errorhandler(ReimburseError)
    def handle_reimburse_error(error):
        db.session.rollback()
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'message': error.description, 'error': error.name.upper().replace(' ', '_')}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        logger.exception("Unhandled error: %s", error)
        db.session.rollback()
        return jsonify({'message': 'Something went wrong!', 'error': 'SERVER_ERROR'}), 500
