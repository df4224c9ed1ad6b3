import os
from dotenv import load_dotenv

# Load the .env file immediately
load_dotenv()

basedir = os.path.abspath(os.path.dirname(__file__))

class Config:
    # 1. Security
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-fallback-key'
    SESSION_COOKIE_SAMESITE = 'Lax'
    # Checked in create_app for form and multipart bodies only; JSON needs no token
    WTF_CSRF_CHECK_DEFAULT = False

    # 2. Database
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'reimburse.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # 3. Receipt uploads
    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER') or os.path.join(basedir, 'uploads')
    ALLOWED_EXTENSIONS = {'pdf', 'png', 'jpg', 'jpeg'}
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024

    # 4. Email Configuration
    MAIL_SERVER = os.environ.get('MAIL_SERVER') or 'smtp.gmail.com'
    MAIL_PORT = int(os.environ.get('MAIL_PORT') or 587)
    MAIL_USE_TLS = os.environ.get('MAIL_USE_TLS') == 'True'
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME')
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD')
    MAIL_DEFAULT_SENDER = os.environ.get('EMAIL_FROM') or MAIL_USERNAME
    MAIL_SENDER_NAME = 'Expense Reimbursement System'

    # 5. Approval tiers (amount must be strictly greater to add the level)
    MANAGER_APPROVAL_ABOVE = float(os.environ.get('MANAGER_APPROVAL_ABOVE') or 5000)
    FINANCE_APPROVAL_ABOVE = float(os.environ.get('FINANCE_APPROVAL_ABOVE') or 25000)
    ADMIN_APPROVAL_ABOVE = float(os.environ.get('ADMIN_APPROVAL_ABOVE') or 50000)

    # 6. Celery Configuration
    CELERY_BROKER_URL = os.environ.get('CELERY_BROKER_URL') or 'redis://localhost:6379/0'
    CELERY_RESULT_BACKEND = os.environ.get('CELERY_RESULT_BACKEND') or 'redis://localhost:6379/0'
    CELERY_TASK_ALWAYS_EAGER = False

    # 7. Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
