import os
import uuid
import logging
from functools import wraps
from flask import current_app
from flask_login import current_user
from werkzeug.utils import secure_filename
from reimburse.constants import Role
from reimburse.exceptions import ForbiddenError

logger = logging.getLogger(__name__)


def allowed_file(filename):
    return '.' in filename and \
           filename.rsplit('.', 1)[1].lower() in current_app.config['ALLOWED_EXTENSIONS']


def save_file(file, prefix):
    """Stores an uploaded receipt and returns the generated file name."""
    if not file or file.filename == '':
        return None

    if not allowed_file(file.filename):
        logger.warning("Blocked invalid file type: %s", file.filename)
        return None

    # Renamed on disk so uploads never overwrite each other
    original_filename = secure_filename(file.filename)
    ext = original_filename.rsplit('.', 1)[1].lower()
    new_filename = f"{prefix}_{uuid.uuid4().hex[:8]}.{ext}"

    folder = current_app.config['UPLOAD_FOLDER']
    os.makedirs(folder, exist_ok=True)
    file.save(os.path.join(folder, new_filename))
    return new_filename


def format_public_id(prefix, number, width):
    """EXP0001, POL001, TKT001 ..."""
    return f"{prefix}{str(number).zfill(width)}"


def admin_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if current_user.role != Role.ADMIN:
            raise ForbiddenError("Admin access required")
        return view(*args, **kwargs)
    return wrapped
