# flask_app/utils/permissions.py

from functools import wraps
from http import HTTPStatus

from flask import flash, jsonify, redirect, url_for
from flask_login import current_user


def is_importer_admin(user):
    """Only super admins may drive the importer"""
    return bool(user and user.is_authenticated and user.is_active and user.is_super_admin)


def super_admin_required(f):
    """Decorator to require super admin privileges"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            flash('Please log in to access this page.', 'warning')
            return redirect(url_for('login'))

        if not is_importer_admin(current_user):
            flash('Super admin privileges required.', 'danger')
            return redirect(url_for('index'))

        return f(*args, **kwargs)
    return decorated_function


def super_admin_required_json(f):
    """JSON flavour of ``super_admin_required`` for RPC endpoints"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not is_importer_admin(current_user):
            return jsonify({'error': 'No permission.'}), HTTPStatus.FORBIDDEN

        return f(*args, **kwargs)
    return decorated_function
