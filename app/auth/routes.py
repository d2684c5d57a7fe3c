"""
Authentication routes for the JSON API
"""

import sqlalchemy as sa
from flask import current_app, jsonify
from flask_login import login_user, logout_user, login_required, current_user

from app import db, limiter
from app.auth import bp
from app.auth.forms import LoginForm
from app.models import User, utc_now
from app.errors import validation_error_response
from app.utils import get_json_payload, json_formdata
from app.audit import audit_log_authentication, audit_log_security_event


def _login_rate_limit():
    return current_app.config['LOGIN_RATE_LIMIT']


def _get_user_data(user):
    data = user.to_dict()
    data['organizations'] = [
        {
            'id': membership.organization.id,
            'name': membership.organization.name,
            'slug': membership.organization.slug,
            'role': membership.role,
        }
        for membership in user.memberships
    ]
    return data


@bp.route('/login', methods=['POST'])
@limiter.limit(_login_rate_limit)
def login():
    """
    User login with rate limiting and security logging
    """
    form = LoginForm(formdata=json_formdata(get_json_payload()))
    if not form.validate():
        return validation_error_response(form)

    email = form.email.data.strip().lower()
    try:
        user = db.session.scalar(sa.select(User).where(User.email == email))

        if user is None or not user.check_password(form.password.data):
            audit_log_authentication('LOGIN', email, False)
            return jsonify({
                'success': False,
                'error': 'Invalid email or password'
            }), 401

        if user.lockout:
            audit_log_security_event('LOGIN_ATTEMPT_LOCKED_ACCOUNT',
                                     f'Login attempt on locked account: {user.email}')
            return jsonify({
                'success': False,
                'error': 'Your account has been locked. Please contact the administrator.'
            }), 403

        login_user(user, remember=form.remember_me.data)
        user.last_login = utc_now()
        db.session.commit()

        audit_log_authentication('LOGIN', user.email, True)

        return jsonify({'success': True, 'user': _get_user_data(user)})

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error in login route: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred during login. Please try again.'
        }), 500


@bp.route('/logout', methods=['POST'])
@login_required
def logout():
    """
    Log the current user out
    """
    email = current_user.email
    logout_user()
    audit_log_authentication('LOGOUT', email, True)
    return jsonify({'success': True, 'message': 'Logged out'})


@bp.route('/me')
@login_required
def me():
    """
    Current user with organization memberships
    """
    return jsonify({'success': True, 'user': _get_user_data(current_user)})
