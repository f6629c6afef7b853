from flask import Blueprint, current_app, g, jsonify, request

from mediconsult.exceptions import ValidationFailed
from mediconsult.services import get_identity_provider
from mediconsult.utils.decorators import login_required

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


def _session_payload(session, profile):
    expires = current_app.config.get('JWT_ACCESS_TOKEN_EXPIRES')
    return {
        'success': True,
        'data': profile.to_dict() if profile else None,
        'access_token': session.access_token,
        'token_type': 'bearer',
        'expires_in': int(expires.total_seconds()) if expires else None,
    }


@auth_bp.route('/signup', methods=['POST'])
def signup():
    """
    Create an account and sign in.

    Body:
        email, password (required)
        full_name (required), role: "doctor" | "patient" (default patient)
        phone, specialization (doctors only) optional
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationFailed('Request body must be JSON')

    provider = get_identity_provider()
    provider.sign_up(
        data.get('email'),
        data.get('password'),
        {
            'full_name': data.get('full_name'),
            'role': data.get('role'),
            'phone': data.get('phone'),
            'specialization': data.get('specialization'),
        },
    )
    session = provider.sign_in(data.get('email'), data.get('password'))
    return jsonify(_session_payload(session, provider.get_profile(session.user_id))), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    """Login endpoint - authenticates and returns a JWT access token"""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationFailed('Request body must be JSON')

    provider = get_identity_provider()
    session = provider.sign_in(data.get('email'), data.get('password'))
    return jsonify(_session_payload(session, provider.get_profile(session.user_id))), 200


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    """Revoke the current access token"""
    get_identity_provider().sign_out()
    return jsonify({
        'success': True,
        'message': 'Logged out successfully'
    }), 200


@auth_bp.route('/me', methods=['GET'])
@login_required
def get_current_user():
    """Profile of the signed-in user"""
    return jsonify({
        'success': True,
        'data': g.profile.to_dict()
    }), 200
