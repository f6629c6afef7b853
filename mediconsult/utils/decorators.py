from functools import wraps
from flask import current_app, g, jsonify

from mediconsult.exceptions import AuthRequired, ConsultationError
from mediconsult.services.access_guard import AccessGuard


def login_required(f):
    """
    Resolve the request's session and profile into ``g.session`` / ``g.profile``.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        identity_provider = current_app.extensions['identity_provider']
        session = identity_provider.get_session()
        try:
            profile = AccessGuard(identity_provider).resolve_profile(session)
        except AuthRequired as e:
            return jsonify(e.to_dict()), e.status_code
        g.session = session
        g.profile = profile
        return f(*args, **kwargs)
    return decorated_function


def require_role(*roles):
    """
    Decorator to require specific roles
    Usage: @require_role('doctor')
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            identity_provider = current_app.extensions['identity_provider']
            session = identity_provider.get_session()
            try:
                profile = AccessGuard(identity_provider).require_role(session, *roles)
            except ConsultationError as e:
                return jsonify(e.to_dict()), e.status_code
            g.session = session
            g.profile = profile
            return f(*args, **kwargs)
        return decorated_function
    return decorator


doctor_required = require_role('doctor')
