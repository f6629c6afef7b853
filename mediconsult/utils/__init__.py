from .decorators import login_required, require_role, doctor_required

from .audit import log_audit

__all__ = [
    # Decorators
    "login_required",
    "require_role",
    "doctor_required",
    # Audit
    "log_audit",
]
