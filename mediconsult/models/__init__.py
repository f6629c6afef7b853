from .auth_user import AuthUser
from .profile import Profile
from .appointment import Appointment
from .medication import Medication
from .attachment import Attachment
from .conversation_message import ConversationMessage
from .audit_log import AuditLog

__all__ = ["AuthUser", "Profile", "Appointment", "Medication", "Attachment", "ConversationMessage", "AuditLog"]
