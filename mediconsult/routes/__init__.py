from .auth import auth_bp
from .consultation import consultation_bp
from .appointment import appointment_bp
from .messages import messages_bp
from .health import health_bp

__all__ = ['auth_bp', 'consultation_bp', 'appointment_bp', 'messages_bp', 'health_bp']
