from mediconsult.extensions import db
from .base import TimestampMixin

ROLE_DOCTOR = 'doctor'
ROLE_PATIENT = 'patient'
ROLES = (ROLE_DOCTOR, ROLE_PATIENT)


class Profile(db.Model, TimestampMixin):
    __tablename__ = 'profiles'

    # Same value as the identity provider's user id
    id = db.Column(db.String(36), db.ForeignKey('auth_users.id'), primary_key=True)
    full_name = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, index=True)  # doctor, patient
    specialization = db.Column(db.String(120), nullable=True)  # doctors only
    phone = db.Column(db.String(30), nullable=True, index=True)

    account = db.relationship('AuthUser', backref=db.backref('profile', uselist=False), lazy=True)

    def is_doctor(self):
        return self.role == ROLE_DOCTOR

    def is_patient(self):
        return self.role == ROLE_PATIENT

    def to_dict(self):
        return {
            'id': self.id,
            'full_name': self.full_name,
            'role': self.role,
            'specialization': self.specialization,
            'phone': self.phone,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Profile {self.full_name} ({self.role})>"
