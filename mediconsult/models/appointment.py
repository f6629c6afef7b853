from mediconsult.extensions import db
from .base import TimestampMixin, new_id, utc_now

STATUS_PENDING = 'pending'
STATUS_COMPLETED = 'completed'
STATUS_CANCELLED = 'cancelled'
APPOINTMENT_STATUSES = (STATUS_PENDING, STATUS_COMPLETED, STATUS_CANCELLED)


class Appointment(db.Model, TimestampMixin):
    __tablename__ = 'appointments'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    doctor_id = db.Column(db.String(36), db.ForeignKey('profiles.id'), nullable=False, index=True)
    patient_id = db.Column(db.String(36), db.ForeignKey('profiles.id'), nullable=False, index=True)

    appointment_date = db.Column(db.DateTime, default=utc_now, nullable=False, index=True)

    # Structured consultation record
    chief_complaint = db.Column(db.Text)
    consultation_notes = db.Column(db.Text)
    diagnosis = db.Column(db.Text)
    ai_summary = db.Column(db.Text)
    follow_up_instructions = db.Column(db.Text)

    # pending -> completed | cancelled
    status = db.Column(db.String(20), default=STATUS_PENDING, nullable=False, index=True)

    doctor = db.relationship('Profile', foreign_keys=[doctor_id], backref='doctor_appointments', lazy=True)
    patient = db.relationship('Profile', foreign_keys=[patient_id], backref='patient_appointments', lazy=True)
    medications = db.relationship(
        'Medication',
        backref='appointment',
        order_by='Medication.sort_index',
        cascade='all, delete-orphan',
        lazy=True,
    )
    attachments = db.relationship('Attachment', backref='appointment', cascade='all, delete-orphan', lazy=True)

    def can_transition_to(self, status):
        return self.status == STATUS_PENDING and status in (STATUS_COMPLETED, STATUS_CANCELLED)

    def to_dict(self, include_children=True):
        data = {
            'id': self.id,
            'doctor_id': self.doctor_id,
            'patient_id': self.patient_id,
            'doctor_name': self.doctor.full_name if self.doctor else None,
            'patient_name': self.patient.full_name if self.patient else None,
            'appointment_date': self.appointment_date.isoformat() if self.appointment_date else None,
            'chief_complaint': self.chief_complaint,
            'consultation_notes': self.consultation_notes,
            'diagnosis': self.diagnosis,
            'ai_summary': self.ai_summary,
            'follow_up_instructions': self.follow_up_instructions,
            'status': self.status,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if include_children:
            data['medications'] = [m.to_dict() for m in self.medications]
            data['attachments'] = [a.to_dict() for a in self.attachments]
        return data

    def __repr__(self):
        return f"<Appointment {self.id} doctor={self.doctor_id} patient={self.patient_id} {self.status}>"
