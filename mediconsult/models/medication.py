from mediconsult.extensions import db
from .base import TimestampMixin, new_id

TIMING_DETAILS = (
    'before_breakfast',
    'after_breakfast',
    'before_lunch',
    'after_lunch',
    'before_dinner',
    'after_dinner',
    'bedtime',
    'anytime',
)


class Medication(db.Model, TimestampMixin):
    """One prescribed item. Written together with its appointment and never updated afterwards."""
    __tablename__ = 'medications'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    appointment_id = db.Column(db.String(36), db.ForeignKey('appointments.id'), nullable=False, index=True)

    # Position in the consultation draft
    sort_index = db.Column(db.Integer, nullable=False, default=0)

    name = db.Column(db.String(255), nullable=False)
    dosage = db.Column(db.String(120), nullable=False)  # e.g. "500mg", kept verbatim
    duration = db.Column(db.String(120), nullable=False)  # e.g. "3 days"

    frequency_morning = db.Column(db.Boolean, default=False, nullable=False)
    frequency_afternoon = db.Column(db.Boolean, default=False, nullable=False)
    frequency_evening = db.Column(db.Boolean, default=False, nullable=False)
    timing_detail = db.Column(db.String(30), nullable=True)
    instructions = db.Column(db.Text, nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'appointment_id': self.appointment_id,
            'sort_index': self.sort_index,
            'name': self.name,
            'dosage': self.dosage,
            'duration': self.duration,
            'frequency': {
                'morning': self.frequency_morning,
                'afternoon': self.frequency_afternoon,
                'evening': self.frequency_evening,
            },
            'timing_detail': self.timing_detail,
            'instructions': self.instructions,
        }

    def __repr__(self):
        return f"<Medication {self.name} {self.dosage} ({self.appointment_id})>"
