from mediconsult.extensions import db
from .base import new_id, utc_now


class Attachment(db.Model):
    __tablename__ = 'attachments'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    appointment_id = db.Column(db.String(36), db.ForeignKey('appointments.id'), nullable=False, index=True)
    file_path = db.Column(db.String(500), nullable=False)
    file_type = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=utc_now, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'appointment_id': self.appointment_id,
            'file_path': self.file_path,
            'file_type': self.file_type,
            'description': self.description,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
