"""
Conversation log between a user and the assistant. Append-only.
"""
from mediconsult.extensions import db
from .base import new_id, utc_now

MESSAGE_ROLES = ('user', 'assistant')


class ConversationMessage(db.Model):
    __tablename__ = 'conversation_messages'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('profiles.id'), nullable=False, index=True)
    role = db.Column(db.String(20), nullable=False)
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=utc_now, nullable=False, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'role': self.role,
            'content': self.content,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
