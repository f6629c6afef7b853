"""
Conversation messages: append-only log per user.
"""
from flask import Blueprint, g, jsonify, request

from mediconsult.exceptions import ValidationFailed
from mediconsult.extensions import db
from mediconsult.models import ConversationMessage
from mediconsult.models.conversation_message import MESSAGE_ROLES
from mediconsult.utils.decorators import login_required

messages_bp = Blueprint('messages', __name__, url_prefix='/api/messages')


@messages_bp.route('', methods=['GET'])
@login_required
def list_messages():
    limit = request.args.get('limit', 100, type=int)
    if limit < 1 or limit > 500:
        limit = 100
    messages = (
        ConversationMessage.query
        .filter_by(user_id=g.profile.id)
        .order_by(ConversationMessage.created_at.asc())
        .limit(limit)
        .all()
    )
    return jsonify({
        'success': True,
        'data': [m.to_dict() for m in messages]
    })


@messages_bp.route('', methods=['POST'])
@login_required
def append_message():
    """Body: {"content": "...", "role": "user" | "assistant"}"""
    data = request.get_json(silent=True) or {}
    content = (data.get('content') or '').strip()
    role = data.get('role', 'user')
    if not content:
        raise ValidationFailed('content is required')
    if role not in MESSAGE_ROLES:
        raise ValidationFailed(f'Invalid role. Must be one of: {", ".join(MESSAGE_ROLES)}')

    message = ConversationMessage(user_id=g.profile.id, role=role, content=content)
    db.session.add(message)
    db.session.commit()

    return jsonify({
        'success': True,
        'data': message.to_dict()
    }), 201
