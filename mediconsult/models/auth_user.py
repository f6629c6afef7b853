from mediconsult.extensions import db, bcrypt
from .base import TimestampMixin, new_id


class AuthUser(db.Model, TimestampMixin):
    """
    Identity provider account. The id is shared with the user's Profile row.
    Patients provisioned during a consultation have no password until they sign up.
    """
    __tablename__ = 'auth_users'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    # Last login tracking
    last_login = db.Column(db.DateTime, nullable=True)
    login_count = db.Column(db.Integer, default=0)

    def set_password(self, password):
        """Hash and set password"""
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        """Check if provided password matches hash"""
        if not self.password_hash:
            return False
        return bcrypt.check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f"<AuthUser {self.email}>"
