"""
Identity provider: accounts, sign-in sessions and profiles.

Accounts live in ``auth_users``; each has a ``profiles`` row with the same
id. Sessions are JWT access tokens issued with Flask-JWT-Extended. Signing
out revokes the token's jti for the rest of its lifetime.
"""
import logging
import re
from dataclasses import dataclass
from threading import Lock
from typing import Optional

from flask import current_app
from flask_jwt_extended import create_access_token, get_jti, get_jwt, get_jwt_identity, verify_jwt_in_request
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from mediconsult.exceptions import AuthError, AuthRequired, PersistenceFailed, ValidationFailed
from mediconsult.models import AuthUser, Profile
from mediconsult.models.base import new_id, utc_now
from mediconsult.models.profile import ROLE_DOCTOR, ROLE_PATIENT, ROLES
from mediconsult.services.store import RelationalStore
from mediconsult.utils.audit import log_audit

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
MIN_PASSWORD_LENGTH = 6


@dataclass(frozen=True)
class Session:
    """An authenticated user. Passed explicitly to the access guard and the workflow."""

    user_id: str
    email: Optional[str] = None
    access_token: Optional[str] = None
    jti: Optional[str] = None


class IdentityProvider:
    def __init__(self, store: Optional[RelationalStore] = None):
        self.store = store or RelationalStore()
        self._revoked = set()
        self._lock = Lock()

    # -- accounts ------------------------------------------------------------

    def sign_up(self, email: str, password: str, profile_attributes: dict) -> str:
        """Create an account and its profile. Returns the new user id."""
        email = (email or '').strip().lower()
        if not EMAIL_RE.match(email):
            raise ValidationFailed('A valid email is required')
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationFailed(f'Password must be at least {MIN_PASSWORD_LENGTH} characters')

        attributes = profile_attributes or {}
        full_name = (attributes.get('full_name') or '').strip()
        role = attributes.get('role') or ROLE_PATIENT
        if not full_name:
            raise ValidationFailed('full_name is required')
        if role not in ROLES:
            raise ValidationFailed(f'Invalid role. Must be one of: {", ".join(ROLES)}')
        specialization = (attributes.get('specialization') or '').strip() or None
        if role != ROLE_DOCTOR:
            specialization = None

        if AuthUser.query.filter_by(email=email).first():
            raise ValidationFailed('An account with this email already exists')

        try:
            account = AuthUser(id=new_id(), email=email)
            account.set_password(password)
            self.store.insert(account)
            self.store.insert(Profile(
                id=account.id,
                full_name=full_name,
                role=role,
                specialization=specialization,
                phone=(attributes.get('phone') or '').strip() or None,
            ))
            self.store.commit()
        except IntegrityError:
            self.store.rollback()
            raise ValidationFailed('An account with this email already exists')

        log_audit('profile', 'create', user_id=account.id, entity_id=account.id, details={'role': role})
        logger.info("Account %s created (%s)", account.id, role)
        return account.id

    def sign_in(self, email: str, password: str) -> Session:
        email = (email or '').strip().lower()
        if not email or not password:
            raise ValidationFailed('Email and password required')

        account = AuthUser.query.filter_by(email=email).first()
        if not account or not account.check_password(password):
            raise AuthError('Invalid email or password')
        if not account.is_active:
            raise AuthError('Account is deactivated')

        profile = self.get_profile(account.id)

        account.last_login = utc_now()
        account.login_count = (account.login_count or 0) + 1
        self.store.commit()

        claims = {'role': profile.role if profile else None}
        token = create_access_token(identity=account.id, additional_claims=claims)
        return Session(user_id=account.id, email=account.email, access_token=token, jti=get_jti(token))

    def get_session(self) -> Optional[Session]:
        """Session for the current request's bearer token, or None."""
        try:
            verify_jwt_in_request(optional=True)
        except (JWTExtendedException, PyJWTError) as e:
            logger.info("Rejected access token: %s", e)
            return None
        user_id = get_jwt_identity()
        if not user_id:
            return None
        claims = get_jwt()
        return Session(user_id=str(user_id), jti=claims.get('jti'))

    def sign_out(self) -> None:
        session = self.get_session()
        if session is None:
            raise AuthRequired()
        with self._lock:
            self._revoked.add(session.jti)
        logger.info("Session for %s signed out", session.user_id)

    def is_token_revoked(self, jti: str) -> bool:
        with self._lock:
            return jti in self._revoked

    # -- profiles ------------------------------------------------------------

    def get_profile(self, user_id: str) -> Optional[Profile]:
        return self.store.select_by_id(Profile, user_id)

    def provision_patient(self, full_name: str, phone: Optional[str] = None) -> Profile:
        """
        Create a patient identity without a password, for a patient seen
        before they have an account. Committed immediately.
        """
        full_name = (full_name or '').strip()
        if not full_name:
            raise ValidationFailed('Patient name is required')

        domain = current_app.config.get('PROVISIONED_EMAIL_DOMAIN', 'patients.mediconsult.local')
        user_id = new_id()
        try:
            self.store.insert(AuthUser(id=user_id, email=f'patient-{user_id}@{domain}'))
            profile = self.store.insert(Profile(
                id=user_id,
                full_name=full_name,
                role=ROLE_PATIENT,
                phone=(phone or '').strip() or None,
            ))
            self.store.commit()
        except SQLAlchemyError as e:
            self.store.rollback()
            logger.error("Patient provisioning failed: %s", e, exc_info=True)
            raise PersistenceFailed('Could not create the patient record', step='patient') from e

        logger.info("Provisioned patient %s", user_id)
        return profile


def get_identity_provider() -> IdentityProvider:
    return current_app.extensions['identity_provider']
