"""
Gate in front of the consultation workflow: only doctors get in.
"""
import logging
from typing import Optional

from mediconsult.exceptions import AuthRequired, Forbidden
from mediconsult.models import Profile
from mediconsult.models.profile import ROLE_DOCTOR

logger = logging.getLogger(__name__)


class AccessGuard:
    def __init__(self, identity_provider):
        self.identity_provider = identity_provider

    def resolve_profile(self, session) -> Profile:
        if session is None:
            raise AuthRequired()
        profile = self.identity_provider.get_profile(session.user_id)
        if profile is None:
            raise AuthRequired()
        account = getattr(profile, 'account', None)
        if account is None or not account.is_active:
            logger.warning("Session for %s rejected; account is missing or deactivated", session.user_id)
            raise AuthRequired('Account is deactivated')
        return profile

    def require_role(self, session, *roles) -> Profile:
        profile = self.resolve_profile(session)
        if profile.role not in roles:
            logger.warning("Profile %s (%s) denied; requires %s", profile.id, profile.role, ", ".join(roles))
            raise Forbidden(f'forbidden — {" or ".join(roles)} role required')
        return profile

    def require_doctor(self, session) -> Profile:
        return self.require_role(session, ROLE_DOCTOR)

    def check(self, session) -> Optional[Profile]:
        """Like require_doctor but returns None instead of raising."""
        try:
            return self.require_doctor(session)
        except (AuthRequired, Forbidden):
            return None
