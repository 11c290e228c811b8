"""Primary credential checks against the identity backend."""

import logging

from portal_auth.exceptions import AuthorizationMissing
from portal_auth.schemas.identity import AuthorizationProfile, BackendSession
from portal_auth.services.gateway.base import AuthorizationDirectory, IdentityBackend
from portal_auth.services.shared.emails import normalize_email

logger = logging.getLogger(__name__)


class CredentialVerifier:
    """Validates e-mail and password and fetches the authorization profile."""

    def __init__(self, identity: IdentityBackend, directory: AuthorizationDirectory):
        self.identity = identity
        self.directory = directory

    async def verify(self, email: str, password: str) -> BackendSession:
        """Establish a backend session.

        Raises:
            AuthRejected: for an unknown identity and a wrong password alike
            ServiceUnavailable: the identity backend could not be reached
        """
        return await self.identity.sign_in(normalize_email(email), password)

    async def fetch_authorization_profile(self) -> AuthorizationProfile:
        """Directory record of the signed-in identity.

        Raises:
            AuthorizationMissing: the directory has no row for the identity
            ServiceUnavailable: the directory could not be reached
        """
        rows = await self.directory.get_current_user_info()
        if not rows:
            raise AuthorizationMissing()
        return rows[0]

    async def sign_out(self) -> None:
        await self.identity.sign_out()

    async def current_session(self) -> BackendSession | None:
        return await self.identity.get_session()

    async def resume_session(self, access_token: str) -> BackendSession | None:
        return await self.identity.resume_session(access_token)

    async def mark_setup_complete(self) -> None:
        await self.identity.update_user_metadata(pending_setup=False)
