"""Remote collaborators of the sign-in flows."""

from portal_auth.services.gateway.base import (
    AuthorizationDirectory,
    IdentityBackend,
    InvitationGateway,
    LimiterGateway,
    OtpGateway,
)
from portal_auth.services.gateway.functions_client import FunctionsClient
from portal_auth.services.gateway.identity_client import IdentityClient

__all__ = [
    "AuthorizationDirectory",
    "FunctionsClient",
    "IdentityBackend",
    "IdentityClient",
    "InvitationGateway",
    "LimiterGateway",
    "OtpGateway",
]
