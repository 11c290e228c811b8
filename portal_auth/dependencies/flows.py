"""Per-attempt flow construction and the in-memory registry of open flows."""

import logging
import secrets
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from portal_auth.config import settings
from portal_auth.flows.account_setup import AccountSetupWizard
from portal_auth.flows.login import LoginFlow
from portal_auth.services.countdown import Clock
from portal_auth.services.credential_service import CredentialVerifier
from portal_auth.services.gateway import FunctionsClient, IdentityClient
from portal_auth.services.invitation_service import InvitationTokenValidator
from portal_auth.services.otp_service import OtpChallengeManager
from portal_auth.services.rate_limit_service import RateLimiterService
from portal_auth.services.trusted_session import (
    JsonFileStorage,
    KeyValueStorage,
    TrustedSessionCache,
    recorded_today,
)

logger = logging.getLogger(__name__)


@dataclass
class Gateways:
    """Remote collaborators shared by the flows of one attempt."""

    identity: Any
    functions: Any
    closers: list[Callable[[], Awaitable[None]]] = field(default_factory=list)


def build_remote_gateways() -> Gateways:
    identity = IdentityClient()
    functions = FunctionsClient(access_token=lambda: identity.access_token)
    return Gateways(identity=identity, functions=functions, closers=[identity.close, functions.close])


@dataclass
class FlowEntry:
    """A flow plus the resources to release when it is dropped."""

    flow: Any
    closers: list[Callable[[], Awaitable[None]]] = field(default_factory=list)
    touched_at: float = 0.0

    async def close(self) -> None:
        if isinstance(self.flow, LoginFlow):
            self.flow.abandon()
        for close in self.closers:
            try:
                await close()
            except Exception as e:
                logger.warning(f"Error releasing flow resources: {e}")


class FlowFactory:
    """Builds a fresh flow, with its own clients, for every attempt."""

    def __init__(
        self,
        make_gateways: Callable[[], Gateways] = build_remote_gateways,
        storage: KeyValueStorage | None = None,
        clock: Clock = time.monotonic,
    ):
        self.make_gateways = make_gateways
        self.storage = storage
        self.clock = clock

    def _storage(self) -> KeyValueStorage:
        if self.storage is None:
            self.storage = JsonFileStorage(keep=recorded_today())
        return self.storage

    def trusted_cache(self, device_id: str) -> TrustedSessionCache:
        """The trusted-for-today record of one device."""
        return TrustedSessionCache(
            self._storage(), key=f"{settings.trusted_session_key}:{device_id}"
        )

    def session_verifier(self) -> FlowEntry:
        """A verifier with its own clients, for acting on an existing session."""
        gateways = self.make_gateways()
        verifier = CredentialVerifier(gateways.identity, gateways.identity)
        return FlowEntry(flow=verifier, closers=gateways.closers)

    def login_flow(self, device_id: str) -> FlowEntry:
        gateways = self.make_gateways()
        trusted = self.trusted_cache(device_id)
        flow = LoginFlow(
            rate_limiter=RateLimiterService(gateways.functions),
            otp=OtpChallengeManager(gateways.functions, clock=self.clock),
            verifier=CredentialVerifier(gateways.identity, gateways.identity),
            trusted=trusted,
            clock=self.clock,
        )
        return FlowEntry(flow=flow, closers=gateways.closers)

    def setup_wizard(self) -> FlowEntry:
        gateways = self.make_gateways()
        wizard = AccountSetupWizard(
            validator=InvitationTokenValidator(gateways.functions),
            verifier=CredentialVerifier(gateways.identity, gateways.identity),
            invitations=gateways.functions,
        )
        return FlowEntry(flow=wizard, closers=gateways.closers)


class FlowRegistry:
    """Open flows keyed by an unguessable id; idle entries expire."""

    def __init__(self, ttl_seconds: int | None = None, clock: Clock = time.monotonic):
        self.ttl_seconds = ttl_seconds or settings.login_flow_ttl_seconds
        self._clock = clock
        self._entries: dict[str, FlowEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    async def purge_expired(self) -> None:
        now = self._clock()
        expired = [
            flow_id
            for flow_id, entry in self._entries.items()
            if now - entry.touched_at > self.ttl_seconds
        ]
        for flow_id in expired:
            logger.debug(f"Expiring idle flow {flow_id[:8]}")
            await self._entries.pop(flow_id).close()

    async def add(self, entry: FlowEntry) -> str:
        await self.purge_expired()
        flow_id = secrets.token_urlsafe(24)
        entry.touched_at = self._clock()
        self._entries[flow_id] = entry
        return flow_id

    async def get(self, flow_id: str) -> FlowEntry | None:
        await self.purge_expired()
        entry = self._entries.get(flow_id)
        if entry is not None:
            entry.touched_at = self._clock()
        return entry

    async def discard(self, flow_id: str) -> None:
        entry = self._entries.pop(flow_id, None)
        if entry is not None:
            await entry.close()


login_flows = FlowRegistry()
setup_wizards = FlowRegistry()
flow_factory = FlowFactory()


def get_flow_factory() -> FlowFactory:
    return flow_factory


def get_login_flows() -> FlowRegistry:
    return login_flows


def get_setup_wizards() -> FlowRegistry:
    return setup_wizards
