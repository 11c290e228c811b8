"""Shared fixtures for the sign-in and activation tests."""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from portal_auth.dependencies.flows import (
    FlowFactory,
    FlowRegistry,
    Gateways,
    get_flow_factory,
    get_login_flows,
    get_setup_wizards,
)
from portal_auth.flows.account_setup import AccountSetupWizard
from portal_auth.flows.login import LoginFlow
from portal_auth.main import app
from portal_auth.rate_limiter import limiter
from portal_auth.services.credential_service import CredentialVerifier
from portal_auth.services.invitation_service import InvitationTokenValidator
from portal_auth.services.otp_service import OtpChallengeManager
from portal_auth.services.rate_limit_service import RateLimiterService
from portal_auth.services.trusted_session import MemoryStorage, TrustedSessionCache
from tests.fakes import (
    CORPORATE_EMAIL,
    PASSWORD,
    FakeClock,
    FakeIdentity,
    FakeInvitations,
    FakeOtpGateway,
    StubLimiter,
)

MADRID = timezone(timedelta(hours=2))


class FakeFunctions:
    """Limiter, code and invitation fakes behind one gateway object."""

    def __init__(self, limiter: StubLimiter, otp: FakeOtpGateway, invitations: FakeInvitations):
        self.check = limiter.check
        self.record = limiter.record
        self.send = otp.send
        self.verify = otp.verify
        self.validate_invitation = invitations.validate_invitation
        self.setup_password = invitations.setup_password
        self.update_own_profile = invitations.update_own_profile


class LocalNow:
    """Wall clock for the trusted-session record, set by hand."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def wall_clock():
    return LocalNow(datetime(2025, 3, 10, 9, 30, tzinfo=MADRID))


@pytest.fixture
def stub_limiter():
    return StubLimiter(threshold=3)


@pytest.fixture
def otp_gateway():
    return FakeOtpGateway()


@pytest.fixture
def identity():
    identity = FakeIdentity()
    identity.add_user(CORPORATE_EMAIL, PASSWORD)
    return identity


@pytest.fixture
def invitations(identity):
    return FakeInvitations(identity)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def trusted(storage, wall_clock):
    return TrustedSessionCache(storage, now=wall_clock)


@pytest.fixture
def otp_manager(otp_gateway, clock):
    return OtpChallengeManager(otp_gateway, code_length=6, cooldown_seconds=60, clock=clock)


@pytest.fixture
def verifier(identity):
    return CredentialVerifier(identity, identity)


@pytest.fixture
def login_flow(stub_limiter, otp_manager, verifier, trusted, clock):
    """A fresh sign-in attempt wired to in-memory fakes."""
    return LoginFlow(
        rate_limiter=RateLimiterService(stub_limiter),
        otp=otp_manager,
        verifier=verifier,
        trusted=trusted,
        corporate_domain="avtechesdeveniments.com",
        clock=clock,
    )


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def wizard(invitations, verifier, sleeps):
    """An activation wizard wired to in-memory fakes."""

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    return AccountSetupWizard(
        validator=InvitationTokenValidator(invitations),
        verifier=verifier,
        invitations=invitations,
        redirect_delay_seconds=2.0,
        sleep=fake_sleep,
    )


@pytest.fixture
def api_client(stub_limiter, otp_gateway, identity, invitations, storage, clock):
    """Test client whose flows talk to in-memory fakes.

    Yields a tuple of (TestClient, FakeIdentity).
    """
    limiter.reset()

    def make_gateways() -> Gateways:
        return Gateways(
            identity=identity,
            functions=FakeFunctions(stub_limiter, otp_gateway, invitations),
        )

    factory = FlowFactory(make_gateways=make_gateways, storage=storage, clock=clock)
    login_flows = FlowRegistry(ttl_seconds=900, clock=clock)
    setup_wizards = FlowRegistry(ttl_seconds=900, clock=clock)

    app.dependency_overrides[get_flow_factory] = lambda: factory
    app.dependency_overrides[get_login_flows] = lambda: login_flows
    app.dependency_overrides[get_setup_wizards] = lambda: setup_wizards

    with TestClient(app) as test_client:
        yield test_client, identity

    app.dependency_overrides.clear()
