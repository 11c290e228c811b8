"""Sign-out router."""

import logging

from fastapi import APIRouter, Depends, Header, Request, status

from portal_auth.dependencies.flows import FlowFactory, get_flow_factory
from portal_auth.exceptions import ServiceUnavailable
from portal_auth.flows.session import sign_out
from portal_auth.routers.login import DEVICE_COOKIE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["session"])


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    request: Request,
    authorization: str | None = Header(None),
    factory: FlowFactory = Depends(get_flow_factory),
) -> None:
    """End the caller's session and forget this device's trusted record."""
    device_id = request.cookies.get(DEVICE_COOKIE)
    trusted = factory.trusted_cache(device_id) if device_id else None
    entry = factory.session_verifier()
    try:
        token = _bearer_token(authorization)
        if token:
            try:
                await entry.flow.resume_session(token)
            except ServiceUnavailable as e:
                logger.warning(f"Could not resume session for sign-out: {e}")
        await sign_out(entry.flow, trusted)
    finally:
        await entry.close()
