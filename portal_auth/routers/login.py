"""Sign-in router.

A flow that still needs input (the code step) is kept in the registry and
addressed by ``flow_id``. Completed, rejected and rate-limited attempts are
returned and dropped.
"""

import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from portal_auth.constants import LoginStep
from portal_auth.dependencies.flows import (
    FlowEntry,
    FlowFactory,
    FlowRegistry,
    get_flow_factory,
    get_login_flows,
)
from portal_auth.rate_limiter import limiter
from portal_auth.schemas.flows import CodeRequest, CredentialsRequest, LoginSnapshot

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth/login", tags=["login"])

DEVICE_COOKIE = "device_id"
DEVICE_COOKIE_MAX_AGE = 60 * 60 * 24 * 365


def _device_id(request: Request, response: Response) -> str:
    """Identify the browser the trusted-for-today record belongs to."""
    device_id = request.cookies.get(DEVICE_COOKIE)
    if not device_id:
        device_id = secrets.token_urlsafe(16)
        response.set_cookie(
            DEVICE_COOKIE,
            device_id,
            max_age=DEVICE_COOKIE_MAX_AGE,
            httponly=True,
            samesite="lax",
        )
    return device_id


async def _get_entry(flows: FlowRegistry, flow_id: str) -> FlowEntry:
    entry = await flows.get(flow_id)
    if entry is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Sign-in attempt not found or expired",
        )
    return entry


async def _respond(
    flows: FlowRegistry, entry: FlowEntry, snapshot: LoginSnapshot, flow_id: str | None = None
) -> LoginSnapshot:
    """Keep the flow only while it waits for a code."""
    if snapshot.step in (LoginStep.OTP_CHALLENGE, LoginStep.VERIFYING):
        if flow_id is None:
            flow_id = await flows.add(entry)
        return snapshot.model_copy(update={"flow_id": flow_id})

    if flow_id is not None:
        await flows.discard(flow_id)
    else:
        await entry.close()
    return snapshot


@router.post("", response_model=LoginSnapshot)
@limiter.limit("10/minute")
async def submit_credentials(
    request: Request,
    response: Response,
    data: CredentialsRequest,
    factory: FlowFactory = Depends(get_flow_factory),
    flows: FlowRegistry = Depends(get_login_flows),
) -> LoginSnapshot:
    """Start a sign-in attempt with e-mail and password."""
    entry = factory.login_flow(_device_id(request, response))
    snapshot = await entry.flow.submit_credentials(data.email, data.password)
    return await _respond(flows, entry, snapshot)


@router.post("/{flow_id}/code", response_model=LoginSnapshot)
async def submit_code(
    flow_id: str,
    data: CodeRequest,
    flows: FlowRegistry = Depends(get_login_flows),
) -> LoginSnapshot:
    """Submit the one-time code of an open attempt."""
    entry = await _get_entry(flows, flow_id)
    snapshot = await entry.flow.submit_code(data.code)
    return await _respond(flows, entry, snapshot, flow_id)


@router.post("/{flow_id}/resend", response_model=LoginSnapshot)
async def resend_code(
    flow_id: str,
    flows: FlowRegistry = Depends(get_login_flows),
) -> LoginSnapshot:
    """Send a new code once the cooldown has elapsed."""
    entry = await _get_entry(flows, flow_id)
    snapshot = await entry.flow.resend_code()
    return await _respond(flows, entry, snapshot, flow_id)


@router.post("/{flow_id}/back", response_model=LoginSnapshot)
async def back(
    flow_id: str,
    flows: FlowRegistry = Depends(get_login_flows),
) -> LoginSnapshot:
    """Leave the code step; the attempt ends."""
    entry = await _get_entry(flows, flow_id)
    snapshot = entry.flow.back()
    return await _respond(flows, entry, snapshot, flow_id)


@router.delete("/{flow_id}", status_code=status.HTTP_204_NO_CONTENT)
async def abandon(
    flow_id: str,
    flows: FlowRegistry = Depends(get_login_flows),
) -> None:
    """Drop an open attempt."""
    await flows.discard(flow_id)
