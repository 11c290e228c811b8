"""Account activation router for invited users."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from portal_auth.constants import SetupStep
from portal_auth.dependencies.flows import (
    FlowEntry,
    FlowFactory,
    FlowRegistry,
    get_flow_factory,
    get_setup_wizards,
)
from portal_auth.schemas.flows import (
    PasswordSetupRequest,
    ProfileSetupRequest,
    SetupSnapshot,
    SetupStartRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth/setup", tags=["account setup"])


async def _get_entry(wizards: FlowRegistry, wizard_id: str) -> FlowEntry:
    entry = await wizards.get(wizard_id)
    if entry is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Activation not found or expired",
        )
    return entry


@router.post("", response_model=SetupSnapshot)
async def start(
    data: SetupStartRequest,
    factory: FlowFactory = Depends(get_flow_factory),
    wizards: FlowRegistry = Depends(get_setup_wizards),
) -> SetupSnapshot:
    """Validate an invitation link and open the password step."""
    entry = factory.setup_wizard()
    snapshot = await entry.flow.start(data.token, data.email)
    if snapshot.step == SetupStep.ERROR:
        await entry.close()
        return snapshot
    wizard_id = await wizards.add(entry)
    return snapshot.model_copy(update={"flow_id": wizard_id})


@router.post("/{wizard_id}/password", response_model=SetupSnapshot)
async def submit_password(
    wizard_id: str,
    data: PasswordSetupRequest,
    wizards: FlowRegistry = Depends(get_setup_wizards),
) -> SetupSnapshot:
    """Set the invitee's password."""
    entry = await _get_entry(wizards, wizard_id)
    snapshot = await entry.flow.submit_password(data.password, data.confirm_password)
    return snapshot.model_copy(update={"flow_id": wizard_id})


@router.post("/{wizard_id}/profile", response_model=SetupSnapshot)
async def submit_profile(
    wizard_id: str,
    data: ProfileSetupRequest,
    wizards: FlowRegistry = Depends(get_setup_wizards),
) -> SetupSnapshot:
    """Complete the profile; the activation ends on success."""
    entry = await _get_entry(wizards, wizard_id)
    snapshot = await entry.flow.submit_profile(
        data.full_name, data.phone, data.department, data.position
    )
    if snapshot.step == SetupStep.SUCCESS:
        await wizards.discard(wizard_id)
        logger.info(f"Account activated for user {snapshot.user_id}")
        return snapshot
    return snapshot.model_copy(update={"flow_id": wizard_id})
