"""
Onboarding API Endpoints.

Router for the onboarding wizard. One OnboardingWizard per authenticated
user, held in memory for the life of the process.
"""

import base64
import binascii
import logging
from collections.abc import Callable
from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from enrollment.auth import AuthenticatedUser, get_current_user

from .forms import get_form_options
from .state import LIST_SECTIONS, UploadedFile
from .steps import Navigation, StepId, StepResult
from .wizard import OnboardingWizard

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/onboarding", tags=["onboarding"])

WizardFactory = Callable[[str], OnboardingWizard]

# user_id -> wizard
_wizards: dict[str, OnboardingWizard] = {}


# =============================================================================
# Wizard Sessions
# =============================================================================


def build_wizard(user_id: str) -> OnboardingWizard:
    """Wizard wired to Supabase and the postal pincode API."""
    from enrollment.config import settings
    from enrollment.db.client import SupabaseEnrollmentBackend
    from enrollment.pincode import PostalPincodeClient

    backend = SupabaseEnrollmentBackend()
    return OnboardingWizard(
        user_id=user_id,
        uploader=backend,
        records=backend,
        pincode_lookup=PostalPincodeClient.from_settings(),
        rules=settings.enrollment_rules(),
    )


def get_wizard_factory() -> WizardFactory:
    return build_wizard


def get_wizard(
    user: AuthenticatedUser = Depends(get_current_user),
    factory: WizardFactory = Depends(get_wizard_factory),
) -> OnboardingWizard:
    """Load the user's wizard or start a new one."""
    wizard = _wizards.get(user.id)
    if wizard is None:
        logger.info(f"Starting onboarding wizard for user {user.id}")
        wizard = factory(user.id)
        _wizards[user.id] = wizard
    return wizard


def clear_sessions() -> None:
    _wizards.clear()


# =============================================================================
# Request/Response Models
# =============================================================================


class FieldValueRequest(BaseModel):
    """One field edit on the active step, e.g. {"path": "present.city", "value": "Pune"}."""
    path: str
    value: Any = None


class GoToStepRequest(BaseModel):
    step: str


class DeclarationRequest(BaseModel):
    accepted: bool


class FileRequest(BaseModel):
    """Attachment picked on the client, content base64-encoded."""
    name: str
    type: str = ""
    size: int = 0
    content: str = Field(..., description="Base64 file content")
    preview: str = ""


class StepResponse(BaseModel):
    current_step: str
    navigation: str | None = None
    ok: bool = True
    skipped: bool = False
    errors: dict[str, str] = Field(default_factory=dict)


class StateResponse(BaseModel):
    user_id: str
    current_step: str
    gmc_applicable: bool
    steps: list[dict]
    sections: dict


def _step_response(wizard: OnboardingWizard, result: StepResult | None = None, navigation: Navigation | None = None) -> StepResponse:
    return StepResponse(
        current_step=wizard.current_step_id.value,
        navigation=navigation.value if navigation else None,
        ok=result.ok if result else True,
        skipped=result.skipped if result else False,
        errors=result.errors if result else {},
    )


# =============================================================================
# Endpoints: State
# =============================================================================


@router.get("/state", response_model=StateResponse)
async def get_onboarding_state(wizard: OnboardingWizard = Depends(get_wizard)) -> StateResponse:
    """Current step plus every section."""
    return StateResponse(
        user_id=wizard.user_id,
        current_step=wizard.current_step_id.value,
        gmc_applicable=wizard.gmc_applicable,
        steps=[
            {"id": step_id.value, "title": step.title, "applicable": step.is_applicable()}
            for step_id, step in wizard.steps.items()
        ],
        sections=wizard.store.sections.to_dict(),
    )


@router.get("/options")
async def get_options():
    """Select options for every form."""
    return get_form_options()


@router.delete("/session")
async def discard_session(user: AuthenticatedUser = Depends(get_current_user)):
    """Throw away the in-progress enrollment."""
    _wizards.pop(user.id, None)
    return {"success": True}


# =============================================================================
# Endpoints: Sections
# =============================================================================


@router.patch("/sections/{section}")
async def update_section(
    section: str,
    updates: dict[str, Any],
    wizard: OnboardingWizard = Depends(get_wizard),
):
    """Shallow-merge fields into a record section."""
    try:
        wizard.store.update_section(section, updates)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown section: {section}")
    except AttributeError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return getattr(wizard.store.sections, section).to_dict()


@router.post("/lists/{section}")
async def add_list_item(section: str, wizard: OnboardingWizard = Depends(get_wizard)):
    if section not in LIST_SECTIONS:
        raise HTTPException(status_code=404, detail=f"Unknown list section: {section}")
    return {"id": wizard.store.add_list_item(section)}


@router.patch("/lists/{section}/{item_id}")
async def update_list_item(
    section: str,
    item_id: str,
    updates: dict[str, Any],
    wizard: OnboardingWizard = Depends(get_wizard),
):
    if section not in LIST_SECTIONS:
        raise HTTPException(status_code=404, detail=f"Unknown list section: {section}")
    try:
        wizard.store.update_list_item(section, item_id, updates)
    except AttributeError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"items": [item.to_dict() for item in getattr(wizard.store.sections, section)]}


@router.delete("/lists/{section}/{item_id}")
async def remove_list_item(section: str, item_id: str, wizard: OnboardingWizard = Depends(get_wizard)):
    if section not in LIST_SECTIONS:
        raise HTTPException(status_code=404, detail=f"Unknown list section: {section}")
    wizard.store.remove_list_item(section, item_id)
    return {"items": [item.to_dict() for item in getattr(wizard.store.sections, section)]}


@router.put("/files/{slot}")
async def attach_file(slot: str, request: FileRequest, wizard: OnboardingWizard = Depends(get_wizard)):
    """Attach a file to a slot; it is uploaded on submit."""
    try:
        content = base64.b64decode(request.content, validate=True)
    except binascii.Error:
        raise HTTPException(status_code=422, detail="File content must be base64")

    uploaded = UploadedFile(
        name=request.name,
        type=request.type,
        size=request.size or len(content),
        preview=request.preview,
        file=content,
    )
    try:
        wizard.store.attach_file(slot, uploaded)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown file slot: {slot}")
    return uploaded.to_dict()


@router.delete("/files/{slot}")
async def detach_file(slot: str, wizard: OnboardingWizard = Depends(get_wizard)):
    try:
        wizard.store.attach_file(slot, None)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown file slot: {slot}")
    return {"success": True}


@router.post("/verify-pincode")
async def verify_pincode(wizard: OnboardingWizard = Depends(get_wizard)):
    """Verify the present-address pincode and fill city/state."""
    result = await wizard.verify_pincode()
    return {**asdict(result), "address": wizard.store.address.present.to_dict()}


# =============================================================================
# Endpoints: Steps
# =============================================================================


@router.put("/steps/current", response_model=StepResponse)
async def set_step_value(request: FieldValueRequest, wizard: OnboardingWizard = Depends(get_wizard)) -> StepResponse:
    """Edit one field of the active step; errors cover touched fields only."""
    try:
        errors = wizard.set_value(request.path, request.value)
    except KeyError as e:
        raise HTTPException(status_code=422, detail=str(e).strip("'\""))
    return StepResponse(
        current_step=wizard.current_step_id.value,
        ok=not errors,
        errors=errors,
    )


@router.post("/steps/next", response_model=StepResponse)
async def next_step(wizard: OnboardingWizard = Depends(get_wizard)) -> StepResponse:
    """Validate the active step and move on if it passes."""
    advance = wizard.advance()
    return _step_response(wizard, advance.result, advance.navigation)


@router.post("/steps/previous", response_model=StepResponse)
async def previous_step(wizard: OnboardingWizard = Depends(get_wizard)) -> StepResponse:
    return _step_response(wizard, navigation=wizard.go_previous())


@router.post("/steps/goto", response_model=StepResponse)
async def go_to_step(request: GoToStepRequest, wizard: OnboardingWizard = Depends(get_wizard)) -> StepResponse:
    try:
        navigation = wizard.go_to_step(request.step)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown step: {request.step}")
    return _step_response(wizard, navigation=navigation)


@router.get("/steps/validate")
async def validate_steps(wizard: OnboardingWizard = Depends(get_wizard)):
    """Validate every step without moving."""
    return {
        step_id.value: {"ok": result.ok, "skipped": result.skipped, "errors": result.errors}
        for step_id, result in wizard.validate_all().items()
    }


# =============================================================================
# Endpoints: Review & Submit
# =============================================================================


@router.get("/review")
async def get_review(wizard: OnboardingWizard = Depends(get_wizard)):
    return {"blocks": [block.to_dict() for block in wizard.review()]}


@router.post("/declaration", response_model=StepResponse)
async def accept_declaration(request: DeclarationRequest, wizard: OnboardingWizard = Depends(get_wizard)) -> StepResponse:
    errors = wizard.steps[StepId.REVIEW].set_value("declaration_accepted", request.accepted)
    return StepResponse(current_step=wizard.current_step_id.value, ok=not errors, errors=errors)


@router.post("/submit")
async def submit(
    user: AuthenticatedUser = Depends(get_current_user),
    wizard: OnboardingWizard = Depends(get_wizard),
):
    """
    Upload attachments and create the enrollment record.

    Failures come back as {"success": false, "error": ...}; the wizard keeps
    its data so the user can retry. Success ends the session.
    """
    result = await wizard.submit()
    response = result.to_dict()
    if result.success:
        # A submitted enrollment is finished; the next request starts fresh
        _wizards.pop(user.id, None)
        if result.record:
            response["record_id"] = result.record.get("id")
    return response
