"""Staff API - permanent-ID registration, gate entry/exit and blocking"""
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel

from society_gate.api.deps import (
    Paging,
    VerifyResponse,
    get_gateway,
    get_notifier,
    notify_created,
    notify_transition,
    outcome_response,
)
from society_gate.domain.errors import ValidationError
from society_gate.domain.lifecycle import Variant
from society_gate.domain.models.staff import StaffCreate, StaffRead, StaffUpdate
from society_gate.domain.models.transition_record import TransitionRecordRead
from society_gate.domain.services import credentials as store
from society_gate.domain.services.gateway import VerificationGateway
from society_gate.infrastructure.notifications import NotificationClient

router = APIRouter()

# List filter -> query restriction
STATE_FILTERS: Dict[str, Dict[str, Any]] = {
    "inside": {"status": "inside"},
    "outside": {"status": "outside"},
    "blocked": {"filters": {"is_blocked": True}},
}


class StaffGateRequest(BaseModel):
    permanent_id: str
    notes: Optional[str] = None


class StaffActionRequest(BaseModel):
    notes: Optional[str] = None


@router.get("/", response_model=List[StaffRead])
async def list_staff(
    gateway: VerificationGateway = Depends(get_gateway),
    paging: Paging = Depends(),
    state: Optional[str] = None,
    search: Optional[str] = None,
):
    """List staff; ``state`` is one of inside, outside, blocked"""
    gateway.require_operator()
    if state and state not in STATE_FILTERS:
        raise ValidationError(f"Unknown staff filter '{state}'")

    return await store.list_entities(
        gateway.session,
        gateway.tenant_id,
        Variant.STAFF,
        search=search,
        skip=paging.skip,
        limit=paging.limit,
        **STATE_FILTERS.get(state, {}),
    )


@router.post("/register", response_model=StaffRead, status_code=201)
async def register_staff(
    staff: StaffCreate,
    background_tasks: BackgroundTasks,
    gateway: VerificationGateway = Depends(get_gateway),
    notifier: NotificationClient = Depends(get_notifier),
):
    entity = await gateway.register(Variant.STAFF, staff.model_dump(exclude_unset=True, mode="json"))
    notify_created(background_tasks, notifier, Variant.STAFF, entity)
    return entity


@router.post("/entry", response_model=VerifyResponse)
async def staff_entry(
    request: StaffGateRequest,
    background_tasks: BackgroundTasks,
    gateway: VerificationGateway = Depends(get_gateway),
    notifier: NotificationClient = Depends(get_notifier),
):
    outcome = await gateway.act_on_credential(request.permanent_id, Variant.STAFF, "entry", notes=request.notes)
    notify_transition(background_tasks, notifier, outcome)
    return outcome_response(outcome)


@router.post("/exit", response_model=VerifyResponse)
async def staff_exit(
    request: StaffGateRequest,
    background_tasks: BackgroundTasks,
    gateway: VerificationGateway = Depends(get_gateway),
    notifier: NotificationClient = Depends(get_notifier),
):
    outcome = await gateway.act_on_credential(request.permanent_id, Variant.STAFF, "exit", notes=request.notes)
    notify_transition(background_tasks, notifier, outcome)
    return outcome_response(outcome)


@router.get("/history/{permanent_id}", response_model=List[TransitionRecordRead])
async def staff_history(
    permanent_id: str,
    gateway: VerificationGateway = Depends(get_gateway),
):
    """Entry/exit log looked up by permanent ID"""
    gateway.require_operator()
    entity = await gateway.resolve(permanent_id, Variant.STAFF)
    return await gateway.history(entity.id, Variant.STAFF)


@router.get("/{staff_id}", response_model=StaffRead)
async def get_staff(
    staff_id: UUID,
    gateway: VerificationGateway = Depends(get_gateway),
):
    gateway.require_operator()
    _, entity = await gateway.snapshot(staff_id, Variant.STAFF)
    return entity


@router.patch("/{staff_id}", response_model=StaffRead)
async def update_staff(
    staff_id: UUID,
    staff_update: StaffUpdate,
    gateway: VerificationGateway = Depends(get_gateway),
):
    _, entity = await gateway.edit(
        staff_id, staff_update.model_dump(exclude_unset=True, mode="json"), Variant.STAFF
    )
    return entity


@router.delete("/{staff_id}", status_code=204)
async def delete_staff(
    staff_id: UUID,
    gateway: VerificationGateway = Depends(get_gateway),
):
    await gateway.remove(staff_id, Variant.STAFF)
    return None


@router.post("/{staff_id}/block", response_model=VerifyResponse)
async def block_staff(
    staff_id: UUID,
    background_tasks: BackgroundTasks,
    request: Optional[StaffActionRequest] = None,
    gateway: VerificationGateway = Depends(get_gateway),
    notifier: NotificationClient = Depends(get_notifier),
):
    outcome = await gateway.transition(staff_id, "block", Variant.STAFF, notes=request.notes if request else None)
    notify_transition(background_tasks, notifier, outcome)
    return outcome_response(outcome)


@router.post("/{staff_id}/unblock", response_model=VerifyResponse)
async def unblock_staff(
    staff_id: UUID,
    background_tasks: BackgroundTasks,
    request: Optional[StaffActionRequest] = None,
    gateway: VerificationGateway = Depends(get_gateway),
    notifier: NotificationClient = Depends(get_notifier),
):
    outcome = await gateway.transition(staff_id, "unblock", Variant.STAFF, notes=request.notes if request else None)
    notify_transition(background_tasks, notifier, outcome)
    return outcome_response(outcome)
