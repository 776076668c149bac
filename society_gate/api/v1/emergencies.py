"""Emergencies API - resident alerts and their handling by security"""
from typing import Dict, List, Optional, Tuple
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
from society_gate.domain.actors import Role
from society_gate.domain.errors import Unauthorized, ValidationError
from society_gate.domain.lifecycle import Variant
from society_gate.domain.models.emergency_alert import (
    EmergencyAlertCreate,
    EmergencyAlertRead,
    EmergencyAlertUpdate,
)
from society_gate.domain.models.transition_record import TransitionRecordRead
from society_gate.domain.services import credentials as store
from society_gate.domain.services.gateway import VerificationGateway
from society_gate.infrastructure.notifications import NotificationClient

router = APIRouter()

# Requested status -> edge, default action text
STATUS_EDGES: Dict[str, Tuple[str, Optional[str]]] = {
    "Processing": ("process", "Marked as Processing by security"),
    "Resolved": ("resolve", None),
}


class AlertStatusRequest(BaseModel):
    status: str
    action_taken: Optional[str] = None
    notes: Optional[str] = None


class UnauthorizedEntryRequest(BaseModel):
    location: Optional[str] = None
    description: Optional[str] = None


@router.post("/", response_model=EmergencyAlertRead, status_code=201)
async def create_alert(
    alert: EmergencyAlertCreate,
    background_tasks: BackgroundTasks,
    gateway: VerificationGateway = Depends(get_gateway),
    notifier: NotificationClient = Depends(get_notifier),
):
    """Raise an alert; a resident's alert is linked to them"""
    entity = await gateway.register(Variant.EMERGENCY, alert.model_dump(exclude_unset=True, mode="json"))
    notify_created(background_tasks, notifier, Variant.EMERGENCY, entity)
    return entity


@router.post("/unauthorized-entry", response_model=EmergencyAlertRead, status_code=201)
async def report_unauthorized_entry(
    background_tasks: BackgroundTasks,
    request: Optional[UnauthorizedEntryRequest] = None,
    gateway: VerificationGateway = Depends(get_gateway),
    notifier: NotificationClient = Depends(get_notifier),
):
    """One-tap alert from the gate"""
    gateway.require_operator()
    request = request or UnauthorizedEntryRequest()

    entity = await gateway.register(
        Variant.EMERGENCY,
        {
            "type": "Unauthorized Entry",
            "location": request.location or "Main Gate",
            "description": request.description
            or "Unauthorized person attempting entry. Immediate attention required.",
        },
    )
    notify_created(background_tasks, notifier, Variant.EMERGENCY, entity)
    return entity


@router.get("/mine", response_model=List[EmergencyAlertRead])
async def my_alerts(
    gateway: VerificationGateway = Depends(get_gateway),
    paging: Paging = Depends(),
    status: Optional[str] = None,
):
    if gateway.actor.role is not Role.RESIDENT:
        raise Unauthorized("Only residents have their own alerts")

    return await store.list_entities(
        gateway.session,
        gateway.tenant_id,
        Variant.EMERGENCY,
        status=status,
        resident_id=gateway.scope_resident(None),
        skip=paging.skip,
        limit=paging.limit,
    )


@router.get("/", response_model=List[EmergencyAlertRead])
async def list_alerts(
    gateway: VerificationGateway = Depends(get_gateway),
    paging: Paging = Depends(),
    status: Optional[str] = None,
    type: Optional[str] = None,
    search: Optional[str] = None,
):
    """Alert queue for security, newest first"""
    gateway.require_operator()
    return await store.list_entities(
        gateway.session,
        gateway.tenant_id,
        Variant.EMERGENCY,
        status=status,
        filters={"type": type} if type else None,
        search=search,
        skip=paging.skip,
        limit=paging.limit,
    )


@router.get("/{alert_id}", response_model=EmergencyAlertRead)
async def get_alert(
    alert_id: UUID,
    gateway: VerificationGateway = Depends(get_gateway),
):
    _, entity = await gateway.snapshot(alert_id, Variant.EMERGENCY)
    return entity


@router.patch("/{alert_id}", response_model=EmergencyAlertRead)
async def update_alert(
    alert_id: UUID,
    alert_update: EmergencyAlertUpdate,
    gateway: VerificationGateway = Depends(get_gateway),
):
    _, entity = await gateway.edit(
        alert_id, alert_update.model_dump(exclude_unset=True, mode="json"), Variant.EMERGENCY
    )
    return entity


@router.delete("/{alert_id}", status_code=204)
async def delete_alert(
    alert_id: UUID,
    gateway: VerificationGateway = Depends(get_gateway),
):
    await gateway.remove(alert_id, Variant.EMERGENCY)
    return None


@router.put("/{alert_id}/status", response_model=VerifyResponse)
async def update_alert_status(
    alert_id: UUID,
    request: AlertStatusRequest,
    background_tasks: BackgroundTasks,
    gateway: VerificationGateway = Depends(get_gateway),
    notifier: NotificationClient = Depends(get_notifier),
):
    """Move an alert to Processing or Resolved; resolving needs the action taken"""
    if request.status not in STATUS_EDGES:
        raise ValidationError(f"Cannot set alert status to '{request.status}'")

    edge, default_action = STATUS_EDGES[request.status]
    action_taken = request.action_taken
    if default_action and not (action_taken or "").strip():
        action_taken = default_action

    outcome = await gateway.transition(
        alert_id,
        edge,
        Variant.EMERGENCY,
        notes=request.notes,
        action_taken=action_taken,
    )
    notify_transition(background_tasks, notifier, outcome)
    return outcome_response(outcome)


@router.post("/{alert_id}/quick-update", response_model=VerifyResponse)
async def quick_update_alert(
    alert_id: UUID,
    background_tasks: BackgroundTasks,
    gateway: VerificationGateway = Depends(get_gateway),
    notifier: NotificationClient = Depends(get_notifier),
):
    """Advance an alert one step with the standard action text"""
    outcome = await gateway.transition(alert_id, None, Variant.EMERGENCY)
    notify_transition(background_tasks, notifier, outcome)
    return outcome_response(outcome)


@router.get("/{alert_id}/history", response_model=List[TransitionRecordRead])
async def alert_history(
    alert_id: UUID,
    gateway: VerificationGateway = Depends(get_gateway),
):
    return await gateway.history(alert_id, Variant.EMERGENCY)
