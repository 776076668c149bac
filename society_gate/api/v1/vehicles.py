"""Vehicles API - resident and guest vehicles, plate verification at the gate"""
from typing import List, Optional
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
from society_gate.domain.models.transition_record import TransitionRecordRead
from society_gate.domain.models.vehicle import VehicleCreate, VehicleRead, VehicleUpdate
from society_gate.domain.services import credentials as store
from society_gate.domain.services.gateway import VerificationGateway
from society_gate.infrastructure.notifications import NotificationClient

router = APIRouter()

GATE_ACTIONS = ("entry", "exit")


class VehicleScanRequest(BaseModel):
    vehicle_no: str
    notes: Optional[str] = None


@router.get("/", response_model=List[VehicleRead])
async def list_vehicles(
    gateway: VerificationGateway = Depends(get_gateway),
    paging: Paging = Depends(),
    status: Optional[str] = None,
    is_guest: Optional[bool] = None,
    search: Optional[str] = None,
):
    filters = {"is_guest": is_guest} if is_guest is not None else None
    return await store.list_entities(
        gateway.session,
        gateway.tenant_id,
        Variant.VEHICLE,
        status=status,
        resident_id=gateway.scope_resident(None),
        search=search,
        filters=filters,
        skip=paging.skip,
        limit=paging.limit,
    )


@router.post("/register", response_model=VehicleRead, status_code=201)
async def register_vehicle(
    vehicle: VehicleCreate,
    background_tasks: BackgroundTasks,
    gateway: VerificationGateway = Depends(get_gateway),
    notifier: NotificationClient = Depends(get_notifier),
):
    """Register a plate; guest vehicles need the visitor's name"""
    entity = await gateway.register(Variant.VEHICLE, vehicle.model_dump(exclude_unset=True, mode="json"))
    notify_created(background_tasks, notifier, Variant.VEHICLE, entity)
    return entity


@router.post("/verify/{vehicle_no}/{action}", response_model=VerifyResponse)
async def verify_vehicle(
    vehicle_no: str,
    action: str,
    background_tasks: BackgroundTasks,
    gateway: VerificationGateway = Depends(get_gateway),
    notifier: NotificationClient = Depends(get_notifier),
):
    """Record entry or exit for a plate; the action must fit where the vehicle is"""
    if action not in GATE_ACTIONS:
        raise ValidationError("Action must be 'entry' or 'exit'")

    outcome = await gateway.act_on_credential(vehicle_no, Variant.VEHICLE, action)
    notify_transition(background_tasks, notifier, outcome)
    return outcome_response(outcome)


@router.post("/scan", response_model=VerifyResponse)
async def scan_vehicle(
    request: VehicleScanRequest,
    background_tasks: BackgroundTasks,
    gateway: VerificationGateway = Depends(get_gateway),
    notifier: NotificationClient = Depends(get_notifier),
):
    outcome = await gateway.verify(request.vehicle_no, Variant.VEHICLE, notes=request.notes)
    notify_transition(background_tasks, notifier, outcome)
    return outcome_response(outcome)


@router.get("/{vehicle_id}", response_model=VehicleRead)
async def get_vehicle(
    vehicle_id: UUID,
    gateway: VerificationGateway = Depends(get_gateway),
):
    _, entity = await gateway.snapshot(vehicle_id, Variant.VEHICLE)
    return entity


@router.patch("/{vehicle_id}", response_model=VehicleRead)
async def update_vehicle(
    vehicle_id: UUID,
    vehicle_update: VehicleUpdate,
    gateway: VerificationGateway = Depends(get_gateway),
):
    _, entity = await gateway.edit(
        vehicle_id, vehicle_update.model_dump(exclude_unset=True, mode="json"), Variant.VEHICLE
    )
    return entity


@router.delete("/{vehicle_id}", status_code=204)
async def delete_vehicle(
    vehicle_id: UUID,
    gateway: VerificationGateway = Depends(get_gateway),
):
    await gateway.remove(vehicle_id, Variant.VEHICLE)
    return None


@router.get("/{vehicle_id}/history", response_model=List[TransitionRecordRead])
async def vehicle_history(
    vehicle_id: UUID,
    gateway: VerificationGateway = Depends(get_gateway),
):
    return await gateway.history(vehicle_id, Variant.VEHICLE)
