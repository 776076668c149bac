"""Deliveries API - expected deliveries and gate scans of their codes"""
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
from society_gate.domain.lifecycle import Variant
from society_gate.domain.models.delivery import DeliveryCreate, DeliveryRead, DeliveryUpdate
from society_gate.domain.models.transition_record import TransitionRecordRead
from society_gate.domain.services import credentials as store
from society_gate.domain.services.gateway import VerificationGateway
from society_gate.infrastructure.notifications import NotificationClient

router = APIRouter()


class DeliveryScanRequest(BaseModel):
    unique_id: str
    notes: Optional[str] = None


def _payload(model: Any) -> Dict[str, Any]:
    return model.model_dump(exclude_unset=True, mode="json")


@router.get("/", response_model=List[DeliveryRead])
async def list_deliveries(
    gateway: VerificationGateway = Depends(get_gateway),
    paging: Paging = Depends(),
    status: Optional[str] = None,
    resident_id: Optional[UUID] = None,
    search: Optional[str] = None,
):
    """List deliveries for a society; residents only see their own"""
    return await store.list_entities(
        gateway.session,
        gateway.tenant_id,
        Variant.DELIVERY,
        status=status,
        resident_id=gateway.scope_resident(resident_id),
        search=search,
        skip=paging.skip,
        limit=paging.limit,
    )


@router.post("/", response_model=DeliveryRead, status_code=201)
async def create_delivery(
    delivery: DeliveryCreate,
    background_tasks: BackgroundTasks,
    gateway: VerificationGateway = Depends(get_gateway),
    notifier: NotificationClient = Depends(get_notifier),
):
    """
    Register an expected delivery
    A delivery code is generated when none is supplied
    """
    entity = await gateway.register(Variant.DELIVERY, _payload(delivery))
    notify_created(background_tasks, notifier, Variant.DELIVERY, entity)
    return entity


@router.post("/scan", response_model=VerifyResponse)
async def scan_delivery(
    request: DeliveryScanRequest,
    background_tasks: BackgroundTasks,
    gateway: VerificationGateway = Depends(get_gateway),
    notifier: NotificationClient = Depends(get_notifier),
):
    """Security scan: first scan records entry, second records exit"""
    outcome = await gateway.verify(request.unique_id, Variant.DELIVERY, notes=request.notes)
    notify_transition(background_tasks, notifier, outcome)
    return outcome_response(outcome)


@router.get("/{delivery_id}", response_model=DeliveryRead)
async def get_delivery(
    delivery_id: UUID,
    gateway: VerificationGateway = Depends(get_gateway),
):
    _, entity = await gateway.snapshot(delivery_id, Variant.DELIVERY)
    return entity


@router.patch("/{delivery_id}", response_model=DeliveryRead)
async def update_delivery(
    delivery_id: UUID,
    delivery_update: DeliveryUpdate,
    gateway: VerificationGateway = Depends(get_gateway),
):
    _, entity = await gateway.edit(delivery_id, _payload(delivery_update), Variant.DELIVERY)
    return entity


@router.delete("/{delivery_id}", status_code=204)
async def delete_delivery(
    delivery_id: UUID,
    gateway: VerificationGateway = Depends(get_gateway),
):
    await gateway.remove(delivery_id, Variant.DELIVERY)
    return None


@router.get("/{delivery_id}/logs", response_model=List[TransitionRecordRead])
async def delivery_logs(
    delivery_id: UUID,
    gateway: VerificationGateway = Depends(get_gateway),
):
    return await gateway.history(delivery_id, Variant.DELIVERY)
