"""Verification API - credential scans, generic entity contract and history"""
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel, Field

from society_gate.api.deps import (
    EntityResponse,
    VerifyResponse,
    get_gateway,
    get_notifier,
    notify_created,
    notify_transition,
    outcome_response,
)
from society_gate.domain.lifecycle import Variant
from society_gate.domain.models.transition_record import TransitionRecordRead
from society_gate.domain.services import credentials as store
from society_gate.domain.services.gateway import VerificationGateway
from society_gate.infrastructure.notifications import NotificationClient

router = APIRouter()


class VerifyRequest(BaseModel):
    credential: str
    variant: Variant
    notes: Optional[str] = None


class EntityCreateRequest(BaseModel):
    variant: Variant
    subject_info: Dict[str, Any] = Field(default_factory=dict)


class EntityUpdateRequest(BaseModel):
    subject_info: Dict[str, Any] = Field(default_factory=dict)


class TransitionRequest(BaseModel):
    edge: Optional[str] = None
    notes: Optional[str] = None
    action_taken: Optional[str] = None


@router.post("/verify", response_model=VerifyResponse)
async def verify(
    request: VerifyRequest,
    background_tasks: BackgroundTasks,
    gateway: VerificationGateway = Depends(get_gateway),
    notifier: NotificationClient = Depends(get_notifier),
):
    """
    Verify a presented credential (QR payload, delivery code, permanent id, plate)
    The next edge is inferred from the entity's current status
    """
    outcome = await gateway.verify(request.credential, request.variant, notes=request.notes)
    notify_transition(background_tasks, notifier, outcome)
    return outcome_response(outcome)


@router.post("/entities", response_model=EntityResponse, status_code=201)
async def create_entity(
    request: EntityCreateRequest,
    background_tasks: BackgroundTasks,
    gateway: VerificationGateway = Depends(get_gateway),
    notifier: NotificationClient = Depends(get_notifier),
):
    entity = await gateway.register(request.variant, request.subject_info)
    notify_created(background_tasks, notifier, request.variant, entity)
    return EntityResponse(variant=request.variant, entity=store.serialize(request.variant, entity))


@router.get("/entities/{entity_id}", response_model=EntityResponse)
async def get_entity(
    entity_id: UUID,
    gateway: VerificationGateway = Depends(get_gateway),
):
    """Current snapshot of any tracked entity"""
    variant, entity = await gateway.snapshot(entity_id)
    return EntityResponse(variant=variant, entity=store.serialize(variant, entity))


@router.patch("/entities/{entity_id}", response_model=EntityResponse)
async def update_entity(
    entity_id: UUID,
    request: EntityUpdateRequest,
    gateway: VerificationGateway = Depends(get_gateway),
):
    variant, entity = await gateway.edit(entity_id, request.subject_info)
    return EntityResponse(variant=variant, entity=store.serialize(variant, entity))


@router.delete("/entities/{entity_id}", status_code=204)
async def delete_entity(
    entity_id: UUID,
    gateway: VerificationGateway = Depends(get_gateway),
):
    await gateway.remove(entity_id)
    return None


@router.post("/entities/{entity_id}/transitions", response_model=VerifyResponse)
async def apply_transition(
    entity_id: UUID,
    request: TransitionRequest,
    background_tasks: BackgroundTasks,
    gateway: VerificationGateway = Depends(get_gateway),
    notifier: NotificationClient = Depends(get_notifier),
):
    """Take a caller-specified edge (approve, deny, block, resolve ...)"""
    outcome = await gateway.transition(
        entity_id,
        request.edge,
        notes=request.notes,
        action_taken=request.action_taken,
    )
    notify_transition(background_tasks, notifier, outcome)
    return outcome_response(outcome)


@router.get("/history/{entity_id}", response_model=List[TransitionRecordRead])
async def get_history(
    entity_id: UUID,
    gateway: VerificationGateway = Depends(get_gateway),
):
    """Ordered transition records for one entity"""
    return await gateway.history(entity_id)
