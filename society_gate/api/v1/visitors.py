"""Visitors API - pre-registration, gate capture, approval and QR scans"""
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
from society_gate.domain.models.transition_record import TransitionRecordRead
from society_gate.domain.models.visitor import VisitorCreate, VisitorRead, VisitorUpdate
from society_gate.domain.services import credentials as store
from society_gate.domain.services.gateway import VerificationGateway
from society_gate.infrastructure.notifications import NotificationClient

router = APIRouter()


class VisitorScanRequest(BaseModel):
    qr_code: str
    notes: Optional[str] = None


class VisitorCaptureRequest(BaseModel):
    """Unregistered visitor photographed at the gate"""
    name: str
    phone: str
    flat_no: str
    purpose: Optional[str] = None
    image_url: Optional[str] = None


class VisitorActionRequest(BaseModel):
    notes: Optional[str] = None


def _payload(model: Any) -> Dict[str, Any]:
    return model.model_dump(exclude_unset=True, mode="json")


async def _act(
    gateway: VerificationGateway,
    visitor_id: UUID,
    edge: str,
    request: Optional[VisitorActionRequest],
    background_tasks: BackgroundTasks,
    notifier: NotificationClient,
) -> VerifyResponse:
    notes = request.notes if request else None
    outcome = await gateway.transition(visitor_id, edge, Variant.VISITOR, notes=notes)
    notify_transition(background_tasks, notifier, outcome)
    return outcome_response(outcome)


@router.get("/", response_model=List[VisitorRead])
async def list_visitors(
    gateway: VerificationGateway = Depends(get_gateway),
    paging: Paging = Depends(),
    status: Optional[str] = None,
    resident_id: Optional[UUID] = None,
):
    """List visitors for a society; residents only see their own"""
    return await store.list_entities(
        gateway.session,
        gateway.tenant_id,
        Variant.VISITOR,
        status=status,
        resident_id=gateway.scope_resident(resident_id),
        skip=paging.skip,
        limit=paging.limit,
    )


@router.get("/pending", response_model=List[VisitorRead])
async def pending_visitors(
    gateway: VerificationGateway = Depends(get_gateway),
    paging: Paging = Depends(),
):
    """Visitors awaiting a decision (resident approval queue)"""
    return await store.list_entities(
        gateway.session,
        gateway.tenant_id,
        Variant.VISITOR,
        status="pending",
        resident_id=gateway.scope_resident(None),
        skip=paging.skip,
        limit=paging.limit,
    )


@router.get("/search", response_model=List[VisitorRead])
async def search_visitors(
    name: str,
    gateway: VerificationGateway = Depends(get_gateway),
    paging: Paging = Depends(),
):
    return await store.list_entities(
        gateway.session,
        gateway.tenant_id,
        Variant.VISITOR,
        resident_id=gateway.scope_resident(None),
        search=name,
        skip=paging.skip,
        limit=paging.limit,
    )


@router.post("/", response_model=VisitorRead, status_code=201)
async def create_visitor(
    visitor: VisitorCreate,
    background_tasks: BackgroundTasks,
    gateway: VerificationGateway = Depends(get_gateway),
    notifier: NotificationClient = Depends(get_notifier),
):
    """
    Pre-register a visitor
    A resident's own pre-registration is approved immediately; the QR code is
    generated when none is supplied
    """
    entity = await gateway.register(Variant.VISITOR, _payload(visitor))
    notify_created(background_tasks, notifier, Variant.VISITOR, entity)
    return entity


@router.post("/capture", response_model=VisitorRead, status_code=201)
async def capture_visitor(
    request: VisitorCaptureRequest,
    background_tasks: BackgroundTasks,
    gateway: VerificationGateway = Depends(get_gateway),
    notifier: NotificationClient = Depends(get_notifier),
):
    """Security registers an unannounced visitor; the flat's resident decides"""
    gateway.require_operator()
    if not (request.image_url or "").strip():
        raise ValidationError("Please capture visitor photo")

    entity = await gateway.register(Variant.VISITOR, _payload(request))
    notify_created(background_tasks, notifier, Variant.VISITOR, entity)
    return entity


@router.post("/scan", response_model=VerifyResponse)
async def scan_visitor(
    request: VisitorScanRequest,
    background_tasks: BackgroundTasks,
    gateway: VerificationGateway = Depends(get_gateway),
    notifier: NotificationClient = Depends(get_notifier),
):
    """Scan a visitor QR: granted visitors check in, checked-in visitors check out"""
    outcome = await gateway.verify(request.qr_code, Variant.VISITOR, notes=request.notes)
    notify_transition(background_tasks, notifier, outcome)
    return outcome_response(outcome)


@router.get("/{visitor_id}", response_model=VisitorRead)
async def get_visitor(
    visitor_id: UUID,
    gateway: VerificationGateway = Depends(get_gateway),
):
    _, entity = await gateway.snapshot(visitor_id, Variant.VISITOR)
    return entity


@router.patch("/{visitor_id}", response_model=VisitorRead)
async def update_visitor(
    visitor_id: UUID,
    visitor_update: VisitorUpdate,
    gateway: VerificationGateway = Depends(get_gateway),
):
    _, entity = await gateway.edit(visitor_id, _payload(visitor_update), Variant.VISITOR)
    return entity


@router.delete("/{visitor_id}", status_code=204)
async def delete_visitor(
    visitor_id: UUID,
    gateway: VerificationGateway = Depends(get_gateway),
):
    await gateway.remove(visitor_id, Variant.VISITOR)
    return None


@router.post("/{visitor_id}/approve", response_model=VerifyResponse)
async def approve_visitor(
    visitor_id: UUID,
    background_tasks: BackgroundTasks,
    request: Optional[VisitorActionRequest] = None,
    gateway: VerificationGateway = Depends(get_gateway),
    notifier: NotificationClient = Depends(get_notifier),
):
    return await _act(gateway, visitor_id, "approve", request, background_tasks, notifier)


@router.post("/{visitor_id}/deny", response_model=VerifyResponse)
async def deny_visitor(
    visitor_id: UUID,
    background_tasks: BackgroundTasks,
    request: Optional[VisitorActionRequest] = None,
    gateway: VerificationGateway = Depends(get_gateway),
    notifier: NotificationClient = Depends(get_notifier),
):
    return await _act(gateway, visitor_id, "deny", request, background_tasks, notifier)


@router.post("/{visitor_id}/exit", response_model=VerifyResponse)
async def exit_visitor(
    visitor_id: UUID,
    background_tasks: BackgroundTasks,
    request: Optional[VisitorActionRequest] = None,
    gateway: VerificationGateway = Depends(get_gateway),
    notifier: NotificationClient = Depends(get_notifier),
):
    """Mark a visitor as left, whether or not they were checked in"""
    return await _act(gateway, visitor_id, "check_out", request, background_tasks, notifier)


@router.get("/{visitor_id}/logs", response_model=List[TransitionRecordRead])
async def visitor_logs(
    visitor_id: UUID,
    gateway: VerificationGateway = Depends(get_gateway),
):
    return await gateway.history(visitor_id, Variant.VISITOR)
