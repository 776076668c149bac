"""Shared request dependencies: tenant, identity, gateway, paging, responses"""
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import BackgroundTasks, Depends, Header, Query, Request
from pydantic import BaseModel
from sqlmodel.ext.asyncio.session import AsyncSession

from society_gate.config import settings
from society_gate.domain.actors import Actor
from society_gate.domain.lifecycle import Variant
from society_gate.domain.services import credentials as store
from society_gate.domain.services.engine import TransitionOutcome
from society_gate.domain.services.gateway import VerificationGateway
from society_gate.infrastructure.database import get_session
from society_gate.infrastructure.identity import HeaderIdentityProvider, IdentityProvider
from society_gate.infrastructure.notifications import NotificationClient, notification_client

_identity_provider = HeaderIdentityProvider()


def get_tenant_id(x_society_id: UUID = Header(..., description="Society (tenant) ID")) -> UUID:
    """Extract tenant ID from header for multi-tenant isolation"""
    return x_society_id


def get_identity_provider() -> IdentityProvider:
    return _identity_provider


def get_actor(request: Request, provider: IdentityProvider = Depends(get_identity_provider)) -> Actor:
    return provider.identify(request.headers)


def get_gateway(
    tenant_id: UUID = Depends(get_tenant_id),
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session),
) -> VerificationGateway:
    return VerificationGateway(session, tenant_id, actor)


def get_notifier() -> NotificationClient:
    return notification_client


class Paging:
    def __init__(
        self,
        skip: int = Query(0, ge=0),
        limit: Optional[int] = Query(None, ge=1),
    ):
        self.skip = skip
        self.limit = min(limit or settings.default_page_size, settings.max_page_size)


class VerifyResponse(BaseModel):
    status: int = 200
    variant: Variant
    entity: Dict[str, Any]
    message: str


class EntityResponse(BaseModel):
    variant: Variant
    entity: Dict[str, Any]


def outcome_response(outcome: TransitionOutcome) -> VerifyResponse:
    return VerifyResponse(
        variant=outcome.variant,
        entity=store.serialize(outcome.variant, outcome.entity),
        message=outcome.message,
    )


def notify_transition(
    background_tasks: BackgroundTasks,
    notifier: NotificationClient,
    outcome: TransitionOutcome,
) -> None:
    """Queue the webhook push after the response is sent"""
    if not notifier.enabled:
        return
    record = outcome.record
    background_tasks.add_task(
        notifier.transition_applied,
        {
            "society_id": str(record.society_id),
            "variant": record.variant,
            "entity_id": str(record.entity_id),
            "resident_id": str(outcome.entity.resident_id) if getattr(outcome.entity, "resident_id", None) else None,
            "edge": record.edge,
            "from_status": record.from_status,
            "to_status": record.to_status,
            "actor_id": record.actor_id,
            "actor_role": record.actor_role,
            "message": outcome.message,
        },
    )


def notify_created(
    background_tasks: BackgroundTasks,
    notifier: NotificationClient,
    variant: Variant,
    entity: Any,
) -> None:
    if not notifier.enabled:
        return
    background_tasks.add_task(
        notifier.entity_created,
        {
            "society_id": str(entity.society_id),
            "variant": Variant(variant).value,
            "entity_id": str(entity.id),
            "resident_id": str(entity.resident_id) if entity.resident_id else None,
            "status": entity.status,
        },
    )
