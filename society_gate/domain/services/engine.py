"""
Transition engine
Validates a requested edge against the entity's lifecycle table, the actor's
role and the edge guard, then applies it together with its ledger record.
Each entity is serialised by an in-process lock plus a row lock, so two
operators acting on the same entity never both take the same edge.
"""
import asyncio
import weakref
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Hashable, Optional
from uuid import UUID

import structlog
from sqlmodel.ext.asyncio.session import AsyncSession

from society_gate.config import settings
from society_gate.domain.actors import Actor, Role
from society_gate.domain.errors import (
    AlreadyTerminal,
    IllegalTransition,
    Unauthorized,
    ValidationError,
    VerificationError,
)
from society_gate.domain.lifecycle import Edge, TransitionSpec, Variant, spec_for
from society_gate.domain.models import TransitionRecord
from society_gate.domain.models.tracked import utcnow
from society_gate.domain.services import credentials as store
from society_gate.domain.services import ledger

logger = structlog.get_logger(__name__)


class EntityLocks:
    """One asyncio.Lock per key, dropped once nobody holds or awaits it"""

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[Hashable, asyncio.Lock]" = weakref.WeakValueDictionary()

    def lock_for(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self.lock_for(key)
        async with lock:
            yield


entity_locks = EntityLocks()


@dataclass
class TransitionOutcome:
    variant: Variant
    entity: Any
    record: TransitionRecord
    edge: Edge

    @property
    def message(self) -> str:
        return self.edge.message or f"{self.record.edge} recorded"


def select_edge(
    spec: TransitionSpec,
    entity: Any,
    edge_name: Optional[str],
    expected_status: Optional[str] = None,
) -> Edge:
    """Pick the requested edge, or infer the single automatic one"""
    status = entity.status
    noun = spec.label.lower()

    if spec.is_terminal(status):
        raise AlreadyTerminal(f"{spec.label} already {status}")

    if expected_status is not None and status != expected_status:
        raise IllegalTransition(f"{spec.label} is now {status}; it was updated by another operator")

    if edge_name is None:
        edge = spec.infer(status)
        if edge is None:
            raise IllegalTransition(spec.hints.get(status) or f"No automatic action for {noun} while {status}")
        return edge

    if not spec.knows(edge_name):
        raise ValidationError(f"Unknown action '{edge_name}' for {noun}")

    edge = spec.find(edge_name, status)
    if edge is None:
        raise IllegalTransition(f"Cannot {edge_name} {noun} while {status}")
    return edge


def authorize(spec: TransitionSpec, edge: Edge, entity: Any, actor: Actor) -> None:
    if actor.role not in edge.roles:
        raise Unauthorized(f"Role '{actor.role.value}' cannot {edge.name} {spec.label.lower()}")

    owner = getattr(entity, "resident_id", None)
    if actor.role is Role.RESIDENT and owner is not None and actor.resident_id != owner:
        raise Unauthorized("Residents can only act on their own records")


async def advance(
    session: AsyncSession,
    spec: TransitionSpec,
    entity: Any,
    edge_name: Optional[str],
    actor: Actor,
    notes: Optional[str] = None,
    action_taken: Optional[str] = None,
    expected_status: Optional[str] = None,
) -> TransitionOutcome:
    """Apply one edge and append its record; flushes, never commits"""
    edge = select_edge(spec, entity, edge_name, expected_status)
    authorize(spec, edge, entity, actor)

    if edge.guard is not None:
        failure = edge.guard(entity)
        if failure:
            raise IllegalTransition(failure)

    if edge_name is None and action_taken is None:
        action_taken = edge.default_action_taken

    if action_taken is not None:
        action_taken = action_taken.strip()

    if edge.requires_action_taken:
        minimum = settings.action_taken_min_length
        if not action_taken:
            raise ValidationError("Please describe the action taken")
        if len(action_taken) < minimum:
            raise ValidationError(f"Action description must be at least {minimum} characters")

    notes = notes.strip() if notes and notes.strip() else None

    now = utcnow()
    from_status = entity.status
    to_status = edge.target_from(from_status)

    entity.status = to_status
    for field in edge.stamps:
        setattr(entity, field, now)
    for field, value in edge.effects:
        setattr(entity, field, value)
    if action_taken and hasattr(entity, "action_taken"):
        entity.action_taken = action_taken
    if edge.actor_field:
        setattr(entity, edge.actor_field, actor.actor_id)
    if to_status != from_status:
        entity.status_changed_at = now
    entity.updated_at = now
    session.add(entity)

    record = await ledger.append(
        session,
        variant=spec.variant,
        entity=entity,
        edge=edge.name,
        from_status=from_status,
        to_status=to_status,
        actor=actor,
        at=now,
        notes=notes,
        action_taken=action_taken,
    )
    return TransitionOutcome(variant=spec.variant, entity=entity, record=record, edge=edge)


async def transition(
    session: AsyncSession,
    tenant_id: UUID,
    variant: Variant,
    entity_id: UUID,
    edge_name: Optional[str],
    actor: Actor,
    notes: Optional[str] = None,
    action_taken: Optional[str] = None,
    expected_status: Optional[str] = None,
) -> TransitionOutcome:
    """
    Resolve, check and apply one edge as a single atomic unit.
    On any failure the session is rolled back: entity and ledger stay as they were.
    """
    spec = spec_for(variant)

    async with entity_locks.hold(entity_id):
        try:
            entity = await store.load_for_update(session, tenant_id, spec.variant, entity_id)
            outcome = await advance(
                session,
                spec,
                entity,
                edge_name,
                actor,
                notes=notes,
                action_taken=action_taken,
                expected_status=expected_status,
            )
            await session.commit()
        except VerificationError as e:
            await session.rollback()
            logger.info(
                "transition_rejected",
                variant=spec.variant.value,
                entity_id=str(entity_id),
                edge=edge_name,
                actor_id=actor.actor_id,
                error_kind=e.error_kind,
                reason=e.message,
            )
            raise
        except Exception:
            await session.rollback()
            raise

    logger.info(
        "transition_applied",
        variant=spec.variant.value,
        entity_id=str(entity_id),
        edge=outcome.record.edge,
        from_status=outcome.record.from_status,
        to_status=outcome.record.to_status,
        actor_id=actor.actor_id,
        sequence=outcome.record.sequence,
    )
    return outcome
