"""
History ledger
Append-only transition records per entity. Records are never updated or
deleted, including when the entity itself is deleted.
"""
from datetime import datetime
from typing import Any, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import and_, func, or_
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from society_gate.domain.actors import Actor
from society_gate.domain.lifecycle import TransitionSpec, Variant
from society_gate.domain.models import TransitionRecord


async def append(
    session: AsyncSession,
    *,
    variant: Variant,
    entity: Any,
    edge: str,
    from_status: str,
    to_status: str,
    actor: Actor,
    at: datetime,
    notes: Optional[str] = None,
    action_taken: Optional[str] = None,
) -> TransitionRecord:
    """Add the next record for an entity; caller holds the entity lock"""
    result = await session.execute(
        select(func.max(TransitionRecord.sequence)).where(TransitionRecord.entity_id == entity.id)
    )
    last = result.scalar() or 0

    record = TransitionRecord(
        society_id=entity.society_id,
        variant=Variant(variant).value,
        entity_id=entity.id,
        sequence=last + 1,
        edge=edge,
        from_status=from_status,
        to_status=to_status,
        actor_id=actor.actor_id,
        actor_role=actor.role.value,
        notes=notes,
        action_taken=action_taken,
        created_at=at,
    )
    session.add(record)
    await session.flush()
    return record


async def history(session: AsyncSession, tenant_id: UUID, entity_id: UUID) -> List[TransitionRecord]:
    """Records for one entity, oldest first; ties broken by insertion order"""
    query = select(TransitionRecord).where(
        TransitionRecord.society_id == tenant_id,
        TransitionRecord.entity_id == entity_id,
    ).order_by(TransitionRecord.created_at, TransitionRecord.sequence)
    result = await session.execute(query)
    return result.scalars().all()


def replay(spec: TransitionSpec, records: Iterable[TransitionRecord]) -> str:
    """Reconstruct the current status from the initial state"""
    return spec.replay(record.edge for record in records)


async def activity(
    session: AsyncSession,
    tenant_id: UUID,
    variant: Optional[Variant] = None,
    since: Optional[datetime] = None,
    after_id: Optional[UUID] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[TransitionRecord]:
    """
    Society-wide feed, newest first.
    ``since`` returns only newer records. Pass the ``id`` of the record that
    carried that timestamp as ``after_id`` to also pick up records sharing it.
    """
    query = select(TransitionRecord).where(TransitionRecord.society_id == tenant_id)

    if variant:
        query = query.where(TransitionRecord.variant == Variant(variant).value)

    if since and after_id:
        query = query.where(or_(
            TransitionRecord.created_at > since,
            and_(TransitionRecord.created_at == since, TransitionRecord.id > after_id),
        ))
    elif since:
        query = query.where(TransitionRecord.created_at > since)

    query = query.order_by(
        TransitionRecord.created_at.desc(),
        TransitionRecord.sequence.desc(),
        TransitionRecord.id.desc(),
    ).offset(skip).limit(limit)
    result = await session.execute(query)
    return result.scalars().all()
