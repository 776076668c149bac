"""Resident directory lookups (linked residents are weak references)"""
from typing import Optional
from uuid import UUID

from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from society_gate.domain.errors import NotFound
from society_gate.domain.models import Resident


async def get_resident(
    session: AsyncSession,
    tenant_id: UUID,
    resident_id: UUID,
    active_only: bool = False,
) -> Resident:
    query = select(Resident).where(
        Resident.id == resident_id,
        Resident.society_id == tenant_id,
    )
    if active_only:
        query = query.where(Resident.is_active == True)  # noqa: E712
    result = await session.execute(query)
    resident = result.scalar_one_or_none()

    if not resident:
        raise NotFound("Resident not found")

    return resident


async def find_by_flat(session: AsyncSession, tenant_id: UUID, flat_no: str) -> Optional[Resident]:
    """First active resident registered for a flat (case-insensitive)"""
    query = select(Resident).where(
        Resident.society_id == tenant_id,
        func.upper(Resident.flat_no) == flat_no.strip().upper(),
        Resident.is_active == True,  # noqa: E712
    ).order_by(Resident.created_at)
    result = await session.execute(query)
    return result.scalars().first()
