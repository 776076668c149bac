"""Residents API - society directory used to link entities to flats"""
from typing import List, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from society_gate.api.deps import Paging, get_actor, get_tenant_id
from society_gate.domain.actors import Actor, Role
from society_gate.domain.errors import NotFound, Unauthorized, ValidationError
from society_gate.domain.models import Resident
from society_gate.domain.models.resident import ResidentCreate, ResidentRead, ResidentUpdate
from society_gate.domain.models.tracked import utcnow
from society_gate.domain.services import directory
from society_gate.infrastructure.database import get_session

router = APIRouter()
logger = structlog.get_logger(__name__)


def require_admin(actor: Actor = Depends(get_actor)) -> Actor:
    if actor.role is not Role.ADMIN:
        raise Unauthorized("Only admins can manage the resident directory")
    return actor


@router.get("/", response_model=List[ResidentRead])
async def list_residents(
    tenant_id: UUID = Depends(get_tenant_id),
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session),
    paging: Paging = Depends(),
    flat_no: Optional[str] = None,
    include_inactive: bool = False,
):
    """List residents for a society"""
    if not actor.is_operator:
        raise Unauthorized("Only security or admin can browse the directory")

    query = select(Resident).where(Resident.society_id == tenant_id)

    if flat_no:
        query = query.where(func.upper(Resident.flat_no) == flat_no.strip().upper())

    if not include_inactive:
        query = query.where(Resident.is_active == True)  # noqa: E712

    query = query.order_by(Resident.flat_no, Resident.name).offset(paging.skip).limit(paging.limit)
    result = await session.execute(query)
    return result.scalars().all()


@router.get("/by-flat/{flat_no}", response_model=ResidentRead)
async def get_resident_by_flat(
    flat_no: str,
    tenant_id: UUID = Depends(get_tenant_id),
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session),
):
    """Resident a delivery or visitor for this flat will be linked to"""
    resident = await directory.find_by_flat(session, tenant_id, flat_no)
    if not resident:
        raise NotFound(f"No resident registered for flat {flat_no}")
    return resident


@router.post("/", response_model=ResidentRead, status_code=201)
async def create_resident(
    resident: ResidentCreate,
    tenant_id: UUID = Depends(get_tenant_id),
    actor: Actor = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Create a new resident"""
    if resident.society_id != tenant_id:
        raise Unauthorized("Cannot create resident for different society")
    if not resident.name.strip() or not resident.flat_no.strip():
        raise ValidationError("Name and flat number are required")

    db_resident = Resident.model_validate(resident)
    db_resident.flat_no = db_resident.flat_no.strip().upper()
    session.add(db_resident)
    await session.commit()
    await session.refresh(db_resident)

    logger.info("resident_created", resident_id=str(db_resident.id), flat_no=db_resident.flat_no)
    return db_resident


@router.get("/{resident_id}", response_model=ResidentRead)
async def get_resident(
    resident_id: UUID,
    tenant_id: UUID = Depends(get_tenant_id),
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session),
):
    """Get a specific resident by ID"""
    if actor.role is Role.RESIDENT and actor.resident_id != resident_id:
        raise Unauthorized("Residents can only view their own profile")
    return await directory.get_resident(session, tenant_id, resident_id)


@router.patch("/{resident_id}", response_model=ResidentRead)
async def update_resident(
    resident_id: UUID,
    resident_update: ResidentUpdate,
    tenant_id: UUID = Depends(get_tenant_id),
    actor: Actor = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Update a resident"""
    db_resident = await directory.get_resident(session, tenant_id, resident_id)

    update_data = resident_update.model_dump(exclude_unset=True)
    if "flat_no" in update_data and update_data["flat_no"]:
        update_data["flat_no"] = update_data["flat_no"].strip().upper()
    for key, value in update_data.items():
        setattr(db_resident, key, value)
    db_resident.updated_at = utcnow()

    session.add(db_resident)
    await session.commit()
    await session.refresh(db_resident)
    return db_resident


@router.delete("/{resident_id}", status_code=204)
async def delete_resident(
    resident_id: UUID,
    tenant_id: UUID = Depends(get_tenant_id),
    actor: Actor = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Deactivate a resident; linked entities and ledger records keep the id"""
    db_resident = await directory.get_resident(session, tenant_id, resident_id)
    db_resident.is_active = False
    db_resident.updated_at = utcnow()

    session.add(db_resident)
    await session.commit()

    logger.info("resident_deactivated", resident_id=str(resident_id))
    return None
