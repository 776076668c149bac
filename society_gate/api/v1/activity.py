"""Activity API - society-wide ledger feed for the security logs screens"""
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends

from society_gate.api.deps import Paging, get_gateway
from society_gate.domain.lifecycle import SPECS, Variant
from society_gate.domain.models.tracked import to_naive_utc
from society_gate.domain.models.transition_record import TransitionRecordRead
from society_gate.domain.services import credentials as store
from society_gate.domain.services import ledger
from society_gate.domain.services.gateway import VerificationGateway

router = APIRouter()


@router.get("/", response_model=List[TransitionRecordRead])
async def activity_feed(
    gateway: VerificationGateway = Depends(get_gateway),
    paging: Paging = Depends(),
    variant: Optional[Variant] = None,
    since: Optional[datetime] = None,
    after_id: Optional[UUID] = None,
):
    """
    Latest transitions, newest first
    Poll with ``since`` and ``after_id`` set to the greatest
    ``(created_at, id)`` already seen
    """
    gateway.require_operator()
    return await ledger.activity(
        gateway.session,
        gateway.tenant_id,
        variant=variant,
        since=to_naive_utc(since),
        after_id=after_id,
        skip=paging.skip,
        limit=paging.limit,
    )


@router.get("/summary", response_model=Dict[str, Dict[str, int]])
async def activity_summary(
    gateway: VerificationGateway = Depends(get_gateway),
):
    """Entity counts per status for every variant"""
    gateway.require_operator()
    summary = {}
    for variant in SPECS:
        counts = await store.count_by_status(gateway.session, gateway.tenant_id, variant)
        summary[variant.value] = {status: counts.get(status, 0) for status in sorted(SPECS[variant].states)}
    return summary
