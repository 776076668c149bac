"""TransitionRecord model - append-only ledger of lifecycle transitions."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field

from .tracked import utcnow


class TransitionRecordBase(SQLModel):
    society_id: UUID = Field(index=True)

    variant: str = Field(index=True)  # delivery | visitor | staff | vehicle | emergency
    entity_id: UUID = Field(index=True)
    sequence: int  # 1-based position in the entity's ledger

    edge: str  # entry | exit | approve | deny | check_in | check_out | block | resolve ...
    from_status: str
    to_status: str

    actor_id: str
    actor_role: str  # resident | security | admin

    notes: Optional[str] = None
    action_taken: Optional[str] = None


class TransitionRecord(TransitionRecordBase, table=True):
    __tablename__ = "transition_records"
    __table_args__ = (UniqueConstraint("entity_id", "sequence", name="uq_transition_entity_sequence"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=utcnow, index=True)


class TransitionRecordRead(TransitionRecordBase):
    id: UUID
    created_at: datetime
