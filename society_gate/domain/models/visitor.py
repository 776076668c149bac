"""Visitor model"""
from typing import Optional
from sqlmodel import SQLModel, Field
from uuid import UUID, uuid4

from ..lifecycle import VISITOR as LIFECYCLE
from .tracked import PresenceRecord, active_credential_index


class VisitorBase(SQLModel):
    resident_id: Optional[UUID] = Field(foreign_key="residents.id", index=True, default=None)
    name: str = Field(index=True)
    phone: str
    flat_no: str
    purpose: str = Field(default="Guest")
    image_url: Optional[str] = None  # captured at the gate for unregistered visitors

class Visitor(VisitorBase, PresenceRecord, table=True):
    __tablename__ = "visitors"
    __table_args__ = (active_credential_index("visitors", "qr_code", LIFECYCLE.terminal),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    qr_code: str = Field(index=True)

class VisitorCreate(VisitorBase):
    qr_code: Optional[str] = None

class VisitorRead(VisitorBase, PresenceRecord):
    id: UUID
    qr_code: str

class VisitorUpdate(SQLModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    flat_no: Optional[str] = None
    purpose: Optional[str] = None
    image_url: Optional[str] = None
