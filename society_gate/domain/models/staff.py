"""Staff model - domestic workers and society staff with permanent IDs"""
from typing import Optional
from sqlmodel import SQLModel, Field
from uuid import UUID, uuid4

from ..lifecycle import STAFF as LIFECYCLE
from .tracked import PresenceRecord, active_credential_index


class StaffBase(SQLModel):
    resident_id: Optional[UUID] = Field(foreign_key="residents.id", index=True, default=None)
    name: str = Field(index=True)
    role: str = Field(default="staff")  # staff, maid, cook, driver, gardener, cleaner, other
    other_role: Optional[str] = None
    phone: Optional[str] = None

class StaffMember(StaffBase, PresenceRecord, table=True):
    __tablename__ = "staff"
    __table_args__ = (active_credential_index("staff", "permanent_id", LIFECYCLE.terminal),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    permanent_id: str = Field(index=True)
    is_inside: bool = Field(default=False)
    is_blocked: bool = Field(default=False)

class StaffCreate(StaffBase):
    permanent_id: str

class StaffRead(StaffBase, PresenceRecord):
    id: UUID
    permanent_id: str
    is_inside: bool
    is_blocked: bool

class StaffUpdate(SQLModel):
    name: Optional[str] = None
    role: Optional[str] = None
    other_role: Optional[str] = None
    phone: Optional[str] = None
