"""Emergency alert model - raised by residents, handled by security"""
from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field
from uuid import UUID, uuid4

from .tracked import TrackedRecord


class EmergencyAlertBase(SQLModel):
    resident_id: Optional[UUID] = Field(foreign_key="residents.id", index=True, default=None)
    type: str = Field(index=True)  # Fire, Security Threat, Suspicious Person, Unauthorized Entry, Other
    custom_title: Optional[str] = None  # required for "Other"
    location: str
    description: str

class EmergencyAlert(EmergencyAlertBase, TrackedRecord, table=True):
    __tablename__ = "emergency_alerts"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    action_taken: Optional[str] = None
    verified_at: Optional[datetime] = None
    verified_by: Optional[str] = None

class EmergencyAlertCreate(EmergencyAlertBase):
    pass

class EmergencyAlertRead(EmergencyAlertBase, TrackedRecord):
    id: UUID
    action_taken: Optional[str] = None
    verified_at: Optional[datetime] = None
    verified_by: Optional[str] = None

class EmergencyAlertUpdate(SQLModel):
    custom_title: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
