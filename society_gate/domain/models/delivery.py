"""Delivery model - resident delivery requests scanned at the gate"""
from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field
from uuid import UUID, uuid4

from ..lifecycle import DELIVERY as LIFECYCLE
from .tracked import PresenceRecord, active_credential_index


class DeliveryBase(SQLModel):
    resident_id: Optional[UUID] = Field(foreign_key="residents.id", index=True, default=None)
    delivery_person_name: str
    phone: str
    delivery_company: str  # Amazon, Flipkart, DHL, ..., Other
    apartment: str
    expected_time: Optional[datetime] = None

class Delivery(DeliveryBase, PresenceRecord, table=True):
    __tablename__ = "deliveries"
    __table_args__ = (active_credential_index("deliveries", "unique_id", LIFECYCLE.terminal),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    unique_id: str = Field(index=True)  # generated delivery code shown to the courier

class DeliveryCreate(DeliveryBase):
    unique_id: Optional[str] = None  # generated when omitted

class DeliveryRead(DeliveryBase, PresenceRecord):
    id: UUID
    unique_id: str

class DeliveryUpdate(SQLModel):
    delivery_person_name: Optional[str] = None
    phone: Optional[str] = None
    delivery_company: Optional[str] = None
    apartment: Optional[str] = None
    expected_time: Optional[datetime] = None
