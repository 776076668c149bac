"""Vehicle model"""
from typing import Optional
from sqlmodel import SQLModel, Field
from uuid import UUID, uuid4

from ..lifecycle import VEHICLE as LIFECYCLE
from .tracked import PresenceRecord, active_credential_index


class VehicleBase(SQLModel):
    resident_id: Optional[UUID] = Field(foreign_key="residents.id", index=True, default=None)
    vehicle_type: str = Field(default="car")  # car, bike, scooter, truck, van
    flat_no: Optional[str] = None
    is_guest: bool = Field(default=False)
    # Guest vehicles carry the visitor's contact instead of an owning resident
    visitor_name: Optional[str] = None
    visitor_phone: Optional[str] = None

class Vehicle(VehicleBase, PresenceRecord, table=True):
    __tablename__ = "vehicles"
    __table_args__ = (active_credential_index("vehicles", "vehicle_no", LIFECYCLE.terminal),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    vehicle_no: str = Field(index=True)  # normalised plate, e.g. MH12AB1234

class VehicleCreate(VehicleBase):
    vehicle_no: str

class VehicleRead(VehicleBase, PresenceRecord):
    id: UUID
    vehicle_no: str

class VehicleUpdate(SQLModel):
    vehicle_type: Optional[str] = None
    flat_no: Optional[str] = None
    visitor_name: Optional[str] = None
    visitor_phone: Optional[str] = None
