"""Resident model - directory used to resolve linked residents"""
from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field
from uuid import UUID, uuid4

from .tracked import utcnow


class ResidentBase(SQLModel):
    society_id: UUID = Field(index=True)
    name: str = Field(index=True)
    flat_no: str = Field(index=True)  # "A-101", "B-205"
    phone: Optional[str] = None
    email: Optional[str] = None
    is_active: bool = Field(default=True)

class Resident(ResidentBase, table=True):
    __tablename__ = "residents"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

class ResidentCreate(ResidentBase):
    pass

class ResidentRead(ResidentBase):
    id: UUID
    created_at: datetime
    updated_at: datetime

class ResidentUpdate(SQLModel):
    name: Optional[str] = None
    flat_no: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    is_active: Optional[bool] = None
