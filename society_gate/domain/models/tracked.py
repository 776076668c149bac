"""Columns shared by every tracked entity table"""
from typing import Iterable, Optional
from datetime import datetime, timezone
from sqlalchemy import Index, text
from sqlmodel import SQLModel, Field
from uuid import UUID


def utcnow() -> datetime:
    """Naive UTC timestamp (columns are TIMESTAMP WITHOUT TIME ZONE)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is not None:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def active_credential_index(table: str, credential: str, terminal: Iterable[str]) -> Index:
    """One live holder per credential in a society; finished records may share it"""
    finished = sorted(terminal)
    where = text("status NOT IN ({})".format(", ".join(f"'{s}'" for s in finished))) if finished else None
    return Index(
        f"uq_{table}_active_{credential}",
        "society_id",
        credential,
        unique=True,
        postgresql_where=where,
        sqlite_where=where,
    )


class TrackedRecord(SQLModel):
    society_id: UUID = Field(index=True)
    status: str = Field(index=True)  # driven only by the transition engine
    status_changed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class PresenceRecord(TrackedRecord):
    entry_time: Optional[datetime] = None  # last entry
    exit_time: Optional[datetime] = None   # last exit
