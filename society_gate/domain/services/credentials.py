"""
Credential store
Maps presented credentials to tracked entities and persists subject info.
Functions here flush but never commit; the gateway and the transition engine
own the unit of work.
"""
import re
import secrets
import string
from typing import Any, Dict, Iterable, List, Optional, Tuple, Type
from uuid import UUID

import pydantic
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import SQLModel, select, or_
from sqlmodel.ext.asyncio.session import AsyncSession

from society_gate.config import settings
from society_gate.domain.errors import DuplicateCredential, NotFound, ValidationError
from society_gate.domain.lifecycle import SPECS, Variant, spec_for
from society_gate.domain.models import Delivery, EmergencyAlert, StaffMember, Vehicle, Visitor
from society_gate.domain.models.delivery import DeliveryCreate, DeliveryRead, DeliveryUpdate
from society_gate.domain.models.emergency_alert import (
    EmergencyAlertCreate,
    EmergencyAlertRead,
    EmergencyAlertUpdate,
)
from society_gate.domain.models.staff import StaffCreate, StaffRead, StaffUpdate
from society_gate.domain.models.tracked import to_naive_utc, utcnow
from society_gate.domain.models.vehicle import VehicleCreate, VehicleRead, VehicleUpdate
from society_gate.domain.models.visitor import VisitorCreate, VisitorRead, VisitorUpdate


MODELS: Dict[Variant, Type[SQLModel]] = {
    Variant.DELIVERY: Delivery,
    Variant.VISITOR: Visitor,
    Variant.STAFF: StaffMember,
    Variant.VEHICLE: Vehicle,
    Variant.EMERGENCY: EmergencyAlert,
}

CREATE_SCHEMAS: Dict[Variant, Type[SQLModel]] = {
    Variant.DELIVERY: DeliveryCreate,
    Variant.VISITOR: VisitorCreate,
    Variant.STAFF: StaffCreate,
    Variant.VEHICLE: VehicleCreate,
    Variant.EMERGENCY: EmergencyAlertCreate,
}

UPDATE_SCHEMAS: Dict[Variant, Type[SQLModel]] = {
    Variant.DELIVERY: DeliveryUpdate,
    Variant.VISITOR: VisitorUpdate,
    Variant.STAFF: StaffUpdate,
    Variant.VEHICLE: VehicleUpdate,
    Variant.EMERGENCY: EmergencyAlertUpdate,
}

READ_SCHEMAS: Dict[Variant, Type[SQLModel]] = {
    Variant.DELIVERY: DeliveryRead,
    Variant.VISITOR: VisitorRead,
    Variant.STAFF: StaffRead,
    Variant.VEHICLE: VehicleRead,
    Variant.EMERGENCY: EmergencyAlertRead,
}

SEARCH_FIELDS: Dict[Variant, Tuple[str, ...]] = {
    Variant.DELIVERY: ("delivery_person_name", "unique_id", "apartment", "delivery_company"),
    Variant.VISITOR: ("name", "qr_code", "flat_no"),
    Variant.STAFF: ("name", "permanent_id"),
    Variant.VEHICLE: ("vehicle_no", "visitor_name", "flat_no"),
    Variant.EMERGENCY: ("type", "location", "description", "custom_title"),
}

# Set at creation only, but still checked alongside edits
FIXED_FIELDS: Dict[Variant, Tuple[str, ...]] = {
    Variant.VEHICLE: ("is_guest",),
    Variant.EMERGENCY: ("type",),
}

PLATE_PATTERN = re.compile(r"^[A-Z]{2}\d{1,2}[A-Z]{0,2}\d{1,4}$")
DELIVERY_PHONE_PATTERN = re.compile(r"^(\+91)?\d{10}$")
VISITOR_PHONE_PATTERN = re.compile(r"^\d{10}$")

DELIVERY_COMPANIES = (
    "Amazon", "Flipkart", "DHL", "FedEx", "Blue Dart",
    "DTDC", "Swiggy Instamart", "Zomato", "Other",
)
STAFF_ROLES = ("staff", "maid", "cook", "driver", "gardener", "cleaner", "other")
VEHICLE_TYPES = ("car", "bike", "scooter", "truck", "van")
ALERT_TYPES = ("Fire", "Security Threat", "Suspicious Person", "Unauthorized Entry", "Other")

_CODE_ALPHABET = string.ascii_uppercase + string.digits


# === Credentials ===

def normalize_credential(variant: Variant, raw: Optional[str]) -> str:
    """Trim and case-fold a presented credential the way its variant stores it"""
    spec = spec_for(variant)
    if spec.credential_field is None:
        raise ValidationError(f"{spec.label}s have no credential")

    value = (raw or "").strip()
    if not value:
        raise ValidationError(f"{spec.label} credential is required")

    if variant in (Variant.DELIVERY, Variant.STAFF):
        value = value.upper()
    elif variant == Variant.VEHICLE:
        value = re.sub(r"[\s-]", "", value).upper()
        if not PLATE_PATTERN.match(value):
            raise ValidationError("Invalid vehicle number format (e.g., MH12AB1234)")

    if variant == Variant.DELIVERY and len(value) < 3:
        raise ValidationError("Delivery code must be at least 3 characters")

    return value


def generate_credential(variant: Variant) -> Optional[str]:
    if variant == Variant.DELIVERY:
        code = "".join(secrets.choice(_CODE_ALPHABET) for _ in range(settings.delivery_code_length))
        return f"{settings.delivery_code_prefix}-{code}"
    if variant == Variant.VISITOR:
        return f"{settings.visitor_qr_prefix}-{secrets.token_urlsafe(9)}"
    return None


def credential_of(variant: Variant, entity: Any) -> Optional[str]:
    field = spec_for(variant).credential_field
    return getattr(entity, field) if field else None


async def resolve(session: AsyncSession, tenant_id: UUID, variant: Variant, raw: str) -> Any:
    """
    Resolve a presented credential to one entity.
    The active holder wins; otherwise the latest terminal record is returned so
    callers can report it as already finished.
    """
    spec = spec_for(variant)
    credential = normalize_credential(variant, raw)
    model = MODELS[variant]
    column = getattr(model, spec.credential_field)

    query = select(model).where(
        model.society_id == tenant_id,
        column == credential,
    ).order_by(model.created_at.desc())
    result = await session.execute(query)
    matches = result.scalars().all()

    if not matches:
        if variant == Variant.VISITOR:
            raise NotFound("Invalid QR code")
        raise NotFound(f"{spec.label} not found for '{credential}'")

    for entity in matches:
        if not spec.is_terminal(entity.status):
            return entity
    return matches[0]


async def ensure_credential_free(
    session: AsyncSession,
    tenant_id: UUID,
    variant: Variant,
    credential: str,
    exclude_id: Optional[UUID] = None,
) -> None:
    spec = spec_for(variant)
    model = MODELS[variant]
    column = getattr(model, spec.credential_field)

    query = select(model).where(
        model.society_id == tenant_id,
        column == credential,
    )
    if spec.terminal:
        query = query.where(model.status.not_in(list(spec.terminal)))
    if exclude_id:
        query = query.where(model.id != exclude_id)

    result = await session.execute(query)
    if result.scalars().first() is not None:
        raise DuplicateCredential(f"{spec.label} credential '{credential}' is already in use")


# === Subject info ===

def _describe(error: pydantic.ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item.get("loc", ()))
        parts.append(f"{location}: {item.get('msg')}" if location else item.get("msg", ""))
    return "; ".join(parts) or "Invalid subject info"


def parse_subject(variant: Variant, payload: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    """Validate raw subject info against the variant's create/update schema"""
    schema = UPDATE_SCHEMAS[variant] if partial else CREATE_SCHEMAS[variant]

    if "status" in payload:
        raise ValidationError("status can only change through transitions")
    unknown = sorted(set(payload) - set(schema.model_fields))
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(unknown)}")

    try:
        parsed = schema.model_validate(payload)
    except pydantic.ValidationError as e:
        raise ValidationError(_describe(e))

    data = parsed.model_dump(exclude_unset=partial)
    if partial:
        for key, value in list(data.items()):
            if value is None:
                del data[key]
    return data


def _require(data: Dict[str, Any], key: str, message: str) -> str:
    value = (data.get(key) or "").strip()
    if not value:
        raise ValidationError(message)
    data[key] = value
    return value


def check_subject(variant: Variant, data: Dict[str, Any]) -> Dict[str, Any]:
    """Field rules per variant; normalises values in place"""
    if variant == Variant.DELIVERY:
        _require(data, "delivery_person_name", "Delivery person name is required")
        phone = _require(data, "phone", "Phone number is required")
        if not DELIVERY_PHONE_PATTERN.match(phone):
            raise ValidationError("Phone number must be 10 digits")
        company = _require(data, "delivery_company", "Delivery company is required")
        if company not in DELIVERY_COMPANIES:
            raise ValidationError(f"Unknown delivery company '{company}'")
        _require(data, "apartment", "Apartment number is required")
        data["apartment"] = data["apartment"].upper()
        data["expected_time"] = to_naive_utc(data.get("expected_time"))

    elif variant == Variant.VISITOR:
        name = _require(data, "name", "Name must be at least 2 characters")
        if len(name) < 2:
            raise ValidationError("Name must be at least 2 characters")
        phone = _require(data, "phone", "Please enter a valid 10-digit phone number")
        if not VISITOR_PHONE_PATTERN.match(phone):
            raise ValidationError("Please enter a valid 10-digit phone number")
        _require(data, "flat_no", "Please enter a flat number")
        data["flat_no"] = data["flat_no"].upper()
        data["purpose"] = (data.get("purpose") or "").strip() or "Guest"

    elif variant == Variant.STAFF:
        _require(data, "name", "Name is required")
        role = (data.get("role") or "staff").strip().lower()
        if role not in STAFF_ROLES:
            raise ValidationError(f"Unknown staff role '{role}'")
        data["role"] = role
        if role == "other":
            _require(data, "other_role", "Please specify the role")
        else:
            data["other_role"] = None

    elif variant == Variant.VEHICLE:
        vehicle_type = (data.get("vehicle_type") or "car").strip().lower()
        if vehicle_type not in VEHICLE_TYPES:
            raise ValidationError(f"Unknown vehicle type '{vehicle_type}'")
        data["vehicle_type"] = vehicle_type
        if data.get("flat_no"):
            data["flat_no"] = data["flat_no"].strip().upper()
        if data.get("is_guest"):
            _require(data, "visitor_name", "Visitor name is required for guest vehicles")

    elif variant == Variant.EMERGENCY:
        alert_type = _require(data, "type", "Alert type is required")
        if alert_type not in ALERT_TYPES:
            raise ValidationError(f"Unknown alert type '{alert_type}'")
        if alert_type == "Other":
            _require(data, "custom_title", 'Custom title is required for "Other" type')
        _require(data, "location", "Description and location are required")
        _require(data, "description", "Description and location are required")

    return data


def subject_of(variant: Variant, entity: Any) -> Dict[str, Any]:
    """Current values of the editable subject fields plus the fixed ones their rules read"""
    data = {field: getattr(entity, field) for field in UPDATE_SCHEMAS[variant].model_fields}
    for field in FIXED_FIELDS.get(variant, ()):
        data[field] = getattr(entity, field)
    return data


# === Persistence ===

async def create_entity(
    session: AsyncSession,
    tenant_id: UUID,
    variant: Variant,
    data: Dict[str, Any],
) -> Any:
    """Insert a new entity in its initial state; credential must be normalised"""
    spec = spec_for(variant)
    model = MODELS[variant]

    if spec.credential_field:
        await ensure_credential_free(session, tenant_id, variant, data[spec.credential_field])

    entity = model(**data, society_id=tenant_id, status=spec.initial)
    session.add(entity)
    try:
        await session.flush()
    except IntegrityError:
        # Another process registered the same credential after our check
        credential = data.get(spec.credential_field) if spec.credential_field else None
        if credential is None:
            raise
        raise DuplicateCredential(f"{spec.label} credential '{credential}' is already in use")
    return entity


async def get_entity(session: AsyncSession, tenant_id: UUID, variant: Variant, entity_id: UUID) -> Any:
    model = MODELS[variant]
    query = select(model).where(model.id == entity_id, model.society_id == tenant_id)
    result = await session.execute(query)
    entity = result.scalar_one_or_none()
    if not entity:
        raise NotFound(f"{spec_for(variant).label} not found")
    return entity


async def load_for_update(session: AsyncSession, tenant_id: UUID, variant: Variant, entity_id: UUID) -> Any:
    """Re-read the row under a row lock, discarding any stale identity-map copy"""
    model = MODELS[variant]
    query = (
        select(model)
        .where(model.id == entity_id, model.society_id == tenant_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    result = await session.execute(query)
    entity = result.scalar_one_or_none()
    if not entity:
        raise NotFound(f"{spec_for(variant).label} not found")
    return entity


async def locate(
    session: AsyncSession,
    tenant_id: UUID,
    entity_id: UUID,
    variant: Optional[Variant] = None,
) -> Tuple[Variant, Any]:
    """Find an entity by id, probing every variant table when none is given"""
    if variant is not None:
        return Variant(variant), await get_entity(session, tenant_id, Variant(variant), entity_id)

    for candidate in SPECS:
        model = MODELS[candidate]
        query = select(model).where(model.id == entity_id, model.society_id == tenant_id)
        result = await session.execute(query)
        entity = result.scalar_one_or_none()
        if entity is not None:
            return candidate, entity

    raise NotFound("Entity not found")


async def update_entity(session: AsyncSession, variant: Variant, entity: Any, patch: Dict[str, Any]) -> Any:
    merged = {**subject_of(variant, entity), **patch}
    check_subject(variant, merged)

    for key in UPDATE_SCHEMAS[variant].model_fields:
        setattr(entity, key, merged[key])
    entity.updated_at = utcnow()

    session.add(entity)
    await session.flush()
    return entity


async def delete_entity(session: AsyncSession, entity: Any) -> None:
    await session.delete(entity)
    await session.flush()


async def list_entities(
    session: AsyncSession,
    tenant_id: UUID,
    variant: Variant,
    *,
    status: Optional[str] = None,
    statuses: Optional[Iterable[str]] = None,
    resident_id: Optional[UUID] = None,
    search: Optional[str] = None,
    filters: Optional[Dict[str, Any]] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[Any]:
    """Tenant-scoped listing, newest first"""
    model = MODELS[variant]
    query = select(model).where(model.society_id == tenant_id)

    if status:
        query = query.where(model.status == status)

    if statuses is not None:
        query = query.where(model.status.in_(list(statuses)))

    if resident_id:
        query = query.where(model.resident_id == resident_id)

    for key, value in (filters or {}).items():
        query = query.where(getattr(model, key) == value)

    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.where(or_(*[getattr(model, f).ilike(pattern) for f in SEARCH_FIELDS[variant]]))

    query = query.order_by(model.created_at.desc()).offset(skip).limit(limit)
    result = await session.execute(query)
    return result.scalars().all()


async def count_by_status(session: AsyncSession, tenant_id: UUID, variant: Variant) -> Dict[str, int]:
    model = MODELS[variant]
    query = (
        select(model.status, func.count())
        .where(model.society_id == tenant_id)
        .group_by(model.status)
    )
    result = await session.execute(query)
    return {status: count for status, count in result.all()}


def serialize(variant: Variant, entity: Any) -> Dict[str, Any]:
    return READ_SCHEMAS[variant].model_validate(entity).model_dump(mode="json")
