"""
Verification gateway
The one entry point operators and residents act through. It is built per
request with an explicit tenant, session and acting identity, resolves
credentials, infers scan edges and owns every commit outside the engine.
"""
from contextlib import AsyncExitStack
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

import structlog
from sqlmodel.ext.asyncio.session import AsyncSession

from society_gate.domain.actors import Actor, Role
from society_gate.domain.errors import (
    InvalidState,
    NotFound,
    Unauthorized,
    ValidationError,
    VerificationError,
)
from society_gate.domain.lifecycle import Variant, spec_for
from society_gate.domain.models import TransitionRecord
from society_gate.domain.services import credentials as store
from society_gate.domain.services import directory, engine, ledger
from society_gate.domain.services.engine import TransitionOutcome, entity_locks

logger = structlog.get_logger(__name__)

# Subject field naming the flat a record belongs to, and whether a resident must live there
FLAT_FIELDS: Dict[Variant, Tuple[str, bool]] = {
    Variant.DELIVERY: ("apartment", True),
    Variant.VISITOR: ("flat_no", True),
    Variant.VEHICLE: ("flat_no", False),
}


class VerificationGateway:
    def __init__(self, session: AsyncSession, tenant_id: UUID, actor: Actor):
        self.session = session
        self.tenant_id = tenant_id
        self.actor = actor

    # === Credential scans ===

    async def verify(self, raw_credential: str, variant: Variant, notes: Optional[str] = None) -> TransitionOutcome:
        """Resolve a presented credential and take its next automatic edge"""
        variant = Variant(variant)
        spec = spec_for(variant)
        if spec.credential_field is None:
            raise ValidationError(f"{spec.label}s cannot be verified by credential")

        try:
            entity = await store.resolve(self.session, self.tenant_id, variant, raw_credential)
            return await engine.transition(
                self.session,
                self.tenant_id,
                variant,
                entity.id,
                None,
                self.actor,
                notes=notes,
                expected_status=entity.status,
            )
        except VerificationError as e:
            logger.info(
                "verification_rejected",
                variant=variant.value,
                actor_id=self.actor.actor_id,
                error_kind=e.error_kind,
                reason=e.message,
            )
            raise

    async def act_on_credential(
        self,
        raw_credential: str,
        variant: Variant,
        edge_name: str,
        notes: Optional[str] = None,
    ) -> TransitionOutcome:
        """Credential scan with a caller-specified edge (staff entry/exit, vehicle action)"""
        entity = await store.resolve(self.session, self.tenant_id, Variant(variant), raw_credential)
        return await engine.transition(
            self.session, self.tenant_id, Variant(variant), entity.id, edge_name, self.actor, notes=notes
        )

    async def resolve(self, raw_credential: str, variant: Variant) -> Any:
        return await store.resolve(self.session, self.tenant_id, Variant(variant), raw_credential)

    # === Explicit transitions ===

    async def transition(
        self,
        entity_id: UUID,
        edge_name: Optional[str],
        variant: Optional[Variant] = None,
        notes: Optional[str] = None,
        action_taken: Optional[str] = None,
    ) -> TransitionOutcome:
        """
        Take ``edge_name`` on an entity. Without an edge name the next automatic
        edge is inferred from the status observed now (quick update).
        """
        found_variant, entity = await store.locate(self.session, self.tenant_id, entity_id, variant)
        expected = entity.status if edge_name is None else None
        return await engine.transition(
            self.session,
            self.tenant_id,
            found_variant,
            entity_id,
            edge_name,
            self.actor,
            notes=notes,
            action_taken=action_taken,
            expected_status=expected,
        )

    # === Registration and edits ===

    async def register(self, variant: Variant, payload: Dict[str, Any]) -> Any:
        """Create an entity in its initial state (plus the creator's follow-up edge)"""
        variant = Variant(variant)
        spec = spec_for(variant)
        if self.actor.role not in spec.creators:
            raise Unauthorized(f"Role '{self.actor.role.value}' cannot register a {spec.label.lower()}")

        data = store.parse_subject(variant, payload)
        store.check_subject(variant, data)
        await self._link_resident(variant, data)

        credential = None
        if spec.credential_field:
            raw = data.get(spec.credential_field)
            credential = store.normalize_credential(variant, raw) if raw else store.generate_credential(variant)
            if credential is None:
                raise ValidationError(f"{spec.label} credential is required")
            data[spec.credential_field] = credential

        async with AsyncExitStack() as stack:
            if credential:
                await stack.enter_async_context(
                    entity_locks.hold(("credential", self.tenant_id, variant, credential))
                )
            try:
                entity = await store.create_entity(self.session, self.tenant_id, variant, data)
                follow_up = spec.creation_edges.get(self.actor.role)
                if follow_up:
                    await engine.advance(self.session, spec, entity, follow_up, self.actor)
                await self.session.commit()
            except Exception:
                await self.session.rollback()
                raise

        logger.info(
            "entity_registered",
            variant=variant.value,
            entity_id=str(entity.id),
            credential=store.credential_of(variant, entity),
            status=entity.status,
            actor_id=self.actor.actor_id,
        )
        return entity

    async def edit(self, entity_id: UUID, payload: Dict[str, Any], variant: Optional[Variant] = None) -> Tuple[Variant, Any]:
        found_variant, _ = await store.locate(self.session, self.tenant_id, entity_id, variant)
        spec = spec_for(found_variant)
        patch = store.parse_subject(found_variant, payload, partial=True)

        async with entity_locks.hold(entity_id):
            try:
                entity = await store.load_for_update(self.session, self.tenant_id, found_variant, entity_id)
                self._ensure_can_modify(found_variant, entity)
                if not spec.is_editable(entity.status):
                    raise InvalidState(f"{spec.label} is {entity.status} and can no longer be edited")
                flat_field = FLAT_FIELDS.get(found_variant, (None,))[0]
                old_flat = getattr(entity, flat_field) if flat_field else None
                await store.update_entity(self.session, found_variant, entity, patch)
                if (
                    flat_field in patch
                    and self.actor.role is not Role.RESIDENT
                    and getattr(entity, flat_field) != old_flat
                ):
                    await self._follow_flat(found_variant, entity)
                await self.session.commit()
            except Exception:
                await self.session.rollback()
                raise

        logger.info("entity_updated", variant=found_variant.value, entity_id=str(entity_id), fields=sorted(patch))
        return found_variant, entity

    async def remove(self, entity_id: UUID, variant: Optional[Variant] = None) -> Variant:
        found_variant, _ = await store.locate(self.session, self.tenant_id, entity_id, variant)
        spec = spec_for(found_variant)

        async with entity_locks.hold(entity_id):
            try:
                entity = await store.load_for_update(self.session, self.tenant_id, found_variant, entity_id)
                self._ensure_can_modify(found_variant, entity)
                if not spec.is_editable(entity.status):
                    raise InvalidState(f"Cannot delete a {entity.status} {spec.label.lower()}")
                await store.delete_entity(self.session, entity)
                await self.session.commit()
            except Exception:
                await self.session.rollback()
                raise

        logger.info("entity_deleted", variant=found_variant.value, entity_id=str(entity_id))
        return found_variant

    # === Reads ===

    async def snapshot(self, entity_id: UUID, variant: Optional[Variant] = None) -> Tuple[Variant, Any]:
        found_variant, entity = await store.locate(self.session, self.tenant_id, entity_id, variant)
        self._ensure_visible(entity)
        return found_variant, entity

    async def history(self, entity_id: UUID, variant: Optional[Variant] = None) -> List[TransitionRecord]:
        """Ledger for an entity; still readable after the entity was deleted"""
        records = await ledger.history(self.session, self.tenant_id, entity_id)
        if records:
            if variant is not None and any(r.variant != Variant(variant).value for r in records):
                raise NotFound(f"{spec_for(variant).label} not found")
            if self.actor.role is Role.RESIDENT:
                _, entity = await store.locate(self.session, self.tenant_id, entity_id, variant)
                self._ensure_visible(entity)
            return records

        _, entity = await store.locate(self.session, self.tenant_id, entity_id, variant)
        self._ensure_visible(entity)
        return records

    def scope_resident(self, resident_id: Optional[UUID]) -> Optional[UUID]:
        """Residents only ever list their own records"""
        if self.actor.role is Role.RESIDENT:
            if self.actor.resident_id is None:
                raise Unauthorized("Resident identity must be a directory id")
            return self.actor.resident_id
        return resident_id

    def require_operator(self) -> None:
        if not self.actor.is_operator:
            raise Unauthorized("Only security or admin can perform this action")

    # === Helpers ===

    def _ensure_visible(self, entity: Any) -> None:
        if self.actor.role is Role.RESIDENT and getattr(entity, "resident_id", None) != self.actor.resident_id:
            raise Unauthorized("Residents can only view their own records")

    def _ensure_can_modify(self, variant: Variant, entity: Any) -> None:
        spec = spec_for(variant)
        if self.actor.role is Role.ADMIN:
            return
        if self.actor.role not in spec.creators:
            raise Unauthorized(f"Role '{self.actor.role.value}' cannot modify a {spec.label.lower()}")
        if self.actor.role is Role.RESIDENT and entity.resident_id != self.actor.resident_id:
            raise Unauthorized("Residents can only modify their own records")

    async def _link_resident(self, variant: Variant, data: Dict[str, Any]) -> None:
        """Fill ``resident_id`` from the acting resident, an explicit id or the flat"""
        if self.actor.role is Role.RESIDENT:
            if self.actor.resident_id is None:
                raise Unauthorized("Resident identity must be a directory id")
            resident = await directory.get_resident(self.session, self.tenant_id, self.actor.resident_id)
            if not resident.is_active:
                raise Unauthorized("Resident account is inactive")
            data["resident_id"] = self.actor.resident_id
            return

        if data.get("resident_id"):
            await directory.get_resident(self.session, self.tenant_id, data["resident_id"], active_only=True)
            return

        if variant not in FLAT_FIELDS or data.get("is_guest"):
            return

        field, required = FLAT_FIELDS[variant]
        flat_no = data.get(field)
        if not flat_no:
            return

        resident = await directory.find_by_flat(self.session, self.tenant_id, flat_no)
        if resident is None:
            if required:
                raise NotFound(f"No resident registered for flat {flat_no}")
            return
        data["resident_id"] = resident.id

    async def _follow_flat(self, variant: Variant, entity: Any) -> None:
        """Relink an entity whose flat was edited to the resident living there"""
        if getattr(entity, "is_guest", False):
            return
        field, _ = FLAT_FIELDS[variant]
        data = {field: getattr(entity, field)}
        await self._link_resident(variant, data)
        entity.resident_id = data.get("resident_id")
        self.session.add(entity)
        await self.session.flush()
