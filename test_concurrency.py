"""Simultaneous scans of the same entity never take the same edge twice"""
import asyncio

import pytest
from sqlmodel import select

from conftest import DELIVERY, STAFF
from society_gate.domain.errors import DuplicateCredential, IllegalTransition, VerificationError
from society_gate.domain.lifecycle import Variant, spec_for
from society_gate.domain.models import Delivery
from society_gate.domain.services import credentials, ledger
from society_gate.domain.services.engine import EntityLocks


async def test_explicit_edge_taken_once(gate, admin, security):
    staff = await gate(admin).register(Variant.STAFF, STAFF)

    results = await asyncio.gather(
        *[gate(security).transition(staff.id, "entry", Variant.STAFF) for _ in range(5)],
        return_exceptions=True,
    )

    succeeded = [r for r in results if not isinstance(r, Exception)]
    failed = [r for r in results if isinstance(r, Exception)]
    assert len(succeeded) == 1
    assert all(isinstance(e, IllegalTransition) for e in failed)

    records = await gate(admin).history(staff.id, Variant.STAFF)
    assert [r.edge for r in records] == ["entry"]


async def test_concurrent_scans_do_not_double_enter(gate, admin, security, resident):
    delivery = await gate(admin).register(Variant.DELIVERY, {**DELIVERY, "unique_id": "D-500"})

    results = await asyncio.gather(
        *[gate(security).verify("D-500", Variant.DELIVERY) for _ in range(4)],
        return_exceptions=True,
    )

    succeeded = [r for r in results if not isinstance(r, Exception)]
    assert succeeded
    assert all(isinstance(r, VerificationError) for r in results if isinstance(r, Exception))

    records = await gate(admin).history(delivery.id, Variant.DELIVERY)
    edges = [r.edge for r in records]
    assert len(edges) == len(succeeded)
    assert len(edges) == len(set(edges))
    assert [r.sequence for r in records] == list(range(1, len(records) + 1))

    _, current = await gate(admin).snapshot(delivery.id, Variant.DELIVERY)
    assert ledger.replay(spec_for(Variant.DELIVERY), records) == current.status


async def test_different_entities_proceed_independently(gate, admin, security, resident):
    codes = [f"D-60{i}" for i in range(3)]
    for code in codes:
        await gate(admin).register(Variant.DELIVERY, {**DELIVERY, "unique_id": code})

    results = await asyncio.gather(*[gate(security).verify(code, Variant.DELIVERY) for code in codes])
    assert [r.entity.status for r in results] == ["approved"] * 3


async def test_lock_registry_reuses_live_locks():
    locks = EntityLocks()
    first = locks.lock_for("a")
    assert locks.lock_for("a") is first
    assert locks.lock_for("b") is not first

    async with locks.hold("a"):
        assert first.locked()
    assert not first.locked()


async def test_database_holds_one_live_credential(gate, admin, resident, monkeypatch):
    await gate(admin).register(Variant.DELIVERY, {**DELIVERY, "unique_id": "D-900"})
    await gate(admin).register(Variant.STAFF, STAFF)

    # A second worker whose lookup ran before the first insert was committed
    async def lookup_missed(*args, **kwargs):
        return None

    monkeypatch.setattr(credentials, "ensure_credential_free", lookup_missed)

    with pytest.raises(DuplicateCredential):
        await gate(admin).register(Variant.DELIVERY, {**DELIVERY, "unique_id": "D-900"})

    with pytest.raises(DuplicateCredential):
        await gate(admin).register(Variant.STAFF, STAFF)

    holders = await gate(admin).session.execute(select(Delivery).where(Delivery.unique_id == "D-900"))
    assert len(holders.scalars().all()) == 1
