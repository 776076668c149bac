"""Lifecycle tables for every tracked variant.

Each variant (delivery, visitor, staff, vehicle, emergency alert) is described
by one ``TransitionSpec``: its states, the initial and terminal states, which
states still accept edits, and the edge table. The transition engine, the
verification gateway, the credential store and ledger replay all read these
tables; there is no per-variant branching elsewhere.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple

from .actors import Role
from .errors import IllegalTransition


class Variant(str, Enum):
    DELIVERY = "delivery"
    VISITOR = "visitor"
    STAFF = "staff"
    VEHICLE = "vehicle"
    EMERGENCY = "emergency"


OPERATORS: FrozenSet[Role] = frozenset({Role.SECURITY, Role.ADMIN})
EVERYONE: FrozenSet[Role] = frozenset(Role)

# A guard returns a failure message, or None when the edge may be taken
Guard = Callable[[Any], Optional[str]]


@dataclass(frozen=True)
class Edge:
    name: str
    sources: FrozenSet[str]
    target: Optional[str] = None  # None keeps the current status (self-loop)
    roles: FrozenSet[Role] = OPERATORS
    auto: bool = False  # may be inferred by a credential scan / quick update
    stamps: Tuple[str, ...] = ()
    effects: Tuple[Tuple[str, Any], ...] = ()
    guard: Optional[Guard] = None
    requires_action_taken: bool = False
    default_action_taken: Optional[str] = None
    actor_field: Optional[str] = None
    message: str = ""

    def target_from(self, status: str) -> str:
        return self.target or status


@dataclass(frozen=True)
class TransitionSpec:
    variant: Variant
    label: str
    initial: str
    states: FrozenSet[str]
    terminal: FrozenSet[str]
    editable: FrozenSet[str]
    edges: Tuple[Edge, ...]
    credential_field: Optional[str] = None
    creators: FrozenSet[Role] = OPERATORS
    # Edge applied right after creation, per creating role
    creation_edges: Dict[Role, str] = field(default_factory=dict)
    # Explanations for non-terminal states with no automatic edge
    hints: Dict[str, str] = field(default_factory=dict)

    def is_terminal(self, status: str) -> bool:
        return status in self.terminal

    def is_editable(self, status: str) -> bool:
        return status in self.editable

    def knows(self, edge_name: str) -> bool:
        return any(edge.name == edge_name for edge in self.edges)

    def outgoing(self, status: str) -> List[Edge]:
        return [edge for edge in self.edges if status in edge.sources]

    def find(self, edge_name: str, status: str) -> Optional[Edge]:
        for edge in self.outgoing(status):
            if edge.name == edge_name:
                return edge
        return None

    def infer(self, status: str) -> Optional[Edge]:
        """The single automatic edge out of ``status``, if any."""
        candidates = [edge for edge in self.outgoing(status) if edge.auto]
        if len(candidates) != 1:
            return None
        return candidates[0]

    def replay(self, edge_names: Iterable[str]) -> str:
        """Walk the edge names from the initial state and return the final status."""
        status = self.initial
        for name in edge_names:
            edge = self.find(name, status)
            if edge is None:
                raise IllegalTransition(
                    f"Ledger for {self.label.lower()} breaks at '{name}' from '{status}'"
                )
            status = edge.target_from(status)
        return status


def _not_blocked(entity: Any) -> Optional[str]:
    if getattr(entity, "is_blocked", False):
        return "Staff member is blocked"
    return None


def _is_blocked(entity: Any) -> Optional[str]:
    if not getattr(entity, "is_blocked", False):
        return "Staff member is not blocked"
    return None


DELIVERY = TransitionSpec(
    variant=Variant.DELIVERY,
    label="Delivery",
    initial="pending",
    states=frozenset({"pending", "approved", "completed"}),
    terminal=frozenset({"completed"}),
    editable=frozenset({"pending", "approved"}),
    credential_field="unique_id",
    creators=frozenset({Role.RESIDENT, Role.ADMIN}),
    edges=(
        Edge("entry", frozenset({"pending"}), "approved", auto=True,
             stamps=("entry_time",), message="Delivery entry recorded"),
        Edge("exit", frozenset({"approved"}), "completed", auto=True,
             stamps=("exit_time",), message="Delivery exit recorded"),
    ),
)

VISITOR = TransitionSpec(
    variant=Variant.VISITOR,
    label="Visitor",
    initial="pending",
    states=frozenset({"pending", "granted", "denied", "checked_in", "checked_out"}),
    terminal=frozenset({"denied", "checked_out"}),
    editable=frozenset({"pending", "granted"}),
    credential_field="qr_code",
    creators=EVERYONE,
    creation_edges={Role.RESIDENT: "approve"},
    hints={"pending": "Visitor is awaiting resident approval"},
    edges=(
        Edge("approve", frozenset({"pending"}), "granted", roles=EVERYONE,
             message="Visitor approved"),
        Edge("deny", frozenset({"pending"}), "denied", roles=EVERYONE,
             message="Visitor denied"),
        Edge("check_in", frozenset({"granted"}), "checked_in", auto=True,
             stamps=("entry_time",), message="Visitor checked in"),
        Edge("check_out", frozenset({"checked_in"}), "checked_out", auto=True,
             stamps=("exit_time",), message="Visitor checked out"),
        Edge("check_out", frozenset({"granted"}), "checked_out",
             stamps=("exit_time",), message="Visitor checked out"),
    ),
)

STAFF = TransitionSpec(
    variant=Variant.STAFF,
    label="Staff member",
    initial="outside",
    states=frozenset({"outside", "inside"}),
    terminal=frozenset(),
    editable=frozenset({"outside", "inside"}),
    credential_field="permanent_id",
    edges=(
        Edge("entry", frozenset({"outside"}), "inside", auto=True, guard=_not_blocked,
             stamps=("entry_time",), effects=(("is_inside", True),),
             message="Staff entry recorded"),
        Edge("exit", frozenset({"inside"}), "outside", auto=True, guard=_not_blocked,
             stamps=("exit_time",), effects=(("is_inside", False),),
             message="Staff exit recorded"),
        Edge("block", frozenset({"outside", "inside"}), guard=_not_blocked,
             effects=(("is_blocked", True),), message="Staff member blocked"),
        Edge("unblock", frozenset({"outside", "inside"}), guard=_is_blocked,
             effects=(("is_blocked", False),), message="Staff member unblocked"),
    ),
)

VEHICLE = TransitionSpec(
    variant=Variant.VEHICLE,
    label="Vehicle",
    initial="outside",
    states=frozenset({"outside", "inside"}),
    terminal=frozenset(),
    editable=frozenset({"outside", "inside"}),
    credential_field="vehicle_no",
    edges=(
        Edge("entry", frozenset({"outside"}), "inside", auto=True,
             stamps=("entry_time",), message="Vehicle entry recorded"),
        Edge("exit", frozenset({"inside"}), "outside", auto=True,
             stamps=("exit_time",), message="Vehicle exit recorded"),
    ),
)

EMERGENCY = TransitionSpec(
    variant=Variant.EMERGENCY,
    label="Alert",
    initial="Pending",
    states=frozenset({"Pending", "Processing", "Resolved"}),
    terminal=frozenset({"Resolved"}),
    editable=frozenset({"Pending"}),
    creators=EVERYONE,
    edges=(
        Edge("process", frozenset({"Pending"}), "Processing", auto=True,
             default_action_taken="Started processing by security",
             message="Alert marked as Processing"),
        Edge("resolve", frozenset({"Processing"}), "Resolved", auto=True,
             requires_action_taken=True, stamps=("verified_at",), actor_field="verified_by",
             default_action_taken="Quickly resolved by security",
             message="Alert marked as Resolved"),
        Edge("resolve", frozenset({"Pending"}), "Resolved",
             requires_action_taken=True, stamps=("verified_at",), actor_field="verified_by",
             message="Alert marked as Resolved"),
    ),
)

SPECS: Dict[Variant, TransitionSpec] = {
    spec.variant: spec for spec in (DELIVERY, VISITOR, STAFF, VEHICLE, EMERGENCY)
}


def spec_for(variant: Variant) -> TransitionSpec:
    return SPECS[Variant(variant)]
