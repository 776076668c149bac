"""Domain models for Society Gate"""
from .resident import Resident
from .delivery import Delivery
from .visitor import Visitor
from .staff import StaffMember
from .vehicle import Vehicle
from .emergency_alert import EmergencyAlert
from .transition_record import TransitionRecord

__all__ = [
    "Resident",
    "Delivery",
    "Visitor",
    "StaffMember",
    "Vehicle",
    "EmergencyAlert",
    "TransitionRecord",
]
