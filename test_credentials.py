"""Credential normalisation and subject-info rules"""
import re

import pytest

from society_gate.domain.errors import ValidationError
from society_gate.domain.lifecycle import Variant
from society_gate.domain.services import credentials as store


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("MH12AB1234", "MH12AB1234"),
        ("mh12ab1234", "MH12AB1234"),
        (" MH 12 AB 1234 ", "MH12AB1234"),
        ("mh-12-ab-1234", "MH12AB1234"),
        ("DL3C1", "DL3C1"),
    ],
)
def test_plates_are_normalised(raw, expected):
    assert store.normalize_credential(Variant.VEHICLE, raw) == expected


@pytest.mark.parametrize("raw", ["1234MH", "M12AB1234", "MH12ABC1234", "MH12AB12345", ""])
def test_malformed_plates_are_rejected(raw):
    with pytest.raises(ValidationError):
        store.normalize_credential(Variant.VEHICLE, raw)


def test_delivery_codes_and_staff_ids_are_uppercased():
    assert store.normalize_credential(Variant.DELIVERY, "  d-001 ") == "D-001"
    assert store.normalize_credential(Variant.STAFF, "s-42") == "S-42"


def test_visitor_qr_is_only_trimmed():
    assert store.normalize_credential(Variant.VISITOR, " VIS-aBc_123 ") == "VIS-aBc_123"


def test_short_delivery_code_is_rejected():
    with pytest.raises(ValidationError):
        store.normalize_credential(Variant.DELIVERY, "d1")


def test_alerts_have_no_credential():
    with pytest.raises(ValidationError):
        store.normalize_credential(Variant.EMERGENCY, "anything")


def test_generated_credentials():
    assert re.fullmatch(r"DLV-[A-Z0-9]{6}", store.generate_credential(Variant.DELIVERY))
    assert store.generate_credential(Variant.VISITOR).startswith("VIS-")
    assert store.generate_credential(Variant.STAFF) is None


def test_status_cannot_be_patched():
    with pytest.raises(ValidationError) as exc:
        store.parse_subject(Variant.DELIVERY, {"status": "completed"}, partial=True)
    assert "transitions" in exc.value.message


def test_unknown_fields_are_rejected():
    with pytest.raises(ValidationError) as exc:
        store.parse_subject(Variant.VISITOR, {"name": "Kiran", "entry_time": "2024-01-01T10:00:00"}, partial=True)
    assert "entry_time" in exc.value.message


def test_partial_update_drops_empty_values():
    assert store.parse_subject(Variant.VEHICLE, {"flat_no": "a-101", "visitor_name": None}, partial=True) == {
        "flat_no": "a-101"
    }


def test_delivery_rules():
    data = {
        "delivery_person_name": " Ravi ",
        "phone": "+919876543210",
        "delivery_company": "Blue Dart",
        "apartment": "a-101",
    }
    store.check_subject(Variant.DELIVERY, data)
    assert data["delivery_person_name"] == "Ravi"
    assert data["apartment"] == "A-101"

    with pytest.raises(ValidationError):
        store.check_subject(Variant.DELIVERY, {**data, "phone": "12345"})

    with pytest.raises(ValidationError):
        store.check_subject(Variant.DELIVERY, {**data, "delivery_company": "Pigeon Post"})


def test_visitor_rules():
    with pytest.raises(ValidationError) as exc:
        store.check_subject(Variant.VISITOR, {"name": "K", "phone": "9123456780", "flat_no": "A-101"})
    assert exc.value.message == "Name must be at least 2 characters"

    data = {"name": "Kiran", "phone": "9123456780", "flat_no": "a-101", "purpose": " "}
    store.check_subject(Variant.VISITOR, data)
    assert data["purpose"] == "Guest"
    assert data["flat_no"] == "A-101"


def test_staff_other_role_needs_a_name():
    with pytest.raises(ValidationError):
        store.check_subject(Variant.STAFF, {"name": "Raju", "role": "other"})

    data = {"name": "Raju", "role": "Driver", "other_role": "ignored"}
    store.check_subject(Variant.STAFF, data)
    assert data == {"name": "Raju", "role": "driver", "other_role": None}


def test_guest_vehicle_needs_visitor_name():
    with pytest.raises(ValidationError):
        store.check_subject(Variant.VEHICLE, {"vehicle_type": "car", "is_guest": True})


def test_other_alert_needs_custom_title():
    with pytest.raises(ValidationError) as exc:
        store.check_subject(Variant.EMERGENCY, {"type": "Other", "location": "Gate", "description": "Help"})
    assert exc.value.message == 'Custom title is required for "Other" type'
