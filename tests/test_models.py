"""Tests for JSON decoding of API payloads and date helpers."""

from datetime import datetime, timezone

import pytest

from veracodetui.core.models import (
    Annotation, Application, FindingDetails, Finding, ManualFindingDetails, Principal,
    ResultPage, Sandbox, decode_finding_details,
)
from veracodetui.parsers.dates import format_date, is_valid_date, parse_timestamp

from conftest import app_payload, hal, static_finding


def test_result_page_from_hal():
    page = ResultPage.from_hal(hal("sandboxes", [{"guid": "s1"}], number=1, total_pages=4,
                                   total_elements=7), "sandboxes", Sandbox)
    assert [s.guid for s in page.items] == ["s1"]
    assert (page.number, page.total_pages, page.total_items) == (1, 4, 7)


def test_result_page_without_embedded():
    page = ResultPage.from_hal({"page": {"total_pages": 0}}, "applications", Application)
    assert page.items == []


def test_application_defaults():
    app = Application.from_dict({"guid": "g"})
    assert app.name == "Unknown"
    assert app.policy_status == ""
    assert app.modified is None


def test_application_fields():
    app = Application.from_dict(app_payload("g", "Payments", "2024-06-01T14:00:00.000Z"))
    assert app.name == "Payments"
    assert app.modified == datetime(2024, 6, 1, 14, 0, tzinfo=timezone.utc)


def test_unknown_scan_type_uses_common_details():
    details = decode_finding_details("IAST", {"severity": 3, "cwe": {"id": 1, "name": "x"}})
    assert type(details) is FindingDetails
    assert details.severity_name == "Medium"


def test_manual_details():
    details = decode_finding_details("MANUAL", {"severity": 5, "location": "/admin"})
    assert isinstance(details, ManualFindingDetails)
    assert details.location == "/admin"
    assert details.severity_name == "Very High"


def test_missing_details_tolerated():
    finding = Finding.from_dict({"issue_id": 9, "scan_type": "STATIC"})
    assert finding.details.severity == 0
    assert finding.details.location == ""


@pytest.mark.parametrize("kwargs, marker", [
    ({"violates": True}, "❌"),
    ({"violates": False}, " "),
    ({"violates": True, "resolution_status": "APPROVED"}, "✓"),
    ({"violates": False, "status": "CLOSED"}, "✓"),
    ({"violates": True, "status": "CLOSED"}, "❌"),
])
def test_policy_marker(kwargs, marker):
    assert Finding.from_dict(static_finding(1, **kwargs)).policy_marker == marker


def test_static_location():
    finding = Finding.from_dict(static_finding(1))
    assert finding.details.location == "src/A.java:10"
    assert finding.details.category == "SQL Injection"


def test_annotation_legacy_fields():
    ann = Annotation.from_dict({"action": "COMMENT", "user": "bob", "date": "2024-01-02T03:04:05Z"})
    assert ann.user_name == "bob"
    assert ann.created.day == 2


def test_principal_camel_case():
    p = Principal.from_dict({"username": "u", "organizationName": "Org", "sandboxEnabled": True})
    assert p.display_name == "u"
    assert p.organization_name == "Org"
    assert p.sandbox_enabled


# ── dates ──────────────────────────────────────────────────────

@pytest.mark.parametrize("text, ok", [
    ("2025-12-17", True),
    ("2024-02-29", True),
    ("2025-13-45", False),
    ("2023-02-29", False),
    ("2025-1-17", False),
    ("17-12-2025", False),
    ("２０２５-01-01", False),
    ("", False),
])
def test_is_valid_date(text, ok):
    assert is_valid_date(text) is ok


def test_parse_timestamp():
    assert parse_timestamp("2024-01-01T00:00:00Z").tzinfo is not None
    assert parse_timestamp("2024-01-01T00:00:00.123Z").microsecond == 123000
    assert parse_timestamp("2024-01-01T00:00:00").tzinfo == timezone.utc
    assert parse_timestamp("garbage") is None
    assert parse_timestamp(None) is None


def test_format_date():
    assert format_date(datetime(2024, 6, 1)) == "2024-06-01"
    assert format_date(None) == "N/A"
    assert format_date(None, "-") == "-"
