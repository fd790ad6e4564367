"""Tests for the resource clients: parameter building, validation, decoding."""

import json

import pytest

from api_lab.app import APP_PAYMENTS, SANDBOX_FEATURE
from veracodetui.core.errors import DecodeError, HTTPError, ValidationError
from veracodetui.core.models import (
    AnnotationData, DynamicFindingDetails, ScaFindingDetails, StaticFindingDetails,
)
from veracodetui.services.annotations import (
    ACTION_COMMENT, ACTION_FALSE_POSITIVE, AnnotationsService, api_error_messages, issue_list,
)
from veracodetui.services.applications import ApplicationsQuery, ApplicationsService
from veracodetui.services.findings import (
    FindingsQuery, FindingsService, violates_policy_param,
)
from veracodetui.services.identity import IdentityService

from conftest import SpyTransport, app_payload, hal, static_finding


# ── validation before transport ────────────────────────────────

@pytest.mark.parametrize("call", [
    lambda s: ApplicationsService(s).get_application(""),
    lambda s: ApplicationsService(s).get_sandboxes(""),
    lambda s: ApplicationsService(s).get_sandbox("app", ""),
    lambda s: FindingsService(s).get_findings(""),
    lambda s: FindingsService(s).get_static_flaw_info("app", 0),
    lambda s: FindingsService(s).get_static_flaw_info("", 5),
    lambda s: AnnotationsService(s).create_annotation("", AnnotationData("1", "c", "COMMENT")),
    lambda s: AnnotationsService(s).create_annotation("app", None),
    lambda s: AnnotationsService(s).create_annotation("app", AnnotationData("", "c", "COMMENT")),
    lambda s: AnnotationsService(s).create_annotation("app", AnnotationData("1", "c", "BOGUS")),
])
def test_missing_identifier_never_reaches_transport(spy, call):
    with pytest.raises(ValidationError):
        call(spy)
    assert spy.calls == []


def test_page_size_bounds(spy):
    with pytest.raises(ValidationError):
        ApplicationsService(spy).get_applications(ApplicationsQuery(size=501))
    with pytest.raises(ValidationError):
        FindingsService(spy).get_findings("app", FindingsQuery(page=-1))
    assert spy.calls == []


# ── applications ───────────────────────────────────────────────

def test_applications_query_omits_unset_values():
    assert ApplicationsQuery().to_params() == []
    params = ApplicationsQuery(name="pay", scan_status=["PUBLISHED", "IN_QUEUE"],
                               page=2, size=50, legacy_id=0).to_params()
    assert ("name", "pay") in params
    assert params.count(("scan_status", "PUBLISHED")) == 1
    assert ("scan_status", "IN_QUEUE") in params
    assert ("page", "2") in params and ("size", "50") in params
    assert not any(k == "legacy_id" for k, _ in params)


def test_get_applications_decodes_page():
    spy = SpyTransport(hal("applications", [app_payload("a", "Alpha", "2024-01-01T00:00:00Z")],
                           total_pages=3, total_elements=250))
    page = ApplicationsService(spy).get_applications(ApplicationsQuery(size=100))
    assert spy.calls[0][:2] == ("GET", "/appsec/v1/applications")
    assert spy.calls[0][2] == [("size", "100")]
    assert page.total_pages == 3 and page.total_items == 250
    assert page.items[0].name == "Alpha"
    assert page.items[0].scan_status == "PUBLISHED"


def test_get_sandboxes_path():
    spy = SpyTransport(hal("sandboxes", [{"guid": "s1", "name": "dev"}]))
    page = ApplicationsService(spy).get_sandboxes("app-1")
    assert spy.calls[0][1] == "/appsec/v1/applications/app-1/sandboxes"
    assert spy.calls[0][2] is None
    assert page.items[0].name == "dev"


def test_get_application_and_sandbox():
    spy = SpyTransport(app_payload("g", "Gamma"), {"guid": "s", "name": "box"})
    svc = ApplicationsService(spy)
    assert svc.get_application("g").name == "Gamma"
    assert svc.get_sandbox("g", "s").name == "box"
    assert spy.calls[1][1] == "/appsec/v1/applications/g/sandboxes/s"


def test_malformed_body_is_decode_error():
    spy = SpyTransport(b"<html>oops</html>")
    with pytest.raises(DecodeError) as exc:
        ApplicationsService(spy).get_applications()
    assert exc.value.body == b"<html>oops</html>"


def test_non_object_body_is_decode_error():
    with pytest.raises(DecodeError):
        ApplicationsService(SpyTransport(b"[]")).get_application("g")


@pytest.mark.parametrize("payload", [
    {"_embedded": {"applications": 5}},
    {"_embedded": {"applications": {"guid": "x"}}},
    {"_embedded": {"applications": ["x"]}},
    {"_embedded": [], "page": {"total_pages": 1}},
    {"_embedded": {"applications": []}, "page": "nope"},
])
def test_wrongly_shaped_page_is_decode_error(payload):
    with pytest.raises(DecodeError, match="applications") as exc:
        ApplicationsService(SpyTransport(payload)).get_applications()
    assert exc.value.body == json.dumps(payload).encode()


def test_wrongly_shaped_nested_object_is_decode_error():
    payload = app_payload("g", "Payments", "2024-06-01T00:00:00.000Z")
    payload["profile"] = "Payments"
    with pytest.raises(DecodeError):
        ApplicationsService(SpyTransport(payload)).get_application("g")


def test_wrongly_shaped_principal_is_decode_error():
    with pytest.raises(DecodeError, match="principal"):
        IdentityService(SpyTransport({"username": "u", "roles": 7})).get_principal()


def test_wrongly_shaped_finding_details_is_decode_error():
    finding = {"issue_id": 201, "scan_type": "SCA",
               "finding_details": {"severity": 4, "licenses": "Apache-2.0"}}
    spy = SpyTransport(hal("findings", [finding]))
    with pytest.raises(DecodeError, match="findings"):
        FindingsService(spy).get_findings("app")


def test_http_error_propagates():
    err = HTTPError(403, "403 Forbidden", b"nope")
    with pytest.raises(HTTPError):
        ApplicationsService(SpyTransport(err)).get_applications()


# ── findings ───────────────────────────────────────────────────

def test_findings_query_params():
    params = FindingsQuery(context="sb-1", scan_type=["STATIC"], severity=4,
                           violates_policy=False, include_annotations=True, size=100).to_params()
    assert params == [("context", "sb-1"), ("scan_type", "STATIC"), ("severity", "4"),
                      ("violates_policy", "false"), ("include_annot", "true"), ("size", "100")]


def test_findings_query_zero_severity_not_sent():
    params = FindingsQuery(severity=0, severity_gte=0).to_params()
    assert params == []


def test_violates_policy_param():
    assert violates_policy_param("All") is None
    assert violates_policy_param("Violations") is True
    assert violates_policy_param("Non-Violations") is False


def test_get_findings_picks_details_by_scan_type():
    sca = {"issue_id": 2, "scan_type": "SCA",
           "finding_details": {"severity": 4, "component_filename": "lib.jar", "version": "1.0",
                               "cve": {"name": "CVE-2020-1", "cvss": "7.5"}}}
    dyn = {"issue_id": 3, "scan_type": "DYNAMIC",
           "finding_details": {"severity": 2, "url": "https://x/login"}}
    spy = SpyTransport(hal("findings", [static_finding(1), sca, dyn]))
    page = FindingsService(spy).get_findings("app", FindingsQuery())
    assert spy.calls[0][1] == "/appsec/v2/applications/app/findings"
    kinds = [type(f.details) for f in page.items]
    assert kinds == [StaticFindingDetails, ScaFindingDetails, DynamicFindingDetails]
    assert page.items[1].details.cve.cvss == 7.5
    assert page.items[1].details.category == "CVE-2020-1"
    assert page.items[2].details.location == "https://x/login"


def test_static_flaw_info_never_sends_context():
    spy = SpyTransport({"data_paths": [{"steps": 2, "calls": [{"function_name": "f"}]}]})
    info = FindingsService(spy).get_static_flaw_info("app", 101)
    method, path, params, _ = spy.calls[0]
    assert path == "/appsec/v2/applications/app/findings/101/static_flaw_info"
    assert params is None
    assert info.data_paths[0].calls[0].function_name == "f"


def test_findings_against_lab(lab_transport):
    svc = FindingsService(lab_transport)
    page = svc.get_findings(APP_PAYMENTS, FindingsQuery(scan_type=["STATIC"],
                                                        include_annotations=True))
    assert [f.issue_id for f in page.items] == [101, 102]
    sandbox = svc.get_findings(APP_PAYMENTS, FindingsQuery(context=SANDBOX_FEATURE))
    assert [f.issue_id for f in sandbox.items] == [111]
    info = svc.get_static_flaw_info(APP_PAYMENTS, 101)
    assert len(info.data_paths) == 2


# ── identity ───────────────────────────────────────────────────

def test_principal_and_credentials(lab_transport):
    svc = IdentityService(lab_transport)
    principal = svc.get_principal()
    assert principal.display_name == "Lab User"
    assert principal.organization_name == "Example Org"
    creds = svc.get_api_credentials()
    assert creds.api_id == "lab-key-id"
    assert creds.expiration_ts.year == 2026


# ── annotations ────────────────────────────────────────────────

def test_issue_list():
    assert issue_list([101, 102]) == "101,102"


def test_create_annotation_posts_json():
    spy = SpyTransport({"findings": "101"})
    data = AnnotationData(issue_list="101", comment="sanitised", action=ACTION_FALSE_POSITIVE)
    resp = AnnotationsService(spy).create_annotation("app", data, context="sb-1")
    method, path, params, body = spy.calls[0]
    assert (method, path) == ("POST", "/appsec/v2/applications/app/annotations")
    assert params == [("context", "sb-1")]
    assert json.loads(body) == {"issue_list": "101", "comment": "sanitised", "action": "FP"}
    assert resp.findings == "101"


def test_create_annotation_empty_response():
    spy = SpyTransport(b"")
    resp = AnnotationsService(spy).create_annotation("app", AnnotationData("1", "c", ACTION_COMMENT))
    assert resp.findings == ""


def test_annotation_round_trip_through_lab(lab_transport):
    svc = AnnotationsService(lab_transport)
    svc.create_annotation(APP_PAYMENTS, AnnotationData("101", "reviewed", ACTION_COMMENT))
    page = FindingsService(lab_transport).get_findings(
        APP_PAYMENTS, FindingsQuery(scan_type=["STATIC"], include_annotations=True))
    annotated = next(f for f in page.items if f.issue_id == 101)
    assert annotated.annotations[0].comment == "reviewed"
    assert annotated.annotations[0].user_name == "lab.user"


def test_api_error_messages():
    body = json.dumps({"_embedded": {"api_errors": [
        {"title": "Bad Request", "detail": "invalid action"}]}}).encode()
    assert api_error_messages(HTTPError(400, "400 Bad Request", body)) == \
        ["Bad Request: invalid action"]
    assert api_error_messages(HTTPError(500, "500", b"plain text")) == []
