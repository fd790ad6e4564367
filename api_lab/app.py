"""ApiLab: fake Veracode REST API for local runs and integration tests.

Serves canned applications, sandboxes and findings behind the real
VERACODE-HMAC-SHA-256 check: every request's Authorization header is
recomputed from the lab credentials and rejected with 401 on mismatch.

    VERACODE_API_KEY_ID=lab-key-id VERACODE_API_KEY_SECRET=<LAB_KEY_SECRET> \\
        veracodetui --base-url http://127.0.0.1:5000
"""

import binascii
import copy
import hmac
import math

from flask import Flask, jsonify, request

from veracodetui.core.signer import AUTH_SCHEME, calculate_signature, signing_data

app = Flask(__name__)

LAB_KEY_ID = "lab-key-id"
LAB_KEY_SECRET = "0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"

APP_BILLING = "11111111-1111-1111-1111-111111111111"
APP_LEGACY = "22222222-2222-2222-2222-222222222222"
APP_PAYMENTS = "33333333-3333-3333-3333-333333333333"
SANDBOX_FEATURE = "44444444-4444-4444-4444-444444444444"

# ── Seed data ───────────────────────────────────────────────────

def _app(guid, app_id, name, modified, policy_status, scan_status, scan_type="STATIC"):
    return {
        "guid": guid,
        "id": app_id,
        "created": "2023-03-01T10:00:00.000Z",
        "modified": modified,
        "last_completed_scan_date": modified,
        "profile": {
            "name": name,
            "business_criticality": "HIGH",
            "business_unit": {"guid": "bu-1", "id": 1, "name": "Platform"},
            "policies": [{"guid": "pol-1", "name": "Veracode Recommended High",
                          "is_default": True, "policy_compliance_status": policy_status}],
            "teams": [{"guid": "team-1", "team_id": 7, "team_name": "Core"}],
        },
        "scans": [{"scan_type": scan_type, "status": scan_status,
                   "modified_date": modified}] if modified else [],
    }


APPLICATIONS = [
    _app(APP_BILLING, 1001, "Billing Service", "2024-01-01T09:30:00.000Z",
         "PASSED", "PUBLISHED"),
    _app(APP_LEGACY, 1002, "Legacy Portal", None, "NOT_ASSESSED", ""),
    _app(APP_PAYMENTS, 1003, "Payments API", "2024-06-01T14:00:00.000Z",
         "DID_NOT_PASS", "PUBLISHED"),
]

SANDBOXES = {
    APP_PAYMENTS: [{
        "guid": SANDBOX_FEATURE, "id": 501, "name": "feature-x",
        "application_guid": APP_PAYMENTS, "owner_username": "alice",
        "created": "2024-05-20T08:00:00.000Z", "modified": "2024-05-21T08:00:00.000Z",
    }],
}


def _static(issue_id, severity, cwe, name, path, line, violates, status="OPEN",
            resolution_status="NONE", context=""):
    return {
        "issue_id": issue_id,
        "scan_type": "STATIC",
        "description": f"{name} in {path}",
        "count": 1,
        "context_type": "SANDBOX" if context else "APPLICATION",
        "context_guid": context or APP_PAYMENTS,
        "violates_policy": violates,
        "finding_status": {"first_found_date": "2024-02-10T12:00:00.000Z",
                           "status": status, "resolution": "UNRESOLVED",
                           "resolution_status": resolution_status, "new": False},
        "finding_details": {"severity": severity, "cwe": {"id": cwe, "name": name},
                            "file_path": path, "file_name": path.rsplit("/", 1)[-1],
                            "file_line_number": line, "module": "payments.jar",
                            "procedure": "handle", "exploitability": 1},
        "annotations": [],
    }


FINDINGS = {
    APP_PAYMENTS: [
        _static(101, 5, 89, "SQL Injection", "src/db/Orders.java", 42, True),
        _static(102, 3, 80, "Cross-Site Scripting", "src/web/View.java", 17, False,
                status="CLOSED", resolution_status="APPROVED"),
        {
            "issue_id": 201, "scan_type": "SCA", "violates_policy": True,
            "context_type": "APPLICATION", "context_guid": APP_PAYMENTS,
            "finding_status": {"status": "OPEN", "resolution_status": "NONE"},
            "finding_details": {"severity": 4, "cwe": {"id": 502, "name": "Deserialization"},
                                "component_filename": "jackson-databind-2.9.8.jar",
                                "version": "2.9.8", "language": "JAVA",
                                "cve": {"name": "CVE-2019-12384", "cvss": 5.9, "severity": "Medium"},
                                "licenses": [{"license_id": "Apache-2.0"}]},
        },
        {
            "issue_id": 301, "scan_type": "DYNAMIC", "violates_policy": False,
            "context_type": "APPLICATION", "context_guid": APP_PAYMENTS,
            "finding_status": {"status": "OPEN", "resolution_status": "NONE"},
            "finding_details": {"severity": 2, "cwe": {"id": 614, "name": "Insecure Cookie"},
                                "url": "https://payments.example.com/login",
                                "hostname": "payments.example.com", "path": "/login"},
        },
    ],
    SANDBOX_FEATURE: [
        _static(111, 4, 22, "Path Traversal", "src/io/Files.java", 88, True,
                context=SANDBOX_FEATURE),
    ],
}

STATIC_FLAW_INFO = {
    101: {
        "issue_summary": {"app_guid": APP_PAYMENTS, "name": "SQL Injection",
                          "build_id": 9001, "issue_id": 101},
        "data_paths": [
            {"module_name": "payments.jar", "steps": 3, "local_path": "src/db/Orders.java",
             "function_name": "executeQuery", "line_number": 42,
             "calls": [
                 {"data_path": 1, "file_name": "OrderController.java",
                  "file_path": "src/web/OrderController.java",
                  "function_name": "getOrder", "line_number": 12},
                 {"data_path": 1, "file_name": "Orders.java", "file_path": "src/db/Orders.java",
                  "function_name": "find", "line_number": 40},
             ]},
            {"module_name": "payments.jar", "steps": 2, "local_path": "src/db/Orders.java",
             "function_name": "executeQuery", "line_number": 42,
             "calls": [
                 {"data_path": 2, "file_name": "Reports.java", "file_path": "src/web/Reports.java",
                  "function_name": "export", "line_number": 77},
             ]},
        ],
    },
    111: {"issue_summary": {"app_guid": APP_PAYMENTS, "issue_id": 111}, "data_paths": []},
}

PRINCIPAL = {
    "username": "lab.user", "email": "lab.user@example.com",
    "userFirstName": "Lab", "userLastName": "User",
    "organizationId": 42, "organizationName": "Example Org",
    "roles": ["Reviewer", "Security Lead"], "permissions": ["annotate"],
    "sandboxEnabled": True,
}

ANNOTATION_ACTIONS = {"COMMENT", "FP", "APPDESIGN", "OSENV", "NETENV",
                      "REJECTED", "ACCEPTED", "LIBRARY", "ACCEPTRISK"}

_PRISTINE = copy.deepcopy(FINDINGS)


def reset_lab():
    """Drop annotations posted since start-up."""
    FINDINGS.clear()
    FINDINGS.update(copy.deepcopy(_PRISTINE))


# ── Helpers ─────────────────────────────────────────────────────

def api_error(status, title, detail=""):
    body = {"_embedded": {"api_errors": [
        {"id": "lab", "code": str(status), "title": title, "detail": detail,
         "status": str(status)}]}}
    return jsonify(body), status


def hal_page(items, key):
    page = int(request.args.get("page", 0))
    size = int(request.args.get("size", 50))
    total_pages = max(math.ceil(len(items) / size), 1) if items else 0
    chunk = items[page * size:(page + 1) * size]
    return jsonify({
        "_embedded": {key: chunk},
        "page": {"number": page, "size": size, "total_elements": len(items),
                 "total_pages": total_pages},
    })


def parse_auth_header(value):
    scheme, _, rest = (value or "").partition(" ")
    if scheme != AUTH_SCHEME:
        return None
    fields = dict(part.split("=", 1) for part in rest.split(",") if "=" in part)
    if not {"id", "ts", "nonce", "sig"} <= fields.keys():
        return None
    return fields


def signature_valid(method, host, request_uri, header):
    fields = parse_auth_header(header)
    if fields is None or fields["id"] != LAB_KEY_ID:
        return False
    try:
        nonce = binascii.unhexlify(fields["nonce"])
    except (binascii.Error, ValueError):
        return False
    data = signing_data(fields["id"], host, request_uri, method)
    expected = calculate_signature(binascii.unhexlify(LAB_KEY_SECRET), nonce,
                                   fields["ts"].encode("ascii"), data.encode("utf-8"))
    return hmac.compare_digest(expected.hex().upper(), fields["sig"].upper())


@app.before_request
def check_signature():
    uri = request.path
    query = request.query_string.decode("ascii")
    if query:
        uri = f"{uri}?{query}"
    host = request.host.split(":", 1)[0]
    if not signature_valid(request.method, host, uri, request.headers.get("Authorization")):
        return api_error(401, "Unauthorized", "HMAC signature mismatch")
    return None


def find_app(guid):
    return next((a for a in APPLICATIONS if a["guid"] == guid), None)


# ── Routes ──────────────────────────────────────────────────────

@app.route("/healthcheck/status")
def healthcheck():
    return "", 200


@app.route("/appsec/v1/applications")
def applications():
    apps = APPLICATIONS
    name = request.args.get("name", "").lower()
    if name:
        apps = [a for a in apps if name in a["profile"]["name"].lower()]
    scan_type = request.args.get("scan_type")
    if scan_type:
        apps = [a for a in apps if any(s["scan_type"] == scan_type for s in a["scans"])]
    statuses = request.args.getlist("scan_status")
    if statuses:
        apps = [a for a in apps if any(s["status"] in statuses for s in a["scans"])]
    after = request.args.get("modified_after")
    if after:
        apps = [a for a in apps if a["modified"] and a["modified"][:10] >= after]
    return hal_page(apps, "applications")


@app.route("/appsec/v1/applications/<guid>")
def application(guid):
    found = find_app(guid)
    if found is None:
        return api_error(404, "Not Found", f"application {guid} does not exist")
    return jsonify(found)


@app.route("/appsec/v1/applications/<guid>/sandboxes")
def sandboxes(guid):
    if find_app(guid) is None:
        return api_error(404, "Not Found", f"application {guid} does not exist")
    return hal_page(SANDBOXES.get(guid, []), "sandboxes")


@app.route("/appsec/v1/applications/<guid>/sandboxes/<sandbox_guid>")
def sandbox(guid, sandbox_guid):
    found = next((s for s in SANDBOXES.get(guid, []) if s["guid"] == sandbox_guid), None)
    if found is None:
        return api_error(404, "Not Found", f"sandbox {sandbox_guid} does not exist")
    return jsonify(found)


@app.route("/appsec/v2/applications/<guid>/findings")
def findings(guid):
    if find_app(guid) is None:
        return api_error(404, "Not Found", f"application {guid} does not exist")
    context = request.args.get("context")
    items = FINDINGS.get(context, []) if context else FINDINGS.get(guid, [])

    scan_types = request.args.getlist("scan_type")
    if request.args.get("include_annot") == "true" and "SCA" in scan_types:
        return api_error(400, "Bad Request", "include_annot is not supported for SCA")
    if scan_types:
        items = [f for f in items if f["scan_type"] in scan_types]
    severity = request.args.get("severity")
    if severity:
        items = [f for f in items if f["finding_details"]["severity"] == int(severity)]
    severity_gte = request.args.get("severity_gte")
    if severity_gte:
        items = [f for f in items if f["finding_details"]["severity"] >= int(severity_gte)]
    violates = request.args.get("violates_policy")
    if violates in ("true", "false"):
        items = [f for f in items if f["violates_policy"] == (violates == "true")]
    if request.args.get("include_annot") != "true":
        items = [{k: v for k, v in f.items() if k != "annotations"} for f in items]
    return hal_page(items, "findings")


@app.route("/appsec/v2/applications/<guid>/findings/<int:issue_id>/static_flaw_info")
def static_flaw_info(guid, issue_id):
    # the real endpoint rejects context, sandbox flaws resolve without it
    if request.args.get("context"):
        return api_error(404, "Not Found", "static flaw info does not accept context")
    info = STATIC_FLAW_INFO.get(issue_id)
    if find_app(guid) is None or info is None:
        return api_error(404, "Not Found", f"no static flaw info for issue {issue_id}")
    return jsonify(info)


@app.route("/appsec/v2/applications/<guid>/annotations", methods=["POST"])
def annotations(guid):
    if find_app(guid) is None:
        return api_error(404, "Not Found", f"application {guid} does not exist")
    if request.headers.get("Content-Type", "").split(";")[0] != "application/json":
        return api_error(415, "Unsupported Media Type", "expected application/json")
    data = request.get_json(silent=True) or {}
    action = data.get("action", "")
    if action not in ANNOTATION_ACTIONS:
        return api_error(400, "Bad Request", f"invalid action {action!r}")
    try:
        ids = [int(i) for i in str(data.get("issue_list", "")).split(",") if i]
    except ValueError:
        return api_error(400, "Bad Request", "issue_list must be comma separated ids")
    if not ids:
        return api_error(400, "Bad Request", "issue_list is required")

    bucket = FINDINGS.get(request.args.get("context") or guid, [])
    matched = [f for f in bucket if f["issue_id"] in ids]
    if not matched:
        return api_error(404, "Not Found", "no matching findings in this context")
    for f in matched:
        f.setdefault("annotations", []).insert(0, {
            "action": action, "comment": data.get("comment", ""),
            "created": "2025-01-15T10:00:00.000Z", "user_name": PRINCIPAL["username"],
        })
    return jsonify({"findings": ",".join(str(f["issue_id"]) for f in matched)})


@app.route("/api/authn/v2/principal")
def principal():
    return jsonify(PRINCIPAL)


@app.route("/api/authn/v2/api_credentials")
def api_credentials():
    return jsonify({"api_id": LAB_KEY_ID, "expiration_ts": "2026-12-31T00:00:00.000Z"})


if __name__ == "__main__":
    print(f"\n  ApiLab starting on http://0.0.0.0:5000  (key id {LAB_KEY_ID})\n")
    app.run(host="0.0.0.0", port=5000, debug=True)
