"""Typed resources decoded from Veracode REST responses."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from veracodetui.parsers.dates import parse_timestamp

T = TypeVar("T")

SEVERITY_NAMES = {
    5: "Very High",
    4: "High",
    3: "Medium",
    2: "Low",
    1: "Very Low",
    0: "Informational",
}

SCAN_STATIC = "STATIC"
SCAN_DYNAMIC = "DYNAMIC"
SCAN_SCA = "SCA"
SCAN_MANUAL = "MANUAL"

STATUS_OPEN = "OPEN"
STATUS_CLOSED = "CLOSED"
STATUS_REOPENED = "REOPENED"

RESOLUTION_APPROVED = "APPROVED"
RESOLUTION_PROPOSED = "PROPOSED"
RESOLUTION_REJECTED = "REJECTED"

CONTEXT_APPLICATION = "APPLICATION"
CONTEXT_SANDBOX = "SANDBOX"


def _int(value, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _str(value) -> str:
    return "" if value is None else str(value)


def _dict(value) -> Dict[str, Any]:
    """A JSON object, or {} when absent. Any other JSON type is malformed."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise TypeError(f"expected a JSON object, got {type(value).__name__}")
    return value


def _list(value) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"expected a JSON array, got {type(value).__name__}")
    return value


def _object(value, cls):
    """Optional nested object: None stays None."""
    return None if value is None else cls.from_dict(_dict(value))


def _objects(data: Dict[str, Any], key: str, cls) -> list:
    return [cls.from_dict(_dict(item)) for item in _list(data.get(key))]


# ── paging ─────────────────────────────────────────────────────

@dataclass
class PageMetadata:
    number: int = 0
    size: int = 0
    total_elements: int = 0
    total_pages: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PageMetadata":
        return cls(
            number=_int(data.get("number")),
            size=_int(data.get("size")),
            total_elements=_int(data.get("total_elements")),
            total_pages=_int(data.get("total_pages")),
        )


@dataclass
class ResultPage(Generic[T]):
    """One fetched page. Replaced wholesale on every fetch, never merged."""
    items: List[T] = field(default_factory=list)
    total_items: int = 0
    total_pages: int = 0
    number: int = 0

    @classmethod
    def from_hal(cls, data: Dict[str, Any], embedded_key: str,
                 item_cls: Type) -> "ResultPage":
        embedded = _dict(data.get("_embedded"))
        page = PageMetadata.from_dict(_dict(data.get("page")))
        return cls(
            items=_objects(embedded, embedded_key, item_cls),
            total_items=page.total_elements,
            total_pages=page.total_pages,
            number=page.number,
        )


# ── applications ───────────────────────────────────────────────

@dataclass
class BusinessUnit:
    guid: str = ""
    id: int = 0
    name: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BusinessUnit":
        return cls(guid=_str(data.get("guid")), id=_int(data.get("id")),
                   name=_str(data.get("name")))


@dataclass
class AppPolicy:
    guid: str = ""
    name: str = ""
    is_default: bool = False
    policy_compliance_status: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppPolicy":
        return cls(
            guid=_str(data.get("guid")),
            name=_str(data.get("name")),
            is_default=bool(data.get("is_default")),
            policy_compliance_status=_str(data.get("policy_compliance_status")),
        )


@dataclass
class AppTeam:
    guid: str = ""
    team_id: int = 0
    team_name: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppTeam":
        return cls(guid=_str(data.get("guid")), team_id=_int(data.get("team_id")),
                   team_name=_str(data.get("team_name")))


@dataclass
class BusinessOwner:
    name: str = ""
    email: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BusinessOwner":
        return cls(name=_str(data.get("name")), email=_str(data.get("email")))


@dataclass
class ApplicationProfile:
    name: str = ""
    description: str = ""
    business_criticality: str = ""
    business_unit: Optional[BusinessUnit] = None
    business_owners: List[BusinessOwner] = field(default_factory=list)
    policies: List[AppPolicy] = field(default_factory=list)
    teams: List[AppTeam] = field(default_factory=list)
    tags: str = ""
    git_repo_url: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ApplicationProfile":
        bu = data.get("business_unit")
        return cls(
            name=_str(data.get("name")),
            description=_str(data.get("description")),
            business_criticality=_str(data.get("business_criticality")),
            business_unit=_object(bu, BusinessUnit),
            business_owners=_objects(data, "business_owners", BusinessOwner),
            policies=_objects(data, "policies", AppPolicy),
            teams=_objects(data, "teams", AppTeam),
            tags=_str(data.get("tags")),
            git_repo_url=_str(data.get("git_repo_url")),
        )


@dataclass
class ApplicationScan:
    scan_type: str = ""
    status: str = ""
    internal_status: str = ""
    modified_date: Optional[datetime] = None
    scan_url: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ApplicationScan":
        return cls(
            scan_type=_str(data.get("scan_type")),
            status=_str(data.get("status")),
            internal_status=_str(data.get("internal_status")),
            modified_date=parse_timestamp(data.get("modified_date")),
            scan_url=_str(data.get("scan_url")),
        )


@dataclass
class Application:
    guid: str = ""
    id: int = 0
    legacy_id: int = 0
    app_profile_url: str = ""
    created: Optional[datetime] = None
    modified: Optional[datetime] = None
    last_completed_scan_date: Optional[datetime] = None
    profile: Optional[ApplicationProfile] = None
    results_url: str = ""
    scans: List[ApplicationScan] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Application":
        profile = data.get("profile")
        return cls(
            guid=_str(data.get("guid")),
            id=_int(data.get("id")),
            legacy_id=_int(data.get("legacy_id")),
            app_profile_url=_str(data.get("app_profile_url")),
            created=parse_timestamp(data.get("created")),
            modified=parse_timestamp(data.get("modified")),
            last_completed_scan_date=parse_timestamp(data.get("last_completed_scan_date")),
            profile=_object(profile, ApplicationProfile),
            results_url=_str(data.get("results_url")),
            scans=_objects(data, "scans", ApplicationScan),
        )

    @property
    def name(self) -> str:
        return self.profile.name if self.profile and self.profile.name else "Unknown"

    @property
    def policy_status(self) -> str:
        if self.profile and self.profile.policies:
            return self.profile.policies[0].policy_compliance_status
        return ""

    @property
    def scan_status(self) -> str:
        return self.scans[0].status if self.scans else ""


@dataclass
class Sandbox:
    guid: str = ""
    id: int = 0
    name: str = ""
    application_guid: str = ""
    owner_username: str = ""
    auto_recreate: bool = False
    created: Optional[datetime] = None
    modified: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Sandbox":
        return cls(
            guid=_str(data.get("guid")),
            id=_int(data.get("id")),
            name=_str(data.get("name")),
            application_guid=_str(data.get("application_guid")),
            owner_username=_str(data.get("owner_username")),
            auto_recreate=bool(data.get("auto_recreate")),
            created=parse_timestamp(data.get("created")),
            modified=parse_timestamp(data.get("modified")),
        )


# ── findings ───────────────────────────────────────────────────

@dataclass
class CWE:
    id: int = 0
    name: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CWE":
        return cls(id=_int(data.get("id")), name=_str(data.get("name")))


@dataclass
class FindingDetails:
    """Fields every scan type reports. Also used for unrecognised scan types."""
    severity: int = 0
    cwe: Optional[CWE] = None

    @classmethod
    def _common(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        cwe = data.get("cwe")
        return {
            "severity": _int(data.get("severity")),
            "cwe": _object(cwe, CWE),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FindingDetails":
        return cls(**cls._common(data))

    @property
    def severity_name(self) -> str:
        return SEVERITY_NAMES.get(self.severity, str(self.severity))

    @property
    def category(self) -> str:
        return self.cwe.name if self.cwe else ""

    @property
    def location(self) -> str:
        return ""


@dataclass
class StaticFindingDetails(FindingDetails):
    file_path: str = ""
    file_name: str = ""
    file_line_number: int = 0
    module: str = ""
    procedure: str = ""
    attack_vector: str = ""
    exploitability: int = 0
    finding_category: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StaticFindingDetails":
        return cls(
            file_path=_str(data.get("file_path")),
            file_name=_str(data.get("file_name")),
            file_line_number=_int(data.get("file_line_number")),
            module=_str(data.get("module")),
            procedure=_str(data.get("procedure")),
            attack_vector=_str(data.get("attack_vector")),
            exploitability=_int(data.get("exploitability")),
            finding_category=_str(_dict(data.get("finding_category")).get("name")),
            **cls._common(data),
        )

    @property
    def location(self) -> str:
        name = self.file_path or self.file_name
        return f"{name}:{self.file_line_number}" if name else ""


@dataclass
class DynamicFindingDetails(FindingDetails):
    url: str = ""
    hostname: str = ""
    path: str = ""
    vulnerable_parameter: str = ""
    attack_vector: str = ""
    finding_category: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DynamicFindingDetails":
        return cls(
            url=_str(data.get("url")),
            hostname=_str(data.get("hostname")),
            path=_str(data.get("path")),
            vulnerable_parameter=_str(data.get("vulnerable_parameter")),
            attack_vector=_str(data.get("attack_vector")),
            finding_category=_str(_dict(data.get("finding_category")).get("name")),
            **cls._common(data),
        )

    @property
    def location(self) -> str:
        return self.url or f"{self.hostname}{self.path}"


@dataclass
class CVE:
    name: str = ""
    cvss: float = 0.0
    severity: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CVE":
        try:
            cvss = float(data.get("cvss") or 0)
        except (TypeError, ValueError):
            cvss = 0.0
        return cls(name=_str(data.get("name")), cvss=cvss, severity=_str(data.get("severity")))


@dataclass
class ScaFindingDetails(FindingDetails):
    component_id: str = ""
    component_filename: str = ""
    version: str = ""
    language: str = ""
    cve: Optional[CVE] = None
    licenses: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScaFindingDetails":
        cve = data.get("cve")
        licenses = [_str(_dict(lic).get("license_id")) for lic in _list(data.get("licenses"))]
        return cls(
            component_id=_str(data.get("component_id")),
            component_filename=_str(data.get("component_filename")),
            version=_str(data.get("version")),
            language=_str(data.get("language")),
            cve=_object(cve, CVE),
            licenses=licenses,
            **cls._common(data),
        )

    @property
    def category(self) -> str:
        if self.cve and self.cve.name:
            return self.cve.name
        return super().category

    @property
    def location(self) -> str:
        if self.version:
            return f"{self.component_filename} {self.version}"
        return self.component_filename


@dataclass
class ManualFindingDetails(FindingDetails):
    location_text: str = ""
    module: str = ""
    input_vector: str = ""
    capec_id: int = 0
    exploitability: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ManualFindingDetails":
        return cls(
            location_text=_str(data.get("location")),
            module=_str(data.get("module")),
            input_vector=_str(data.get("input_vector")),
            capec_id=_int(data.get("capec_id")),
            exploitability=_int(data.get("exploitability")),
            **cls._common(data),
        )

    @property
    def location(self) -> str:
        return self.location_text or self.module


DETAILS_BY_SCAN_TYPE: Dict[str, Type[FindingDetails]] = {
    SCAN_STATIC: StaticFindingDetails,
    SCAN_DYNAMIC: DynamicFindingDetails,
    SCAN_SCA: ScaFindingDetails,
    SCAN_MANUAL: ManualFindingDetails,
}


def decode_finding_details(scan_type: str, data: Dict[str, Any]) -> FindingDetails:
    """Pick the details schema from the finding's declared scan type."""
    return DETAILS_BY_SCAN_TYPE.get(scan_type, FindingDetails).from_dict(_dict(data))


@dataclass
class FindingStatus:
    first_found_date: Optional[datetime] = None
    last_seen_date: Optional[datetime] = None
    status: str = ""
    resolution: str = ""
    resolution_status: str = ""
    new: bool = False
    mitigation_review_status: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FindingStatus":
        return cls(
            first_found_date=parse_timestamp(data.get("first_found_date")),
            last_seen_date=parse_timestamp(data.get("last_seen_date")),
            status=_str(data.get("status")),
            resolution=_str(data.get("resolution")),
            resolution_status=_str(data.get("resolution_status")),
            new=bool(data.get("new")),
            mitigation_review_status=_str(data.get("mitigation_review_status")),
        )


@dataclass
class Annotation:
    action: str = ""
    comment: str = ""
    created: Optional[datetime] = None
    user_name: str = ""
    description: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Annotation":
        # older payloads carry "user"/"date" instead of "user_name"/"created"
        return cls(
            action=_str(data.get("action")),
            comment=_str(data.get("comment")),
            created=parse_timestamp(data.get("created") or data.get("date")),
            user_name=_str(data.get("user_name") or data.get("user")),
            description=_str(data.get("description")),
        )


@dataclass
class Finding:
    issue_id: int = 0
    scan_type: str = ""
    description: str = ""
    count: int = 0
    context_type: str = ""
    context_guid: str = ""
    violates_policy: bool = False
    finding_status: Optional[FindingStatus] = None
    details: FindingDetails = field(default_factory=FindingDetails)
    annotations: List[Annotation] = field(default_factory=list)
    grace_period_expires_date: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Finding":
        scan_type = _str(data.get("scan_type"))
        status = data.get("finding_status")
        return cls(
            issue_id=_int(data.get("issue_id")),
            scan_type=scan_type,
            description=_str(data.get("description")),
            count=_int(data.get("count")),
            context_type=_str(data.get("context_type")),
            context_guid=_str(data.get("context_guid")),
            violates_policy=bool(data.get("violates_policy")),
            finding_status=_object(status, FindingStatus),
            details=decode_finding_details(scan_type, data.get("finding_details")),
            annotations=_objects(data, "annotations", Annotation),
            grace_period_expires_date=parse_timestamp(data.get("grace_period_expires_date")),
        )

    @property
    def is_mitigated(self) -> bool:
        """Approved mitigation, or closed without violating policy."""
        st = self.finding_status
        if st is None:
            return False
        if st.resolution_status == RESOLUTION_APPROVED:
            return True
        return st.status == STATUS_CLOSED and not self.violates_policy

    @property
    def policy_marker(self) -> str:
        if self.is_mitigated:
            return "✓"
        if self.violates_policy:
            return "❌"
        return " "


@dataclass
class IssueSummary:
    app_guid: str = ""
    name: str = ""
    build_id: int = 0
    issue_id: int = 0
    context: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IssueSummary":
        return cls(
            app_guid=_str(data.get("app_guid")),
            name=_str(data.get("name")),
            build_id=_int(data.get("build_id")),
            issue_id=_int(data.get("issue_id")),
            context=_str(data.get("context")),
        )


@dataclass
class Call:
    data_path: int = 0
    file_name: str = ""
    file_path: str = ""
    function_name: str = ""
    line_number: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Call":
        return cls(
            data_path=_int(data.get("data_path")),
            file_name=_str(data.get("file_name")),
            file_path=_str(data.get("file_path")),
            function_name=_str(data.get("function_name")),
            line_number=_int(data.get("line_number")),
        )


@dataclass
class DataPath:
    module_name: str = ""
    steps: int = 0
    local_path: str = ""
    function_name: str = ""
    line_number: int = 0
    calls: List[Call] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DataPath":
        return cls(
            module_name=_str(data.get("module_name")),
            steps=_int(data.get("steps")),
            local_path=_str(data.get("local_path")),
            function_name=_str(data.get("function_name")),
            line_number=_int(data.get("line_number")),
            calls=_objects(data, "calls", Call),
        )


@dataclass
class StaticFlawInfo:
    issue_summary: Optional[IssueSummary] = None
    data_paths: List[DataPath] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StaticFlawInfo":
        summary = data.get("issue_summary")
        return cls(
            issue_summary=_object(summary, IssueSummary),
            data_paths=_objects(data, "data_paths", DataPath),
        )


# ── identity ───────────────────────────────────────────────────

@dataclass
class Principal:
    username: str = ""
    email: str = ""
    user_first_name: str = ""
    user_last_name: str = ""
    organization_id: int = 0
    organization_name: str = ""
    roles: List[str] = field(default_factory=list)
    permissions: List[str] = field(default_factory=list)
    sandbox_enabled: bool = False
    saml_user: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Principal":
        return cls(
            username=_str(data.get("username")),
            email=_str(data.get("email")),
            user_first_name=_str(data.get("userFirstName")),
            user_last_name=_str(data.get("userLastName")),
            organization_id=_int(data.get("organizationId")),
            organization_name=_str(data.get("organizationName")),
            roles=[_str(r) for r in _list(data.get("roles"))],
            permissions=[_str(p) for p in _list(data.get("permissions"))],
            sandbox_enabled=bool(data.get("sandboxEnabled")),
            saml_user=bool(data.get("samlUser")),
        )

    @property
    def display_name(self) -> str:
        full = f"{self.user_first_name} {self.user_last_name}".strip()
        return full or self.username


@dataclass
class APICredentials:
    api_id: str = ""
    expiration_ts: Optional[datetime] = None
    revocation_ts: Optional[datetime] = None
    revocation_user: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "APICredentials":
        return cls(
            api_id=_str(data.get("api_id")),
            expiration_ts=parse_timestamp(data.get("expiration_ts")),
            revocation_ts=parse_timestamp(data.get("revocation_ts")),
            revocation_user=_str(data.get("revocation_user")),
        )


# ── annotations ────────────────────────────────────────────────

@dataclass
class AnnotationData:
    issue_list: str = ""   # comma separated issue ids
    comment: str = ""
    action: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {k: v for k, v in (("issue_list", self.issue_list),
                                  ("comment", self.comment),
                                  ("action", self.action)) if v}


@dataclass
class AnnotationResponse:
    findings: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnnotationResponse":
        return cls(findings=_str(data.get("findings")))


@dataclass
class APIError:
    id: str = ""
    code: str = ""
    title: str = ""
    detail: str = ""
    status: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "APIError":
        return cls(**{k: _str(data.get(k)) for k in ("id", "code", "title", "detail", "status")})
