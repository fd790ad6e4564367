"""Applications API (appsec/v1): application profiles and their sandboxes."""

from dataclasses import dataclass, field
from typing import List, Tuple

from veracodetui.core.models import Application, ResultPage, Sandbox
from veracodetui.services.base import BaseService

APPLICATIONS_BASE_PATH = "/appsec/v1/applications"

# ApplicationScan.status values accepted by scan_status
SCAN_STATUSES = [
    "PUBLISHED", "INCOMPLETE", "IN_PROGRESS", "SCAN_IN_PROGRESS", "UNPUBLISHED",
    "DELETED", "SCAN_SUBMITTED", "IN_QUEUE", "SCAN_CANCELED", "ANALYSIS_ERRORS",
]
SCAN_TYPES = ["STATIC", "DYNAMIC", "MANUAL"]


@dataclass
class ApplicationsQuery:
    """Optional filters for the application listing. Unset fields are not sent."""
    business_unit: str = ""
    custom_field_names: List[str] = field(default_factory=list)
    custom_field_values: List[str] = field(default_factory=list)
    legacy_id: int = 0
    modified_after: str = ""            # yyyy-MM-dd
    name: str = ""
    page: int = 0
    policy: str = ""
    policy_compliance: str = ""
    policy_compliance_checked_after: str = ""   # yyyy-MM-dd
    policy_guid: str = ""
    scan_status: List[str] = field(default_factory=list)
    scan_type: str = ""
    size: int = 0
    sort_by_custom_field_name: str = ""
    tag: str = ""
    team: str = ""

    def to_params(self) -> List[Tuple[str, str]]:
        params: List[Tuple[str, str]] = []
        for key in ("business_unit", "modified_after", "name", "policy",
                    "policy_compliance", "policy_compliance_checked_after",
                    "policy_guid", "scan_type", "sort_by_custom_field_name",
                    "tag", "team"):
            value = getattr(self, key)
            if value:
                params.append((key, value))
        params.extend(("custom_field_names", n) for n in self.custom_field_names)
        params.extend(("custom_field_values", v) for v in self.custom_field_values)
        params.extend(("scan_status", s) for s in self.scan_status)
        for key in ("legacy_id", "page", "size"):
            value = getattr(self, key)
            if value > 0:
                params.append((key, str(value)))
        return params


class ApplicationsService(BaseService):

    name = "applications"

    def get_applications(self, query: ApplicationsQuery | None = None) -> ResultPage:
        query = query or ApplicationsQuery()
        self.check_page(query.page, query.size)
        body = self.get(APPLICATIONS_BASE_PATH, query.to_params())
        return self.parse_page(body, "applications", Application)

    def get_application(self, application_guid: str) -> Application:
        self.require(application_guid=application_guid)
        body = self.get(f"{APPLICATIONS_BASE_PATH}/{application_guid}")
        return self.parse(body, "application", Application.from_dict)

    def get_sandboxes(self, application_guid: str, page: int = 0, size: int = 0) -> ResultPage:
        self.require(application_guid=application_guid)
        self.check_page(page, size)
        params = []
        if page > 0:
            params.append(("page", str(page)))
        if size > 0:
            params.append(("size", str(size)))
        body = self.get(f"{APPLICATIONS_BASE_PATH}/{application_guid}/sandboxes", params)
        return self.parse_page(body, "sandboxes", Sandbox)

    def get_sandbox(self, application_guid: str, sandbox_guid: str) -> Sandbox:
        self.require(application_guid=application_guid, sandbox_guid=sandbox_guid)
        body = self.get(f"{APPLICATIONS_BASE_PATH}/{application_guid}/sandboxes/{sandbox_guid}")
        return self.parse(body, "sandbox", Sandbox.from_dict)
