"""Findings API (appsec/v2): findings per application/sandbox and static data paths."""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from veracodetui.core.models import Finding, ResultPage, StaticFlawInfo
from veracodetui.services.base import BaseService

FINDINGS_BASE_PATH = "/appsec/v2/applications"

POLICY_FILTER_ALL = "All"
POLICY_FILTER_VIOLATIONS = "Violations"
POLICY_FILTER_NON_VIOLATIONS = "Non-Violations"
POLICY_FILTERS = [POLICY_FILTER_ALL, POLICY_FILTER_VIOLATIONS, POLICY_FILTER_NON_VIOLATIONS]

SCAN_FILTERS = ["STATIC", "DYNAMIC", "SCA"]


def violates_policy_param(policy_filter: str) -> Optional[bool]:
    return {POLICY_FILTER_VIOLATIONS: True,
            POLICY_FILTER_NON_VIOLATIONS: False}.get(policy_filter)


@dataclass
class FindingsQuery:
    context: str = ""                   # "" = policy scope, sandbox GUID = sandbox scope
    scan_type: List[str] = field(default_factory=list)
    severity: int = 0                   # 0..5, only sent when > 0
    severity_gte: int = 0               # 0..5, only sent when > 0
    violates_policy: Optional[bool] = None
    include_annotations: bool = False   # rejected by the API for SCA
    page: int = 0
    size: int = 0

    def to_params(self) -> List[Tuple[str, str]]:
        params: List[Tuple[str, str]] = []
        if self.context:
            params.append(("context", self.context))
        params.extend(("scan_type", t) for t in self.scan_type)
        # 0 doubles as "unset", so informational-only (severity 0) cannot be requested
        if self.severity > 0:
            params.append(("severity", str(self.severity)))
        if self.severity_gte > 0:
            params.append(("severity_gte", str(self.severity_gte)))
        if self.violates_policy is not None:
            params.append(("violates_policy", "true" if self.violates_policy else "false"))
        if self.include_annotations:
            params.append(("include_annot", "true"))
        if self.size > 0:
            params.append(("size", str(self.size)))
        if self.page > 0:
            params.append(("page", str(self.page)))
        return params


class FindingsService(BaseService):

    name = "findings"

    def get_findings(self, application_guid: str, query: FindingsQuery | None = None) -> ResultPage:
        self.require(application_guid=application_guid)
        query = query or FindingsQuery()
        self.check_page(query.page, query.size)
        body = self.get(f"{FINDINGS_BASE_PATH}/{application_guid}/findings", query.to_params())
        return self.parse_page(body, "findings", Finding)

    def get_static_flaw_info(self, application_guid: str, issue_id: int) -> StaticFlawInfo:
        """Data paths for one static flaw.

        Sent without ``context`` even for sandbox findings: the endpoint
        answers 404 when it is present and resolves sandbox flaws without it.
        """
        self.require(application_guid=application_guid, issue_id=issue_id)
        body = self.get(f"{FINDINGS_BASE_PATH}/{application_guid}/findings/{issue_id}/static_flaw_info")
        return self.parse(body, "static flaw info", StaticFlawInfo.from_dict)
