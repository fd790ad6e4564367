"""Interactive browsing session: the navigation state machine.

Every scope (application list, application detail, findings list, finding
detail, data paths, plus the identity header and the annotation command)
cycles IDLE -> LOADING -> LOADED | ERROR on its own. Commands return
immediately; fetches run on the dispatcher's workers and are folded into
state by ``pump()`` on the event-loop thread, which is the only writer.

Within a scope the last *issued* fetch wins: each fetch carries the scope's
generation at issue time and a completion from an older generation is
dropped without touching state.
"""

import copy
import time
from typing import Callable, Dict, List, Optional

from veracodetui.core.dispatcher import Completion, FetchDispatcher
from veracodetui.core.errors import HTTPError
from veracodetui.core.models import AnnotationData, SCAN_SCA, SCAN_STATIC
from veracodetui.core.state import (
    ApplicationDetail, DataPathView, DEFAULT_PAGE_SIZE, DRILL_DOWN, DrillDown,
    FilterSet, PageCursor, Phase, Scope, ScopeState, sort_by_modified,
)
from veracodetui.core.transport import REQUEST_TIMEOUT
from veracodetui.parsers.dates import is_valid_date
from veracodetui.services.annotations import api_error_messages, issue_list
from veracodetui.services.applications import ApplicationsQuery
from veracodetui.services.findings import (
    FindingsQuery, POLICY_FILTER_ALL, POLICY_FILTERS, SCAN_FILTERS, violates_policy_param,
)

APP_FILTER_KEYS = ("name", "scan_status", "scan_type", "modified_after")
INVALID_DATE_MESSAGE = "Invalid date format. Please use yyyy-MM-dd (e.g., 2025-12-17)"


def describe_error(exc: BaseException) -> str:
    """User-facing one-liner for any failure that reached the session."""
    if isinstance(exc, HTTPError):
        details = api_error_messages(exc)
        if details:
            return f"Error: HTTP {exc.status_code}: {'; '.join(details)}"
    return f"Error: {exc}"


class Session:

    def __init__(self, applications, findings, identity=None, annotations=None,
                 dispatcher: Optional[FetchDispatcher] = None,
                 page_size: int = DEFAULT_PAGE_SIZE, logger=None):
        self.applications = applications
        self.findings = findings
        self.identity = identity
        self.annotations = annotations
        self.dispatcher = dispatcher or FetchDispatcher()
        self.logger = logger

        self.scopes: Dict[Scope, ScopeState] = {scope: ScopeState() for scope in Scope}
        self.app_filters = FilterSet()
        self.app_cursor = PageCursor(page_size=page_size)
        self.findings_filters = FilterSet({"scan_type": SCAN_STATIC,
                                           "violates_policy": POLICY_FILTER_ALL})
        self.findings_cursor = PageCursor(page_size=page_size)
        self.drill = DrillDown()
        self.view = Scope.APPLICATION_LIST
        self.message = ""
        self._sandbox_cache: Dict[str, List] = {}

    def state(self, scope: Scope) -> ScopeState:
        return self.scopes[scope]

    # ── event loop side ────────────────────────────────────────

    def pump(self, block: bool = False, timeout: Optional[float] = None) -> int:
        return self.dispatcher.pump(block=block, timeout=timeout)

    def run_until_idle(self, timeout: float = REQUEST_TIMEOUT + 5) -> None:
        """Pump until every issued fetch has been delivered (or timeout)."""
        deadline = time.monotonic() + timeout
        while self.dispatcher.in_flight > 0:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            self.pump(block=True, timeout=min(remaining, 0.1))

    def _issue(self, scope: Scope, fn: Callable, apply: Callable,
               mark_loading: bool = True) -> int:
        st = self.scopes[scope]
        if mark_loading:
            generation = st.begin()
        else:
            st.generation += 1
            generation = st.generation
        self.dispatcher.submit(scope, generation, fn, lambda c: self._complete(c, apply))
        return generation

    def _complete(self, completion: Completion, apply: Callable) -> None:
        st = self.scopes[completion.scope]
        if completion.generation != st.generation:
            if self.logger:
                self.logger.debug(f"Discarding stale {completion.scope.value} result "
                                  f"(generation {completion.generation} < {st.generation})")
            return
        if completion.error is not None:
            st.failed(completion.error)
            if completion.scope == Scope.ANNOTATION:
                self.message = describe_error(completion.error)
            if self.logger:
                self.logger.fail(f"{completion.scope.value}: {completion.error}")
            return
        apply(st, completion.result)

    def _invalidate_below(self, scope: Scope) -> None:
        for lower in DRILL_DOWN[DRILL_DOWN.index(scope) + 1:]:
            self.scopes[lower].invalidate()

    # ── applications list ──────────────────────────────────────

    def load_applications(self) -> None:
        filters = self.app_filters
        status = filters.get("scan_status")
        query = ApplicationsQuery(
            name=filters.get("name"),
            scan_status=[status] if status else [],
            scan_type=filters.get("scan_type"),
            modified_after=filters.get("modified_after"),
            page=self.app_cursor.page_index,
            size=self.app_cursor.page_size,
        )
        self.message = ""
        service = self.applications
        self._issue(Scope.APPLICATION_LIST, lambda: service.get_applications(query),
                    self._apply_applications)

    def _apply_applications(self, st: ScopeState, page) -> None:
        page.items = sort_by_modified(page.items)
        st.loaded(page)

    def set_application_filter(self, key: str, value) -> bool:
        """Mutate one list filter, go back to page 0 and re-fetch.

        An invalid modified-after date leaves the filter set untouched and
        issues nothing; the caller keeps the typed text for correction.
        """
        if key not in APP_FILTER_KEYS:
            raise KeyError(f"unknown application filter {key!r}")
        value = value.strip() if isinstance(value, str) else value
        if key == "modified_after" and value and not is_valid_date(value):
            self.message = INVALID_DATE_MESSAGE
            return False
        self.app_filters.set(key, value)
        self.app_cursor.reset()
        self.load_applications()
        return True

    def _move_page(self, scope: Scope, cursor: PageCursor, delta: int,
                   reload: Callable[[], None]) -> bool:
        st = self.scopes[scope]
        if st.phase != Phase.LOADED or st.data is None:
            return False
        if not cursor.can_move(delta, st.data.total_pages):
            return False
        cursor.page_index += delta
        reload()
        return True

    def next_page(self) -> bool:
        return self._move_page(Scope.APPLICATION_LIST, self.app_cursor, 1, self.load_applications)

    def prev_page(self) -> bool:
        return self._move_page(Scope.APPLICATION_LIST, self.app_cursor, -1, self.load_applications)

    # ── application detail ─────────────────────────────────────

    def select_application(self, index: int) -> bool:
        """Snapshot one list row and show its detail from cached list data.

        Sandboxes are fetched the first time an application is opened and
        reused for the rest of the session.
        """
        lst = self.scopes[Scope.APPLICATION_LIST]
        if lst.phase != Phase.LOADED or not 0 <= index < len(lst.data.items):
            return False
        app = copy.deepcopy(lst.data.items[index])
        self.message = ""
        self.drill.select_application(app)
        self._invalidate_below(Scope.APPLICATION_LIST)
        detail = ApplicationDetail(application=app, sandboxes=self._sandbox_cache.get(app.guid))
        self.scopes[Scope.APPLICATION_DETAIL].loaded(detail)
        self.findings_cursor.reset()
        self.view = Scope.APPLICATION_DETAIL
        if detail.sandboxes is None:
            self.load_sandboxes()
        return True

    def load_sandboxes(self) -> bool:
        app = self.drill.application
        if app is None:
            return False
        service, guid = self.applications, app.guid
        self._issue(Scope.APPLICATION_DETAIL, lambda: service.get_sandboxes(guid).items,
                    self._apply_sandboxes, mark_loading=False)
        return True

    def _apply_sandboxes(self, st: ScopeState, sandboxes) -> None:
        detail: ApplicationDetail = st.data
        self._sandbox_cache[detail.application.guid] = sandboxes
        st.loaded(ApplicationDetail(application=detail.application, sandboxes=sandboxes))

    def select_context(self, sandbox_index: Optional[int]) -> bool:
        """Pick policy scope (None) or one of the application's sandboxes."""
        detail: Optional[ApplicationDetail] = self.scopes[Scope.APPLICATION_DETAIL].data
        if detail is None:
            return False
        sandbox = None
        if sandbox_index is not None:
            sandboxes = detail.sandboxes or []
            if not 0 <= sandbox_index < len(sandboxes):
                return False
            sandbox = sandboxes[sandbox_index]
        self.drill.select_sandbox(sandbox)
        self._invalidate_below(Scope.APPLICATION_DETAIL)
        self.findings_cursor.reset()
        return True

    # ── findings list ──────────────────────────────────────────

    def open_findings(self) -> bool:
        if self.drill.application is None:
            return False
        self.view = Scope.FINDINGS_LIST
        return self.load_findings()

    def load_findings(self) -> bool:
        app = self.drill.application
        if app is None:
            return False
        filters = self.findings_filters
        scan_type = filters.get("scan_type")
        query = FindingsQuery(
            context=self.drill.context,
            scan_type=[scan_type] if scan_type else [],
            severity=filters.get("severity", 0),
            violates_policy=violates_policy_param(filters.get("violates_policy")),
            include_annotations=scan_type != SCAN_SCA,
            page=self.findings_cursor.page_index,
            size=self.findings_cursor.page_size,
        )
        self.message = ""
        service, guid = self.findings, app.guid
        self._issue(Scope.FINDINGS_LIST, lambda: service.get_findings(guid, query),
                    lambda st, page: st.loaded(page))
        return True

    def _set_findings_filter(self, key: str, value) -> bool:
        self.findings_filters.set(key, value)
        self.findings_cursor.reset()
        return self.load_findings()

    def set_findings_scan_type(self, scan_type: str) -> bool:
        if scan_type and scan_type not in SCAN_FILTERS:
            self.message = f"Scan type must be one of: {', '.join(SCAN_FILTERS)}"
            return False
        return self._set_findings_filter("scan_type", scan_type)

    def set_findings_severity(self, severity: int) -> bool:
        """0 clears the filter; informational findings cannot be singled out."""
        if not 0 <= severity <= 5:
            self.message = "Severity must be between 0 and 5"
            return False
        return self._set_findings_filter("severity", severity or None)

    def set_findings_policy_filter(self, policy_filter: str) -> bool:
        if policy_filter not in POLICY_FILTERS:
            self.message = f"Policy filter must be one of: {', '.join(POLICY_FILTERS)}"
            return False
        return self._set_findings_filter("violates_policy", policy_filter)

    def next_findings_page(self) -> bool:
        return self._move_page(Scope.FINDINGS_LIST, self.findings_cursor, 1, self.load_findings)

    def prev_findings_page(self) -> bool:
        return self._move_page(Scope.FINDINGS_LIST, self.findings_cursor, -1, self.load_findings)

    # ── finding detail / data paths ────────────────────────────

    def select_finding(self, index: int) -> bool:
        lst = self.scopes[Scope.FINDINGS_LIST]
        if lst.phase != Phase.LOADED or not 0 <= index < len(lst.data.items):
            return False
        finding = copy.deepcopy(lst.data.items[index])
        self.message = ""
        self.drill.select_finding(finding)
        detail = self.scopes[Scope.FINDING_DETAIL]
        detail.invalidate()
        detail.loaded(finding)
        self._invalidate_below(Scope.FINDING_DETAIL)
        self.view = Scope.FINDING_DETAIL
        return True

    def load_data_paths(self) -> bool:
        app, finding = self.drill.application, self.drill.finding
        if app is None or finding is None:
            return False
        if finding.scan_type != SCAN_STATIC:
            self.message = "Data paths are only available for STATIC findings"
            return False
        self.message = ""
        self.view = Scope.DATA_PATH_VIEW
        service, guid, issue_id = self.findings, app.guid, finding.issue_id
        self._issue(Scope.DATA_PATH_VIEW, lambda: service.get_static_flaw_info(guid, issue_id),
                    self._apply_data_paths)
        return True

    def _apply_data_paths(self, st: ScopeState, info) -> None:
        st.loaded(DataPathView(info=info, index=0))
        self.drill.data_path_index = 0

    def _move_data_path(self, delta: int) -> bool:
        st = self.scopes[Scope.DATA_PATH_VIEW]
        if st.phase != Phase.LOADED:
            return False
        view: DataPathView = st.data
        target = view.index + delta
        if not 0 <= target < len(view.info.data_paths):
            return False
        view.index = target
        self.drill.data_path_index = target
        return True

    def next_data_path(self) -> bool:
        return self._move_data_path(1)

    def prev_data_path(self) -> bool:
        return self._move_data_path(-1)

    # ── navigation ─────────────────────────────────────────────

    def back(self) -> Scope:
        """Pop one drill-down level and return the view now showing."""
        self.message = ""
        if self.view == Scope.DATA_PATH_VIEW:
            self.drill.data_path_index = None
            self.scopes[Scope.DATA_PATH_VIEW].invalidate()
            self.view = Scope.FINDING_DETAIL
        elif self.view == Scope.FINDING_DETAIL:
            self.drill.select_finding(None)
            self._invalidate_below(Scope.FINDINGS_LIST)
            self.view = Scope.FINDINGS_LIST
        elif self.view == Scope.FINDINGS_LIST:
            self.view = Scope.APPLICATION_DETAIL
        elif self.view == Scope.APPLICATION_DETAIL:
            self.drill.select_application(None)
            self._invalidate_below(Scope.APPLICATION_LIST)
            self.view = Scope.APPLICATION_LIST
        return self.view

    # ── identity / annotations ─────────────────────────────────

    def load_principal(self) -> bool:
        if self.identity is None:
            return False
        service = self.identity
        self._issue(Scope.PRINCIPAL, service.get_principal, lambda st, p: st.loaded(p))
        return True

    def annotate(self, action: str, comment: str, issue_ids=None) -> bool:
        """Post an annotation in the current context, then refresh the findings list."""
        app = self.drill.application
        if self.annotations is None or app is None:
            return False
        if issue_ids is None:
            if self.drill.finding is None:
                return False
            issue_ids = [self.drill.finding.issue_id]
        data = AnnotationData(issue_list=issue_list(issue_ids), comment=comment, action=action)
        service, guid, context = self.annotations, app.guid, self.drill.context
        self.message = "Saving annotation..."
        self._issue(Scope.ANNOTATION, lambda: service.create_annotation(guid, data, context),
                    self._apply_annotation)
        return True

    def _apply_annotation(self, st: ScopeState, response) -> None:
        st.loaded(response)
        self.message = "Annotation saved"
        if self.scopes[Scope.FINDINGS_LIST].phase != Phase.IDLE:
            self.load_findings()
            self.message = "Annotation saved"

    # ── view model ─────────────────────────────────────────────

    def status_line(self) -> str:
        if self.message:
            return self.message
        st = self.scopes[self.view]
        if st.phase == Phase.ERROR:
            return describe_error(st.error)
        if self.view == Scope.APPLICATION_LIST:
            return self._page_status(st, "applications", self.app_cursor)
        if self.view == Scope.APPLICATION_DETAIL:
            if st.data is not None and st.data.sandboxes is None:
                return "Loading sandboxes..."
            return f"Context: {self.drill.context_label}"
        if self.view == Scope.FINDINGS_LIST:
            return self._page_status(st, "findings", self.findings_cursor)
        if self.view == Scope.DATA_PATH_VIEW:
            if st.phase == Phase.LOADING:
                return "Loading data paths..."
            if st.phase == Phase.LOADED:
                total = len(st.data.info.data_paths)
                if total == 0:
                    return "No data paths available"
                return f"Data path {st.data.index + 1}/{total}"
        return ""

    @staticmethod
    def _page_status(st: ScopeState, noun: str, cursor: PageCursor) -> str:
        if st.phase == Phase.LOADING:
            return f"Loading {noun}..."
        if st.phase != Phase.LOADED:
            return ""
        text = f" Showing {len(st.data.items)} {noun}"
        if st.data.total_pages > 1:
            text += (f" • Page {cursor.page_index + 1}/{st.data.total_pages}"
                     f" (Total: {st.data.total_items})")
        return text
