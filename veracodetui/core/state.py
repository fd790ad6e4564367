"""Browsing state owned by the session: scopes, cursors, filters, drill-down."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from veracodetui.core.models import Application, Finding, Sandbox

DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 500


class Phase(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


class Scope(str, Enum):
    APPLICATION_LIST = "application_list"
    APPLICATION_DETAIL = "application_detail"
    FINDINGS_LIST = "findings_list"
    FINDING_DETAIL = "finding_detail"
    DATA_PATH_VIEW = "data_path_view"
    PRINCIPAL = "principal"
    ANNOTATION = "annotation"


# Drill-down order; a change at one level invalidates every scope after it.
DRILL_DOWN = [
    Scope.APPLICATION_LIST,
    Scope.APPLICATION_DETAIL,
    Scope.FINDINGS_LIST,
    Scope.FINDING_DETAIL,
    Scope.DATA_PATH_VIEW,
]


@dataclass
class ScopeState:
    """Independent sub-state of one scope.

    ``generation`` increases every time a fetch is issued (or the scope is
    invalidated); a completion carrying an older generation is stale.
    """
    phase: Phase = Phase.IDLE
    generation: int = 0
    data: Any = None
    error: Optional[BaseException] = None

    def begin(self) -> int:
        self.generation += 1
        self.phase = Phase.LOADING
        self.error = None
        return self.generation

    def loaded(self, data):
        self.phase = Phase.LOADED
        self.data = data
        self.error = None

    def failed(self, error: BaseException):
        self.phase = Phase.ERROR
        self.error = error

    def invalidate(self):
        self.generation += 1
        self.phase = Phase.IDLE
        self.data = None
        self.error = None


@dataclass
class PageCursor:
    page_index: int = 0
    page_size: int = DEFAULT_PAGE_SIZE

    def __post_init__(self):
        if not 0 < self.page_size <= MAX_PAGE_SIZE:
            raise ValueError(f"page size must be between 1 and {MAX_PAGE_SIZE}")

    def reset(self):
        self.page_index = 0

    def can_move(self, delta: int, total_pages: int) -> bool:
        return 0 <= self.page_index + delta <= total_pages - 1


@dataclass
class FilterSet:
    """Named filter values; an empty value means the filter is inactive."""
    values: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default=""):
        return self.values.get(key, default)

    def set(self, key: str, value) -> None:
        if value in (None, ""):
            self.values.pop(key, None)
        else:
            self.values[key] = value

    def active(self) -> Dict[str, Any]:
        return {k: v for k, v in self.values.items() if v not in (None, "")}


@dataclass
class ApplicationDetail:
    """Frozen snapshot of the selected application plus its lazily loaded sandboxes."""
    application: Application
    sandboxes: Optional[List[Sandbox]] = None


@dataclass
class DataPathView:
    info: Any
    index: int = 0

    @property
    def current(self):
        paths = self.info.data_paths if self.info else []
        return paths[self.index] if 0 <= self.index < len(paths) else None


@dataclass
class DrillDown:
    application: Optional[Application] = None
    sandbox: Optional[Sandbox] = None
    finding: Optional[Finding] = None
    data_path_index: Optional[int] = None

    @property
    def context(self) -> str:
        return self.sandbox.guid if self.sandbox else ""

    @property
    def context_label(self) -> str:
        return f"Sandbox: {self.sandbox.name}" if self.sandbox else "Policy"

    def select_application(self, app: Optional[Application]):
        self.application = app
        self.sandbox = None
        self.finding = None
        self.data_path_index = None

    def select_sandbox(self, sandbox: Optional[Sandbox]):
        self.sandbox = sandbox
        self.finding = None
        self.data_path_index = None

    def select_finding(self, finding: Optional[Finding]):
        self.finding = finding
        self.data_path_index = None


def sort_by_modified(apps: List[Application]) -> List[Application]:
    """Most recently modified first; apps without a timestamp last, in input order."""
    known = [a for a in apps if a.modified is not None]
    unknown = [a for a in apps if a.modified is None]
    # sorted() is stable with reverse=True too
    return sorted(known, key=lambda a: a.modified, reverse=True) + unknown
