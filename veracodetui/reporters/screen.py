"""Text rendering of the session state for the terminal."""

import shutil
from dataclasses import dataclass
from typing import List, Sequence

from colorama import Fore, Style

from veracodetui.core.state import Phase, Scope
from veracodetui.parsers.dates import format_date

TEXT_NOT_AVAILABLE = "N/A"


@dataclass(frozen=True)
class Theme:
    header: str = Fore.BLUE + Style.BRIGHT
    label: str = Fore.WHITE + Style.DIM
    error: str = Fore.RED
    warning: str = Fore.YELLOW
    success: str = Fore.GREEN
    dim: str = Style.DIM
    severity_very_high: str = Fore.RED + Style.BRIGHT
    severity_high: str = Fore.RED
    severity_medium: str = Fore.YELLOW
    severity_low: str = Fore.CYAN
    severity_very_low: str = Fore.WHITE + Style.DIM
    policy_pass: str = Fore.GREEN
    policy_fail: str = Fore.RED
    reset: str = Style.RESET_ALL

    def severity(self, level: int) -> str:
        return {5: self.severity_very_high, 4: self.severity_high,
                3: self.severity_medium, 2: self.severity_low,
                1: self.severity_very_low}.get(level, "")

    def policy(self, status: str) -> str:
        status = status.upper()
        if "NOT" in status or "FAIL" in status:
            return self.policy_fail
        if "PASS" in status:
            return self.policy_pass
        return ""


def default_theme() -> Theme:
    return Theme()


def monochrome_theme() -> Theme:
    """No colour at all; markers carry the meaning."""
    return Theme(**{name: "" for name in Theme.__dataclass_fields__})


def hotdog_theme() -> Theme:
    """Reds and yellows, graduated from red (very high) to yellow."""
    return Theme(
        header=Fore.RED + Style.BRIGHT,
        label=Fore.LIGHTRED_EX,
        error=Fore.RED + Style.BRIGHT,
        warning=Fore.LIGHTRED_EX,
        success=Fore.GREEN,
        dim=Fore.YELLOW + Style.DIM,
        severity_very_high=Fore.RED + Style.BRIGHT,
        severity_high=Fore.RED,
        severity_medium=Fore.LIGHTRED_EX,
        severity_low=Fore.YELLOW,
        severity_very_low=Fore.LIGHTYELLOW_EX,
        policy_pass=Fore.GREEN,
        policy_fail=Fore.RED + Style.BRIGHT,
    )


def matrix_theme() -> Theme:
    """Shades of green with cyan headers; red and yellow only for urgency."""
    return Theme(
        header=Fore.CYAN + Style.BRIGHT,
        label=Fore.LIGHTGREEN_EX,
        error=Fore.RED,
        warning=Fore.YELLOW,
        success=Fore.LIGHTGREEN_EX,
        dim=Fore.GREEN + Style.DIM,
        severity_very_high=Fore.RED + Style.BRIGHT,
        severity_high=Fore.LIGHTRED_EX,
        severity_medium=Fore.YELLOW,
        severity_low=Fore.LIGHTGREEN_EX,
        severity_very_low=Fore.GREEN,
        policy_pass=Fore.LIGHTGREEN_EX,
        policy_fail=Fore.RED,
    )


THEMES = {
    "default": default_theme,
    "monochrome": monochrome_theme,
    "hotdog": hotdog_theme,
    "matrix": matrix_theme,
}


def _cut(text: str, width: int) -> str:
    return text if len(text) <= width else text[:max(width - 3, 0)] + "..."


class Screen:
    """Renders the current view of a Session as plain lines of text."""

    def __init__(self, session, theme: Theme | None = None, width: int | None = None):
        self.session = session
        self.theme = theme or default_theme()
        self.width = width or shutil.get_terminal_size((120, 40)).columns

    def render(self) -> str:
        view = self.session.view
        body = {
            Scope.APPLICATION_LIST: self.applications,
            Scope.APPLICATION_DETAIL: self.application_detail,
            Scope.FINDINGS_LIST: self.findings,
            Scope.FINDING_DETAIL: self.finding_detail,
            Scope.DATA_PATH_VIEW: self.data_paths,
        }[view]()
        return "\n".join([self.header()] + body + ["", self.status()])

    # ── pieces ─────────────────────────────────────────────────

    def header(self) -> str:
        t = self.theme
        line = f"{t.header}Veracode TUI{t.reset}"
        principal = self.session.state(Scope.PRINCIPAL)
        if principal.phase == Phase.LOADED:
            p = principal.data
            line += f"  {t.dim}{p.display_name} @ {p.organization_name}{t.reset}"
        return line

    def status(self) -> str:
        t = self.theme
        text = self.session.status_line()
        if text.startswith("Error") or text.startswith("Invalid"):
            return f"{t.error}{text}{t.reset}"
        if text.startswith("Loading") or text.startswith("Saving"):
            return f"{t.warning}{text}{t.reset}"
        if text.endswith("saved"):
            return f"{t.success}{text}{t.reset}"
        return text

    def table(self, headers: Sequence[str], rows: List[Sequence[str]],
              widths: Sequence[int]) -> List[str]:
        t = self.theme
        head = "  ".join(h.ljust(w) for h, w in zip(headers, widths))
        lines = [f"{t.header}{'#':>4}  {head}{t.reset}"]
        for i, row in enumerate(rows, start=1):
            cells = "  ".join(_cut(str(c), w).ljust(w) for c, w in zip(row, widths))
            lines.append(f"{i:>4}  {cells}")
        return lines

    # ── views ──────────────────────────────────────────────────

    def applications(self) -> List[str]:
        s, t = self.session, self.theme
        filters = s.app_filters.active()
        lines = [f"{t.label}Filters:{t.reset} " + (", ".join(f"{k}={v}" for k, v in filters.items())
                                                   or "none")]
        st = s.state(Scope.APPLICATION_LIST)
        if st.phase != Phase.LOADED:
            return lines
        rows = []
        for app in st.data.items:
            rows.append([
                app.name,
                format_date(app.created, TEXT_NOT_AVAILABLE),
                format_date(app.modified, TEXT_NOT_AVAILABLE),
                format_date(app.last_completed_scan_date, TEXT_NOT_AVAILABLE),
                app.policy_status or TEXT_NOT_AVAILABLE,
                app.scan_status or TEXT_NOT_AVAILABLE,
            ])
        lines += self.table(["Application Name", "Created", "Last Modified", "Last Scan",
                             "Policy Status", "Scan Status"], rows, [40, 10, 13, 10, 24, 16])
        return lines

    def application_detail(self) -> List[str]:
        s, t = self.session, self.theme
        detail = s.state(Scope.APPLICATION_DETAIL).data
        if detail is None:
            return []
        app = detail.application
        profile = app.profile
        lines = [
            f"{t.label}Name:{t.reset} {app.name}",
            f"{t.label}GUID:{t.reset} {app.guid}",
        ]
        if profile:
            bu = profile.business_unit.name if profile.business_unit else TEXT_NOT_AVAILABLE
            lines.append(f"{t.label}Business Unit:{t.reset} {bu}")
            lines.append(f"{t.label}Criticality:{t.reset} {profile.business_criticality or TEXT_NOT_AVAILABLE}")
            for policy in profile.policies:
                colour = t.policy(policy.policy_compliance_status)
                lines.append(f"{t.label}Policy:{t.reset} {policy.name} "
                             f"{colour}{policy.policy_compliance_status}{t.reset}")
        if app.scans:
            lines.append(f"{t.label}Recent Scans:{t.reset}")
            for scan in app.scans:
                lines.append(f"  {scan.scan_type:<8} {scan.status:<20} "
                             f"{format_date(scan.modified_date, TEXT_NOT_AVAILABLE)}")
        lines.append("")
        marker = "*" if s.drill.sandbox is None else " "
        lines.append(f"{t.header}Contexts{t.reset}")
        lines.append(f" {marker}  policy  Policy")
        for i, sandbox in enumerate(detail.sandboxes or [], start=1):
            marker = "*" if s.drill.sandbox and s.drill.sandbox.guid == sandbox.guid else " "
            lines.append(f" {marker}{i:>3}     Sandbox: {sandbox.name} "
                         f"{t.dim}({sandbox.owner_username or TEXT_NOT_AVAILABLE}){t.reset}")
        return lines

    def findings(self) -> List[str]:
        s, t = self.session, self.theme
        f = s.findings_filters
        lines = [f"{t.label}Context:{t.reset} {s.drill.context_label}  "
                 f"{t.label}Scan:{t.reset} {f.get('scan_type') or 'All'}  "
                 f"{t.label}Severity:{t.reset} {f.get('severity') or 'All'}  "
                 f"{t.label}Policy:{t.reset} {f.get('violates_policy') or 'All'}"]
        st = s.state(Scope.FINDINGS_LIST)
        if st.phase != Phase.LOADED:
            return lines
        rows = []
        for finding in st.data.items:
            d = finding.details
            status = finding.finding_status.status if finding.finding_status else ""
            rows.append([finding.policy_marker, finding.issue_id, d.severity_name,
                         d.cwe.id if d.cwe else "", d.category, d.location, status])
        lines += self.table(["P", "ID", "Severity", "CWE", "Category", "Location", "Status"],
                            rows, [1, 7, 13, 5, 36, 40, 8])
        return lines

    def finding_detail(self) -> List[str]:
        t = self.theme
        finding = self.session.state(Scope.FINDING_DETAIL).data
        if finding is None:
            return []
        d = finding.details
        lines = [
            f"{t.label}Issue:{t.reset} {finding.issue_id} ({finding.scan_type})",
            f"{t.label}Severity:{t.reset} {t.severity(d.severity)}{d.severity_name}{t.reset}",
            f"{t.label}CWE:{t.reset} {d.cwe.id if d.cwe else TEXT_NOT_AVAILABLE} {d.category}",
            f"{t.label}Location:{t.reset} {d.location or TEXT_NOT_AVAILABLE}",
            f"{t.label}Violates Policy:{t.reset} {'yes' if finding.violates_policy else 'no'} "
            f"{finding.policy_marker}",
        ]
        st = finding.finding_status
        if st:
            lines.append(f"{t.label}Status:{t.reset} {st.status} "
                         f"{t.label}Resolution:{t.reset} {st.resolution_status or TEXT_NOT_AVAILABLE}")
            lines.append(f"{t.label}First Found:{t.reset} "
                         f"{format_date(st.first_found_date, TEXT_NOT_AVAILABLE)}")
        if finding.description:
            lines += ["", _cut(finding.description, self.width * 4)]
        lines += ["", f"{t.header}Annotations{t.reset}"]
        if not finding.annotations:
            lines.append(f"  {t.dim}none{t.reset}")
        for ann in finding.annotations:
            lines.append(f"  {format_date(ann.created, TEXT_NOT_AVAILABLE)} "
                         f"{ann.action:<10} {ann.user_name}")
            if ann.comment:
                lines.append(f"    {_cut(ann.comment, self.width - 6)}")
        return lines

    def data_paths(self) -> List[str]:
        t = self.theme
        st = self.session.state(Scope.DATA_PATH_VIEW)
        if st.phase != Phase.LOADED:
            return []
        path = st.data.current
        if path is None:
            return []
        lines = [f"{t.label}Module:{t.reset} {path.module_name}",
                 f"{t.label}Sink:{t.reset} {path.function_name} ({path.local_path}:{path.line_number})",
                 f"{t.label}Steps:{t.reset} {path.steps}", ""]
        rows = [[call.function_name, f"{call.file_path or call.file_name}:{call.line_number}"]
                for call in path.calls]
        lines += self.table(["Function", "Location"], rows, [40, 60])
        return lines
