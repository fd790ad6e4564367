import argparse
import shlex
import sys

from veracodetui.core.config import load_config
from veracodetui.core.dispatcher import FetchDispatcher
from veracodetui.core.errors import ConfigurationError
from veracodetui.core.session import Session
from veracodetui.core.state import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, Scope
from veracodetui.core.transport import APPSEC_API_URL, Transport
from veracodetui.reporters.console import Log
from veracodetui.reporters.screen import THEMES, Screen
from veracodetui.services.annotations import AnnotationsService
from veracodetui.services.applications import ApplicationsService
from veracodetui.services.findings import FindingsService
from veracodetui.services.identity import IdentityService

HELP = """Commands:
  n TEXT          filter applications by name      s STATUS   by scan status
  t TYPE          filter by scan type              m DATE     modified after (yyyy-MM-dd)
  pgdn / pgup     next / previous page             r          reload current list
  open N          open application N               ctx N|policy  pick sandbox N or policy
  f               findings of the current context  show N     finding detail
  scan TYPE       STATIC, DYNAMIC or SCA           sev 0-5    severity (0 = any)
  policy FILTER   All, Violations, Non-Violations  paths      data paths (STATIC)
  next / prev     step through data paths          back       one level up
  annotate ACTION COMMENT...                       whoami     current API user
  q               quit"""


def _index(args):
    """1-based user index to 0-based; None when missing or not a number."""
    if not args or not args[0].isdigit():
        return None
    return int(args[0]) - 1


def run_command(session: Session, line: str, out=None) -> bool:
    """Apply one typed command to the session. Returns False to quit."""
    out = out or sys.stdout
    try:
        words = shlex.split(line)
    except ValueError as exc:
        session.message = f"Error: {exc}"
        return True
    if not words:
        return True
    cmd, args = words[0].lower(), words[1:]
    text = " ".join(args)

    if cmd in ("q", "quit", "exit"):
        return False
    if cmd in ("h", "help", "?"):
        print(HELP, file=out)
    elif cmd in ("n", "s", "t", "m"):
        key = {"n": "name", "s": "scan_status", "t": "scan_type", "m": "modified_after"}[cmd]
        if cmd in ("s", "t"):
            text = text.upper()
        session.set_application_filter(key, text)
    elif cmd == "pgdn":
        if session.view == Scope.FINDINGS_LIST:
            session.next_findings_page()
        else:
            session.next_page()
    elif cmd == "pgup":
        if session.view == Scope.FINDINGS_LIST:
            session.prev_findings_page()
        else:
            session.prev_page()
    elif cmd == "r":
        if session.view == Scope.FINDINGS_LIST:
            session.load_findings()
        else:
            session.load_applications()
    elif cmd == "open":
        i = _index(args)
        if i is None or not session.select_application(i):
            session.message = "No such application"
    elif cmd == "ctx":
        if args and args[0].lower() == "policy":
            session.select_context(None)
        else:
            i = _index(args)
            if i is None or not session.select_context(i):
                session.message = "No such sandbox"
    elif cmd == "f":
        if not session.open_findings():
            session.message = "Open an application first"
    elif cmd == "scan":
        session.set_findings_scan_type(text.upper())
    elif cmd == "sev":
        if not text.isdigit():
            session.message = "Severity must be between 0 and 5"
        else:
            session.set_findings_severity(int(text))
    elif cmd == "policy":
        session.set_findings_policy_filter(text)
    elif cmd == "show":
        i = _index(args)
        if i is None or not session.select_finding(i):
            session.message = "No such finding"
    elif cmd == "paths":
        session.load_data_paths()
    elif cmd == "next":
        session.next_data_path()
    elif cmd == "prev":
        session.prev_data_path()
    elif cmd == "annotate":
        if len(args) < 2:
            session.message = "Usage: annotate ACTION COMMENT..."
        elif not session.annotate(args[0].upper(), " ".join(args[1:])):
            session.message = "Select a finding first"
    elif cmd == "back":
        session.back()
    elif cmd == "whoami":
        session.load_principal()
    else:
        session.message = f"Unknown command {cmd!r}, type 'help'"
    return True


def build_session(credentials, args, debug_log: Log | None = None) -> Session:
    transport = Transport(credentials, base_url=args.base_url, logger=debug_log)
    return Session(
        applications=ApplicationsService(transport),
        findings=FindingsService(transport),
        identity=IdentityService(transport),
        annotations=AnnotationsService(transport),
        dispatcher=FetchDispatcher(max_workers=4),
        page_size=args.page_size,
        logger=debug_log,
    )


def _page_size(value: str) -> int:
    size = int(value)
    if not 0 < size <= MAX_PAGE_SIZE:
        raise argparse.ArgumentTypeError(f"must be between 1 and {MAX_PAGE_SIZE}")
    return size


def main():
    p = argparse.ArgumentParser(description="Terminal browser for Veracode scan results")
    p.add_argument("--config", help="Config file (default: ~/.veracode/veracode.yml)")
    p.add_argument("--base-url", default=APPSEC_API_URL, help="API base URL")
    p.add_argument("--page-size", type=_page_size, default=DEFAULT_PAGE_SIZE,
                   help=f"Rows per page (1-{MAX_PAGE_SIZE})")
    p.add_argument("--no-color", action="store_true",
                   help="Monochrome output (same as --theme monochrome)")
    p.add_argument("--theme", choices=sorted(THEMES), default="default", help="Colour theme")
    p.add_argument("--debug-log", metavar="FILE", help="Write HTTP traffic to FILE")
    p.add_argument("-v", "--verbose", action="count", default=0,
                   help="-v, -vv")
    args = p.parse_args()

    log = Log(verbose=args.verbose)
    try:
        credentials = load_config(args.config)
    except ConfigurationError as exc:
        log.fail(f"Failed to load config: {exc}")
        sys.exit(1)
    log.ok(f"Loaded credentials for API key {credentials.key_id}")
    log.info(f"Using {args.base_url}")

    debug_log = Log.to_file(args.debug_log) if args.debug_log else None
    session = build_session(credentials, args, debug_log)
    theme = THEMES["monochrome" if args.no_color else args.theme]()
    screen = Screen(session, theme=theme)

    session.load_principal()
    session.load_applications()
    try:
        while True:
            session.run_until_idle()
            print(screen.render())
            try:
                line = input("> ")
            except EOFError:
                break
            if not run_command(session, line):
                break
    except KeyboardInterrupt:
        print()
    finally:
        session.dispatcher.shutdown()
        session.applications.transport.close()
        if debug_log:
            debug_log.close()


if __name__ == "__main__":
    main()
