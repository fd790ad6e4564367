import sys
from datetime import datetime

from colorama import init as colorama_init, AnsiToWin32, Fore, Style
colorama_init(autoreset=True)


class Log:
    """Timestamped, colour-tagged log lines gated by a verbosity count.

    verbose 0: warnings and failures only, 1: info, 2: debug (HTTP traffic).
    """

    def __init__(self, verbose: int = 1, stream=None):
        self.verbose = verbose
        self.stream = stream if stream is not None else sys.stdout
        self.PAY = Fore.MAGENTA

    @classmethod
    def to_file(cls, filename: str, verbose: int = 2) -> "Log":
        """Append to *filename* with ANSI colour codes stripped."""
        fh = open(filename, "a", encoding="utf-8")
        log = cls(verbose=verbose, stream=AnsiToWin32(fh, strip=True).stream)
        log._fh = fh
        log.debug("=== Debug logging started ===")
        return log

    def close(self):
        fh = getattr(self, "_fh", None)
        if fh is not None:
            fh.close()
            self._fh = None

    def _time(self):
        return datetime.now().strftime("[%H:%M:%S]")

    def _fmt(self, level: str, color: str):
        return f"{self._time()} {color}[{level}]{Style.RESET_ALL}"

    def _emit(self, line: str):
        print(line, file=self.stream, flush=True)

    def info(self, msg: str):
        if self.verbose >= 1:
            self._emit(f"{self._fmt('INFO', Fore.CYAN)} {msg}")

    def warn(self, msg: str):
        if self.verbose >= 0:
            self._emit(f"{self._fmt('WARNING', Fore.YELLOW)} {msg}")

    def ok(self, msg: str):
        self._emit(f"{self._fmt('SUCCESS', Fore.GREEN)} {msg}")

    def fail(self, msg: str):
        self._emit(f"{self._fmt('FAIL', Fore.RED)} {msg}")

    def debug(self, msg: str):
        if self.verbose >= 2:
            self._emit(f"{self._fmt('DEBUG', Fore.MAGENTA)} {msg}")

    def request(self, method: str, url: str, headers: dict, body: bytes | None = None):
        if self.verbose < 2:
            return
        self.debug(f">>> REQUEST: {method} {url}")
        self.debug(f">>> Headers: {headers}")
        if body:
            self.debug(f">>> Body: {self.PAY}{body.decode('utf-8', errors='replace')}{Style.RESET_ALL}")

    def response(self, code: int, headers: dict, body: bytes):
        if self.verbose < 2:
            return
        sev_col = Fore.GREEN if 200 <= code < 300 else Fore.RED
        self.debug(f"<<< RESPONSE: {sev_col}Status {code}{Style.RESET_ALL}")
        self.debug(f"<<< Headers: {headers}")
        self.debug(f"<<< Body: {body.decode('utf-8', errors='replace')}")
        self.debug("---")
