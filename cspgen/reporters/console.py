import sys
from colorama import init as colorama_init, Fore, Style
from datetime import datetime
colorama_init(autoreset=True)

# level -> (color, minimum verbosity; None = always shown)
_LEVELS = {
    "INFO": (Fore.CYAN, 1),
    "WARNING": (Fore.YELLOW, 0),
    "SUCCESS": (Fore.GREEN, None),
    "FAIL": (Fore.RED, None),
    "DEBUG": (Fore.MAGENTA, 2),
    "ROUND": (Fore.BLUE, 1),
    "VIOLATION": (Fore.RED, 2),
}


class Log:
    """Progress log on stderr; stdout only carries the results report."""

    def __init__(self, verbose: int = 1, stream=None):
        self.verbose = verbose
        self.stream = stream or sys.stderr
        self.SRC = Fore.MAGENTA

    def _time(self):
        return datetime.now().strftime("[%H:%M:%S]")

    def _emit(self, level: str, msg: str):
        color, threshold = _LEVELS[level]
        if threshold is not None and self.verbose < threshold:
            return
        print(f"{self._time()} {color}[{level}]{Style.RESET_ALL} {msg}", file=self.stream)

    def info(self, msg: str):
        self._emit("INFO", msg)

    def warn(self, msg: str):
        self._emit("WARNING", msg)

    def ok(self, msg: str):
        self._emit("SUCCESS", msg)

    def fail(self, msg: str):
        self._emit("FAIL", msg)

    def debug(self, msg: str):
        self._emit("DEBUG", msg)

    def round(self, attempt: int, policy_string: str):
        self._emit("ROUND", f"#{attempt} {Style.DIM}{policy_string}{Style.RESET_ALL}")

    def violation(self, directive: str, blocked: str, document: str):
        self._emit("VIOLATION", f"{directive} {self.SRC}{blocked}{Style.RESET_ALL} "
                                f"{Style.DIM}({document}){Style.RESET_ALL}")
