"""CSP generator exceptions.

All exceptions inherit from CspGenError so the command line can report
them uniformly.
"""


class CspGenError(Exception):
    """Base exception for all CSP generator errors."""

    pass


class UsageError(CspGenError):
    """Raised for invalid command-line input, before any browser starts."""

    pass


class NavigationError(CspGenError):
    """Raised when a top-level navigation answers with HTTP status >= 400."""

    def __init__(self, url: str, status: int):
        self.url = url
        self.status = status
        super().__init__(f"Got HTTP status {status} from {url}")


class ConvergenceExhausted(CspGenError):
    """Raised when the policy keeps producing violations past the retry budget.

    Carries the last candidate policy and the attempt counter so the run
    can be reproduced.
    """

    def __init__(self, policy_string: str, attempts: int, hashes_enabled: bool = True):
        self.policy_string = policy_string
        self.attempts = attempts
        self.hashes_enabled = hashes_enabled
        msg = (f"Couldn't determine valid rules within max attempts "
               f"({attempts} rounds). Last policy: {policy_string}")
        if hashes_enabled:
            msg += ". Try again with --no-hashes."
        super().__init__(msg)
