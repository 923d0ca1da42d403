# fritzlog/exceptions.py
"""
Custom exception classes for the FRITZ!Box log collector.

Hierarchical structure: every error carries a `recoverable` flag.
Recoverable errors skip the current poll cycle and are retried on the next one;
non-recoverable ones are reported to the operator.
"""


class FritzLogError(Exception):
    """Base exception for all collector errors"""

    def __init__(self, message: str, recoverable: bool = True):
        self.message = message
        self.recoverable = recoverable
        super().__init__(message)


class TransientNetwork(FritzLogError):
    """Router unreachable, timed out, or answered with a non-2xx status"""

    def __init__(self, message: str, url: str | None = None, status_code: int | None = None):
        self.url = url
        self.status_code = status_code
        super().__init__(f"Network Error: {message}", recoverable=True)


class ChallengeError(FritzLogError):
    """Login challenge string could not be parsed"""

    def __init__(self, message: str):
        super().__init__(f"Challenge Error: {message}", recoverable=True)


class ClockError(FritzLogError):
    """Device local time could not be mapped to a single instant"""

    def __init__(self, message: str):
        super().__init__(f"Clock Error: {message}", recoverable=True)


class AuthBlocked(FritzLogError):
    """Router refused the login and announced a lockout of `blocktime` seconds"""

    def __init__(self, blocktime: int):
        self.blocktime = blocktime
        super().__init__(f"Login blocked for {blocktime}s", recoverable=True)


class AuthRejected(FritzLogError):
    """Credentials can not be used, operator action required"""

    def __init__(self, message: str):
        super().__init__(f"Auth Rejected: {message}", recoverable=False)


class AuthExhausted(AuthRejected):
    """Lockout persisted past the configured number of login attempts"""

    def __init__(self, attempts: int, blocktime: int):
        self.attempts = attempts
        self.blocktime = blocktime
        super().__init__(
            f"still blocked after {attempts} login attempts (last blocktime {blocktime}s)"
        )


class MalformedPayload(FritzLogError):
    """Router response could not be interpreted"""

    def __init__(self, message: str, name: str | None = None):
        self.name = name
        super().__init__(f"Malformed Payload: {message}", recoverable=True)


class StoreConflict(FritzLogError):
    """
    Unique key (datetime, message_id, category_id) already stored.
    Never raised by the store: conflicting inserts are skipped.
    """

    def __init__(self, message: str):
        super().__init__(f"Store Conflict: {message}", recoverable=True)


class StoreIOFailure(FritzLogError):
    """Database read or write failed, batch rolled back"""

    def __init__(self, message: str):
        super().__init__(f"Store Error: {message}", recoverable=True)
