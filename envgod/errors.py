# envgod/errors.py
"""
EnvGod Errors

Every failure raised while loading a bundle derives from EnvGodError, so a host
can catch the whole family in one place. Only UnauthorizedError is retried by
the loader, and only once.
"""


class EnvGodError(Exception):
    """Base class for all EnvGod failures."""
    pass


class ConfigurationError(EnvGodError):
    """Raised when mandatory configuration is missing or malformed."""

    def __init__(self, missing: list[str] | None = None, message: str | None = None):
        self.missing = list(missing or [])
        if message is None:
            message = f"[EnvGod] Missing required configuration: {', '.join(self.missing)}"
        super().__init__(message)


class BrowserEnvironmentError(EnvGodError):
    """Raised when the SDK is executed inside a browser runtime."""

    def __init__(self):
        super().__init__(
            "[EnvGod] Security Warning: SDK execution attempting in browser environment. "
            "This SDK is server-only."
        )


class CredentialResolutionError(EnvGodError):
    """Raised when no runtime key could be found through any resolution path."""
    pass


class RequestTimeoutError(EnvGodError):
    """Raised when a network call exceeds its time bound."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"[EnvGod] Request timed out after {timeout * 1000:.0f}ms")


class TransportError(EnvGodError):
    """Raised when the request could not be completed (connection refused, reset...)."""
    pass


class InvalidResponseError(EnvGodError):
    """Raised when the control plane answers 200 with an unexpected body."""
    pass


class EnvironmentSinkError(EnvGodError):
    """Raised when the environment sink rejects a variable; nothing is left applied."""
    pass


class HTTPStatusError(EnvGodError):
    """Raised on a non-success HTTP status from the exchange or bundle endpoint."""

    def __init__(self, operation: str, status: int, reason: str | None = None):
        self.operation = operation
        self.status = status
        self.reason = reason or ""
        super().__init__(f"[EnvGod] {operation} failed: {status} {self.reason}".rstrip())


class UnauthorizedError(HTTPStatusError):
    """
    Raised when the bundle endpoint rejects the token with 401.

    The loader treats this as the signal to re-exchange the token and fetch
    once more.
    """

    def __init__(self, reason: str | None = None):
        super().__init__("Fetch bundle", 401, reason or "Unauthorized")
