"""Exception types for the keepsake core."""


class KeepsakeError(Exception):
    """Base class for keepsake errors."""


class ConfigError(KeepsakeError):
    """Raised when a configuration value is present but invalid."""


class LocalStoreError(KeepsakeError):
    """The local durable store failed to read or write.

    This is the only error class the sync engine lets through to callers:
    the local store is the one guaranteed persistence layer.
    """


class RemoteError(KeepsakeError):
    """A remote gateway call failed (unreachable, timeout, HTTP error, bad payload).

    Distinct from a call that succeeded and returned no rows.
    """

    def __init__(self, operation: str, message: str, status_code: int | None = None) -> None:
        self.operation = operation
        self.status_code = status_code
        super().__init__(f"{operation}: {message}")
