"""Exceptions raised while launching and supervising cluster components."""


class ProcessStartError(RuntimeError):
    """A component binary could not be spawned."""

    def __init__(self, name: str, binary: str, cause: Exception) -> None:
        super().__init__(f"failed to start '{name}' with binary '{binary}': {cause}")
        self.name = name
        self.binary = binary
        self.cause = cause


class StatusCheckError(RuntimeError):
    """The readiness wait ended because the run context was cancelled."""

    def __init__(self, cause: str) -> None:
        super().__init__(f"status checking failed: {cause}")
        self.cause = cause


class InvalidAddressError(ValueError):
    """An address is not a valid ``host:port`` string."""

    def __init__(self, addr: str, reason: str) -> None:
        super().__init__(f"address {addr!r}: {reason}")
        self.addr = addr
        self.reason = reason


class ConfigError(ValueError):
    """The cluster configuration could not be read or is invalid."""
