import logging
import threading
from typing import Optional

log = logging.getLogger(__name__)

CANCELED = "context canceled"
DEADLINE_EXCEEDED = "context deadline exceeded"


class RunContext:
    """
    A cooperative cancellation token shared by everything a cluster run starts.

    Components poll it between health checks, and process watchers terminate
    their child when it is cancelled. Cancelling is idempotent and the first
    cause wins.
    """

    def __init__(self) -> None:
        self._done = threading.Event()
        self._lock = threading.Lock()
        self._cause: Optional[str] = None
        self._timer: Optional[threading.Timer] = None

    @classmethod
    def with_timeout(cls, seconds: float) -> "RunContext":
        """Creates a context that cancels itself once `seconds` have elapsed."""
        ctx = cls()
        ctx._timer = threading.Timer(seconds, ctx.cancel, args=(DEADLINE_EXCEEDED,))
        ctx._timer.daemon = True
        ctx._timer.start()
        return ctx

    def cancel(self, cause: Optional[str] = None) -> None:
        """Cancels the context. Later calls keep the first cause."""
        with self._lock:
            if self._done.is_set():
                return
            self._cause = cause or CANCELED
            self._done.set()
            if self._timer is not None:
                self._timer.cancel()
        log.debug(f"Run context cancelled: {self._cause}")

    def cancelled(self) -> bool:
        return self._done.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Blocks up to `timeout` seconds. Returns True if the context is cancelled."""
        return self._done.wait(timeout)

    @property
    def err(self) -> Optional[str]:
        """The cancellation cause, or None while the context is live."""
        return self._cause
