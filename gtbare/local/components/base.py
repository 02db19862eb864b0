import logging
import requests
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, List, Optional, Tuple
from gtbare import settings
from gtbare.local.errors import InvalidAddressError, StatusCheckError
from gtbare.local.supervisor.context import RunContext
from gtbare.local.supervisor.process_utils import ProcessHandle, RunOptions, ensure_dir, run_binary

if TYPE_CHECKING:
    from gtbare.local.config import WorkingDirs

log = logging.getLogger(__name__)

HEALTH_PATH = "/health"


#* --- Address Helpers ---
def split_host_port(addr: str) -> Tuple[str, int]:
    """
    Splits a ``host:port`` string. Bracketed IPv6 hosts (``[::1]:4000``) are accepted.

    :raises InvalidAddressError: If `addr` has no port or the port is not a number.
    """
    if not isinstance(addr, str):
        raise InvalidAddressError(addr, "address must be a string")
    if addr.startswith("["):
        end = addr.find("]")
        if end < 0:
            raise InvalidAddressError(addr, "missing ']' in address")
        host, rest = addr[1:end], addr[end + 1:]
        if not rest.startswith(":"):
            raise InvalidAddressError(addr, "missing port in address")
        port_str = rest[1:]
    else:
        host, sep, port_str = addr.rpartition(":")
        if not sep:
            raise InvalidAddressError(addr, "missing port in address")
        if ":" in host:
            raise InvalidAddressError(addr, "too many colons in address")

    if not port_str.isdigit():
        raise InvalidAddressError(addr, f"invalid port {port_str!r}")
    return host, int(port_str)

def join_host_port(host: str, port: int) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"

def format_addr_arg(addr: str, replica_index: int) -> str:
    """Returns `addr` with its port shifted by `replica_index`."""
    host, port = split_host_port(addr)
    return join_host_port(host, port + replica_index)

def generate_addr_arg(flag: str, addr: str, replica_index: int, args: List[str]) -> List[str]:
    """
    Appends ``<flag>=<addr shifted by replica_index>`` to `args` and returns it.

    An empty `addr` leaves `args` untouched. A value that is not ``host:port``
    (for example a boolean) is passed through as is.
    """
    if not addr:
        return args
    try:
        value = format_addr_arg(addr, replica_index)
    except InvalidAddressError:
        value = addr
    args.append(f"{flag}={value}")
    return args


class AllocatedDirs:
    """Log and pid directories created for a component, one pair per replica."""

    def __init__(self) -> None:
        self.logs_dirs: List[Path] = []
        self.pids_dirs: List[Path] = []

    def all(self) -> List[Path]:
        return [*self.logs_dirs, *self.pids_dirs]

    def __repr__(self) -> str:
        return f"AllocatedDirs(logs_dirs={self.logs_dirs!r}, pids_dirs={self.pids_dirs!r})"


class StartResult:
    """What ClusterComponent.start hands back: the directories it created and the launched replicas."""

    def __init__(self, dirs: AllocatedDirs, handles: List[ProcessHandle]) -> None:
        self.dirs = dirs
        self.handles = handles


class HealthStatus:
    """The outcome of a health check. Truthy only when every replica is healthy."""

    def __init__(self, running: bool, replica: Optional[int] = None, url: Optional[str] = None, reason: str = "") -> None:
        self.running = running
        self.replica = replica
        self.url = url
        self.reason = reason

    @classmethod
    def healthy(cls) -> "HealthStatus":
        return cls(True, reason="all replicas healthy")

    def __bool__(self) -> bool:
        return self.running

    def __repr__(self) -> str:
        return f"HealthStatus(running={self.running}, replica={self.replica}, url={self.url!r}, reason={self.reason!r})"


class ClusterComponent(ABC):
    """
    One role of the cluster, run as `replicas` local processes of the same binary.

    Subclasses supply the role name, the per-role configuration, and the
    command-line arguments; starting replicas and probing their health is shared.
    """

    def __init__(self, config: Any, working_dirs: "WorkingDirs") -> None:
        self.config = config
        self.working_dirs = working_dirs
        self.last_start: Optional[StartResult] = None

    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def build_args(self, replica_index: int, *params: Any) -> List[str]:
        ...

    def replica_args(self, replica_index: int) -> List[str]:
        return self.build_args(replica_index)

    def log_level(self) -> str:
        return self.config.log_level or settings.DEFAULT_LOG_LEVEL

    def start(self, ctx: RunContext, binary: str) -> StartResult:
        """
        Creates the per-replica directories and launches every replica.

        Directory and spawn errors abort immediately; replicas launched before
        the failure keep running until `ctx` is cancelled.

        :param ctx: The run context shared by the whole cluster.
        :param binary: Path or name of the binary to run.
        :return: The allocated directories and the handles of the launched replicas.
        """
        dirs = AllocatedDirs()
        handles: List[ProcessHandle] = []
        self.last_start = StartResult(dirs, handles)

        for i in range(self.config.replicas):
            dir_name = f"{self.name()}.{i}"

            log_dir = ensure_dir(self.working_dirs.logs_dir / dir_name)
            dirs.logs_dirs.append(log_dir)

            pid_dir = ensure_dir(self.working_dirs.pids_dir / dir_name)
            dirs.pids_dirs.append(pid_dir)

            option = RunOptions(binary=binary, name=dir_name, log_dir=log_dir, pid_dir=pid_dir, args=self.replica_args(i))
            handles.append(run_binary(ctx, option))

        return self.last_start

    def health_url(self, replica_index: int) -> str:
        # Probes the configured host, not localhost. A wildcard host such as 0.0.0.0
        # is only reachable where the platform routes it to the local machine.
        return f"http://{format_addr_arg(self.config.http_addr, replica_index)}{HEALTH_PATH}"

    def check_health(self, ctx: Optional[RunContext] = None) -> HealthStatus:
        """
        Probes ``/health`` on every replica in order and stops at the first failure.

        :return: A HealthStatus naming the first failing replica and why, or a healthy one.
        """
        for i in range(self.config.replicas):
            try:
                url = self.health_url(i)
            except InvalidAddressError as e:
                log.debug(f"Failed to derive {self.name()} address for replica {i}: {e}")
                return HealthStatus(False, replica=i, reason=str(e))

            try:
                response = requests.get(url, timeout=settings.HEALTH_REQUEST_TIMEOUT)
            except requests.exceptions.RequestException as e:
                log.debug(f"Failed to get {self.name()} health: {e}")
                return HealthStatus(False, replica=i, url=url, reason=str(e))

            status_code = response.status_code
            try:
                response.close()
            except (OSError, requests.exceptions.RequestException) as e:
                log.debug(f"{self.name()} is not healthy: {url}, err: {e}")
                return HealthStatus(False, replica=i, url=url, reason=f"failed to close response: {e}")

            if status_code != requests.codes.ok:
                log.debug(f"{self.name()} is not healthy: {url} returned {status_code}")
                return HealthStatus(False, replica=i, url=url, reason=f"unexpected status {status_code}")

        return HealthStatus.healthy()

    def is_running(self, ctx: Optional[RunContext] = None) -> bool:
        return bool(self.check_health(ctx))

    def wait_until_running(self, ctx: RunContext, interval: float = settings.HEALTH_CHECK_INTERVAL) -> None:
        """
        Polls the health check every `interval` seconds until it passes.

        :raises StatusCheckError: If `ctx` is cancelled first.
        """
        while not ctx.wait(interval):
            if self.is_running(ctx):
                log.info(f"{self.name()} is running ({self.config.replicas} replicas).")
                return
        raise StatusCheckError(ctx.err)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(replicas={self.config.replicas})"
