import sys
import psutil
import logging
import threading
import subprocess
from pathlib import Path
from typing import IO, Any, Dict, List, Optional, Union
from gtbare import settings
from gtbare.local.errors import ProcessStartError
from gtbare.local.supervisor import persistence
from gtbare.local.supervisor.context import RunContext

log = logging.getLogger(__name__)

LOG_FILE_NAME = "log"


class RunOptions:
    """Describes a single launch of a component binary. Consumed once by run_binary."""

    def __init__(self, binary: str, name: str, log_dir: Union[str, Path], pid_dir: Union[str, Path], args: List[str]) -> None:
        self.binary = binary
        self.name = name
        self.log_dir = Path(log_dir)
        self.pid_dir = Path(pid_dir)
        self.args = list(args)

    def command(self) -> List[str]:
        return [self.binary, *self.args]

    def __repr__(self) -> str:
        return f"RunOptions(name={self.name!r}, binary={self.binary!r}, args={self.args!r})"


class ProcessHandle:
    """
    The handle of one launched replica.

    A daemon watcher thread owns the child: it terminates the child when the
    run context is cancelled, and cancels the run context when the child dies
    on its own with a non-zero exit code.
    """

    def __init__(self, name: str, popen: subprocess.Popen, log_file: IO, log_path: Path, pid_path: Path) -> None:
        self.name = name
        self.popen = popen
        self.log_path = log_path
        self.pid_path = pid_path
        self._log_file = log_file
        self._exited = threading.Event()
        self._watcher: Optional[threading.Thread] = None
        self._stopping = False

    @property
    def pid(self) -> int:
        return self.popen.pid

    @property
    def returncode(self) -> Optional[int]:
        return self.popen.returncode

    def process(self) -> psutil.Process:
        """Returns the psutil view of the child, for status and shutdown."""
        return get_process_from_pid(self.pid)

    def is_alive(self) -> bool:
        return not self._exited.is_set() and self.popen.poll() is None

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        """
        Waits for the child to exit.

        :param timeout: Seconds to wait, or None to block until exit.
        :return: The exit code, or None if the child is still running after `timeout`.
        """
        if not self._exited.wait(timeout):
            return None
        return self.popen.returncode

    def stop(self, timeout: float = settings.GRACEFUL_SHUTDOWN_TIMEOUT) -> Optional[int]:
        """Sends SIGTERM, then kills the child if it outlives `timeout`."""
        self._stopping = True
        self._terminate(timeout)
        return self.wait(timeout)

    def _terminate(self, timeout: float) -> None:
        if self.popen.poll() is not None:
            return
        log.debug(f"Sending SIGTERM to {self.name} (PID {self.pid})")
        self.popen.terminate()
        try:
            self.popen.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            log.warning(f"Killing stubborn process {self.name} (PID {self.pid}).")
            self.popen.kill()
            self.popen.wait()

    def _watch(self, ctx: RunContext) -> None:
        """Target function for the watcher thread."""
        try:
            while self.popen.poll() is None:
                if ctx.wait(settings.WATCHER_POLL_INTERVAL):
                    self._terminate(settings.GRACEFUL_SHUTDOWN_TIMEOUT)
                    break

            code = self.popen.wait()
            if code != 0 and not ctx.cancelled() and not self._stopping:
                log.error(f"{self.name} exited unexpectedly with code {code}. See '{self.log_path}'.")
                ctx.cancel(f"{self.name} exited with code {code}")
            else:
                log.info(f"{self.name} (PID {self.pid}) exited with code {code}.")
        finally:
            self._log_file.close()
            self._exited.set()

    def start_watcher(self, ctx: RunContext) -> None:
        self._watcher = threading.Thread(target=self._watch, args=(ctx,), daemon=True, name=f"Watcher-{self.name}")
        self._watcher.start()

    def __repr__(self) -> str:
        return f"ProcessHandle(name={self.name!r}, pid={self.pid}, returncode={self.returncode})"


#* --- Process Status & Monitoring ---
def pid_exists(pid: int) -> bool:
    """A wrapper for psutil.pid_exists for easy testing/mocking if needed."""
    return psutil.pid_exists(pid)

def get_process_from_pid(pid: int) -> psutil.Process:
    """A wrapper for psutil.Process for easy testing/mocking if needed."""
    return psutil.Process(pid)

def get_proc_status_string(proc: psutil.Process) -> str:
    """Gets a string representation of a process status."""
    try:
        if proc.status() == psutil.STATUS_ZOMBIE:
            return "zombie"
        return "running"
    except psutil.NoSuchProcess:
        return "stopped"
    except psutil.Error:
        return "unknown"

#* --- Process Creation ---
def ensure_dir(path: Union[str, Path]) -> Path:
    """Creates `path` and its parents if absent. Errors propagate as OSError."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path

def _get_popen_creation_flags() -> Dict[str, Any]:
    """Returns platform-specific creation flags for subprocess.Popen."""
    if sys.platform == "win32":
        return {"creationflags": subprocess.DETACHED_PROCESS | subprocess.CREATE_NO_WINDOW}
    return {"start_new_session": True}

def run_binary(ctx: RunContext, options: RunOptions) -> ProcessHandle:
    """
    Launches one component binary and returns its handle once the process is running.

    stdout and stderr are appended to ``<log_dir>/log`` and the PID is written
    to ``<pid_dir>/pid``.

    :param ctx: The run context. Cancelling it terminates the child.
    :param options: What to launch and where.
    :return: The handle for the launched replica.
    """
    ensure_dir(options.log_dir)
    ensure_dir(options.pid_dir)
    log_path = options.log_dir / LOG_FILE_NAME

    log.info(f"Starting process: {options.name}...")
    log.debug(f"Run '{options.name}' with command: {' '.join(options.command())}")

    log_file = log_path.open("ab")
    try:
        p = subprocess.Popen(
            options.command(),
            stdout=log_file,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
            cwd=str(options.log_dir.resolve()),
            **_get_popen_creation_flags()
        )
    except OSError as e:
        log_file.close()
        log.critical(f"Failed to start process '{options.name}': {e}")
        raise ProcessStartError(options.name, options.binary, e) from e

    handle = ProcessHandle(options.name, p, log_file, log_path, options.pid_dir / persistence.PID_FILE_NAME)
    persistence.write_pid_file(handle.pid_path, p.pid)
    handle.start_watcher(ctx)
    log.info(f"{options.name} started successfully with PID: {p.pid}")
    return handle
