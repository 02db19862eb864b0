import psutil
import logging
from typing import Iterable, List, Set
from gtbare import settings
from gtbare.local.supervisor.process_utils import ProcessHandle

log = logging.getLogger(__name__)


def identify_processes_to_stop(handles: Iterable[ProcessHandle]) -> Set[psutil.Process]:
    """
    Identifies every launched replica, and its children, that is still alive.

    :param handles: The handles returned by run_binary.
    :return: A set of psutil.Process objects to be stopped.
    """
    parent_procs: Set[psutil.Process] = set()
    for handle in handles:
        if not handle.is_alive():
            continue
        try:
            parent_procs.add(handle.process())
        except psutil.NoSuchProcess:
            log.debug(f"Process {handle.name} (PID {handle.pid}) already exited.")

    all_procs_to_stop: Set[psutil.Process] = set(parent_procs)
    for proc in parent_procs:
        try:
            all_procs_to_stop.update(proc.children(recursive=True))
        except psutil.NoSuchProcess:
            log.warning(f"Process {proc.pid} no longer exists, skipping children retrieval.")
            continue

    return all_procs_to_stop


def _terminate_processes(processes: Set[psutil.Process]) -> None:
    """Sends SIGTERM to all processes."""
    for proc in processes:
        try:
            log.debug(f"Sending SIGTERM to {proc.name()} (PID {proc.pid})")
            proc.terminate()
        except psutil.NoSuchProcess:
            log.warning(f"Process {proc.pid} no longer exists, skipping termination.")
            continue


def _forceful_kill(processes: List[psutil.Process]) -> None:
    """Forcefully kills processes that didn't terminate gracefully."""
    if not processes:
        return

    log.warning(f"{len(processes)} processes did not terminate gracefully. Forcing shutdown...")
    for proc in processes:
        try:
            log.warning(f"Killing stubborn process {proc.name()} (PID {proc.pid}).")
            proc.kill()
        except psutil.NoSuchProcess:
            log.warning(f"Process {proc.pid} no longer exists, skipping forceful kill.")
            continue


def graceful_shutdown_sequence(processes: Set[psutil.Process], timeout: float = settings.GRACEFUL_SHUTDOWN_TIMEOUT) -> None:
    """
    Runs the full graceful shutdown sequence for the given processes.

    :param processes: A set of psutil.Process objects to shut down.
    :param timeout: Seconds to wait after SIGTERM before killing survivors.
    """
    _terminate_processes(processes)

    # Wait and verify
    procs_list = list(processes)
    try:
        _, alive = psutil.wait_procs(procs_list, timeout=timeout)
    except psutil.TimeoutExpired:
        alive = procs_list
    except psutil.NoSuchProcess:
        alive = []

    # If any processes are still alive after the timeout, forcefully kill them.
    _forceful_kill(alive)
