import time
import shutil
import psutil
import logging
from pathlib import Path
from typing import Dict, List, Optional
from gtbare import settings
from gtbare.local.config import ClusterConfig, WorkingDirs
from gtbare.local.components import ClusterComponent, Frontend, HealthStatus, MetaSrv, StartResult
from gtbare.local.supervisor import persistence, process_utils, shutdown
from gtbare.local.supervisor.context import RunContext
from gtbare.local.supervisor.process_utils import ProcessHandle

log = logging.getLogger(__name__)


class BareMetalCluster:
    """
    Starts the metasrv and frontend components of one cluster as local processes
    and owns everything they launched.

    Components hand back a StartResult per start call; the cluster aggregates
    their handles and directories, writes the PID map, and is the single place
    that waits on or stops the replicas.
    """

    def __init__(
        self,
        config: ClusterConfig,
        working_dirs: Optional[WorkingDirs] = None,
        metasrv_binary: str = settings.METASRV_BINARY,
        frontend_binary: str = settings.FRONTEND_BINARY,
        wait_frontend: bool = True,
        ctx: Optional[RunContext] = None,
    ) -> None:
        self.config = config
        self.working_dirs = working_dirs or WorkingDirs.for_cluster(config.name)
        self.metasrv_binary = metasrv_binary
        self.frontend_binary = frontend_binary
        self.wait_frontend = wait_frontend
        self.ctx = ctx or RunContext()

        self.metasrv = MetaSrv(config.meta, self.working_dirs, use_memory_meta=config.use_memory_meta)
        self.frontend = Frontend(config.frontend, config.meta.server_addr, self.working_dirs)
        self.results: Dict[str, StartResult] = {}

    @property
    def pid_map_path(self) -> Path:
        return self.working_dirs.pids_dir / settings.PID_MAP_FILE_NAME

    def components(self) -> List[ClusterComponent]:
        return [self.metasrv, self.frontend]

    def handles(self) -> List[ProcessHandle]:
        return [h for result in self.results.values() for h in result.handles]

    def allocated_dirs(self) -> List[Path]:
        return [d for result in self.results.values() for d in result.dirs.all()]

    def _record(self, component: ClusterComponent) -> None:
        # A failed start still leaves the replicas it launched on the component.
        if component.last_start is not None:
            self.results[component.name()] = component.last_start
        persistence.write_pid_map(self.pid_map_path, {h.name: h.pid for h in self.handles() if h.is_alive()})

    def start(self) -> None:
        """
        Starts metasrv, waits for it, then starts the frontend.

        Any error propagates after everything launched so far has been recorded,
        so `stop()` can still tear it down.
        """
        log.info("=" * 20 + f" Starting cluster '{self.config.name}' " + "=" * 20)
        start_time = time.time()
        for component, binary in ((self.metasrv, self.metasrv_binary), (self.frontend, self.frontend_binary)):
            try:
                component.start(self.ctx, binary)
                if component is self.frontend and self.wait_frontend:
                    component.wait_until_running(self.ctx)
            finally:
                self._record(component)
            log.info(f"Component '{component.name()}' is up with {component.config.replicas} replicas.")

        log.info(f"Cluster '{self.config.name}' started in {time.time() - start_time:.2f} seconds.")

    def status(self) -> Dict[str, HealthStatus]:
        return {component.name(): component.check_health(self.ctx) for component in self.components()}

    def replica_processes(self) -> Dict[str, str]:
        """
        Reports the process state of every replica listed in the PID map, or in the
        per-replica pid files when no map is left.

        Works from any process, including one that did not start the cluster.

        :return: Replica names mapped to 'running', 'zombie', 'stopped' or 'unknown'.
        """
        pid_info = persistence.get_pid_info(self.pid_map_path) or self._replica_pid_files()
        states: Dict[str, str] = {}
        for name, pid in sorted(pid_info.items()):
            if not process_utils.pid_exists(pid):
                states[name] = "stopped"
                continue
            try:
                states[name] = process_utils.get_proc_status_string(process_utils.get_process_from_pid(pid))
            except psutil.NoSuchProcess:
                states[name] = "stopped"
        return states

    def _replica_pid_files(self) -> Dict[str, int]:
        """Collects `<pids_dir>/<replica>/pid` for runs that left no PID map behind."""
        pids: Dict[str, int] = {}
        if not self.working_dirs.pids_dir.is_dir():
            return pids
        for replica_dir in sorted(self.working_dirs.pids_dir.iterdir()):
            pid = persistence.read_pid_file(replica_dir / persistence.PID_FILE_NAME) if replica_dir.is_dir() else None
            if pid is not None:
                pids[replica_dir.name] = pid
        return pids

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Blocks until every launched replica has exited.

        :param timeout: Overall seconds to wait, or None to wait forever.
        :return: True if all replicas exited, False on timeout.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        for handle in self.handles():
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            if handle.wait(remaining) is None:
                return False
        return True

    def stop(self, timeout: float = settings.GRACEFUL_SHUTDOWN_TIMEOUT) -> None:
        """Cancels the run context and shuts every replica down, killing stragglers."""
        self.ctx.cancel("cluster stopped")
        procs = shutdown.identify_processes_to_stop(self.handles())
        if procs:
            log.info(f"Initiating graceful shutdown for {len(procs)} total processes...")
            shutdown.graceful_shutdown_sequence(procs, timeout)
        else:
            log.info("No running cluster processes found to stop.")

        # Replicas psutil could not see are stopped through their own handle.
        for handle in self.handles():
            if handle.is_alive():
                handle.stop(timeout)
        self.wait(timeout)
        persistence.remove_pid_map(self.pid_map_path)
        log.info(f"Cluster '{self.config.name}' stopped.")

    def cleanup_dirs(self) -> None:
        """Removes every directory allocated for the replicas."""
        for path in self.allocated_dirs():
            shutil.rmtree(path, ignore_errors=True)
            log.debug(f"Removed '{path}'.")
