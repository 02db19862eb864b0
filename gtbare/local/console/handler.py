import logging
import setproctitle
from typing import List, Optional, Tuple
from gtbare import settings
from gtbare.local.cluster import BareMetalCluster
from gtbare.local.config import ClusterConfig, load_cluster_config
from gtbare.local.errors import ConfigError
from gtbare.local.supervisor.context import DEADLINE_EXCEEDED, RunContext

log = logging.getLogger(__name__)

USAGE = """
--- gtbare: run a database cluster as local processes ---
  start [--config FILE] [--binary PATH] [--keep] [--timeout SECONDS]
                      Start metasrv and frontend, block until Ctrl-C, a replica fails
                      or the timeout elapses.
  check-config [--config FILE]
                      Validate the cluster file and print each replica's command line.
  status [--config FILE]
                      Probe the health endpoint of every replica.
  help                Show this message.

Add --verbose to any command for debug output.
"""


def _pop_option(args: List[str], flag: str) -> Optional[str]:
    """Removes `flag VALUE` (or `flag=VALUE`) from `args` and returns VALUE."""
    for i, arg in enumerate(args):
        if arg == flag:
            if i + 1 >= len(args):
                raise ConfigError(f"Option '{flag}' requires a value.")
            value = args[i + 1]
            del args[i:i + 2]
            return value
        if arg.startswith(flag + "="):
            del args[i]
            return arg.split("=", 1)[1]
    return None

def _parse_seconds(value: str) -> float:
    try:
        seconds = float(value)
    except ValueError:
        raise ConfigError(f"Option '--timeout' expects seconds, got {value!r}.") from None
    if seconds <= 0:
        raise ConfigError(f"Option '--timeout' must be positive, got {value!r}.")
    return seconds

def _pop_switch(args: List[str], flag: str) -> bool:
    if flag in args:
        args.remove(flag)
        return True
    return False

def _load(args: List[str]) -> Tuple[ClusterConfig, List[str]]:
    config = load_cluster_config(_pop_option(args, "--config"))
    return config, args

def print_help() -> None:
    print(USAGE)

def handle_check_config(args: List[str]) -> bool:
    """Prints the command line of every replica. Returns False if the config is invalid."""
    try:
        config, _ = _load(args)
    except ConfigError as e:
        log.error(f"CONFIG CHECK FAILED: {e}")
        return False

    cluster = BareMetalCluster(config)
    print(f"\n--- Cluster '{config.name}' ---")
    print(f"  logs: {cluster.working_dirs.logs_dir}")
    print(f"  pids: {cluster.working_dirs.pids_dir}")
    for component, binary in ((cluster.metasrv, cluster.metasrv_binary), (cluster.frontend, cluster.frontend_binary)):
        for i in range(component.config.replicas):
            print(f"  {component.name()}.{i}: {binary} {' '.join(component.replica_args(i))}")
    print()
    return True

def display_status(args: List[str]) -> bool:
    """Prints one health line per component. Returns True if every component is healthy."""
    config, _ = _load(args)
    cluster = BareMetalCluster(config)

    all_ok = True
    print(f"\n--- Cluster '{config.name}' status ---")
    for name, status in cluster.status().items():
        if status:
            print(f"  {name:<10} RUNNING")
        else:
            all_ok = False
            where = f" replica {status.replica}" if status.replica is not None else ""
            print(f"  {name:<10} NOT RUNNING{where}: {status.reason}")

    processes = cluster.replica_processes()
    if processes:
        print("--- Replica processes ---")
        for name, state in processes.items():
            print(f"  {name:<12} {state}")
    print()
    return all_ok

def handle_start(args: List[str]) -> bool:
    """
    Starts the cluster and blocks until it is interrupted or a replica dies.

    :return: True if the cluster ran and was stopped on request, False on failure.
    """
    binary = _pop_option(args, "--binary")
    keep = _pop_switch(args, "--keep") or settings.KEEP_ALL_DATA
    timeout = _pop_option(args, "--timeout")
    config, _ = _load(args)
    ctx = RunContext.with_timeout(_parse_seconds(timeout)) if timeout is not None else RunContext()
    setproctitle.setproctitle(f"gtbare - {config.name}")

    cluster = BareMetalCluster(
        config,
        metasrv_binary=binary or settings.METASRV_BINARY,
        frontend_binary=binary or settings.FRONTEND_BINARY,
        ctx=ctx,
    )

    ok = True
    try:
        cluster.start()
        log.info("Cluster is running. Press Ctrl-C to stop.")
        # Only a failing replica or the deadline cancels the context while we are waiting here.
        cluster.ctx.wait()
        if cluster.ctx.err == DEADLINE_EXCEEDED:
            log.info(f"Run time of {timeout}s elapsed. Stopping cluster...")
        else:
            log.error(f"Cluster terminated: {cluster.ctx.err}")
            ok = False
    except KeyboardInterrupt:
        log.warning("Interrupted by user. Stopping cluster...")
    except Exception as e:
        log.critical(f"Cluster failed: {e}", exc_info=True)
        ok = False
    finally:
        cluster.stop()
        if not keep:
            cluster.cleanup_dirs()
    return ok
