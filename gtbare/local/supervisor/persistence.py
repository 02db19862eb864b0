import json
import logging
from pathlib import Path
from typing import Dict, Mapping, Optional

log = logging.getLogger(__name__)

PID_FILE_NAME = "pid"


def write_pid_file(pid_path: Path, pid: int) -> None:
    """Writes a single replica's PID, as plain text, to `pid_path`."""
    pid_path.write_text(str(pid))

def read_pid_file(pid_path: Path) -> Optional[int]:
    """Reads a replica PID file. Returns None if it is missing or malformed."""
    try:
        return int(pid_path.read_text().strip())
    except (OSError, ValueError):
        return None

def get_pid_info(pid_map_path: Path) -> Optional[Dict[str, int]]:
    """
    Reads the cluster PID map from disk and returns its contents.

    :param pid_map_path: Path to the ``{replica name: pid}`` JSON file.
    :return: A dictionary of PIDs if the file exists and is valid, else None.
    """
    if not pid_map_path.exists():
        return None
    try:
        with pid_map_path.open("r") as f:
            pids = json.load(f)
        if not isinstance(pids, dict):
            pid_map_path.unlink()
            return None
        return pids
    except (json.JSONDecodeError, IOError):
        pid_map_path.unlink(missing_ok=True)
        return None

def write_pid_map(pid_map_path: Path, pids: Mapping[str, int]) -> None:
    """
    Atomically writes the running replica PIDs to the cluster PID map.

    :param pid_map_path: Destination of the JSON file.
    :param pids: Replica names mapped to their PIDs.
    """
    temp_pid_path = pid_map_path.with_suffix(".tmp")
    try:
        with temp_pid_path.open("w") as f:
            json.dump(dict(pids), f, indent=4)
        temp_pid_path.replace(pid_map_path)
    except (IOError, OSError) as e:
        log.error(f"Failed to write PID file: {e}", exc_info=True)
    finally:
        temp_pid_path.unlink(missing_ok=True)

def remove_pid_map(pid_map_path: Path) -> None:
    pid_map_path.unlink(missing_ok=True)
    log.debug(f"Removed PID map '{pid_map_path}'.")
