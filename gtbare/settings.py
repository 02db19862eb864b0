"""
This module contains the configuration defaults for gtbare.
It defines working paths, process supervision timings, and the defaults used
when building command-line arguments for the cluster binaries.
"""

import os
import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=True)

#* --- Core Paths ---
GTBARE_HOME = pathlib.Path(os.getenv("GTBARE_HOME", str(pathlib.Path.home() / ".gtbare"))).expanduser()
LOG_FILE_PATH = GTBARE_HOME / "gtbare.log"
LOG_FILE_ENABLED = os.getenv("GTBARE_LOG_FILE_ENABLED", "False").lower() in ('true', '1', 't')
PID_MAP_FILE_NAME = "cluster.pid.json"

#* --- Cluster Defaults ---
DEFAULT_CLUSTER_NAME = os.getenv("GTBARE_CLUSTER_NAME", "mycluster")
DEFAULT_LOG_LEVEL = "info"
DEFAULT_METASRV_BIND_ADDR = "127.0.0.1:3002"

#* --- External Binaries ---
# Both roles ship in the same binary by default; the subcommand selects the role.
METASRV_BINARY = os.getenv("GTBARE_METASRV_BINARY", "greptime")
FRONTEND_BINARY = os.getenv("GTBARE_FRONTEND_BINARY", "greptime")

#* --- Supervisor Settings ---
HEALTH_CHECK_INTERVAL = 0.5    # seconds between readiness polls
HEALTH_REQUEST_TIMEOUT = float(os.getenv("GTBARE_HEALTH_REQUEST_TIMEOUT", "1"))  # seconds
GRACEFUL_SHUTDOWN_TIMEOUT = 10  # seconds before force-killing
WATCHER_POLL_INTERVAL = 0.2     # seconds
KEEP_ALL_DATA = os.getenv("GTBARE_KEEP_ALL_DATA", "False").lower() in ('true', '1', 't')

#* --- Application variables ---
VERBOSE_LOGGING = False
