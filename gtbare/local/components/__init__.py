"""
The cluster components that run as local processes.

Each role implements the ClusterComponent contract: it knows its name, how to
build the command line of one replica, how to start all of its replicas, and
how to tell whether they are healthy.
"""
from .base import (
    AllocatedDirs,
    ClusterComponent,
    HealthStatus,
    StartResult,
    format_addr_arg,
    generate_addr_arg,
    join_host_port,
    split_host_port,
)
from .frontend import Frontend
from .metasrv import MetaSrv

__all__ = [
    'AllocatedDirs', 'ClusterComponent', 'Frontend', 'HealthStatus', 'MetaSrv', 'StartResult',
    'format_addr_arg', 'generate_addr_arg', 'join_host_port', 'split_host_port',
]
