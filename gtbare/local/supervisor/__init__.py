"""
The Supervisor package.
Launches component binaries and manages the lifecycle of the resulting processes.

It holds the cancellation context shared by a cluster run, the process runner
and its per-launch handles, PID persistence, and the shutdown sequence.
"""
from .context import RunContext
from .process_utils import ProcessHandle, RunOptions, run_binary

__all__ = ['ProcessHandle', 'RunContext', 'RunOptions', 'run_binary']
