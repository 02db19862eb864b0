"""Tests for launching and watching replica processes."""

import sys
import time

import psutil
import pytest

from gtbare.local.errors import ProcessStartError
from gtbare.local.supervisor import persistence, shutdown
from gtbare.local.supervisor.context import RunContext
from gtbare.local.supervisor.process_utils import RunOptions, run_binary

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")


def options(tmp_path, args, name="metasrv.0"):
    return RunOptions(sys.executable, name, tmp_path / "logs" / name, tmp_path / "pids" / name, args)


def test_run_binary_writes_pid_and_log(tmp_path, ctx, child_script):
    script = child_script("""
        print("hello from replica", flush=True)
    """)

    handle = run_binary(ctx, options(tmp_path, script))

    assert handle.wait(10) == 0
    assert persistence.read_pid_file(tmp_path / "pids" / "metasrv.0" / "pid") == handle.pid
    assert "hello from replica" in (tmp_path / "logs" / "metasrv.0" / "log").read_text()
    assert not ctx.cancelled()


def test_child_runs_in_its_log_dir(tmp_path, ctx, child_script):
    script = child_script("""
        import os
        print("cwd=" + os.getcwd(), flush=True)
    """)

    handle = run_binary(ctx, options(tmp_path, script))

    assert handle.wait(10) == 0
    log_dir = (tmp_path / "logs" / "metasrv.0").resolve()
    assert f"cwd={log_dir}" in (log_dir / "log").read_text()


def test_failed_child_cancels_the_context(tmp_path, ctx, child_script):
    script = child_script("""
        import sys
        sys.exit(3)
    """)

    handle = run_binary(ctx, options(tmp_path, script, name="frontend.1"))

    assert handle.wait(10) == 3
    assert ctx.wait(5)
    assert ctx.err == "frontend.1 exited with code 3"


def test_cancelling_the_context_terminates_the_child(tmp_path, ctx, child_script):
    script = child_script("""
        import time
        time.sleep(60)
    """)
    handle = run_binary(ctx, options(tmp_path, script))
    assert handle.is_alive()

    ctx.cancel()

    assert handle.wait(15) is not None
    assert not handle.is_alive()
    assert ctx.err == "context canceled"


def test_stopping_a_handle_is_not_a_failure(tmp_path, ctx, child_script):
    script = child_script("""
        import time
        time.sleep(60)
    """)
    handle = run_binary(ctx, options(tmp_path, script))

    assert handle.stop(timeout=5) is not None
    time.sleep(0.5)
    assert not ctx.cancelled()


def test_missing_binary_raises_process_start_error(tmp_path, ctx):
    opts = RunOptions(str(tmp_path / "no-such-binary"), "metasrv.0", tmp_path / "logs", tmp_path / "pids", [])

    with pytest.raises(ProcessStartError, match="metasrv.0") as exc_info:
        run_binary(ctx, opts)

    assert isinstance(exc_info.value.cause, FileNotFoundError)
    assert not (tmp_path / "pids" / "pid").exists()


def test_graceful_shutdown_kills_processes_that_ignore_sigterm(tmp_path, ctx, child_script):
    script = child_script("""
        import signal, time
        signal.signal(signal.SIGTERM, signal.SIG_IGN)
        open("ready", "w").close()
        time.sleep(60)
    """)
    handle = run_binary(ctx, options(tmp_path, script))
    ready = tmp_path / "logs" / "metasrv.0" / "ready"
    deadline = time.monotonic() + 10
    while not ready.exists() and time.monotonic() < deadline:
        time.sleep(0.05)

    procs = shutdown.identify_processes_to_stop([handle])
    assert {p.pid for p in procs} == {handle.pid}

    shutdown.graceful_shutdown_sequence(procs, timeout=0.5)

    assert handle.wait(10) is not None
    assert not psutil.pid_exists(handle.pid) or psutil.Process(handle.pid).status() == psutil.STATUS_ZOMBIE


def test_identify_processes_skips_exited_handles(tmp_path, ctx, child_script):
    handle = run_binary(ctx, options(tmp_path, child_script("pass\n")))
    handle.wait(10)
    assert shutdown.identify_processes_to_stop([handle]) == set()


def test_run_context_timeout_cancels_with_deadline():
    ctx = RunContext.with_timeout(0.1)
    assert ctx.wait(5)
    assert ctx.err == "context deadline exceeded"


def test_run_context_first_cause_wins():
    ctx = RunContext()
    assert ctx.err is None
    assert ctx.wait(0) is False

    ctx.cancel("first")
    ctx.cancel("second")

    assert ctx.cancelled()
    assert ctx.err == "first"
