import socket
import stat
import sys
import textwrap
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import List

import pytest

from gtbare.local.config import WorkingDirs
from gtbare.local.supervisor.context import RunContext

FAKE_BINARY = """\
#!{python}
import json
import os
import signal
import sys
from http.server import BaseHTTPRequestHandler, HTTPServer

args = sys.argv[1:]
with open("argv.json", "w") as f:
    json.dump(args, f)
print("fake binary started with", " ".join(args), flush=True)

exit_code = os.environ.get("FAKE_BINARY_EXIT_CODE")
if exit_code:
    sys.exit(int(exit_code))

http_addr = next(a.split("=", 1)[1] for a in args if a.startswith("--http-addr="))
host, port = http_addr.rsplit(":", 1)


class Health(BaseHTTPRequestHandler):
    def do_GET(self):
        self.send_response(200 if self.path == "/health" else 404)
        self.end_headers()

    def log_message(self, *args):
        pass


signal.signal(signal.SIGTERM, lambda *_: sys.exit(0))
HTTPServer((host, int(port)), Health).serve_forever()
"""


def free_port_block(count: int) -> int:
    """Returns the first of `count` consecutive ports that are currently free on 127.0.0.1."""
    for _ in range(100):
        with socket.socket() as probe:
            probe.bind(("127.0.0.1", 0))
            base = probe.getsockname()[1]
        if base + count > 65535:
            continue
        socks = []
        try:
            for port in range(base, base + count):
                s = socket.socket()
                socks.append(s)
                s.bind(("127.0.0.1", port))
        except OSError:
            continue
        else:
            return base
        finally:
            for s in socks:
                s.close()
    raise RuntimeError(f"could not find {count} consecutive free ports")


class HealthServer:
    """A local HTTP server answering every GET with a fixed status and recording the paths."""

    def __init__(self, port: int, status: int = 200) -> None:
        self.status = status
        self.paths: List[str] = []
        owner = self

        class Handler(BaseHTTPRequestHandler):
            def do_GET(self):
                owner.paths.append(self.path)
                self.send_response(owner.status)
                self.send_header("Content-Length", "0")
                self.end_headers()

            def log_message(self, *args):
                pass

        self.httpd = ThreadingHTTPServer(("127.0.0.1", port), Handler)
        self.thread = threading.Thread(target=self.httpd.serve_forever, daemon=True)
        self.thread.start()

    def close(self) -> None:
        if not self.thread.is_alive():
            return
        self.httpd.shutdown()
        self.httpd.server_close()


@pytest.fixture
def health_servers():
    """Factory: start one HealthServer per status on consecutive ports. Returns (base_port, servers)."""
    started: List[HealthServer] = []

    def start(*statuses: int):
        base = free_port_block(len(statuses))
        servers = [HealthServer(base + i, status) for i, status in enumerate(statuses)]
        started.extend(servers)
        return base, servers

    yield start
    for server in started:
        server.close()


@pytest.fixture
def working_dirs(tmp_path):
    return WorkingDirs(tmp_path / "logs", tmp_path / "pids")


@pytest.fixture
def ctx():
    context = RunContext()
    yield context
    context.cancel()


@pytest.fixture
def fake_binary(tmp_path):
    """An executable that records its argv and serves /health on its --http-addr until SIGTERM."""
    path = tmp_path / "bin" / "greptime"
    path.parent.mkdir()
    path.write_text(FAKE_BINARY.format(python=sys.executable))
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


@pytest.fixture
def child_script(tmp_path):
    """Factory: write a small Python script and return the argv to run it."""

    def make(body: str) -> List[str]:
        path = tmp_path / "child.py"
        path.write_text(textwrap.dedent(body))
        return [str(path)]

    return make
