import logging
from typing import List, Optional
from gtbare import settings
from gtbare.local.config import MetaSrvConfig, WorkingDirs
from gtbare.local.components.base import ClusterComponent, StartResult, generate_addr_arg
from gtbare.local.supervisor.context import RunContext

log = logging.getLogger(__name__)


class MetaSrv(ClusterComponent):
    """The metadata server. `start` blocks until every replica reports healthy."""

    def __init__(self, config: MetaSrvConfig, working_dirs: WorkingDirs, use_memory_meta: bool = False) -> None:
        super().__init__(config, working_dirs)
        self.use_memory_meta = use_memory_meta

    def name(self) -> str:
        return "metasrv"

    def bind_addr(self) -> str:
        return self.config.bind_addr or settings.DEFAULT_METASRV_BIND_ADDR

    def replica_args(self, replica_index: int) -> List[str]:
        return self.build_args(replica_index, self.bind_addr())

    def start(self, ctx: RunContext, binary: str) -> StartResult:
        result = super().start(ctx, binary)
        self.wait_until_running(ctx)
        return result

    def build_args(self, replica_index: int, bind_addr: Optional[str] = None) -> List[str]:
        args = [
            f"--log-level={self.log_level()}",
            self.name(), "start",
            f"--store-addr={self.config.store_addr}",
            f"--server-addr={self.config.server_addr}",
        ]
        args = generate_addr_arg("--http-addr", self.config.http_addr, replica_index, args)
        args = generate_addr_arg("--bind-addr", bind_addr or self.bind_addr(), replica_index, args)

        if self.use_memory_meta:
            args = generate_addr_arg("--use-memory-store", "true", replica_index, args)

        if self.config.config:
            args.append(f"-c={self.config.config}")

        return args
