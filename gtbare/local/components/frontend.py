from typing import List
from gtbare.local.config import FrontendConfig, WorkingDirs
from gtbare.local.components.base import ClusterComponent, generate_addr_arg


class Frontend(ClusterComponent):
    """The query frontend. `start` returns as soon as the replicas are spawned."""

    def __init__(self, config: FrontendConfig, metasrv_addr: str, working_dirs: WorkingDirs) -> None:
        super().__init__(config, working_dirs)
        self.metasrv_addr = metasrv_addr

    def name(self) -> str:
        return "frontend"

    def build_args(self, replica_index: int) -> List[str]:
        args = [
            f"--log-level={self.log_level()}",
            self.name(), "start",
            f"--metasrv-addrs={self.metasrv_addr}",
        ]
        args = generate_addr_arg("--http-addr", self.config.http_addr, replica_index, args)
        args = generate_addr_arg("--rpc-addr", self.config.grpc_addr, replica_index, args)
        args = generate_addr_arg("--mysql-addr", self.config.mysql_addr, replica_index, args)
        args = generate_addr_arg("--postgres-addr", self.config.postgres_addr, replica_index, args)

        if self.config.config:
            args.append(f"-c={self.config.config}")
        if self.config.user_provider:
            args.append(f"--user-provider={self.config.user_provider}")
        return args
