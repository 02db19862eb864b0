import yaml
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from gtbare import settings
from gtbare.local.errors import ConfigError

log = logging.getLogger(__name__)


class WorkingDirs:
    """Root directories under which per-replica log and pid directories are created."""

    def __init__(self, logs_dir: Union[str, Path], pids_dir: Union[str, Path]) -> None:
        self.logs_dir = Path(logs_dir)
        self.pids_dir = Path(pids_dir)

    @classmethod
    def for_cluster(cls, cluster_name: str, home: Optional[Path] = None) -> "WorkingDirs":
        """Resolves ``<home>/<cluster>/logs`` and ``<home>/<cluster>/pids``."""
        base = Path(home or settings.GTBARE_HOME) / cluster_name
        return cls(base / "logs", base / "pids")

    def __repr__(self) -> str:
        return f"WorkingDirs(logs_dir={str(self.logs_dir)!r}, pids_dir={str(self.pids_dir)!r})"


class _RoleConfig:
    """
    Settings for one cluster role. Instances are read-only once built.

    `FIELDS` maps the camelCase keys of the cluster file to attribute names.
    """
    FIELDS: Dict[str, str] = {}
    DEFAULTS: Dict[str, Any] = {}

    def __init__(self, **values: Any) -> None:
        unknown = set(values) - set(self.FIELDS.values())
        if unknown:
            raise ConfigError(f"{self.__class__.__name__}: unknown settings {sorted(unknown)}")
        # A key left empty in the cluster file falls back to the role default.
        merged = {**self.DEFAULTS, **{attr: value for attr, value in values.items() if value is not None}}
        for attr in self.FIELDS.values():
            object.__setattr__(self, attr, merged.get(attr, ""))
        self._validate()

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"{self.__class__.__name__} is read-only")

    def _validate(self) -> None:
        if not isinstance(self.replicas, int) or isinstance(self.replicas, bool) or self.replicas < 0:
            raise ConfigError(f"{self.__class__.__name__}: replicas must be a non-negative integer, got {self.replicas!r}")
        for key, attr in self.FIELDS.items():
            if attr != "replicas" and not isinstance(getattr(self, attr), str):
                raise ConfigError(f"{self.__class__.__name__}: '{key}' must be a string, got {getattr(self, attr)!r}")

    @classmethod
    def from_dict(cls, section: Optional[Dict[str, Any]], section_name: str) -> "_RoleConfig":
        values: Dict[str, Any] = {}
        for key, value in (section or {}).items():
            attr = cls.FIELDS.get(key)
            if attr is None:
                log.warning(f"Unknown key '{section_name}.{key}' in cluster config. Ignoring.")
                continue
            values[attr] = value
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return {key: getattr(self, attr) for key, attr in self.FIELDS.items()}

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.to_dict()!r})"


class MetaSrvConfig(_RoleConfig):
    FIELDS = {
        "replicas": "replicas",
        "storeAddr": "store_addr",
        "serverAddr": "server_addr",
        "httpAddr": "http_addr",
        "bindAddr": "bind_addr",
        "logLevel": "log_level",
        "config": "config",
    }
    DEFAULTS = {
        "replicas": 1,
        "store_addr": "127.0.0.1:2379",
        "server_addr": "0.0.0.0:3002",
        "http_addr": "127.0.0.1:14001",
    }


class FrontendConfig(_RoleConfig):
    FIELDS = {
        "replicas": "replicas",
        "httpAddr": "http_addr",
        "grpcAddr": "grpc_addr",
        "mysqlAddr": "mysql_addr",
        "postgresAddr": "postgres_addr",
        "logLevel": "log_level",
        "config": "config",
        "userProvider": "user_provider",
    }
    DEFAULTS = {
        "replicas": 1,
        "http_addr": "127.0.0.1:4000",
        "grpc_addr": "127.0.0.1:4001",
        "mysql_addr": "127.0.0.1:4002",
        "postgres_addr": "127.0.0.1:4003",
    }


class ClusterConfig:
    """The whole local cluster: its name and the settings of each role."""

    def __init__(self, name: str, meta: MetaSrvConfig, frontend: FrontendConfig, use_memory_meta: bool = False) -> None:
        self.name = name
        self.meta = meta
        self.frontend = frontend
        self.use_memory_meta = use_memory_meta

    @classmethod
    def default(cls) -> "ClusterConfig":
        """A single-replica cluster on localhost with an in-memory metadata store."""
        return cls(settings.DEFAULT_CLUSTER_NAME, MetaSrvConfig(), FrontendConfig(), use_memory_meta=True)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClusterConfig":
        if not isinstance(data, dict):
            raise ConfigError("Cluster config must be a mapping.")
        cluster = data.get("cluster", data)
        if not isinstance(cluster, dict):
            raise ConfigError("'cluster' must be a mapping.")

        use_memory_meta = cluster.get("useMemoryMeta", False)
        if not isinstance(use_memory_meta, bool):
            raise ConfigError(f"'useMemoryMeta' must be a boolean, got {use_memory_meta!r}")

        return cls(
            name=str(cluster.get("name") or settings.DEFAULT_CLUSTER_NAME),
            meta=MetaSrvConfig.from_dict(cluster.get("meta"), "meta"),
            frontend=FrontendConfig.from_dict(cluster.get("frontend"), "frontend"),
            use_memory_meta=use_memory_meta,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cluster": {
                "name": self.name,
                "useMemoryMeta": self.use_memory_meta,
                "meta": self.meta.to_dict(),
                "frontend": self.frontend.to_dict(),
            }
        }


def load_cluster_config(path: Optional[Union[str, Path]] = None) -> ClusterConfig:
    """
    Loads a cluster definition from a YAML file.

    :param path: The YAML file. When None, the built-in default cluster is returned.
    :return: The parsed ClusterConfig.
    :raises ConfigError: If the file cannot be read, is not valid YAML, or holds invalid settings.
    """
    if path is None:
        log.debug("No cluster config given. Using the default cluster.")
        return ClusterConfig.default()

    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Failed to read cluster config '{path}': {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse cluster config '{path}': {e}") from e

    log.info(f"Loaded cluster config from '{path}'.")
    return ClusterConfig.from_dict(data or {})
