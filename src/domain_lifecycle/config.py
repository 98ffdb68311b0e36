"""
Lifecycle Configuration

Handles configuration loading, environment overrides and logging setup.
Configuration objects are frozen: they are built once at process start
and passed to the components that need them.
"""

import logging
import logging.config
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .exceptions import ConfigError

logger = logging.getLogger("lifecycle.config")

# Default config locations
DEFAULT_CONFIG_PATHS = [
    Path.home() / ".lifecycle" / "config.yaml",
    Path.home() / ".lifecycle" / "config.yml",
    Path("/etc/lifecycle/config.yaml"),
    Path("lifecycle.yaml"),
]

CONFIG_ENV_VAR = "LIFECYCLE_CONFIG"
LOGGING_CONFIG_PATH = Path("config/logging.yaml")

MAX_BATCH_SIZE = 1000


@dataclass(frozen=True)
class AdminAPIConfig:
    """Admin API connection configuration."""
    host: str = "localhost"
    port: int = 8080
    scheme: str = "http"
    token: Optional[str] = None
    timeout: float = 30.0

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}"


@dataclass(frozen=True)
class TemporalConfig:
    """Durable-execution backend configuration."""
    host_port: str = "localhost:7233"
    namespace: str = "default"
    cert_file: Optional[str] = None
    key_file: Optional[str] = None
    cert_pem: Optional[str] = None  # Inline PEM, takes precedence over cert_file
    key_pem: Optional[str] = None
    task_queue: str = "lifecycle"
    sync_task_queue: str = "sync"

    @property
    def tls_enabled(self) -> bool:
        return bool((self.cert_pem or self.cert_file) and (self.key_pem or self.key_file))


@dataclass(frozen=True)
class LoopConfig:
    """Control-loop tuning."""
    batch_size: int = 25
    concurrency: int = 1

    def __post_init__(self):
        if not 1 <= self.batch_size <= MAX_BATCH_SIZE:
            raise ConfigError(
                f"batch_size must be between 1 and {MAX_BATCH_SIZE}, got {self.batch_size}"
            )
        if self.concurrency < 1:
            raise ConfigError(f"concurrency must be at least 1, got {self.concurrency}")


@dataclass(frozen=True)
class AppConfig:
    """Complete lifecycle configuration."""
    api: AdminAPIConfig = field(default_factory=AdminAPIConfig)
    temporal: TemporalConfig = field(default_factory=TemporalConfig)
    loop: LoopConfig = field(default_factory=LoopConfig)
    source: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: str = None) -> "AppConfig":
        """
        Create config from dictionary.

        Args:
            data: Configuration dictionary
            source: Where the data came from, for display

        Returns:
            AppConfig instance
        """
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a mapping")

        api_data = data.get("api") or {}
        temporal_data = data.get("temporal") or {}
        loop_data = data.get("lifecycle") or {}

        try:
            api = AdminAPIConfig(
                host=api_data.get("host", "localhost"),
                port=int(api_data.get("port", 8080)),
                scheme=api_data.get("scheme", "http"),
                token=_expand(api_data.get("token")),
                timeout=float(api_data.get("timeout", 30)),
            )

            temporal = TemporalConfig(
                host_port=temporal_data.get("host_port", "localhost:7233"),
                namespace=temporal_data.get("namespace", "default"),
                cert_file=_expand_path(temporal_data.get("cert_file")),
                key_file=_expand_path(temporal_data.get("key_file")),
                task_queue=temporal_data.get("task_queue", "lifecycle"),
                sync_task_queue=temporal_data.get("sync_task_queue", "sync"),
            )

            loop = LoopConfig(
                batch_size=int(loop_data.get("batch_size", 25)),
                concurrency=int(loop_data.get("concurrency", 1)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration value: {e}") from e

        return cls(api=api, temporal=temporal, loop=loop, source=source)

    @classmethod
    def from_file(cls, path: Path) -> "AppConfig":
        """
        Load config from YAML file.

        Args:
            path: Path to config file

        Returns:
            AppConfig instance
        """
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        return cls.from_dict(data or {}, source=str(path))

    @classmethod
    def find_and_load(cls, path: Optional[str] = None) -> "AppConfig":
        """
        Load config from an explicit path, $LIFECYCLE_CONFIG or the default
        locations, then apply environment overrides.

        Falls back to defaults when no file exists.
        """
        candidates = []
        if path:
            explicit = Path(path)
            if not explicit.exists():
                raise ConfigError(f"Config file not found: {path}")
            candidates.append(explicit)
        elif os.environ.get(CONFIG_ENV_VAR):
            candidates.append(Path(os.environ[CONFIG_ENV_VAR]))
        candidates.extend(DEFAULT_CONFIG_PATHS)

        for candidate in candidates:
            if candidate.exists():
                logger.debug(f"Loading configuration from {candidate}")
                return cls.from_file(candidate).with_env()

        logger.debug("No configuration file found, using defaults")
        return cls().with_env()

    def with_env(self, environ: Mapping[str, str] = None) -> "AppConfig":
        """
        Return a copy with environment overrides applied.

        Recognized variables: API_HOST, API_PORT, API_TOKEN, TMPIO_HOST_PORT,
        TMPIO_NAME_SPACE, TMPIO_CERT, TMPIO_KEY, TMPIO_QUEUE, TMPIO_SYNC_QUEUE.
        """
        env = os.environ if environ is None else environ

        api_changes = {}
        if env.get("API_HOST"):
            api_changes["host"] = env["API_HOST"]
        if env.get("API_PORT"):
            try:
                api_changes["port"] = int(env["API_PORT"])
            except ValueError as e:
                raise ConfigError(f"API_PORT must be an integer: {env['API_PORT']}") from e
        if env.get("API_TOKEN"):
            api_changes["token"] = env["API_TOKEN"]

        temporal_changes = {}
        if env.get("TMPIO_HOST_PORT"):
            temporal_changes["host_port"] = env["TMPIO_HOST_PORT"]
        if env.get("TMPIO_NAME_SPACE"):
            temporal_changes["namespace"] = env["TMPIO_NAME_SPACE"]
        if env.get("TMPIO_CERT"):
            temporal_changes["cert_pem"] = _unescape_pem(env["TMPIO_CERT"])
        if env.get("TMPIO_KEY"):
            temporal_changes["key_pem"] = _unescape_pem(env["TMPIO_KEY"])
        if env.get("TMPIO_QUEUE"):
            temporal_changes["task_queue"] = env["TMPIO_QUEUE"]
        if env.get("TMPIO_SYNC_QUEUE"):
            temporal_changes["sync_task_queue"] = env["TMPIO_SYNC_QUEUE"]

        return replace(
            self,
            api=replace(self.api, **api_changes),
            temporal=replace(self.temporal, **temporal_changes),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Render the config for display, with secrets masked."""
        return {
            "source": self.source or "(defaults)",
            "api": {
                "base_url": self.api.base_url,
                "token": "***" if self.api.token else None,
                "timeout": self.api.timeout,
            },
            "temporal": {
                "host_port": self.temporal.host_port,
                "namespace": self.temporal.namespace,
                "tls": self.temporal.tls_enabled,
                "task_queue": self.temporal.task_queue,
                "sync_task_queue": self.temporal.sync_task_queue,
            },
            "lifecycle": {
                "batch_size": self.loop.batch_size,
                "concurrency": self.loop.concurrency,
            },
        }


def _expand(value: Optional[str]) -> Optional[str]:
    """Expand environment variables in a value."""
    if value is None:
        return None
    expanded = os.path.expandvars(str(value))
    # Unset variables are left verbatim by expandvars
    return None if expanded.startswith("$") else expanded


def _expand_path(path: Optional[str]) -> Optional[str]:
    """Expand environment variables and ~ in path."""
    if path is None:
        return None
    return os.path.expandvars(os.path.expanduser(path))


def _unescape_pem(value: str) -> str:
    """Env-supplied PEM blocks arrive with literal \\n separators."""
    return value.replace("\\n", "\n")


def setup_logging(level: Optional[int] = None, path: Path = LOGGING_CONFIG_PATH) -> None:
    """Configure logging from YAML file, falling back to basicConfig."""
    if path.exists():
        with open(path, "r") as f:
            log_config = yaml.safe_load(f)
        for handler in log_config.get("handlers", {}).values():
            if "filename" in handler:
                Path(handler["filename"]).parent.mkdir(parents=True, exist_ok=True)
        logging.config.dictConfig(log_config)
    else:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    if level is not None:
        logging.getLogger("lifecycle").setLevel(level)


def create_sample_config() -> str:
    """
    Generate sample configuration YAML.

    Returns:
        Sample config as YAML string
    """
    return """# Domain Lifecycle Configuration
# Copy to ~/.lifecycle/config.yaml

api:
  host: localhost
  port: 8080
  scheme: http
  token: ${API_TOKEN}
  timeout: 30

temporal:
  host_port: localhost:7233
  namespace: default
  # mTLS client certificate (or set TMPIO_CERT / TMPIO_KEY)
  # cert_file: ~/.lifecycle/client.pem
  # key_file: ~/.lifecycle/client.key
  task_queue: lifecycle
  sync_task_queue: sync

lifecycle:
  # Domains fetched per run (1-1000)
  batch_size: 25
  # Domains processed in parallel within a batch (1 = strictly in order)
  concurrency: 1
"""
