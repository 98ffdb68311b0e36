"""
Durable-execution backend connection.
"""

import logging
from pathlib import Path
from typing import Optional

from temporalio.client import Client
from temporalio.service import TLSConfig

from .config import TemporalConfig
from .exceptions import ConfigError

logger = logging.getLogger("lifecycle.temporal")


def _read_pem(inline: Optional[str], path: Optional[str], what: str) -> bytes:
    if inline:
        return inline.encode()
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise ConfigError(f"Cannot read {what} {path}: {e}") from e


def build_tls_config(config: TemporalConfig) -> Optional[TLSConfig]:
    """mTLS settings, or None when no client certificate is configured."""
    if not config.tls_enabled:
        return None
    return TLSConfig(
        client_cert=_read_pem(config.cert_pem, config.cert_file, "client certificate"),
        client_private_key=_read_pem(config.key_pem, config.key_file, "client key"),
    )


async def connect(config: TemporalConfig) -> Client:
    """Connect to the backend using the configured namespace and mTLS."""
    tls = build_tls_config(config)
    logger.info(
        f"Connecting to {config.host_port} namespace={config.namespace} "
        f"tls={'on' if tls else 'off'}"
    )
    return await Client.connect(
        config.host_port,
        namespace=config.namespace,
        tls=tls or False,
    )
