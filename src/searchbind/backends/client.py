"""OpenSearch client factory and cluster health."""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime
from typing import Any

from opensearchpy import AsyncOpenSearch
from opensearchpy.exceptions import OpenSearchException
from pydantic import BaseModel, Field

from searchbind.config.settings import OpenSearchSettings
from searchbind.exceptions import ClusterConnectionError, ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_PORT = 9200


class ClusterHealth(BaseModel):
    """Health status of the OpenSearch cluster."""

    status: str = Field(description="Health status: healthy, degraded, unhealthy")
    latency_ms: int = Field(default=0, description="Latency of the health check in ms")
    last_check: str | None = Field(default=None, description="ISO timestamp of the health check")
    message: str | None = Field(default=None, description="Additional health message")


def parse_connect_string(connect_string: str, use_ssl: bool = False) -> list[str]:
    """Parse ``'host1:9200, host2'`` into node URLs. The port defaults to 9200."""
    scheme = "https" if use_ssl else "http"
    hosts: list[str] = []
    for part in connect_string.split(","):
        part = part.strip()
        if not part:
            continue
        host, _, port = part.partition(":")
        if port and not port.isdigit():
            raise ConfigurationError(f"Invalid port in connect string entry '{part}'")
        hosts.append(f"{scheme}://{host}:{port or DEFAULT_PORT}")
    return hosts


def create_client(settings: OpenSearchSettings) -> AsyncOpenSearch:
    """Create an ``AsyncOpenSearch`` client from settings."""
    hosts = settings.hosts or parse_connect_string(settings.connect_string, settings.use_ssl)
    if not hosts:
        hosts = [f"http://localhost:{DEFAULT_PORT}"]

    client_kwargs: dict[str, Any] = {
        "hosts": hosts,
        "verify_certs": settings.verify_certs,
        "ssl_show_warn": False,
    }
    if settings.username and settings.password:
        client_kwargs["http_auth"] = (settings.username, settings.password)
    client_kwargs.update(settings.extra)
    return AsyncOpenSearch(**client_kwargs)


async def verify_connection(client: AsyncOpenSearch) -> dict[str, Any]:
    """Fetch cluster info, raising :class:`ClusterConnectionError` when unreachable."""
    try:
        info = await client.info()
    except OpenSearchException as e:
        raise ClusterConnectionError(f"Failed to connect to OpenSearch: {e}") from e
    version = info.get("version", {}).get("number", "unknown")
    cluster = info.get("cluster_name", "unknown")
    logger.info("Connected to OpenSearch cluster: %s (v%s)", cluster, version)
    return dict(info)


async def cluster_health(client: AsyncOpenSearch) -> ClusterHealth:
    """Map OpenSearch cluster health onto :class:`ClusterHealth`."""
    try:
        start = time.monotonic()
        health = await client.cluster.health()
        latency_ms = int((time.monotonic() - start) * 1000)
    except OpenSearchException as e:
        return ClusterHealth(status="unhealthy", message=str(e))

    status_map = {"green": "healthy", "yellow": "degraded", "red": "unhealthy"}
    return ClusterHealth(
        status=status_map.get(health.get("status", "red"), "unhealthy"),
        latency_ms=latency_ms,
        last_check=datetime.now(UTC).isoformat(),
        message=f"Cluster: {health.get('cluster_name')}, Nodes: {health.get('number_of_nodes')}",
    )
