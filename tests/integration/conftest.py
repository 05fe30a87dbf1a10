"""Integration test fixtures — a real OpenSearch node.

Expects a node to be running, e.g.:
    docker run -d -p 9201:9200 -e discovery.type=single-node \
        -e DISABLE_SECURITY_PLUGIN=true opensearchproject/opensearch:2

Override the address with SEARCHBIND_TEST_OPENSEARCH.
"""

from __future__ import annotations

import os
import time

import pytest
from opensearchpy import OpenSearch


def _wait_for_node(url: str, timeout: float = 60.0) -> bool:
    client = OpenSearch(hosts=[url], timeout=5)
    deadline = time.monotonic() + timeout
    try:
        while time.monotonic() < deadline:
            if client.ping():
                return True
            time.sleep(2)
        return False
    finally:
        client.close()


@pytest.fixture(scope="session")
def opensearch_url() -> str:
    url = os.environ.get("SEARCHBIND_TEST_OPENSEARCH", "http://localhost:9201")
    if not _wait_for_node(url, timeout=10.0):
        pytest.skip(f"OpenSearch not available at {url}")
    return url
