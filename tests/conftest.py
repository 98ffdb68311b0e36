"""
Shared fixtures for the lifecycle test suite.
"""

import json
import os
import uuid
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio
from temporalio.testing import WorkflowEnvironment

from domain_lifecycle.client import AdminAPIClient
from domain_lifecycle.config import AdminAPIConfig


TEST_SERVER_ENV_VAR = "TEMPORAL_TEST_SERVER_PATH"


@pytest_asyncio.fixture
async def env():
    """
    Time-skipping test server; skipped when it cannot be started.

    The server binary is downloaded on first use. Set
    $TEMPORAL_TEST_SERVER_PATH to a pre-fetched binary on offline hosts.
    """
    try:
        workflow_env = await WorkflowEnvironment.start_time_skipping(
            test_server_existing_path=os.environ.get(TEST_SERVER_ENV_VAR) or None
        )
    except Exception as e:
        pytest.skip(f"Temporal test server unavailable: {e}")
    try:
        yield workflow_env
    finally:
        await workflow_env.shutdown()


@pytest.fixture
def task_queue() -> str:
    return f"test-{uuid.uuid4()}"


class RecordingAPI:
    """
    Scripted Admin API behind an httpx.MockTransport.

    Routes map ``"METHOD /path"`` to a JSON body, an ``(status, body)``
    tuple, or a callable taking the request. Every request is recorded.
    """

    def __init__(self, routes: Optional[Dict[str, Any]] = None):
        self.routes = routes or {}
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = f"{request.method} {request.url.path}"
        if key not in self.routes:
            return httpx.Response(404, json={"error": f"no route {key}"})

        route = self.routes[key]
        if callable(route):
            route = route(request)
        if isinstance(route, httpx.Response):
            return route
        if isinstance(route, tuple):
            status, body = route
        else:
            status, body = 200, route
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    def client(self, batch_size: int = 25, token: Optional[str] = "secret") -> AdminAPIClient:
        config = AdminAPIConfig(host="admin.test", port=8080, token=token)
        return AdminAPIClient(
            config, batch_size=batch_size, transport=httpx.MockTransport(self.handler)
        )

    def last(self) -> httpx.Request:
        return self.requests[-1]

    @staticmethod
    def body(request: httpx.Request) -> Any:
        return json.loads(request.content)


@pytest.fixture
def admin_api() -> Callable[..., RecordingAPI]:
    """Factory for scripted Admin API fakes."""
    return RecordingAPI

