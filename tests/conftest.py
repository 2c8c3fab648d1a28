from typing import Any, Callable

import httpx
import pytest
from fastapi.testclient import TestClient

from app import create_app
from core.config import Config, UpstreamSettings
from core.document import CachedDocument
from core.request_types import UpstreamTarget

UPSTREAM = "https://kube.test:6443"

SWAGGER_DOC = {
    "swagger": "2.0",
    "info": {"title": "Kubernetes", "version": "v1.30.0"},
    "paths": {
        "/api/v1/namespaces": {"get": {"operationId": "listCoreV1Namespace"}},
        "/version/": {"get": {"operationId": "getCodeVersion"}},
    },
    "definitions": {"io.k8s.api.core.v1.Namespace": {"type": "object"}},
}


class FakeLogger:
    """Records RequestLogger calls."""

    def __init__(self):
        self.forwards: list[tuple[str, str, int]] = []
        self.documents: list[tuple[str, int, bool]] = []
        self.errors: list[tuple[str, int, str]] = []

    def log_forward(self, method: str, path: str, status: int, elapsed_ms: float) -> None:
        self.forwards.append((method, path, status))

    def log_document(self, source: str, path_count: int, *, cached: bool) -> None:
        self.documents.append((source, path_count, cached))

    def log_error(self, route: str, status: int, message: str) -> None:
        self.errors.append((route, status, message))


def upstream_response(
    status: int = 200,
    headers: list[tuple[str, str]] | None = None,
    body: bytes = b"",
) -> httpx.Response:
    """Streaming-style response, the shape a real transport hands back."""
    return httpx.Response(status, headers=headers or [], stream=httpx.ByteStream(body))


def make_target(handler: Callable[[httpx.Request], Any], base_url: str = UPSTREAM) -> UpstreamTarget:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=base_url)
    return UpstreamTarget(base_url=httpx.URL(base_url), client=client)


@pytest.fixture
def config() -> Config:
    return Config(upstream=UpstreamSettings(base_url=UPSTREAM))


@pytest.fixture
def logger() -> FakeLogger:
    return FakeLogger()


@pytest.fixture
def gateway(config, logger):
    """Factory: gateway(handler, cached_document=None) -> entered TestClient."""
    clients: list[TestClient] = []

    def _make(
        handler: Callable[[httpx.Request], Any],
        cached_document: CachedDocument | None = None,
    ) -> TestClient:
        app = create_app(config, logger, target=make_target(handler), cached_document=cached_document)
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)
