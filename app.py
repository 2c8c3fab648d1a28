"""FastAPI application factory."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from api.handlers import ForwardEndpoint, handle_docs, handle_swagger
from auth import build_upstream_target
from core.config import Config
from core.document import CachedDocument
from core.headers import HeaderBuilder
from core.protocols import RequestLogger
from core.request_types import UpstreamTarget
from services.openapi import OpenAPIAggregator
from services.upstream import UpstreamClient


def create_app(
    config: Config,
    logger: RequestLogger,
    *,
    target: UpstreamTarget | None = None,
    cached_document: CachedDocument | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    ``target`` is built from config in the lifespan when not supplied. Either
    way the app owns it from startup and closes its client on shutdown.
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        upstream_target = target or build_upstream_target(config)
        header_builder = HeaderBuilder(strip_hop_by_hop=config.forwarding.strip_hop_by_hop)
        upstream_client = UpstreamClient(upstream_target, header_builder)

        app.state.config = config
        app.state.logger = logger
        app.state.header_builder = header_builder
        app.state.upstream_client = upstream_client
        app.state.aggregator = OpenAPIAggregator(
            upstream_client,
            logger,
            discovery_path=config.openapi.discovery_path,
            cached=cached_document,
        )
        try:
            yield
        finally:
            await upstream_target.client.aclose()

    # FastAPI's own docs would shadow upstream paths
    app = FastAPI(
        title="Kubernetes API Gateway",
        version="0.1.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.add_api_route(
        config.openapi.serve_path,
        handle_swagger,
        methods=["GET"],
        include_in_schema=False,
    )
    if config.openapi.docs_path:
        app.add_api_route(
            config.openapi.docs_path,
            handle_docs,
            methods=["GET"],
            include_in_schema=False,
        )

    # Catch-all last; an ASGI endpoint with methods=None matches any verb
    app.add_route("/{path:path}", ForwardEndpoint(), methods=None, include_in_schema=False)

    return app
