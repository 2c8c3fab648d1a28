"""FastAPI route handlers."""

import time

from fastapi import Request, Response
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.responses import HTMLResponse, JSONResponse
from starlette.types import Receive, Scope, Send

from core.exceptions import GatewayError
from core.request_types import InboundRequest
from ui.log_utils import write_request_log


def _error_response(request: Request, route: str, exc: GatewayError) -> JSONResponse:
    request.app.state.logger.log_error(route, 500, str(exc))
    return JSONResponse({"error": str(exc)}, status_code=500)


async def read_inbound(request: Request) -> InboundRequest:
    """Capture the caller's request without re-encoding its path or query."""
    raw_path = request.scope.get("raw_path") or request.url.path.encode("utf-8")
    # Some servers include the query in raw_path; query_string is authoritative
    target = raw_path.split(b"?", 1)[0]
    query = request.scope.get("query_string", b"")
    if query:
        target += b"?" + query

    headers = list(request.headers.raw)
    has_body = any(key.lower() in (b"content-length", b"transfer-encoding") for key, _ in headers)
    body = await request.body() if has_body else None
    return InboundRequest(method=request.method, target=target, headers=headers, body=body)


async def handle_forward(request: Request) -> Response:
    """Relay any request to the upstream and return its reply unchanged."""
    state = request.app.state
    started = time.perf_counter()
    inbound = await read_inbound(request)
    path = inbound.target.decode("latin-1")

    try:
        upstream = await state.upstream_client.forward(inbound)
    except GatewayError as e:
        return _error_response(request, f"{inbound.method} {path}", e)

    reply = Response(content=upstream.body, status_code=upstream.status_code)
    reply.raw_headers = state.header_builder.build_downstream_headers(
        upstream.headers, upstream.body, upstream.status_code
    )

    elapsed_ms = (time.perf_counter() - started) * 1000
    state.logger.log_forward(inbound.method, path, upstream.status_code, elapsed_ms)
    if state.config.proxy.debug:
        write_request_log(inbound.method, path, inbound.headers, upstream.status_code, elapsed_ms)
    return reply


async def handle_swagger(request: Request) -> Response:
    """Serve the upstream's OpenAPI v2 document."""
    aggregator = request.app.state.aggregator
    try:
        body = await aggregator.document_body()
    except GatewayError as e:
        return _error_response(request, request.url.path, e)
    return Response(content=body, status_code=200, media_type="application/json")


async def handle_docs(request: Request) -> HTMLResponse:
    """Swagger UI page pointed at the document path."""
    config = request.app.state.config
    return get_swagger_ui_html(
        openapi_url=config.openapi.serve_path,
        title="Kubernetes API Gateway - Swagger UI",
    )


class ForwardEndpoint:
    """ASGI endpoint for the catch-all route.

    Starlette restricts plain-function endpoints to GET/HEAD when no methods
    are given; an ASGI callable keeps every method, extension verbs included.
    """

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        response = await handle_forward(Request(scope, receive))
        await response(scope, receive, send)
