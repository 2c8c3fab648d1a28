"""HTTP forwarding to the configured upstream."""

from urllib.parse import quote_from_bytes

import httpx

from core.exceptions import UpstreamBodyUnreadable, UpstreamUnreachable
from core.headers import HeaderBuilder
from core.request_types import (
    InboundRequest,
    OutboundRequest,
    RawHeaders,
    UpstreamResponse,
    UpstreamTarget,
)

HTTPX_DEFAULT_HEADERS = (b"accept", b"accept-encoding", b"connection", b"user-agent")
# Existing escapes and reserved characters stay as sent
URL_SAFE = "/?#[]@!$&'()*+,;=:%~"


class UpstreamClient:
    """Forward requests to the single upstream and read replies in full."""

    def __init__(self, target: UpstreamTarget, header_builder: HeaderBuilder) -> None:
        self._target = target
        self._headers = header_builder

    def upstream_target(self, target: bytes) -> bytes:
        """Request-target on the upstream: base path prefix plus the caller's bytes."""
        prefix = self._target.base_url.raw_path.split(b"?", 1)[0].rstrip(b"/")
        return prefix + target

    def upstream_url(self, target: bytes) -> httpx.URL:
        """Connection URL; characters httpx cannot carry verbatim are percent-encoded."""
        raw_path = quote_from_bytes(self.upstream_target(target), safe=URL_SAFE).encode("ascii")
        return self._target.base_url.copy_with(raw_path=raw_path)

    def build_outbound(self, inbound: InboundRequest) -> OutboundRequest:
        """Swap the authority for the upstream's, keeping path and query bytes as sent."""
        try:
            url = self.upstream_url(inbound.target)
        except httpx.InvalidURL as e:
            raise UpstreamUnreachable(f"Failed to create request: {e}") from e
        return OutboundRequest(
            method=inbound.method,
            url=url,
            target=self.upstream_target(inbound.target),
            headers=self._headers.build_upstream_headers(inbound.headers),
            body=inbound.body,
        )

    async def forward(self, inbound: InboundRequest) -> UpstreamResponse:
        """Send one request upstream and return its undecoded reply."""
        outbound = self.build_outbound(inbound)
        return await self.send(outbound)

    async def send(self, outbound: OutboundRequest) -> UpstreamResponse:
        """Dispatch exactly once; no retries."""
        client = self._target.client
        path = outbound.target.decode("latin-1")
        try:
            req = client.build_request(
                outbound.method,
                outbound.url,
                headers=outbound.headers,
                content=outbound.body,
                # httpcore writes this on the request line instead of the URL's path
                extensions={"target": outbound.target},
            )
            self._drop_client_defaults(req, outbound.headers)
            response = await client.send(req, stream=True)
        except httpx.TimeoutException as e:
            raise UpstreamUnreachable(f"Upstream timeout: {e}", path=path) from e
        except (httpx.RequestError, httpx.InvalidURL) as e:
            raise UpstreamUnreachable(f"Failed to send request: {e}", path=path) from e

        try:
            # Raw bytes: Content-Encoding stays as the upstream sent it
            body = b"".join([chunk async for chunk in response.aiter_raw()])
        except httpx.HTTPError as e:
            raise UpstreamBodyUnreadable(f"Failed to read response: {e}", path=path) from e
        finally:
            await response.aclose()

        return UpstreamResponse(
            status_code=response.status_code,
            headers=list(response.headers.raw),
            body=body,
        )

    @staticmethod
    def _drop_client_defaults(req: httpx.Request, sent: RawHeaders) -> None:
        """Remove httpx's default headers unless the caller sent them too."""
        names = {key.lower() for key, _ in sent}
        for name in HTTPX_DEFAULT_HEADERS:
            if name not in names:
                req.headers.pop(name.decode("ascii"), None)

    async def get(self, path: str) -> httpx.Response:
        """GET a JSON resource on the upstream, raising on transport or status errors."""
        try:
            response = await self._target.client.get(
                self.upstream_url(path.encode("ascii")),
                headers={"Accept": "application/json"},
            )
        except httpx.TimeoutException as e:
            raise UpstreamUnreachable(f"Upstream timeout: {e}", path=path) from e
        except httpx.RequestError as e:
            raise UpstreamUnreachable(f"Upstream connection error: {e}", path=path) from e

        if not response.is_success:
            raise UpstreamUnreachable(
                f"Upstream returned {response.status_code} for {path}: {response.text[:200]}",
                path=path,
            )
        return response
