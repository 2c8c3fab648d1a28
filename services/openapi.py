"""OpenAPI v2 document retrieval from the upstream."""

import httpx

from core.document import CachedDocument, OpenAPIDocument, parse_document
from core.exceptions import GatewayError, StartupFetchFailure
from core.protocols import RequestLogger
from services.upstream import UpstreamClient


class OpenAPIAggregator:
    """Fetch and validate the upstream's Swagger document, or serve a cached copy."""

    def __init__(
        self,
        upstream: UpstreamClient,
        logger: RequestLogger,
        discovery_path: str = "/openapi/v2",
        cached: CachedDocument | None = None,
    ) -> None:
        self._upstream = upstream
        self._logger = logger
        self._discovery_path = discovery_path
        self._cached = cached

    @property
    def cached(self) -> CachedDocument | None:
        return self._cached

    async def fetch_document(self) -> OpenAPIDocument:
        """GET the discovery path and parse the reply. Fetched fresh on every call."""
        response = await self._upstream.get(self._discovery_path)
        document = parse_document(response.content)
        self._logger.log_document(self._discovery_path, len(document.paths), cached=False)
        return document

    async def document_body(self) -> bytes:
        """Bytes to serve: the cached copy verbatim, otherwise a fresh fetch."""
        if self._cached is not None:
            self._logger.log_document("startup cache", len(self._cached.document.paths), cached=True)
            return self._cached.body
        document = await self.fetch_document()
        return document.to_json()


async def fetch_startup_document(
    client: httpx.AsyncClient,
    url: httpx.URL | str,
) -> CachedDocument:
    """Fetch the document once before serving; any failure is fatal."""
    try:
        response = await client.get(url, headers={"Accept": "application/json"})
        response.raise_for_status()
    except httpx.HTTPError as e:
        raise StartupFetchFailure(f"Failed to fetch OpenAPI document from {url}: {e}") from e

    try:
        document = parse_document(response.content)
    except GatewayError as e:
        raise StartupFetchFailure(f"Invalid OpenAPI document from {url}: {e}") from e
    return CachedDocument(body=response.content, document=document)
