"""Shared request data types."""

from dataclasses import dataclass

import httpx

RawHeaders = list[tuple[bytes, bytes]]


@dataclass(frozen=True)
class UpstreamTarget:
    """The single upstream every request is forwarded to."""

    base_url: httpx.URL
    client: httpx.AsyncClient


@dataclass(frozen=True)
class InboundRequest:
    """A caller's request as received by the gateway.

    ``target`` is the raw request target (path plus ``?query``) exactly as the
    caller sent it. ``body`` is ``None`` when the caller sent no body at all.
    """

    method: str
    target: bytes
    headers: RawHeaders
    body: bytes | None = None

    @property
    def content_type(self) -> str | None:
        for key, value in self.headers:
            if key.lower() == b"content-type":
                return value.decode("latin-1")
        return None


@dataclass(frozen=True)
class OutboundRequest:
    """The request sent upstream, derived 1:1 from an InboundRequest.

    ``url`` selects the connection; ``target`` is the exact request-target
    written on the wire, which ``url`` may only approximate.
    """

    method: str
    url: httpx.URL
    target: bytes
    headers: RawHeaders
    body: bytes | None


@dataclass(frozen=True)
class UpstreamResponse:
    """Upstream reply, fully read. ``body`` is the undecoded wire payload."""

    status_code: int
    headers: RawHeaders
    body: bytes
