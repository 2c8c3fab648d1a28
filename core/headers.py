"""Header construction for both legs of a forwarded request."""

from core.request_types import RawHeaders

# Re-framed by the HTTP client / server because the body is buffered
FRAMING_HEADERS = frozenset({b"host", b"content-length", b"transfer-encoding", b"trailer"})

HOP_BY_HOP_HEADERS = frozenset(
    {
        b"connection",
        b"keep-alive",
        b"proxy-authenticate",
        b"proxy-authorization",
        b"proxy-connection",
        b"te",
        b"trailer",
        b"transfer-encoding",
        b"upgrade",
    }
)


class HeaderBuilder:
    """Copy header multimaps between the inbound, outbound and reply legs."""

    def __init__(self, strip_hop_by_hop: bool = False) -> None:
        self.strip_hop_by_hop = strip_hop_by_hop

    def build_upstream_headers(self, headers: RawHeaders) -> RawHeaders:
        """Copy every inbound header except the ones httpx must recompute."""
        dropped = FRAMING_HEADERS | self._hop_by_hop(headers)
        return [(key, value) for key, value in headers if key.lower() not in dropped]

    def build_downstream_headers(
        self, headers: RawHeaders, body: bytes, status_code: int
    ) -> RawHeaders:
        """Copy every upstream header, adding Content-Length only if unframed."""
        dropped = self._hop_by_hop(headers)
        reply = [(key, value) for key, value in headers if key.lower() not in dropped]
        if status_code < 200 or status_code in (204, 304):
            return reply
        names = {key.lower() for key, _ in reply}
        if b"content-length" not in names and b"transfer-encoding" not in names:
            reply.append((b"content-length", str(len(body)).encode("latin-1")))
        return reply

    def _hop_by_hop(self, headers: RawHeaders) -> frozenset[bytes]:
        if not self.strip_hop_by_hop:
            return frozenset()
        named = set(HOP_BY_HOP_HEADERS)
        for key, value in headers:
            if key.lower() == b"connection":
                named.update(
                    token.strip().lower() for token in value.split(b",") if token.strip()
                )
        return frozenset(named)
