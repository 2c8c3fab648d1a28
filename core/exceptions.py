"""Custom exception hierarchy for the API gateway."""


class GatewayError(Exception):
    """Base exception for all gateway errors."""


class ConfigurationError(GatewayError):
    """Raised when configuration or upstream credentials are missing or invalid."""


class UpstreamError(GatewayError):
    """Raised when talking to the upstream fails.

    Attributes:
        message: Error message
        path: Upstream path that was requested (optional)
    """

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class UpstreamUnreachable(UpstreamError):
    """The outbound request could not be built, sent, or timed out."""


class UpstreamBodyUnreadable(UpstreamError):
    """A response arrived but its body could not be read in full."""


class MalformedDocument(GatewayError):
    """The discovery endpoint returned something that is not an OpenAPI v2 document."""


class StartupFetchFailure(GatewayError):
    """The OpenAPI document could not be fetched before serving; fatal."""
