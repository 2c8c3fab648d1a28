"""Shared protocol definitions."""

from typing import Protocol


class RequestLogger(Protocol):
    """Protocol for request logging (Dashboard or plain console)."""

    def log_forward(
        self,
        method: str,
        path: str,
        status: int,
        elapsed_ms: float,
    ) -> None: ...
    def log_document(self, source: str, path_count: int, *, cached: bool) -> None: ...
    def log_error(self, route: str, status: int, message: str) -> None: ...
