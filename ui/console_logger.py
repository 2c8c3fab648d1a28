"""Line-oriented request logger for terminals without a live dashboard."""

from rich.console import Console
from rich.markup import escape

from ui.log_utils import write_cli_log

console = Console()


class ConsoleLogger:
    """Print one line per event; same log file as the dashboard."""

    def log_forward(self, method: str, path: str, status: int, elapsed_ms: float) -> None:
        style = "green" if status < 400 else "yellow" if status < 500 else "red"
        console.print(f"[{style}]{status}[/{style}] {method} {escape(path)} [dim]{elapsed_ms:.1f}ms[/dim]")
        write_cli_log("FORWARD", f"{method} {path}", status=status, ms=f"{elapsed_ms:.1f}")

    def log_document(self, source: str, path_count: int, *, cached: bool) -> None:
        origin = "cache" if cached else "upstream"
        console.print(f"[magenta]OpenAPI[/magenta] {path_count} paths from {origin} [dim]{escape(source)}[/dim]")
        write_cli_log("OPENAPI", source, paths=path_count, cached=cached)

    def log_error(self, route: str, status: int, message: str) -> None:
        console.print(f"[red][ERROR][/red] {escape(route)} {status}: {escape(message)}")
        write_cli_log("ERROR", message[:200], route=route, status=status)
