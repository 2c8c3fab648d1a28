"""Real-time CLI dashboard for gateway monitoring."""

from datetime import datetime
from threading import Lock

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.config import Config
from ui.log_utils import write_cli_log

console = Console()

STATUS_STYLES = {2: "green", 3: "cyan", 4: "yellow", 5: "red"}


class RequestInfo:
    """Info about a single forwarded request."""

    def __init__(self, method: str, path: str, status: int, elapsed_ms: float, timestamp: datetime):
        self.method = method
        self.path = path[:80] + "..." if len(path) > 80 else path
        self.status = status
        self.elapsed_ms = elapsed_ms
        self.timestamp = timestamp


class ServedDocument:
    """Last OpenAPI document served."""

    def __init__(self, source: str, path_count: int, cached: bool, timestamp: datetime):
        self.source = source
        self.path_count = path_count
        self.cached = cached
        self.timestamp = timestamp


class Dashboard:
    """Real-time dashboard showing forwarded traffic and document fetches."""

    def __init__(self, config: Config, upstream: str = ""):
        self.config = config
        self.upstream = upstream
        self._lock = Lock()
        self._recent: list[RequestInfo] = []
        self._max_recent = 12
        self._status_count = {2: 0, 3: 0, 4: 0, 5: 0}
        self._document: ServedDocument | None = None
        self._document_count = 0
        self._errors: list[str] = []
        self._live: Live | None = None

    def start(self) -> "Dashboard":
        """Start the live dashboard."""
        self._live = Live(
            self._build_layout(),
            console=console,
            refresh_per_second=4,
            screen=False,
        )
        self._live.start()
        return self

    def stop(self) -> None:
        """Stop the live dashboard."""
        if self._live:
            self._live.stop()

    def log_forward(self, method: str, path: str, status: int, elapsed_ms: float) -> None:
        """Log a request relayed to the upstream."""
        with self._lock:
            status_class = status // 100
            if status_class in self._status_count:
                self._status_count[status_class] += 1
            self._recent.insert(0, RequestInfo(method, path, status, elapsed_ms, datetime.now()))
            self._recent = self._recent[: self._max_recent]
            self._refresh()
            write_cli_log("FORWARD", f"{method} {path}", status=status, ms=f"{elapsed_ms:.1f}")

    def log_document(self, source: str, path_count: int, *, cached: bool) -> None:
        """Log an OpenAPI document being served."""
        with self._lock:
            self._document_count += 1
            self._document = ServedDocument(source, path_count, cached, datetime.now())
            self._refresh()
            write_cli_log("OPENAPI", source, paths=path_count, cached=cached)

    def log_error(self, route: str, status: int, message: str) -> None:
        """Log an error."""
        with self._lock:
            truncated = message[:50] + "..." if len(message) > 50 else message
            self._errors.insert(0, f"{route} {status}: {truncated}")
            self._errors = self._errors[:3]
            self._refresh()
            write_cli_log("ERROR", message[:200], route=route, status=status)

    def _refresh(self) -> None:
        """Refresh the display."""
        if self._live:
            self._live.update(self._build_layout())

    def _build_layout(self) -> Layout:
        """Build the dashboard layout."""
        layout = Layout()

        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="body"),
            Layout(name="footer", size=5),
        )

        layout["body"].split_row(
            Layout(name="requests", ratio=3),
            Layout(name="document", ratio=1),
        )

        layout["header"].update(self._build_header())
        layout["requests"].update(self._build_requests_panel())
        layout["document"].update(self._build_document_panel())
        layout["footer"].update(self._build_footer())

        return layout

    def _build_header(self) -> Panel:
        """Build header with stats."""
        stats = Text()
        stats.append("Kubernetes API Gateway", style="bold cyan")
        for status_class, count in self._status_count.items():
            stats.append("  |  ")
            stats.append(f"{status_class}xx: {count}", style=STATUS_STYLES[status_class])
        stats.append("  |  ")
        stats.append(f"Port: {self.config.proxy.port}", style="dim")

        return Panel(stats, style="cyan")

    def _build_requests_panel(self) -> Panel:
        """Build recent requests panel."""
        if self._recent:
            table = Table(show_header=True, header_style="bold", expand=True, box=None)
            table.add_column("Time", style="dim", width=8)
            table.add_column("Method", width=7)
            table.add_column("Status", width=6)
            table.add_column("ms", width=8, justify="right")
            table.add_column("Path", ratio=1)

            for info in self._recent:
                style = STATUS_STYLES.get(info.status // 100, "white")
                table.add_row(
                    info.timestamp.strftime("%H:%M:%S"),
                    info.method,
                    f"[{style}]{info.status}[/{style}]",
                    f"{info.elapsed_ms:.1f}",
                    Text(info.path),
                )

            content = table
        else:
            content = Text("Waiting for requests...", style="dim")

        return Panel(content, title="[blue]Forwarded[/blue]", border_style="blue")

    def _build_document_panel(self) -> Panel:
        """Build OpenAPI document panel."""
        if self._document:
            content = Table.grid(padding=(0, 1))
            content.add_column()
            content.add_column()

            content.add_row("[bold]Source:[/bold]", Text(self._document.source))
            content.add_row("[bold]Paths:[/bold]", str(self._document.path_count))
            content.add_row("[bold]Cached:[/bold]", "yes" if self._document.cached else "no")
            content.add_row("[bold]Served:[/bold]", str(self._document_count))
            content.add_row(
                "[bold]Time:[/bold]",
                self._document.timestamp.strftime("%H:%M:%S"),
            )
        else:
            content = Text("Not requested yet...", style="dim")

        return Panel(content, title="[magenta]OpenAPI[/magenta]", border_style="magenta")

    def _build_footer(self) -> Panel:
        """Build footer with errors and help."""
        if self._errors:
            error_text = Text()
            for err in self._errors:
                error_text.append("! ", style="red bold")
                error_text.append(err + "\n", style="red")
            content = error_text
        else:
            base = f"http://{self.config.proxy.host}:{self.config.proxy.port}"
            content = Text(
                f"Upstream {self.upstream or '?'}\n"
                f"Swagger UI at {base}{self.config.openapi.docs_path or ''}",
                style="dim",
            )

        return Panel(content, title="[dim]Status[/dim]", border_style="dim")
