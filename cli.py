"""CLI entry point for kube-api-gateway."""

import asyncio
import sys
from datetime import datetime

import httpx
from rich.console import Console

from app import create_app
from auth import (
    UpstreamCredentials,
    build_upstream_target,
    load_upstream_credentials,
    print_upstream_status,
)
from core.config import Config, config_path, load_config
from core.document import CachedDocument
from core.exceptions import ConfigurationError, GatewayError, StartupFetchFailure
from core.headers import HeaderBuilder
from services.openapi import fetch_startup_document
from services.upstream import UpstreamClient
from ui.console_logger import ConsoleLogger
from ui.dashboard import Dashboard
from ui.log_utils import clear_logs, write_cli_log

console = Console()


def main():
    """Main CLI entry point."""
    config = load_config()
    args = sys.argv[1:]

    if "--help" in args or "-h" in args:
        _print_help()
        return

    if "--config" in args:
        console.print(f"[bold]Config:[/bold] {config_path()}")
        console.print(f"[bold]Kubeconfig:[/bold] {config.upstream.kubeconfig}")
        return

    if "--check" in args:
        sys.exit(0 if _check(config) else 1)

    try:
        creds = load_upstream_credentials(config.upstream)
    except (ConfigurationError, OSError) as e:
        console.print(f"[red][ERROR][/red] {e}")
        console.print(f"[dim]Edit {config_path()} or point upstream.kubeconfig at a valid file[/dim]")
        sys.exit(1)

    cached_document = None
    if config.openapi.cache_at_startup:
        try:
            cached_document = asyncio.run(_fetch_cached_document(config, creds))
        except (StartupFetchFailure, ConfigurationError) as e:
            console.print(f"[red][ERROR][/red] {e}")
            write_cli_log("FATAL", str(e))
            sys.exit(1)
        console.print(
            f"[green]Cached OpenAPI document[/green] "
            f"{cached_document.document.info.title} {cached_document.document.info.version} "
            f"({len(cached_document.document.paths)} paths)"
        )

    clear_logs()
    if "--plain" in args:
        logger = ConsoleLogger()
        dashboard = None
    else:
        dashboard = Dashboard(config, upstream=creds.server)
        logger = dashboard

    try:
        target = build_upstream_target(config, creds)
    except ConfigurationError as e:
        console.print(f"[red][ERROR][/red] {e}")
        sys.exit(1)

    import uvicorn

    app = create_app(config, logger, target=target, cached_document=cached_document)

    uvicorn_config = uvicorn.Config(
        app,
        host=config.proxy.host,
        port=config.proxy.port,
        log_level="warning",
    )
    server = uvicorn.Server(uvicorn_config)

    if dashboard:
        dashboard.start()
    else:
        console.print(f"[bold cyan]Gateway[/bold cyan] {config.proxy.host}:{config.proxy.port} -> {creds.server}")
    start_time = datetime.now()
    write_cli_log("STARTUP", "Gateway started", port=config.proxy.port, upstream=creds.server)
    try:
        server.run()
    finally:
        duration = datetime.now() - start_time
        write_cli_log("SHUTDOWN", "Gateway stopped", duration=str(duration))
        if dashboard:
            dashboard.stop()


async def _fetch_cached_document(config: Config, creds: UpstreamCredentials) -> CachedDocument:
    """Fetch the startup copy from openapi.source_url or the upstream discovery path.

    Runs on its own event loop before the server starts, so it uses a short-lived
    client built from the already resolved credentials.
    """
    if config.openapi.source_url:
        async with httpx.AsyncClient(timeout=config.upstream.timeout) as client:
            return await fetch_startup_document(client, config.openapi.source_url)

    target = build_upstream_target(config, creds)
    try:
        url = UpstreamClient(target, HeaderBuilder()).upstream_url(
            config.openapi.discovery_path.encode("ascii")
        )
        return await fetch_startup_document(target.client, url)
    finally:
        await target.client.aclose()


def _check(config: Config) -> bool:
    """Resolve credentials and fetch the discovery document once."""
    creds = print_upstream_status(config)
    if creds is None:
        return False
    try:
        cached = asyncio.run(_fetch_cached_document(config, creds))
    except GatewayError as e:
        console.print(f"[red]OpenAPI fetch failed:[/red] {e}")
        return False
    info = cached.document.info
    console.print(
        f"[green]OpenAPI[/green] {info.title} {info.version} "
        f"[dim]({len(cached.document.paths)} paths)[/dim]"
    )
    return True


def _print_help():
    """Print help message."""
    help_text = """
[bold cyan]Kubernetes API Gateway[/bold cyan]

Forwards every request to the upstream API server and serves its OpenAPI v2
document plus a Swagger UI.

[bold]Usage:[/bold]
    kube-api-gateway              Start with live dashboard
    kube-api-gateway --plain      Start with line-per-request logging
    kube-api-gateway --check      Check upstream credentials and OpenAPI document
    kube-api-gateway --config     Show config locations
    kube-api-gateway --help       Show this help

[bold]Upstream:[/bold]
    Uses upstream.base_url from the config file if set, otherwise the
    current context of upstream.kubeconfig ($KUBECONFIG or ~/.kube/config).
"""
    console.print(help_text)


if __name__ == "__main__":
    main()
