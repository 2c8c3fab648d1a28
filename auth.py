"""Upstream credentials - explicit config or the kubeconfig's current context."""

import base64
import os
import ssl
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx
import yaml
from rich.console import Console

from core.config import Config, UpstreamSettings
from core.exceptions import ConfigurationError
from core.request_types import UpstreamTarget

console = Console()


@dataclass(frozen=True)
class UpstreamCredentials:
    """Everything needed to open a connection to the upstream."""

    server: str
    token: str = ""
    ca_file: str = ""
    ca_data: bytes = b""
    client_cert_file: str = ""
    client_cert_data: bytes = b""
    client_key_file: str = ""
    client_key_data: bytes = b""
    insecure: bool = False
    source: str = "config"


def load_upstream_credentials(settings: UpstreamSettings) -> UpstreamCredentials:
    """Resolve credentials; an explicit base_url takes precedence over kubeconfig."""
    if settings.base_url:
        return UpstreamCredentials(
            server=settings.base_url,
            token=settings.token,
            ca_file=settings.ca_file,
            insecure=settings.insecure_skip_tls_verify,
        )
    return load_kubeconfig(Path(settings.kubeconfig).expanduser(), settings.context or None)


def load_kubeconfig(path: Path, context_name: str | None = None) -> UpstreamCredentials:
    """Read cluster and user entries for a kubeconfig context."""
    if not path.exists():
        raise ConfigurationError(f"Kubeconfig not found: {path}")
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid kubeconfig {path}: {e}") from e

    context_name = context_name or data.get("current-context")
    if not context_name:
        raise ConfigurationError(f"No current-context set in {path}")

    context = _named(data.get("contexts"), context_name, "context", path)
    cluster = _named(data.get("clusters"), context.get("cluster"), "cluster", path)
    user = _named(data.get("users"), context.get("user"), "user", path, required=False)

    server = cluster.get("server")
    if not server:
        raise ConfigurationError(f"Cluster {context.get('cluster')!r} has no server in {path}")

    # Relative file references resolve against the kubeconfig's directory
    base_dir = path.parent
    token = user.get("token", "")
    if not token and user.get("tokenFile"):
        token = _resolve(base_dir, user["tokenFile"]).read_text().strip()

    return UpstreamCredentials(
        server=server,
        token=token,
        ca_file=_resolve_str(base_dir, cluster.get("certificate-authority")),
        ca_data=_decode(cluster.get("certificate-authority-data")),
        client_cert_file=_resolve_str(base_dir, user.get("client-certificate")),
        client_cert_data=_decode(user.get("client-certificate-data")),
        client_key_file=_resolve_str(base_dir, user.get("client-key")),
        client_key_data=_decode(user.get("client-key-data")),
        insecure=bool(cluster.get("insecure-skip-tls-verify", False)),
        source=f"{path} ({context_name})",
    )


def build_ssl_context(creds: UpstreamCredentials) -> ssl.SSLContext:
    """TLS context for httpx built from CA, client cert and skip-verify settings."""
    if creds.insecure:
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
    elif creds.ca_file or creds.ca_data:
        ctx = ssl.create_default_context(cafile=creds.ca_file or None)
        if creds.ca_data:
            ctx.load_verify_locations(cadata=creds.ca_data.decode("ascii"))
    else:
        ctx = ssl.create_default_context()

    if creds.client_cert_file or creds.client_cert_data:
        _load_client_cert(ctx, creds)
    return ctx


def build_upstream_target(
    config: Config,
    creds: UpstreamCredentials | None = None,
) -> UpstreamTarget:
    """Create the process-wide upstream target with a pooled async client."""
    creds = creds or load_upstream_credentials(config.upstream)
    try:
        verify = build_ssl_context(creds)
    except (OSError, ssl.SSLError) as e:
        raise ConfigurationError(f"Invalid TLS material for {creds.source}: {e}") from e

    headers = {"Authorization": f"Bearer {creds.token}"} if creds.token else {}
    limits = httpx.Limits(max_connections=100, max_keepalive_connections=20)
    client = httpx.AsyncClient(
        base_url=creds.server,
        headers=headers,
        verify=verify,
        timeout=config.upstream.timeout,
        limits=limits,
    )
    return UpstreamTarget(base_url=httpx.URL(creds.server), client=client)


def print_upstream_status(config: Config) -> UpstreamCredentials | None:
    """Print where upstream credentials come from; None when they cannot be resolved."""
    try:
        creds = load_upstream_credentials(config.upstream)
    except (ConfigurationError, OSError) as e:
        console.print(f"[red]Upstream not configured:[/red] {e}")
        return None
    console.print(f"[green]Upstream[/green] {creds.server}")
    console.print(f"[dim]Credentials from:[/dim] {creds.source}")
    if creds.token:
        auth = "bearer token"
    elif creds.client_cert_file or creds.client_cert_data:
        auth = "client certificate"
    else:
        auth = "none"
    console.print(f"[dim]Auth:[/dim] {auth}")
    if creds.insecure:
        console.print("[yellow]Warning:[/yellow] TLS verification disabled")
    return creds


def _load_client_cert(ctx: ssl.SSLContext, creds: UpstreamCredentials) -> None:
    """load_cert_chain only takes paths, so inline data goes through a private temp dir."""
    if creds.client_cert_file and not creds.client_cert_data and not creds.client_key_data:
        ctx.load_cert_chain(creds.client_cert_file, creds.client_key_file or None)
        return
    with tempfile.TemporaryDirectory() as tmp:
        cert_path = creds.client_cert_file or _write_private(Path(tmp) / "client.crt", creds.client_cert_data)
        key_path = creds.client_key_file or (
            _write_private(Path(tmp) / "client.key", creds.client_key_data)
            if creds.client_key_data
            else None
        )
        ctx.load_cert_chain(cert_path, key_path)


def _write_private(path: Path, data: bytes) -> str:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    return str(path)


def _named(
    entries: Any,
    name: str | None,
    kind: str,
    path: Path,
    required: bool = True,
) -> dict[str, Any]:
    """Find ``{name: ..., <kind>: {...}}`` in a kubeconfig list."""
    for entry in entries or []:
        if isinstance(entry, dict) and entry.get("name") == name:
            return entry.get(kind) or {}
    if required:
        raise ConfigurationError(f"{kind.capitalize()} {name!r} not found in {path}")
    return {}


def _decode(value: str | None) -> bytes:
    if not value:
        return b""
    try:
        return base64.b64decode(value)
    except ValueError as e:
        raise ConfigurationError(f"Invalid base64 data in kubeconfig: {e}") from e


def _resolve(base_dir: Path, value: str) -> Path:
    candidate = Path(value).expanduser()
    return candidate if candidate.is_absolute() else base_dir / candidate


def _resolve_str(base_dir: Path, value: str | None) -> str:
    return str(_resolve(base_dir, value)) if value else ""
