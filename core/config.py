"""Configuration models and loading."""

import json
import os
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

CONFIG_DIR = Path.home() / ".config" / "kube-api-gateway"
CONFIG_FILE = CONFIG_DIR / "config.json"
CONFIG_ENV = "GATEWAY_CONFIG"


def _default_kubeconfig() -> str:
    return os.environ.get("KUBECONFIG") or str(Path.home() / ".kube" / "config")


class ProxySettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8080
    debug: bool = False


class UpstreamSettings(BaseModel):
    # Explicit server; when empty the kubeconfig's context is used
    base_url: str = ""
    kubeconfig: str = Field(default_factory=_default_kubeconfig)
    context: str = ""
    token: str = ""
    ca_file: str = ""
    insecure_skip_tls_verify: bool = False
    timeout: float = 60.0


class ForwardingSettings(BaseModel):
    strip_hop_by_hop: bool = False


class OpenAPISettings(BaseModel):
    serve_path: str = "/swagger.json"
    discovery_path: str = "/openapi/v2"
    docs_path: str | None = "/docs"
    cache_at_startup: bool = False
    source_url: str = ""


class Config(BaseModel):
    proxy: ProxySettings = Field(default_factory=ProxySettings)
    upstream: UpstreamSettings = Field(default_factory=UpstreamSettings)
    forwarding: ForwardingSettings = Field(default_factory=ForwardingSettings)
    openapi: OpenAPISettings = Field(default_factory=OpenAPISettings)


def config_path() -> Path:
    """Return the config file location, honouring GATEWAY_CONFIG."""
    override = os.environ.get(CONFIG_ENV)
    return Path(override).expanduser() if override else CONFIG_FILE


def load_config(path: Path | None = None) -> Config:
    """Load configuration from JSON file, creating default if needed."""
    path = path or config_path()
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        default = Config()
        path.write_text(default.model_dump_json(indent=2))
        return default

    try:
        data = json.loads(path.read_text())
        return Config.model_validate(data)
    except (json.JSONDecodeError, ValidationError):
        # Backup corrupted config and recreate default
        backup = path.with_suffix(".json.bak")
        path.rename(backup)
        default = Config()
        path.write_text(default.model_dump_json(indent=2))
        return default
