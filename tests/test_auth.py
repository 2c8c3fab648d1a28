import base64
import ssl

import pytest
import yaml

from auth import (
    UpstreamCredentials,
    build_ssl_context,
    build_upstream_target,
    load_kubeconfig,
    load_upstream_credentials,
)
from core.config import Config, UpstreamSettings
from core.exceptions import ConfigurationError


def write_kubeconfig(tmp_path, **overrides):
    data = {
        "apiVersion": "v1",
        "kind": "Config",
        "current-context": "dev",
        "clusters": [
            {"name": "dev-cluster", "cluster": {"server": "https://dev.example:6443", "certificate-authority": "ca.crt"}},
            {"name": "prod-cluster", "cluster": {"server": "https://prod.example", "insecure-skip-tls-verify": True}},
        ],
        "users": [
            {"name": "dev-user", "user": {"token": "dev-token"}},
            {"name": "prod-user", "user": {"tokenFile": "token"}},
        ],
        "contexts": [
            {"name": "dev", "context": {"cluster": "dev-cluster", "user": "dev-user"}},
            {"name": "prod", "context": {"cluster": "prod-cluster", "user": "prod-user"}},
        ],
    }
    data.update(overrides)
    path = tmp_path / "config"
    path.write_text(yaml.safe_dump(data))
    return path


class TestLoadKubeconfig:
    def test_current_context(self, tmp_path):
        creds = load_kubeconfig(write_kubeconfig(tmp_path))

        assert creds.server == "https://dev.example:6443"
        assert creds.token == "dev-token"
        assert creds.ca_file == str(tmp_path / "ca.crt")
        assert not creds.insecure

    def test_named_context_with_token_file(self, tmp_path):
        (tmp_path / "token").write_text("prod-token\n")

        creds = load_kubeconfig(write_kubeconfig(tmp_path), "prod")

        assert creds.server == "https://prod.example"
        assert creds.token == "prod-token"
        assert creds.insecure

    def test_inline_data_is_decoded(self, tmp_path):
        path = write_kubeconfig(
            tmp_path,
            clusters=[
                {
                    "name": "dev-cluster",
                    "cluster": {
                        "server": "https://dev.example:6443",
                        "certificate-authority-data": base64.b64encode(b"PEM").decode(),
                    },
                }
            ],
        )

        creds = load_kubeconfig(path)

        assert creds.ca_data == b"PEM"
        assert creds.ca_file == ""

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_kubeconfig(tmp_path / "nope")

    def test_unknown_context(self, tmp_path):
        with pytest.raises(ConfigurationError, match="staging"):
            load_kubeconfig(write_kubeconfig(tmp_path), "staging")

    def test_no_current_context(self, tmp_path):
        with pytest.raises(ConfigurationError, match="current-context"):
            load_kubeconfig(write_kubeconfig(tmp_path, **{"current-context": ""}))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config"
        path.write_text("clusters: [\n")

        with pytest.raises(ConfigurationError, match="Invalid kubeconfig"):
            load_kubeconfig(path)


def test_explicit_base_url_wins(tmp_path):
    settings = UpstreamSettings(
        base_url="http://127.0.0.1:8001",
        kubeconfig=str(tmp_path / "missing"),
        token="abc",
    )

    creds = load_upstream_credentials(settings)

    assert creds.server == "http://127.0.0.1:8001"
    assert creds.token == "abc"
    assert creds.source == "config"


def test_insecure_context_skips_verification():
    ctx = build_ssl_context(UpstreamCredentials(server="https://x", insecure=True))

    assert ctx.verify_mode == ssl.CERT_NONE
    assert ctx.check_hostname is False


@pytest.mark.asyncio
async def test_build_upstream_target_sets_bearer_and_timeout():
    config = Config(upstream=UpstreamSettings(base_url="http://127.0.0.1:8001", token="abc", timeout=12.5))

    target = build_upstream_target(config)

    assert target.base_url.host == "127.0.0.1"
    assert target.base_url.port == 8001
    assert target.client.headers["authorization"] == "Bearer abc"
    assert target.client.timeout.read == 12.5
    await target.client.aclose()
