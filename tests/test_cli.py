import sys

import pytest

import auth
import cli
from core.config import Config, OpenAPISettings, UpstreamSettings
from core.document import CachedDocument, parse_document
from core.exceptions import StartupFetchFailure


@pytest.fixture
def no_log_files(monkeypatch):
    monkeypatch.setattr(cli, "write_cli_log", lambda *args, **kwargs: None)
    monkeypatch.setattr(cli, "clear_logs", lambda: None)


def test_startup_fetch_failure_aborts_before_serving(monkeypatch, no_log_files):
    config = Config(
        upstream=UpstreamSettings(base_url="https://kube.test:6443"),
        openapi=OpenAPISettings(cache_at_startup=True, serve_path="/swagger"),
    )
    created = []

    async def failing_fetch(_config, _creds):
        raise StartupFetchFailure("Failed to fetch OpenAPI document: refused")

    monkeypatch.setattr(cli, "load_config", lambda: config)
    monkeypatch.setattr(cli, "_fetch_cached_document", failing_fetch)
    monkeypatch.setattr(cli, "create_app", lambda *args, **kwargs: created.append(args))
    monkeypatch.setattr(sys, "argv", ["kube-api-gateway", "--plain"])

    with pytest.raises(SystemExit) as exc_info:
        cli.main()

    assert exc_info.value.code == 1
    assert created == []


def test_missing_kubeconfig_aborts(monkeypatch, tmp_path, no_log_files):
    config = Config(upstream=UpstreamSettings(kubeconfig=str(tmp_path / "missing")))
    monkeypatch.setattr(cli, "load_config", lambda: config)
    monkeypatch.setattr(sys, "argv", ["kube-api-gateway"])

    with pytest.raises(SystemExit) as exc_info:
        cli.main()

    assert exc_info.value.code == 1


def test_config_flag_prints_locations(monkeypatch, capsys):
    monkeypatch.setattr(cli, "load_config", lambda: Config())
    monkeypatch.setattr(sys, "argv", ["kube-api-gateway", "--config"])

    cli.main()

    assert "Kubeconfig" in capsys.readouterr().out


class StopBeforeServing(Exception):
    pass


def test_credentials_resolved_once_and_target_injected(monkeypatch, no_log_files):
    config = Config(
        upstream=UpstreamSettings(base_url="https://kube.test:6443", token="abc"),
        openapi=OpenAPISettings(cache_at_startup=True),
    )
    raw = b'{"swagger": "2.0", "info": {"title": "T", "version": "v1"}, "paths": {}}'
    cached = CachedDocument(body=raw, document=parse_document(raw))
    loads = []
    fetched_with = []
    created = {}
    real_load = auth.load_upstream_credentials

    def counting_load(settings):
        loads.append(settings)
        return real_load(settings)

    async def fetch(_config, creds):
        fetched_with.append(creds)
        return cached

    def fake_create_app(_config, _logger, **kwargs):
        created.update(kwargs)
        raise StopBeforeServing

    monkeypatch.setattr(cli, "load_upstream_credentials", counting_load)
    monkeypatch.setattr(auth, "load_upstream_credentials", counting_load)
    monkeypatch.setattr(cli, "load_config", lambda: config)
    monkeypatch.setattr(cli, "_fetch_cached_document", fetch)
    monkeypatch.setattr(cli, "create_app", fake_create_app)
    monkeypatch.setattr(sys, "argv", ["kube-api-gateway", "--plain"])

    with pytest.raises(StopBeforeServing):
        cli.main()

    assert len(loads) == 1
    assert fetched_with[0].server == "https://kube.test:6443"
    assert created["cached_document"] is cached
    assert created["target"].base_url.host == "kube.test"
    assert created["target"].client.headers["authorization"] == "Bearer abc"
