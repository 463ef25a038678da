from pathlib import Path
import textwrap

import pytest

from etcdmate.config.loader import load_config
from etcdmate.config.models import DEFAULT_DROP_IN_FILE, parse_duration
from etcdmate.etcd.errors import ConfigurationError


def test_defaults_without_file():
    cfg = load_config()
    assert cfg.drop_in_file == DEFAULT_DROP_IN_FILE
    assert cfg.timeout == 5.0
    assert cfg.endpoints.client_url("10.0.0.5") == "http://10.0.0.5:2379"
    assert cfg.endpoints.peer_url("10.0.0.5") == "http://10.0.0.5:2380"
    assert cfg.tls.ca_file is None


def test_load_config_file_ok(tmp_path: Path):
    cfg_text = textwrap.dedent("""
        drop_in_file: /run/systemd/system/etcd-member.service.d/50-etcdmate.conf
        timeout: 500ms
        endpoints:
          client_schema: https
          client_port: 2379
          peer_schema: https
          peer_port: 2380
        tls:
          ca_file: /etc/ssl/etcd/ca.pem
    """)
    f = tmp_path / "etcdmate.yaml"
    f.write_text(cfg_text)

    cfg = load_config(f)

    assert cfg.drop_in_file == Path("/run/systemd/system/etcd-member.service.d/50-etcdmate.conf")
    assert cfg.timeout == pytest.approx(0.5)
    assert cfg.endpoints.client_url("10.0.0.5") == "https://10.0.0.5:2379"
    assert cfg.tls.ca_file == Path("/etc/ssl/etcd/ca.pem")


def test_env_vars_expanded_in_file(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("ETCD_PEER_PORT", "12380")
    f = tmp_path / "etcdmate.yaml"
    f.write_text("endpoints:\n  peer_port: ${ETCD_PEER_PORT}\n")
    assert load_config(f).endpoints.peer_port == 12380


def test_overrides_win_but_empty_values_do_not_clobber(tmp_path: Path):
    f = tmp_path / "etcdmate.yaml"
    f.write_text("timeout: 10s\nendpoints:\n  client_schema: https\n  client_port: 4001\n")

    cfg = load_config(f, {"timeout": None, "endpoints": {"client_port": 2379}, "region": ""})

    assert cfg.timeout == 10.0
    assert cfg.endpoints.client_schema == "https"
    assert cfg.endpoints.client_port == 2379
    assert cfg.region is None


@pytest.mark.parametrize(
    "overrides",
    [
        {"endpoints": {"client_schema": "ftp"}},
        {"endpoints": {"peer_port": 70000}},
        {"timeout": "soon"},
        {"timeout": "0s"},
        {"tls": {"cert_file": "/etc/ssl/client.pem"}},
    ],
)
def test_invalid_settings_are_configuration_errors(overrides):
    with pytest.raises(ConfigurationError):
        load_config(None, overrides)


def test_unreadable_or_malformed_file(tmp_path: Path):
    with pytest.raises(ConfigurationError):
        load_config(tmp_path / "missing.yaml")

    bad = tmp_path / "bad.yaml"
    bad.write_text("- just\n- a list\n")
    with pytest.raises(ConfigurationError):
        load_config(bad)


@pytest.mark.parametrize(
    "value, seconds",
    [(5, 5.0), ("5", 5.0), ("5s", 5.0), ("250ms", 0.25), ("1m", 60.0), ("1.5h", 5400.0)],
)
def test_parse_duration(value, seconds):
    assert parse_duration(value) == pytest.approx(seconds)
