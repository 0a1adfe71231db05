"""Tests for nbssh.config — YAML loading, defaults layering, host resolution."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from nbssh.config import (
    ENV_CONFIG_VAR,
    get_config_path,
    load_config,
    validate_config_file,
)
from nbssh.errors import ConfigError, HostResolutionError
from nbssh.ssh import Toggle

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent("""\
    version: 1
    defaults:
      connect_timeout: 10
      batch_mode: true
      options:
        ServerAliveInterval: 30
    hosts:
      web:
        address: deploy@web.example.com:2222
        identity_file: ~/.ssh/id_ed25519
        strict_host_key_checking: false
        forward_agent: true
        description: "Web frontend"
        tags: ["prod", "web"]
        options:
          Compression: yes
      db:
        host: db.example.com
        user: postgres
        port: 5432
        batch_mode: null
        tags: ["prod", "postgres"]
      v6:
        address: "[fe80::1]"
        port: 2200
""")

MINIMAL_YAML = textwrap.dedent("""\
    version: 1
    hosts:
      t1:
        address: t1.example.com
""")

BAD_VERSION_YAML = textwrap.dedent("""\
    version: 99
    hosts: {}
""")

MISSING_ADDRESS_YAML = textwrap.dedent("""\
    version: 1
    hosts:
      broken:
        user: root
""")

BAD_ADDRESS_YAML = textwrap.dedent("""\
    version: 1
    hosts:
      broken:
        address: "a:b:c"
""")

BAD_PORT_YAML = textwrap.dedent("""\
    version: 1
    hosts:
      broken:
        host: example.com
        port: 70000
""")

CONFLICT_YAML = textwrap.dedent("""\
    version: 1
    hosts:
      clash:
        address: example.com
        forward_agent: true
        options:
          ForwardAgent: "no"
""")

BAD_TOGGLE_YAML = textwrap.dedent("""\
    version: 1
    hosts:
      odd:
        address: example.com
        forward_agent: maybe
""")

DEFAULT_ADDRESS_YAML = textwrap.dedent("""\
    version: 1
    defaults:
      user: root
    hosts: {}
""")

ADDRESS_WITH_USER_YAML = textwrap.dedent("""\
    version: 1
    hosts:
      web:
        address: web.example.com
        user: deploy
""")

ADDRESS_WITH_HOST_YAML = textwrap.dedent("""\
    version: 1
    hosts:
      web:
        address: deploy@web.example.com
        host: other.example.com
""")

OPTION_CASE_OVERRIDE_YAML = textwrap.dedent("""\
    version: 1
    defaults:
      options:
        ServerAliveInterval: "30"
        Compression: "yes"
    hosts:
      web:
        address: web.example.com
        options:
          serveraliveinterval: "60"
""")


def _write(tmp_path: Path, text: str) -> Path:
    p = tmp_path / "hosts.yaml"
    p.write_text(text)
    return p


@pytest.fixture()
def sample_config(tmp_path: Path) -> Path:
    return _write(tmp_path, SAMPLE_YAML)


# ---------------------------------------------------------------------------
# Tests — loading
# ---------------------------------------------------------------------------


class TestLoadConfig:
    def test_load_sample(self, sample_config: Path):
        cfg = load_config(sample_config)
        assert cfg.version == 1
        assert [h.name for h in cfg.hosts] == ["web", "db", "v6"]
        assert cfg.config_path == sample_config

    def test_host_fields(self, sample_config: Path):
        web = load_config(sample_config).resolve_host("web")
        assert web.address.host == "web.example.com"
        assert web.address.user == "deploy"
        assert web.address.port == 2222
        assert web.description == "Web frontend"
        assert "web" in web.tags
        assert web.params.forward_agent is Toggle.ENABLED
        assert web.params.strict_host_key_checking is Toggle.DISABLED

    def test_web_argv(self, sample_config: Path):
        web = load_config(sample_config).resolve_host("web")
        assert web.params.build() == [
            "-i", "~/.ssh/id_ed25519",
            "-o", "StrictHostKeyChecking=no",
            "-o", "UserKnownHostsFile=/dev/null",
            "-o", "ForwardAgent=yes",
            "-o", "BatchMode=yes",
            "-o", "ConnectTimeout=10",
            "-o", "ServerAliveInterval=30",
            "-o", "Compression=yes",
            "-p", "2222",
            "deploy@web.example.com",
        ]

    def test_host_null_overrides_default(self, sample_config: Path):
        db = load_config(sample_config).resolve_host("db")
        assert db.params.batch_mode is Toggle.UNSET
        assert db.params.build() == [
            "-o", "ConnectTimeout=10",
            "-o", "ServerAliveInterval=30",
            "-p", "5432",
            "postgres@db.example.com",
        ]

    def test_port_key_overrides_address_form(self, sample_config: Path):
        v6 = load_config(sample_config).resolve_host("v6")
        assert v6.address.host == "fe80::1"
        assert v6.address.port is None
        assert v6.params.build()[-3:] == ["-p", "2200", "fe80::1"]

    def test_minimal_config(self, tmp_path: Path):
        cfg = load_config(_write(tmp_path, MINIMAL_YAML))
        host = cfg.hosts[0]
        assert host.params.build() == ["t1.example.com"]
        assert host.params.program == "ssh"

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="Config file not found"):
            load_config(tmp_path / "nonexistent.yaml")

    def test_bad_version(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="Unsupported config version"):
            load_config(_write(tmp_path, BAD_VERSION_YAML))

    def test_missing_address(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="missing 'address' or 'host'"):
            load_config(_write(tmp_path, MISSING_ADDRESS_YAML))

    def test_bad_address_names_host(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="Host 'broken'") as exc_info:
            load_config(_write(tmp_path, BAD_ADDRESS_YAML))
        assert exc_info.value.field == "host"

    def test_bad_port(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="out of range") as exc_info:
            load_config(_write(tmp_path, BAD_PORT_YAML))
        assert exc_info.value.field == "port"

    def test_conflict_detected_at_load(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="ForwardAgent"):
            load_config(_write(tmp_path, CONFLICT_YAML))

    def test_bad_toggle(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="must be true, false or null"):
            load_config(_write(tmp_path, BAD_TOGGLE_YAML))

    def test_defaults_cannot_set_address(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="cannot set 'user'"):
            load_config(_write(tmp_path, DEFAULT_ADDRESS_YAML))

    def test_user_beside_address_rejected(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="'user' cannot be combined") as exc_info:
            load_config(_write(tmp_path, ADDRESS_WITH_USER_YAML))
        assert exc_info.value.field == "user"

    def test_host_beside_address_rejected(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="'host' cannot be combined") as exc_info:
            load_config(_write(tmp_path, ADDRESS_WITH_HOST_YAML))
        assert exc_info.value.field == "host"

    def test_host_option_replaces_default_any_case(self, tmp_path: Path):
        web = load_config(_write(tmp_path, OPTION_CASE_OVERRIDE_YAML)).resolve_host("web")
        assert web.params.extra_options == (
            ("Compression", "yes"),
            ("serveraliveinterval", "60"),
        )
        assert web.params.build() == [
            "-o", "Compression=yes",
            "-o", "serveraliveinterval=60",
            "web.example.com",
        ]

    def test_invalid_yaml(self, tmp_path: Path):
        p = tmp_path / "bad.yaml"
        p.write_text(":\n  :\n    - [\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(p)

    def test_non_mapping_yaml(self, tmp_path: Path):
        p = tmp_path / "list.yaml"
        p.write_text("- item1\n- item2\n")
        with pytest.raises(ConfigError, match="must be a YAML mapping"):
            load_config(p)

    def test_env_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        p = _write(tmp_path, MINIMAL_YAML)
        monkeypatch.setenv(ENV_CONFIG_VAR, str(p))
        assert get_config_path() == p.resolve()
        assert load_config().hosts[0].name == "t1"


# ---------------------------------------------------------------------------
# Tests — host resolution and search
# ---------------------------------------------------------------------------


class TestHostResolution:
    def test_resolve_known(self, sample_config: Path):
        assert load_config(sample_config).resolve_host("db").name == "db"

    def test_resolve_unknown(self, sample_config: Path):
        with pytest.raises(HostResolutionError, match="Unknown host"):
            load_config(sample_config).resolve_host("nonexistent")

    def test_has_host(self, sample_config: Path):
        cfg = load_config(sample_config)
        assert cfg.has_host("web")
        assert not cfg.has_host("deploy@web.example.com")


class TestSearch:
    def test_search_by_tag(self, sample_config: Path):
        results = load_config(sample_config).search_hosts("postgres")
        assert [h.name for h in results] == ["db"]

    def test_search_by_address(self, sample_config: Path):
        results = load_config(sample_config).search_hosts("WEB.EXAMPLE")
        assert [h.name for h in results] == ["web"]

    def test_search_shared_tag(self, sample_config: Path):
        assert len(load_config(sample_config).search_hosts("prod")) == 2

    def test_search_no_match(self, sample_config: Path):
        assert load_config(sample_config).search_hosts("zzzznotfound") == []


# ---------------------------------------------------------------------------
# Tests — validation helper
# ---------------------------------------------------------------------------


class TestValidation:
    def test_validate_ok(self, sample_config: Path):
        ok, msg = validate_config_file(sample_config)
        assert ok is True
        assert "3 host(s)" in msg

    def test_validate_bad(self, tmp_path: Path):
        ok, msg = validate_config_file(tmp_path / "missing.yaml")
        assert ok is False
        assert "not found" in msg
