"""Host profile loader and lookup for nbssh.

Loads YAML from ~/.config/nbssh/hosts.yaml (or NBSSH_CONFIG env override) and
turns each named host entry into ready-to-build :class:`SshParams`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from nbssh.address import Address, address_from_parts, resolve
from nbssh.errors import ConfigError, HostResolutionError, NbsshError
from nbssh.ssh import SshParams, Toggle

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

APP_NAME = "nbssh"
DEFAULT_CONFIG_DIR = Path.home() / ".config" / APP_NAME
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "hosts.yaml"
ENV_CONFIG_VAR = "NBSSH_CONFIG"
SUPPORTED_CONFIG_VERSION = 1

# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class HostProfile:
    """A named host entry with its resolved connection parameters."""

    name: str
    params: SshParams
    description: str = ""
    tags: list[str] = field(default_factory=list)

    @property
    def address(self) -> Address:
        return self.params.address


@dataclass(slots=True)
class HostsConfig:
    """Top-level host profile configuration."""

    version: int = SUPPORTED_CONFIG_VERSION
    hosts: list[HostProfile] = field(default_factory=list)
    config_path: Path = DEFAULT_CONFIG_PATH

    def resolve_host(self, name: str) -> HostProfile:
        """Return the profile called *name*.

        Raises ``HostResolutionError`` if there is no such profile.
        """
        for host in self.hosts:
            if host.name == name:
                return host
        raise HostResolutionError(
            f"Unknown host '{name}'. Run `nbssh ls` to see available hosts.",
            field="host",
        )

    def has_host(self, name: str) -> bool:
        return any(host.name == name for host in self.hosts)

    def search_hosts(self, query: str) -> list[HostProfile]:
        """Simple case-insensitive substring search across name, address, tags."""
        q = query.lower()
        results: list[HostProfile] = []
        for host in self.hosts:
            haystack = f"{host.name} {host.address} {' '.join(host.tags)}".lower()
            if q in haystack:
                results.append(host)
        return results


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


def get_config_path() -> Path:
    """Determine which config file to use."""
    env = os.environ.get(ENV_CONFIG_VAR)
    if env:
        return Path(env).expanduser().resolve()
    return DEFAULT_CONFIG_PATH


def _parse_toggle(value: Any, where: str, key: str) -> Toggle:
    if value is None or isinstance(value, bool):
        return Toggle.from_bool(value)
    raise ConfigError(f"{where}: '{key}' must be true, false or null.", field=key)


def _parse_option_value(value: Any, where: str, name: str) -> str:
    # YAML turns bare yes/no into booleans
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, (str, int)):
        return str(value)
    raise ConfigError(
        f"{where}: option '{name}' must be a string, number or boolean.",
        field="options",
    )


def _parse_options(data: Any, where: str) -> dict[str, str]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{where}: 'options' must be a mapping.", field="options")
    return {str(k): _parse_option_value(v, where, str(k)) for k, v in data.items()}


def _parse_address(data: dict[str, Any], where: str) -> Address:
    if "address" in data:
        for key in ("host", "user"):
            if key in data:
                raise ConfigError(
                    f"{where}: '{key}' cannot be combined with 'address'; "
                    f"write it into the address instead.",
                    field=key,
                )
        text = data["address"]
        if not isinstance(text, str):
            raise ConfigError(f"{where}: 'address' must be a string.", field="address")
        return resolve(text)
    hostname = data.get("host")
    if not hostname:
        raise ConfigError(f"{where} is missing 'address' or 'host' field.", field="host")
    return address_from_parts(str(hostname), data.get("user"), data.get("port"))


def _parse_host(name: str, data: Any, defaults: dict[str, Any]) -> HostProfile:
    """Parse a single host entry from YAML, layered over *defaults*."""
    where = f"Host '{name}'"
    if not isinstance(data, dict):
        raise ConfigError(f"{where} must be a mapping.", field="host")

    merged = {**defaults, **data}
    host_options = _parse_options(data.get("options"), where)
    # ssh option names are case-insensitive; a host entry replaces any casing
    overridden = {k.lower() for k in host_options}
    options = {
        k: v
        for k, v in _parse_options(defaults.get("options"), "defaults").items()
        if k.lower() not in overridden
    }
    options.update(host_options)

    try:
        address = _parse_address(data, where)
        timeout = merged.get("connect_timeout")
        params = SshParams(
            address=address,
            identity_file=_optional_str(merged, "identity_file", where),
            config_file=_optional_str(merged, "config_file", where),
            port=data.get("port") if "address" in data else None,
            strict_host_key_checking=_parse_toggle(
                merged.get("strict_host_key_checking"), where, "strict_host_key_checking"
            ),
            forward_agent=_parse_toggle(merged.get("forward_agent"), where, "forward_agent"),
            batch_mode=_parse_toggle(merged.get("batch_mode"), where, "batch_mode"),
            connect_timeout=timeout,
            extra_options=options,
            program=str(merged.get("program", "ssh")),
        )
        # surface option conflicts at load time rather than at first use
        params.build()
    except ConfigError:
        raise
    except NbsshError as exc:
        raise ConfigError(f"{where}: {exc}", field=exc.field) from exc

    return HostProfile(
        name=name,
        params=params,
        description=str(data.get("description", "")),
        tags=[str(t) for t in data.get("tags", [])],
    )


def _optional_str(data: dict[str, Any], key: str, where: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"{where}: '{key}' must be a string.", field=key)
    return value


def load_config(path: Path | None = None) -> HostsConfig:
    """Load, validate, and return HostsConfig from a YAML file."""
    config_path = path or get_config_path()

    if not config_path.exists():
        raise ConfigError(
            f"Config file not found at {config_path}\n"
            f"Create {DEFAULT_CONFIG_PATH} or set the {ENV_CONFIG_VAR} environment variable.",
            field="config_path",
        )

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {config_path}: {exc}", field="config_path") from exc

    if not isinstance(raw, dict):
        raise ConfigError(
            f"Config file {config_path} must be a YAML mapping at the top level.",
            field="config_path",
        )

    version = raw.get("version", SUPPORTED_CONFIG_VERSION)
    if version != SUPPORTED_CONFIG_VERSION:
        raise ConfigError(
            f"Unsupported config version {version}. Expected {SUPPORTED_CONFIG_VERSION}.",
            field="version",
        )

    defaults = raw.get("defaults") or {}
    if not isinstance(defaults, dict):
        raise ConfigError("'defaults' must be a mapping.", field="defaults")
    for key in ("address", "host", "user", "port"):
        if key in defaults:
            raise ConfigError(f"'defaults' cannot set '{key}'.", field=key)

    hosts_raw = raw.get("hosts") or {}
    if not isinstance(hosts_raw, dict):
        raise ConfigError("'hosts' must be a mapping of host_name -> settings.", field="hosts")
    hosts = [_parse_host(str(name), data, defaults) for name, data in hosts_raw.items()]

    return HostsConfig(version=version, hosts=hosts, config_path=config_path)


def validate_config_file(path: Path | None = None) -> tuple[bool, str]:
    """Validate a config file and return (ok, message)."""
    try:
        cfg = load_config(path)
        return True, f"Config OK: {len(cfg.hosts)} host(s) loaded from {cfg.config_path}"
    except ConfigError as exc:
        return False, str(exc)
