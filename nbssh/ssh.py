"""SSH command assembly.

Builds OpenSSH argv lists from :class:`SshParams`, emitting option flags in a
fixed order followed by the destination and the encoded remote command.

The ssh client does not pass trailing arguments to the remote side as an
argv. It joins them with single spaces and hands the resulting line to the
remote user's shell. Each remote token is therefore quoted here so that the
join-then-parse round trip on the far end reproduces the original tokens.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum

from nbssh.address import Address, validate_port
from nbssh.errors import ConflictingOption, InvalidOption

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_PROGRAM = "ssh"
KNOWN_HOSTS_SINK = "/dev/null"

# Characters no POSIX shell treats specially; anything else forces quoting.
_UNSAFE_CHAR = re.compile(r"[^\w@%+=:,./-]", re.ASCII)

# ---------------------------------------------------------------------------
# Toggle
# ---------------------------------------------------------------------------


class Toggle(str, Enum):
    """Tri-state switch for a yes/no ssh option. UNSET emits nothing."""

    UNSET = "unset"
    ENABLED = "enabled"
    DISABLED = "disabled"

    @classmethod
    def from_bool(cls, value: bool | None) -> Toggle:
        if value is None:
            return cls.UNSET
        return cls.ENABLED if value else cls.DISABLED

    @property
    def is_set(self) -> bool:
        return self is not Toggle.UNSET

    @property
    def ssh_value(self) -> str:
        """``yes``/``no`` as ssh_config spells it."""
        if self is Toggle.UNSET:
            raise ValueError("An unset toggle has no ssh value.")
        return "yes" if self is Toggle.ENABLED else "no"


def _coerce_toggle(value: object, field: str) -> Toggle:
    if isinstance(value, Toggle):
        return value
    if value is None or isinstance(value, bool):
        return Toggle.from_bool(value)
    raise InvalidOption(
        f"'{field}' must be a Toggle, a bool or None, got {value!r}.", field=field
    )


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SshParams:
    """Everything needed to build an ssh command except the remote command.

    ``extra_options`` accepts a mapping or an iterable of ``(name, value)``
    pairs and is stored as a tuple of pairs in insertion order. Names that
    repeat are kept so that :func:`build` can reject them.
    """

    address: Address
    identity_file: str | None = None
    config_file: str | None = None
    port: int | None = None
    strict_host_key_checking: Toggle = Toggle.UNSET
    forward_agent: Toggle = Toggle.UNSET
    batch_mode: Toggle = Toggle.UNSET
    connect_timeout: int | None = None
    extra_options: tuple[tuple[str, str], ...] = ()
    program: str = DEFAULT_PROGRAM

    def __post_init__(self) -> None:
        if not isinstance(self.address, Address):
            raise TypeError(f"address must be an Address, got {self.address!r}.")
        if self.port is not None:
            validate_port(self.port, field="port")
        if self.connect_timeout is not None:
            timeout = self.connect_timeout
            if isinstance(timeout, bool) or not isinstance(timeout, int) or timeout <= 0:
                raise InvalidOption(
                    f"connect_timeout must be a positive integer, got {timeout!r}.",
                    field="connect_timeout",
                )
        for name in ("strict_host_key_checking", "forward_agent", "batch_mode"):
            object.__setattr__(self, name, _coerce_toggle(getattr(self, name), name))
        object.__setattr__(self, "extra_options", _normalize_options(self.extra_options))

    @property
    def effective_port(self) -> int | None:
        """The port override if given, else the one embedded in the address."""
        return self.port if self.port is not None else self.address.port

    def build(self, remote_command: Sequence[str] = ()) -> list[str]:
        return build(self, remote_command)

    def command(self, remote_command: Sequence[str] = ()) -> list[str]:
        return command(self, remote_command)


def _normalize_options(
    options: Mapping[str, str] | Iterable[tuple[str, str]] | None,
) -> tuple[tuple[str, str], ...]:
    if options is None:
        return ()
    items = options.items() if isinstance(options, Mapping) else options
    pairs: list[tuple[str, str]] = []
    for item in items:
        try:
            name, value = item
        except (TypeError, ValueError):
            raise InvalidOption(
                f"Extra options must be (name, value) pairs, got {item!r}.",
                field="extra_options",
            ) from None
        pairs.append((_check_option_name(name), _check_option_value(name, value)))
    return tuple(pairs)


def _check_option_name(name: object) -> str:
    if not isinstance(name, str) or not name:
        raise InvalidOption(
            f"Option name must be a non-empty string, got {name!r}.",
            field="extra_options",
        )
    if "=" in name or any(ch.isspace() for ch in name):
        raise InvalidOption(
            f"Option name '{name}' must not contain '=' or whitespace.",
            field="extra_options",
        )
    return name


def _check_option_value(name: str, value: object) -> str:
    if not isinstance(value, str):
        raise InvalidOption(
            f"Value for option '{name}' must be a string, got {value!r}.",
            field="extra_options",
        )
    if "\n" in value or "\r" in value:
        raise InvalidOption(
            f"Value for option '{name}' must not contain a newline.",
            field="extra_options",
        )
    return value


# ---------------------------------------------------------------------------
# Remote command encoding
# ---------------------------------------------------------------------------


def quote(token: str) -> str:
    """Quote one remote token for a POSIX shell.

    Shell-inert tokens come back unchanged. Others are wrapped in single
    quotes with each embedded ``'`` written as ``'\\''``. The empty string
    becomes ``''`` so it still occupies a position.
    """
    if not isinstance(token, str):
        raise TypeError(f"Remote command tokens must be str, got {token!r}.")
    if not token:
        return "''"
    if _UNSAFE_CHAR.search(token) is None:
        return token
    return "'" + token.replace("'", "'\\''") + "'"


def encode_remote_command(remote_command: Sequence[str]) -> list[str]:
    """Quote every token of *remote_command*, keeping them as separate entries."""
    if isinstance(remote_command, str):
        # a bare string would be split into characters
        raise TypeError("remote_command must be a sequence of tokens, not a str.")
    return [quote(token) for token in remote_command]


def remote_command_line(remote_command: Sequence[str]) -> str:
    """The single line the remote shell receives once ssh joins the tokens."""
    return " ".join(encode_remote_command(remote_command))


# ---------------------------------------------------------------------------
# Option conflicts
# ---------------------------------------------------------------------------


def _typed_options(params: SshParams) -> dict[str, str]:
    """Map lower-cased ssh option names to the typed field controlling them."""
    owned = {"hostname": "address"}
    if params.identity_file is not None:
        owned["identityfile"] = "identity_file"
    if params.strict_host_key_checking.is_set:
        owned["stricthostkeychecking"] = "strict_host_key_checking"
        if params.strict_host_key_checking is Toggle.DISABLED:
            owned["userknownhostsfile"] = "strict_host_key_checking"
    if params.forward_agent.is_set:
        owned["forwardagent"] = "forward_agent"
    if params.batch_mode.is_set:
        owned["batchmode"] = "batch_mode"
    if params.connect_timeout is not None:
        owned["connecttimeout"] = "connect_timeout"
    if params.effective_port is not None:
        owned["port"] = "port"
    if params.address.user is not None:
        owned["user"] = "address"
    return owned


def _check_conflicts(params: SshParams) -> None:
    owned = _typed_options(params)
    seen: dict[str, str] = {}
    for name, _ in params.extra_options:
        key = name.lower()
        if key in owned:
            raise ConflictingOption(
                f"Option '{name}' in extra_options is already set by "
                f"'{owned[key]}'.",
                field="extra_options",
            )
        if key in seen:
            raise ConflictingOption(
                f"Option '{name}' appears twice in extra_options "
                f"(first as '{seen[key]}').",
                field="extra_options",
            )
        seen[key] = name


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def _option(name: str, value: str) -> list[str]:
    return ["-o", f"{name}={value}"]


def build(params: SshParams, remote_command: Sequence[str] = ()) -> list[str]:
    """Build ssh arguments (without the program name) for *params*.

    Order: ``-F``, ``-i``, typed ``-o`` toggles, ``extra_options``, ``-p``,
    destination, then the encoded remote command if any.

    Raises ``ConflictingOption`` when ``extra_options`` repeats a name or
    names an option a typed field already sets.
    """
    _check_conflicts(params)
    encoded = encode_remote_command(remote_command)

    cmd: list[str] = []

    if params.config_file is not None:
        cmd.extend(["-F", params.config_file])

    if params.identity_file is not None:
        cmd.extend(["-i", params.identity_file])

    strict = params.strict_host_key_checking
    if strict.is_set:
        cmd.extend(_option("StrictHostKeyChecking", strict.ssh_value))
        # Skipping the check should also keep the target out of known_hosts
        if strict is Toggle.DISABLED:
            cmd.extend(_option("UserKnownHostsFile", KNOWN_HOSTS_SINK))

    if params.forward_agent.is_set:
        cmd.extend(_option("ForwardAgent", params.forward_agent.ssh_value))

    if params.batch_mode.is_set:
        cmd.extend(_option("BatchMode", params.batch_mode.ssh_value))

    if params.connect_timeout is not None:
        cmd.extend(_option("ConnectTimeout", str(params.connect_timeout)))

    for name, value in params.extra_options:
        cmd.extend(_option(name, value))

    port = params.effective_port
    if port is not None:
        cmd.extend(["-p", str(port)])

    cmd.append(params.address.target)
    cmd.extend(encoded)
    return cmd


def command(params: SshParams, remote_command: Sequence[str] = ()) -> list[str]:
    """Build the full argv, program name first, ready for a process launcher."""
    return [params.program, *build(params, remote_command)]
