"""Connection target parsing and validation.

Turns either explicit parts or a combined ``user@host:port`` string into an
immutable :class:`Address`. IPv6 literals must be bracketed when a port is
attached (``[::1]:2222``) since bare colons are otherwise ambiguous.
"""

from __future__ import annotations

from dataclasses import dataclass

from nbssh.errors import InvalidAddress, InvalidPort

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_SSH_PORT = 22
MIN_PORT = 1
MAX_PORT = 65535

# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def validate_port(port: object, *, field: str = "port") -> int:
    """Return *port* as an int, raising ``InvalidPort`` if out of range."""
    # bool is an int subclass; True is not a port
    if isinstance(port, bool) or not isinstance(port, int):
        raise InvalidPort(f"Port must be an integer, got {port!r}.", field=field)
    if not MIN_PORT <= port <= MAX_PORT:
        raise InvalidPort(
            f"Port {port} is out of range ({MIN_PORT}-{MAX_PORT}).", field=field
        )
    return port


def _parse_port_text(text: str) -> int:
    if not (text.isascii() and text.isdigit()):
        raise InvalidPort(f"Port '{text}' is not a number.", field="port")
    return validate_port(int(text))


def _check_host(host: object) -> str:
    if not isinstance(host, str):
        raise InvalidAddress(f"Host must be a string, got {host!r}.", field="host")
    host = host.strip()
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1].strip()
    if not host:
        raise InvalidAddress("Host must not be empty.", field="host")
    if any(ch.isspace() for ch in host) or any(ch in host for ch in "@[]"):
        raise InvalidAddress(f"Malformed host '{host}'.", field="host")
    # ssh would read a leading dash as an option
    if host.startswith("-"):
        raise InvalidAddress(f"Host must not start with '-': '{host}'.", field="host")
    return host


def _check_user(user: object) -> str | None:
    if user is None:
        return None
    if not isinstance(user, str):
        raise InvalidAddress(f"User must be a string, got {user!r}.", field="user")
    if not user or any(ch.isspace() for ch in user):
        raise InvalidAddress(f"Malformed user '{user}'.", field="user")
    if user.startswith("-"):
        raise InvalidAddress(f"User must not start with '-': '{user}'.", field="user")
    return user


# ---------------------------------------------------------------------------
# Address
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Address:
    """A connection target: host plus optional user and port."""

    host: str
    user: str | None = None
    port: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "host", _check_host(self.host))
        object.__setattr__(self, "user", _check_user(self.user))
        if self.port is not None:
            validate_port(self.port)

    @classmethod
    def parse(cls, text: str) -> Address:
        """Parse ``[user@]host[:port]``; see :func:`resolve`."""
        return resolve(text)

    @property
    def target(self) -> str:
        """The ssh destination token: ``user@host`` or ``host``."""
        if self.user is not None:
            return f"{self.user}@{self.host}"
        return self.host

    def port_str(self) -> str:
        return "" if self.port is None else str(self.port)

    def __str__(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        text = f"{self.user}@{host}" if self.user is not None else host
        if self.port is not None:
            text = f"{text}:{self.port}"
        return text


# ---------------------------------------------------------------------------
# Constructors
# ---------------------------------------------------------------------------


def address_from_parts(
    host: str, user: str | None = None, port: int | None = None
) -> Address:
    """Build an :class:`Address` from explicit fields."""
    return Address(host=host, user=user, port=port)


def resolve(text: str) -> Address:
    """Parse a combined ``[user@]host[:port]`` string into an :class:`Address`.

    Everything before the last ``@`` is the user. A port follows a single
    colon and must be all digits. Hosts containing colons (IPv6 literals)
    need brackets: ``[::1]`` or ``alice@[fe80::1]:2222``.

    Raises ``InvalidAddress`` for an empty host or user, unbalanced brackets,
    or unbracketed colons; ``InvalidPort`` for a non-numeric or out-of-range
    port.
    """
    if not isinstance(text, str):
        raise InvalidAddress(f"Address must be a string, got {text!r}.", field="host")
    text = text.strip()
    if not text:
        raise InvalidAddress("Address must not be empty.", field="host")

    user: str | None = None
    if "@" in text:
        user, _, rest = text.rpartition("@")
        if not user:
            raise InvalidAddress(f"Empty user in address '{text}'.", field="user")
    else:
        rest = text

    port: int | None = None
    if rest.startswith("["):
        close = rest.find("]")
        if close == -1:
            raise InvalidAddress(f"Unclosed '[' in address '{text}'.", field="host")
        host = rest[1:close]
        tail = rest[close + 1 :]
        if tail.startswith(":"):
            port = _parse_port_text(tail[1:])
        elif tail:
            raise InvalidAddress(
                f"Unexpected '{tail}' after ']' in address '{text}'.", field="host"
            )
    elif rest.count(":") == 1:
        host, _, port_text = rest.partition(":")
        port = _parse_port_text(port_text)
    elif ":" in rest:
        raise InvalidAddress(
            f"Ambiguous address '{text}': use brackets for IPv6 hosts, "
            f"e.g. '[{rest}]' or '[host]:port'.",
            field="host",
        )
    else:
        host = rest

    return Address(host=host, user=user, port=port)
