"""nbssh: build OpenSSH command lines from typed connection parameters."""

from nbssh.address import DEFAULT_SSH_PORT, Address, address_from_parts, resolve
from nbssh.errors import (
    ConflictingOption,
    InvalidAddress,
    InvalidOption,
    InvalidPort,
    NbsshError,
)
from nbssh.ssh import (
    SshParams,
    Toggle,
    build,
    command,
    encode_remote_command,
    quote,
    remote_command_line,
)

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_SSH_PORT",
    "Address",
    "ConflictingOption",
    "InvalidAddress",
    "InvalidOption",
    "InvalidPort",
    "NbsshError",
    "SshParams",
    "Toggle",
    "__version__",
    "address_from_parts",
    "build",
    "command",
    "encode_remote_command",
    "quote",
    "remote_command_line",
    "resolve",
]
