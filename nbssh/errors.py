"""Exception taxonomy shared by the address, assembler and profile layers.

Every error names the input field that caused it so callers can surface
the problem to the end user directly.
"""

from __future__ import annotations


class NbsshError(Exception):
    """Base class for all nbssh errors."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


# ---------------------------------------------------------------------------
# Connection parameter errors
# ---------------------------------------------------------------------------


class InvalidAddress(NbsshError, ValueError):
    """Raised for an empty host or user, or an ambiguous host:port form."""


class InvalidPort(NbsshError, ValueError):
    """Raised when a port is not an integer in 1..65535."""


class ConflictingOption(NbsshError, ValueError):
    """Raised when one logical ssh option is set through two fields."""


class InvalidOption(NbsshError, ValueError):
    """Raised for a raw option name or value ssh cannot accept."""


# ---------------------------------------------------------------------------
# Host profile errors
# ---------------------------------------------------------------------------


class ConfigError(NbsshError):
    """Raised when the host profile file is invalid or missing."""


class HostResolutionError(NbsshError):
    """Raised when a host profile name cannot be resolved."""
