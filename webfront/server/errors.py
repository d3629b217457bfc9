"""Error types raised by the serving layer."""

from __future__ import annotations

from ..files import AssetPathError

__all__ = ["AssetPathError", "BackendError", "ConfigError"]


class ConfigError(ValueError):
    """Raised when the site configuration is invalid or cannot be loaded."""


class BackendError(RuntimeError):
    """Raised when the backend round trip fails at the transport level."""

    __slots__ = ("url", "timeout")

    def __init__(self, url: str, message: str, *, timeout: bool = False) -> None:
        super().__init__(f"{url}: {message}")
        self.url = url
        self.timeout = timeout

    @property
    def status_code(self) -> int:
        return 504 if self.timeout else 502
