"""Site configuration shared by every serving component."""

from __future__ import annotations

import json
import logging
import posixpath
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlsplit

from .errors import ConfigError
from ..files import file_name

__all__ = ["AuthPattern", "SiteConfig", "normalize_address"]

logger = logging.getLogger(__name__)

DEFAULT_FRONTEND = "http://localhost:8000/"
FRONTEND_EXT = ".html"
BACKEND_EXT = ".tmpl"


def normalize_address(address: str, fallback: str) -> str:
    """Return *address* as an absolute URL ending in ``/``.

    ``":8080"`` is shorthand for ``http://localhost:8080``. Empty or invalid
    addresses return *fallback*.
    """

    if not address:
        return fallback
    if address.startswith(":"):
        address = "http://localhost" + address
    if "://" not in address:
        logger.warning("Address must include protocol: %s", address)
        return fallback
    try:
        urlsplit(address).port
    except ValueError as exc:
        logger.warning("Address is invalid: %s (%s)", address, exc)
        return fallback
    return address.rstrip("/") + "/"


@dataclass(frozen=True)
class AuthPattern:
    """Basic-auth credentials guarding every URI below ``path``."""

    user: str
    password: str
    path: str

    @classmethod
    def parse(cls, pattern: str) -> "AuthPattern":
        colon = pattern.rfind(":")
        alpha = pattern.rfind("@")
        if colon == -1 or len(pattern) < 3:
            raise ConfigError(f"Invalid auth pattern: {pattern}")
        if alpha == -1 or alpha < colon:
            alpha = len(pattern)
        return cls(
            user=pattern[:colon],
            password=pattern[colon + 1 : alpha],
            path=pattern[alpha + 1 :].lstrip("/"),
        )


@dataclass(frozen=True)
class SiteConfig:
    """Immutable server settings.

    ``config_json`` is the only derived value with state: it is memoised in
    production and re-read from disk on every call otherwise.
    """

    frontend: str = DEFAULT_FRONTEND
    backend: str = ""
    directory: Path = Path(".")
    json_files: tuple[str, ...] = ()
    layout: str = ""
    auth: tuple[str, ...] = ()
    proxy: bool = False
    prod: bool = False
    debug: bool = False
    backend_timeout: float = 10.0
    _json_cache: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)
    _json_lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "frontend", normalize_address(self.frontend, DEFAULT_FRONTEND))
        object.__setattr__(self, "backend", normalize_address(self.backend, ""))
        object.__setattr__(self, "directory", Path(self.directory or "."))
        object.__setattr__(self, "json_files", tuple(self.json_files))
        object.__setattr__(self, "auth", tuple(pattern for pattern in self.auth if pattern))
        if self.backend_timeout <= 0:
            raise ConfigError("backend_timeout must be positive")
        for pattern in self.auth:
            AuthPattern.parse(pattern)

    @property
    def frontend_ext(self) -> str:
        return FRONTEND_EXT

    @property
    def backend_ext(self) -> str:
        return BACKEND_EXT

    @property
    def path_prefix(self) -> str:
        """URL path the site is mounted under, without a trailing slash."""

        return _url_path(self.frontend)

    @property
    def port(self) -> int:
        parts = urlsplit(self.frontend)
        if parts.port is not None:
            return parts.port
        if parts.scheme == "https":
            return 443
        return 80

    @property
    def host(self) -> str:
        return urlsplit(self.frontend).hostname or "localhost"

    @property
    def layout_name(self) -> str:
        if not self.layout:
            return ""
        directory = posixpath.dirname(self.layout.replace("\\", "/")).lstrip("/")
        return posixpath.join(directory, file_name(self.layout))

    @property
    def auth_patterns(self) -> tuple[AuthPattern, ...]:
        return tuple(AuthPattern.parse(pattern) for pattern in self.auth)

    def config_json(self) -> Mapping[str, Any] | None:
        """Return the configured JSON files keyed by file name."""

        if not self.json_files:
            return None
        with self._json_lock:
            if self.prod and self._json_cache:
                return dict(self._json_cache)
            loaded = {file_name(rel): _load_json(rel) for rel in self.json_files}
            self._json_cache.clear()
            self._json_cache.update(loaded)
            return dict(loaded)


def _url_path(address: str) -> str:
    if not address:
        return ""
    path = urlsplit(address).path
    if path in ("", "/"):
        return ""
    return path.rstrip("/")


def _load_json(rel: str) -> dict[str, Any]:
    path = Path(rel)
    if not path.is_file():
        raise ConfigError(f"Unknown file: {rel}")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Parse error in {rel}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigError(f"{rel} must contain a JSON object")
    return payload
