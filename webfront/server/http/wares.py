"""Chain handlers wrapping the router, pages, static files and proxy."""

from __future__ import annotations

import base64
import binascii
import hmac
import logging
import posixpath
from dataclasses import replace
from pathlib import Path
from typing import Iterable
from urllib.parse import quote

from starlette.responses import FileResponse, RedirectResponse, Response

from ...files import AssetPathError, is_ignored, resolve_within
from ..config import AuthPattern, SiteConfig
from .exchange import Exchange, Next, Ware, error_response

__all__ = [
    "NO_CACHE_HEADERS",
    "auth_ware",
    "ignore_ware",
    "nocache_ware",
    "not_found_ware",
    "prefix_ware",
    "recovery_ware",
    "reverse_proxy_ware",
    "secure_ware",
    "static_ware",
]

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Expires": "Thu, 01 Jan 1970 00:00:00 GMT",
    "Cache-Control": "no-cache, private, max-age=0",
    "Pragma": "no-cache",
    "X-Accel-Expires": "0",
}
_CONDITIONAL_HEADERS = (
    "ETag",
    "If-Modified-Since",
    "If-Match",
    "If-None-Match",
    "If-Range",
    "If-Unmodified-Since",
)
_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-XSS-Protection": "1; mode=block",
}


def recovery_ware(exchange: Exchange, call_next: Next) -> Response:
    """Turn unexpected handler exceptions into a 500 response."""

    try:
        return call_next(exchange)
    except Exception:
        logger.exception("Unhandled error serving %s %s", exchange.method, exchange.uri)
        return error_response(500)


def reverse_proxy_ware(config: SiteConfig) -> Ware | None:
    if not config.proxy:
        return None

    def real_ip(exchange: Exchange, call_next: Next) -> Response:
        forwarded = exchange.headers.get("x-forwarded-for", "")
        client = exchange.headers.get("x-real-ip") or forwarded.split(",")[0].strip()
        if client:
            exchange = replace(exchange, client=client)
        return call_next(exchange)

    return real_ip


def prefix_ware(config: SiteConfig) -> Ware | None:
    """Strip the frontend path prefix; requests outside it are not found."""

    prefix = config.path_prefix
    if not prefix:
        return None

    def strip(exchange: Exchange, call_next: Next) -> Response:
        if not exchange.path.startswith(prefix):
            return error_response(404)
        path = exchange.path[len(prefix) :]
        raw_path = exchange.raw_path or quote(exchange.path)
        raw_path = raw_path[len(prefix) :] if raw_path.startswith(prefix) else quote(path)
        if not posixpath.splitext(path)[1] and not path.endswith("/"):
            path += "/"
            raw_path += "/"
        return call_next(exchange.with_path(path, raw_path))

    return strip


def secure_ware(exchange: Exchange, call_next: Next) -> Response:
    response = call_next(exchange)
    for name, value in _SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


def ignore_ware(config: SiteConfig) -> Ware:
    """Hide ignored paths, and raw backend templates when a backend is set."""

    backend = config.backend
    ext = config.backend_ext

    def ignore(exchange: Exchange, call_next: Next) -> Response:
        if backend and exchange.path.endswith(ext):
            return error_response(404)
        if is_ignored(exchange.path):
            return error_response(404)
        return call_next(exchange)

    return ignore


def auth_ware(patterns: Iterable[AuthPattern]) -> Ware | None:
    """Require basic auth for URIs starting with each pattern's path."""

    matchers = tuple(patterns)
    if not matchers:
        return None

    def authenticate(exchange: Exchange, call_next: Next) -> Response:
        source = exchange.uri.lstrip("/")
        for pattern in matchers:
            if source.startswith(pattern.path):
                if _authorized(exchange, pattern):
                    break
                return error_response(
                    401, {"WWW-Authenticate": 'Basic realm="Restricted"'}
                )
        return call_next(exchange)

    return authenticate


def _authorized(exchange: Exchange, pattern: AuthPattern) -> bool:
    scheme, _, token = exchange.headers.get("authorization", "").partition(" ")
    if scheme.lower() != "basic" or not token:
        return False
    try:
        decoded = base64.b64decode(token.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return False
    user, _, password = decoded.partition(":")
    return hmac.compare_digest(
        user.encode("utf-8"), pattern.user.encode("utf-8")
    ) and hmac.compare_digest(password.encode("utf-8"), pattern.password.encode("utf-8"))


def static_ware(directory: Path, prefix: str = "", index: str = "index.html") -> Ware:
    """Serve regular files from the site directory.

    A directory holding *index* is only served with a trailing ``/``; without
    one the client is redirected there, keeping relative links intact.
    """

    def serve(exchange: Exchange, call_next: Next) -> Response:
        if exchange.method not in ("GET", "HEAD"):
            return call_next(exchange)
        try:
            target = resolve_within(directory, exchange.path)
        except AssetPathError:
            return call_next(exchange)
        if target.is_dir():
            target = target / index
            if not target.is_file():
                return call_next(exchange)
            if not exchange.path.endswith("/"):
                location = prefix + exchange.path + "/"
                if exchange.query:
                    location += "?" + exchange.query
                return RedirectResponse(location, status_code=302)
        if not target.is_file():
            return call_next(exchange)
        return FileResponse(target, stat_result=target.stat())

    return serve


def nocache_ware(exchange: Exchange, call_next: Next) -> Response:
    """Force downstream responses to be fetched fresh."""

    response = call_next(exchange.without_headers(*_CONDITIONAL_HEADERS))
    for name in ("ETag", "Last-Modified"):
        if name in response.headers:
            del response.headers[name]
    for name, value in NO_CACHE_HEADERS.items():
        response.headers[name] = value
    return response


def not_found_ware(exchange: Exchange, call_next: Next) -> Response:
    return error_response(404)
