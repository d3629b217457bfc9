"""Forward unmatched requests to the backend and decorate its JSON."""

from __future__ import annotations

import json
import logging
import posixpath
from dataclasses import dataclass
from typing import Any

import httpx
from starlette.responses import Response

from .config import SiteConfig
from .errors import BackendError
from .http.exchange import Exchange, Next, error_response
from .pages import PageHandler

__all__ = ["FORWARDED_HEADERS", "ProxyDecorator", "ProxyExchange", "indent_json"]

logger = logging.getLogger(__name__)

FORWARDED_HEADERS = ("accept", "authorization", "content-type", "cookie")
JSON_CONTENT_TYPE = "application/json"


@dataclass(frozen=True)
class ProxyExchange:
    """One completed round trip to the backend."""

    method: str
    url: str
    body: bytes
    status_code: int
    payload: bytes
    content_type: str | None = None


class ProxyDecorator:
    """Chain handler merging backend responses into ``.tmpl`` templates.

    When no template matches the request path the backend body is returned as
    indented JSON (or untouched when it is not JSON). Either way the backend's
    status code is kept.
    """

    def __init__(
        self,
        config: SiteConfig,
        pages: PageHandler,
        *,
        client: httpx.Client | None = None,
    ) -> None:
        self._config = config
        self._pages = pages
        self._client = client or httpx.Client(timeout=config.backend_timeout)

    @property
    def client(self) -> httpx.Client:
        return self._client

    def close(self) -> None:
        self._client.close()

    def __call__(self, exchange: Exchange, call_next: Next) -> Response:
        return self.handle(exchange)

    def target_url(self, exchange: Exchange) -> str:
        return self._config.backend + exchange.request_uri.lstrip("/")

    def template_for(self, path: str) -> str:
        rel = path.lstrip("/")
        base, _ = posixpath.splitext(rel)
        return base + self._config.backend_ext

    def handle(self, exchange: Exchange) -> Response:
        try:
            result = self.forward(exchange)
        except BackendError as exc:
            logger.error("Backend request failed: %s", exc)
            return error_response(exc.status_code)
        return self.decorate(exchange, result)

    def forward(self, exchange: Exchange) -> ProxyExchange:
        url = self.target_url(exchange)
        headers = {
            name: exchange.headers[name]
            for name in FORWARDED_HEADERS
            if name in exchange.headers
        }
        try:
            response = self._client.request(
                exchange.method, url, content=exchange.body or None, headers=headers
            )
        except httpx.TimeoutException as exc:
            raise BackendError(url, str(exc) or "timed out", timeout=True) from exc
        except httpx.HTTPError as exc:
            raise BackendError(url, str(exc) or type(exc).__name__) from exc
        return ProxyExchange(
            method=exchange.method,
            url=url,
            body=exchange.body,
            status_code=response.status_code,
            payload=response.content,
            content_type=response.headers.get("content-type"),
        )

    def decorate(self, exchange: Exchange, result: ProxyExchange) -> Response:
        template = self.template_for(exchange.path)
        if not self._pages.engine.has_template_file(template):
            return self.passthrough(result)
        try:
            data = _json_object(result.payload)
        except ValueError as exc:
            logger.warning("Cannot decorate %s with %s: %s", result.url, template, exc)
            return error_response(404)
        return self._pages.respond(result.status_code, template, data)

    def passthrough(self, result: ProxyExchange) -> Response:
        try:
            text = result.payload.decode("utf-8")
            json.loads(text, parse_constant=_reject_constant)
        except ValueError:
            return Response(
                result.payload,
                status_code=result.status_code,
                media_type=result.content_type,
            )
        return Response(
            indent_json(text).encode("utf-8"),
            status_code=result.status_code,
            media_type=JSON_CONTENT_TYPE,
        )


def indent_json(document: str, indent: str = "  ") -> str:
    """Re-indent valid JSON text, leaving every token exactly as written."""

    out: list[str] = []
    depth = 0
    opened = in_string = escaped = False
    for char in document:
        if in_string:
            out.append(char)
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char in " \t\r\n":
            continue
        if opened:
            opened = False
            if char in "}]":
                depth -= 1
                out.append(char)
                continue
            out.append("\n" + indent * depth)
        if char in "{[":
            depth += 1
            opened = True
            out.append(char)
        elif char in "}]":
            depth -= 1
            out.append("\n" + indent * depth + char)
        elif char == ",":
            out.append(",\n" + indent * depth)
        elif char == ":":
            out.append(": ")
        else:
            if char == '"':
                in_string = True
            out.append(char)
    return "".join(out)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON constant {name}")


def _json_object(payload: bytes) -> dict[str, Any]:
    data = json.loads(payload, parse_constant=_reject_constant)
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data
