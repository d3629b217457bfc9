"""Request snapshot passed down the handler chain."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Callable, Mapping
from urllib.parse import quote

from starlette.datastructures import Headers
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

__all__ = [
    "Exchange",
    "Next",
    "Ware",
    "error_response",
]


@dataclass(frozen=True)
class Exchange:
    """Fully read request handled synchronously by the chain.

    ``path`` is percent-decoded; ``raw_path`` keeps the encoding the client
    sent and is what gets forwarded to the backend.
    """

    method: str
    path: str
    query: str = ""
    headers: Headers = field(default_factory=Headers)
    body: bytes = b""
    client: str | None = None
    params: Mapping[str, str] = field(default_factory=dict)
    raw_path: str = ""

    @classmethod
    def from_request(cls, request: Request, body: bytes) -> "Exchange":
        return cls(
            method=request.method.upper(),
            path=request.url.path,
            query=request.url.query,
            headers=request.headers,
            body=body,
            client=request.client.host if request.client else None,
            raw_path=request.scope.get("raw_path", b"").decode("latin-1"),
        )

    @property
    def uri(self) -> str:
        """Decoded path plus query string."""

        return _with_query(self.path, self.query)

    @property
    def request_uri(self) -> str:
        """Encoded path plus query string, as sent by the client."""

        return _with_query(self.raw_path or quote(self.path), self.query)

    def with_path(self, path: str, raw_path: str | None = None) -> "Exchange":
        if raw_path is None:
            raw_path = quote(path)
        return replace(self, path=path, raw_path=raw_path)

    def without_headers(self, *names: str) -> "Exchange":
        dropped = {name.lower() for name in names}
        remaining = [
            (key, value)
            for key, value in self.headers.raw
            if key.decode("latin-1").lower() not in dropped
        ]
        return replace(self, headers=Headers(raw=remaining))


def _with_query(path: str, query: str) -> str:
    if query:
        return f"{path}?{query}"
    return path


Next = Callable[[Exchange], Response]
Ware = Callable[[Exchange, Next], Response]

_REASONS = {
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    500: "Internal Server Error",
    502: "Bad Gateway",
    504: "Gateway Timeout",
}


def error_response(status_code: int, headers: Mapping[str, str] | None = None) -> Response:
    """Plain text error body in the ``"404 Not Found"`` style."""

    reason = _REASONS.get(status_code, "Error")
    return PlainTextResponse(
        f"{status_code} {reason}", status_code=status_code, headers=dict(headers or {})
    )
