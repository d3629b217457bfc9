"""Method and path dispatch for explicitly registered handlers."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable

from starlette.responses import RedirectResponse, Response

from .exchange import Exchange, Next

__all__ = ["Handler", "Route", "Router"]

Handler = Callable[[Exchange], Response]


@dataclass(frozen=True)
class Route:
    """A path pattern; a trailing ``*name`` segment captures the remainder."""

    method: str
    pattern: str
    handler: Handler

    @property
    def wildcard(self) -> str | None:
        head, sep, name = self.pattern.rpartition("*")
        if not sep or "/" in name:
            return None
        return name

    def match(self, method: str, path: str) -> dict[str, str] | None:
        if method != self.method and not (method == "HEAD" and self.method == "GET"):
            return None
        name = self.wildcard
        if name is None:
            return {} if path == self.pattern else None
        prefix = self.pattern[: -(len(name) + 1)]
        if not path.startswith(prefix):
            return None
        return {name: path[len(prefix) :]}


class Router:
    """Dispatch to registered routes, deferring unmatched requests downstream."""

    def __init__(self) -> None:
        self._routes: list[Route] = []

    @property
    def routes(self) -> tuple[Route, ...]:
        return tuple(self._routes)

    def add(self, method: str, pattern: str, handler: Handler) -> Route:
        route = Route(method.upper(), pattern.lower(), handler)
        self._routes.append(route)
        return route

    def redirect(self, source: str, target: str, status_code: int = 302) -> Route:
        return self.add(
            "GET",
            source,
            lambda exchange: RedirectResponse(target, status_code=status_code),
        )

    def __call__(self, exchange: Exchange, call_next: Next) -> Response:
        for route in self._routes:
            params = route.match(exchange.method, exchange.path)
            if params is not None:
                return route.handler(replace(exchange, params=params))
        return call_next(exchange)
