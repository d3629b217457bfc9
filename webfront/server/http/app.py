"""HTTP application wiring for the site server."""

from __future__ import annotations

import contextlib
from dataclasses import dataclass
from functools import cached_property
from typing import Any, AsyncIterator, Callable, Iterable, Mapping

import httpx
from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from starlette.responses import Response

from ..._templating import TemplateEngine
from ..assets import BUNDLE_PARAM, AssetPipeline
from ..config import SiteConfig
from ..pages import PageHandler
from ..proxy import ProxyDecorator
from .exchange import Exchange, Next, Ware, error_response
from .router import Handler, Router
from .wares import (
    auth_ware,
    ignore_ware,
    nocache_ware,
    not_found_ware,
    prefix_ware,
    recovery_ware,
    reverse_proxy_ware,
    secure_ware,
    static_ware,
)

__all__ = ["RequestPipeline", "Site", "create_site_app"]

_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


@dataclass(frozen=True)
class RequestPipeline:
    """Ordered chain of wares; falling off the end is a 404."""

    wares: tuple[Ware, ...]

    @classmethod
    def of(cls, wares: Iterable[Ware | None]) -> "RequestPipeline":
        return cls(tuple(ware for ware in wares if ware is not None))

    def __call__(self, exchange: Exchange) -> Response:
        return self._dispatch(0, exchange)

    def _dispatch(self, index: int, exchange: Exchange) -> Response:
        if index >= len(self.wares):
            return error_response(404)
        ware = self.wares[index]
        return ware(exchange, lambda forwarded: self._dispatch(index + 1, forwarded))


class Site:
    """A served site: template engine, assets, proxy and the handler chain."""

    def __init__(
        self,
        config: SiteConfig | None = None,
        *,
        client: httpx.Client | None = None,
        seed: str | None = None,
    ) -> None:
        self.config = config or SiteConfig()
        self.router = Router()
        self.engine = TemplateEngine(
            directory=self.config.directory,
            extensions=(self.config.frontend_ext, self.config.backend_ext),
            prod=self.config.prod,
            layout=self.config.layout_name,
            base_environment=self._base_environment,
        )
        self.pages = PageHandler(self.config, self.engine)
        self.assets = AssetPipeline(self.config, seed=seed)
        self.router.add("GET", self.assets.route, self._serve_bundle)
        self.engine.register_functions(self.assets.functions())
        self.proxy = (
            ProxyDecorator(self.config, self.pages, client=client)
            if self.config.backend
            else None
        )
        self._before: list[Ware | None] = [
            recovery_ware,
            reverse_proxy_ware(self.config),
            prefix_ware(self.config),
            secure_ware,
            ignore_ware(self.config),
            auth_ware(self.config.auth_patterns),
        ]
        self._not_found: Ware = not_found_ware

    def pipeline(self) -> RequestPipeline:
        return RequestPipeline.of([*self._before, self.router, *self._after()])

    def handle(self, exchange: Exchange) -> Response:
        return self.pipeline()(exchange)

    def execute(self, name: str, data: Mapping[str, Any] | None = None) -> bytes:
        """Render a template with *data* through the layout."""

        return self.engine.render(name, data)

    def respond(
        self, status_code: int, name: str, data: Mapping[str, Any] | None = None
    ) -> Response:
        return self.pages.respond(status_code, name, data)

    def handler(self, method: str, path: str, handler: Handler) -> None:
        self.router.add(method, path, handler)

    def redirect(self, source: str, target: str, status_code: int = 302) -> None:
        self.router.redirect(source, target, status_code)

    def middleware(self, *wares: Ware) -> None:
        """Append wares to the chain, ahead of the router."""

        self._before.extend(wares)

    def not_found(self, handler: Callable[[Exchange], Response]) -> None:
        def fallback(exchange: Exchange, call_next: Next) -> Response:
            return handler(exchange)

        self._not_found = fallback

    def func_map(self, functions: Mapping[str, Callable[..., Any]]) -> None:
        self.engine.register_functions(functions)

    def close(self) -> None:
        if self.proxy is not None:
            self.proxy.close()

    @cached_property
    def app(self) -> FastAPI:
        return create_site_app(self)

    def _after(self) -> list[Ware | None]:
        static = static_ware(self.config.directory, self.config.path_prefix)
        if self.config.prod:
            return [self.pages, static, nocache_ware, self.proxy, self._not_found]
        return [nocache_ware, self.pages, static, self.proxy, self._not_found]

    def _base_environment(self) -> dict[str, Any]:
        return {"prod": self.config.prod, "config": self.config.config_json()}

    def _serve_bundle(self, exchange: Exchange) -> Response:
        return self.assets.serve(
            exchange.params.get(BUNDLE_PARAM, ""),
            if_modified_since=exchange.headers.get("if-modified-since"),
        )


def create_site_app(site: Site) -> FastAPI:
    """Create a FastAPI app that hands every request to the site's chain."""

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        site.close()

    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None, lifespan=lifespan)
    app.state.site = site

    @app.api_route("/{path:path}", methods=_METHODS, include_in_schema=False)
    async def dispatch(path: str, request: Request) -> Response:
        body = await request.body()
        exchange = Exchange.from_request(request, body)
        return await run_in_threadpool(site.handle, exchange)

    return app
