"""Serve site pages straight from the template engine."""

from __future__ import annotations

import logging
import posixpath
from typing import Any, Mapping

from starlette.responses import Response

from .._templating import TemplateEngine, TemplateError
from .config import SiteConfig
from .errors import ConfigError
from .http.exchange import Exchange, Next, error_response

__all__ = ["HTML_CONTENT_TYPE", "PageHandler"]

logger = logging.getLogger(__name__)

HTML_CONTENT_TYPE = "text/html; charset=UTF-8"


class PageHandler:
    """Chain handler rendering ``GET`` requests that map onto a page template."""

    def __init__(self, config: SiteConfig, engine: TemplateEngine) -> None:
        self._config = config
        self._engine = engine

    @property
    def engine(self) -> TemplateEngine:
        return self._engine

    def __call__(self, exchange: Exchange, call_next: Next) -> Response:
        return self.handle_request(exchange, call_next)

    def handle_request(self, exchange: Exchange, call_next: Next) -> Response:
        path = self.expand_path(exchange.path)
        if exchange.method != "GET" or self.skip_path(path):
            return call_next(exchange)
        return self.respond(200, path)

    def respond(
        self, status_code: int, name: str, data: Mapping[str, Any] | None = None
    ) -> Response:
        """Render *name* with *data*; render failures become a 404."""

        try:
            body = self._engine.render(name, data)
        except (TemplateError, ConfigError) as exc:
            logger.warning("Render failed for %s: %s", name, exc)
            return error_response(404)
        return Response(
            body, status_code=status_code, headers={"Content-Type": HTML_CONTENT_TYPE}
        )

    def expand_path(self, path: str) -> str:
        if path.endswith("/"):
            return path + "index" + self._config.frontend_ext
        return path

    def skip_path(self, path: str) -> bool:
        ext = posixpath.splitext(path)[1]
        if ext and ext != self._config.frontend_ext:
            return True
        if ext:
            return not self._engine.has_template_file(path)
        return not self._engine.has_template_file(path + self._config.frontend_ext)
