"""Compile a directory of templates and render them by logical name."""

from __future__ import annotations

import logging
import posixpath
import threading
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Mapping

import jinja2
from markupsafe import Markup

from ..files import has_file, walk_files
from .errors import TemplateCompileError, TemplateNotFound, TemplateRenderError
from .helpers import DEFAULT_HELPERS, TemplateHelper

__all__ = ["RenderContext", "TemplateEngine", "TemplateRegistry", "template_name"]

logger = logging.getLogger(__name__)

_RENDER_FAILURES = (
    jinja2.TemplateError,
    AttributeError,
    LookupError,
    OSError,
    TypeError,
    ValueError,
)


def template_name(path: str) -> str:
    """Return the logical name for *path*: extension and leading ``/`` removed."""

    normalized = path.replace("\\", "/")
    base, _ = posixpath.splitext(normalized)
    return base.lstrip("/")


@dataclass(frozen=True)
class TemplateRegistry:
    """Immutable snapshot of every compiled template."""

    environment: jinja2.Environment
    templates: Mapping[str, jinja2.Template]

    def __contains__(self, name: object) -> bool:
        return name in self.templates

    def get(self, name: str) -> jinja2.Template:
        template = self.templates.get(name)
        if template is None:
            raise TemplateNotFound(name)
        return template

    def render(self, name: str, environment: Mapping[str, Any], **extra: Any) -> str:
        template = self.get(name)
        try:
            return template.render({**environment, **extra})
        except _RENDER_FAILURES as exc:
            raise TemplateRenderError(name, str(exc)) from exc


class RenderContext:
    """Capability handed to a layout to render the page it wraps."""

    __slots__ = ("_registry", "_name", "_environment")

    def __init__(
        self, registry: TemplateRegistry, name: str, environment: Mapping[str, Any]
    ) -> None:
        self._registry = registry
        self._name = name
        self._environment = environment

    @property
    def name(self) -> str:
        return self._name

    def yield_content(self) -> Markup:
        try:
            return Markup(self._registry.render(self._name, self._environment))
        except (TemplateNotFound, TemplateRenderError) as exc:
            logger.warning("Layout content failed for %s: %s", self._name, exc)
            return Markup("")


class TemplateEngine:
    """Compile and execute the site's templates.

    Production engines compile once and reuse the snapshot until helpers are
    registered; development engines recompile before every render so edits on
    disk are picked up immediately.
    """

    def __init__(
        self,
        *,
        directory: Path,
        extensions: tuple[str, ...],
        prod: bool = False,
        layout: str = "",
        base_environment: Callable[[], Mapping[str, Any]] | None = None,
        functions: Mapping[str, Callable[..., Any]] | None = None,
    ) -> None:
        self._directory = Path(directory)
        self._extensions = tuple(extensions)
        self._prod = prod
        self._layout = layout
        self._base_environment = base_environment or dict
        self._functions: dict[str, Callable[..., Any]] = dict(DEFAULT_HELPERS)
        self._functions.update(functions or {})
        self._registry: TemplateRegistry | None = None
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def prod(self) -> bool:
        return self._prod

    @property
    def layout(self) -> str:
        return self._layout

    def register_functions(self, functions: Mapping[str, Callable[..., Any]]) -> None:
        """Add template helpers and force a recompile on the next render."""

        with self._lock:
            self._functions.update(functions)
            self._registry = None
            self._generation += 1

    def compile(self) -> TemplateRegistry:
        """Compile every template under the site directory into a new snapshot."""

        with self._lock:
            functions = dict(self._functions)
            generation = self._generation

        sources = self._read_sources()
        environment = jinja2.Environment(
            loader=jinja2.DictLoader(sources),
            autoescape=True,
            keep_trailing_newline=True,
            auto_reload=False,
        )
        environment.globals.update(
            {name: TemplateHelper(name, function) for name, function in functions.items()}
        )
        templates: dict[str, jinja2.Template] = {}
        for name in sources:
            try:
                templates[name] = environment.get_template(name)
            except jinja2.TemplateSyntaxError as exc:
                raise TemplateCompileError(name, f"line {exc.lineno}: {exc.message}") from exc

        registry = TemplateRegistry(environment, MappingProxyType(templates))
        with self._lock:
            if generation == self._generation:
                self._registry = registry
        logger.debug("Compiled %d templates from %s", len(templates), self._directory)
        return registry

    def snapshot(self) -> TemplateRegistry:
        """Return the registry to render against, compiling when required."""

        with self._lock:
            registry = self._registry
        if registry is None or not self._prod:
            registry = self.compile()
        return registry

    def environment(self, data: Mapping[str, Any] | None = None) -> dict[str, Any]:
        env = dict(self._base_environment())
        env.update(data or {})
        return env

    def render(self, name: str, data: Mapping[str, Any] | None = None) -> bytes:
        """Render the template for *name*, wrapped in the layout if configured."""

        registry = self.snapshot()
        env = self.environment(data)
        target = template_name(name)
        if self._layout and target != self._layout:
            if target not in registry:
                raise TemplateNotFound(target)
            context = RenderContext(registry, target, env)
            output = registry.render(self._layout, env, **{"yield": context.yield_content})
        else:
            output = registry.render(target, env)
        return output.encode("utf-8")

    def has_template_file(self, rel: str) -> bool:
        """Return ``True`` when *rel* names a visible file in the site directory."""

        return has_file(self._directory, rel)

    def _read_sources(self) -> dict[str, str]:
        sources: dict[str, str] = {}
        for rel in walk_files(self._directory):
            if posixpath.splitext(rel)[1] not in self._extensions:
                continue
            name = template_name(rel)
            try:
                sources[name] = (self._directory / rel).read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                raise TemplateCompileError(name, str(exc)) from exc
        return sources
