"""Template compilation and rendering used by the site server."""

from .engine import RenderContext, TemplateEngine, TemplateRegistry, template_name
from .errors import (
    TemplateCompileError,
    TemplateError,
    TemplateNotFound,
    TemplateRenderError,
)
from .helpers import DEFAULT_HELPERS

__all__ = [
    "DEFAULT_HELPERS",
    "RenderContext",
    "TemplateCompileError",
    "TemplateEngine",
    "TemplateError",
    "TemplateNotFound",
    "TemplateRegistry",
    "TemplateRenderError",
    "template_name",
]
