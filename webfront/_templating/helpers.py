"""Generic helpers available to every template."""

from __future__ import annotations

import re
from typing import Any, Callable, Iterable, Mapping

import jinja2
from markupsafe import Markup
from slugify import slugify

__all__ = [
    "DEFAULT_HELPERS",
    "TemplateHelper",
    "join",
    "noescape",
    "slug",
    "title",
    "when",
    "yield_",
]

_WORD_START = re.compile(r"(?<!\w)\w")


class TemplateHelper(jinja2.Undefined):
    """A helper function that reads as an undefined value unless it is called.

    Helpers share the template namespace with render data, so a key missing
    from the data must not print the helper or satisfy ``default``.
    """

    __slots__ = ("_function",)

    def __init__(self, name: str, function: Callable[..., Any]) -> None:
        super().__init__(name=name)
        self._function = function

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self._function(*args, **kwargs)

    def __getattr__(self, name: str) -> Any:
        if name == "jinja_pass_arg":
            return getattr(self._function, name)
        return super().__getattr__(name)


def join(items: Iterable[Any], sep: str) -> str:
    """Concatenate *items* with *sep*."""

    return sep.join(str(item) for item in items)


def noescape(value: Any) -> Markup:
    """Mark *value* as safe HTML."""

    return Markup(value)


def slug(value: Any) -> str:
    return slugify(str(value))


def title(value: Any) -> str:
    """Upper-case the first letter of every word, leaving the rest untouched."""

    return _WORD_START.sub(lambda match: match.group(0).upper(), str(value))


def when(condition: Any, if_true: Any, if_false: Any) -> Any:
    return if_true if condition else if_false


def yield_() -> Markup:
    # Layouts receive a per-render replacement.
    return Markup("")


DEFAULT_HELPERS: Mapping[str, Callable[..., Any]] = {
    "join": join,
    "noescape": noescape,
    "slug": slug,
    "title": title,
    "when": when,
    "yield": yield_,
}
