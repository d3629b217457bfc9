"""Asset references for templates: inline snippets, linked files and bundles."""

from __future__ import annotations

import enum
import logging
import secrets
import time
from dataclasses import dataclass
from datetime import datetime
from email.utils import format_datetime, parsedate_to_datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping

import markdown
import nh3
from jinja2 import Undefined
from markupsafe import Markup
from starlette.responses import Response

from .asset_cache import AssetCache, AssetEntry, bundle_digest, mime_for_extension
from .config import SiteConfig
from ..files import AssetPathError, list_files, resolve_within

__all__ = [
    "ASSET_TYPES",
    "BUNDLE_ROUTE",
    "AssetKind",
    "AssetPipeline",
    "AssetType",
    "render_markdown",
]

logger = logging.getLogger(__name__)

BUNDLE_ROUTE = "/assets"
BUNDLE_PARAM = "file"


def render_markdown(payload: bytes) -> bytes:
    """Convert markdown to HTML and strip anything unsafe for user content."""

    html = markdown.markdown(payload.decode("utf-8", errors="replace"))
    return nh3.clean(html).encode("utf-8")


class AssetKind(str, enum.Enum):
    PASTE = "paste"
    TPL = "tpl"
    MD = "md"
    CSS = "css"
    JS = "js"


@dataclass(frozen=True)
class AssetType:
    """Rendering rules for one kind of asset.

    ``html`` has two positional slots: the public URL of the asset and the
    (possibly empty) inlined content.
    """

    kind: AssetKind
    ext: str
    html: str
    processor: Callable[[bytes], bytes] | None = None

    def fragment(self, href: str, content: str = "") -> str:
        return self.html.format(href, content)

    def process(self, payload: bytes) -> bytes:
        if self.processor is None:
            return payload
        return self.processor(payload)


ASSET_TYPES: Mapping[AssetKind, AssetType] = MappingProxyType(
    {
        AssetKind.PASTE: AssetType(AssetKind.PASTE, "", "<!-- {0} -->\n{1}"),
        AssetKind.TPL: AssetType(
            AssetKind.TPL, "", '<script type="text/template" id="{0}">{1}</script>'
        ),
        AssetKind.MD: AssetType(
            AssetKind.MD, ".md", '<div class="md" id="{0}">{1}</div>', render_markdown
        ),
        AssetKind.CSS: AssetType(AssetKind.CSS, ".css", '<link rel="stylesheet" href="{0}">{1}'),
        AssetKind.JS: AssetType(AssetKind.JS, ".js", '<script src="{0}">{1}</script>'),
    }
)


def _join_url(prefix: str, rel: str) -> str:
    if not prefix:
        return rel
    return prefix + "/" + rel.lstrip("/")


def _process_seed() -> str:
    return f"{time.time_ns()}-{secrets.token_hex(8)}"


class AssetPipeline:
    """Resolve asset references against the site directory and render them.

    In production ``css`` and ``js`` are combined into hashed bundles served
    from :attr:`bundle_root`; in development they are linked file by file so
    edits show up on the next request.
    """

    def __init__(
        self,
        config: SiteConfig,
        *,
        cache: AssetCache | None = None,
        seed: str | None = None,
    ) -> None:
        self._directory = config.directory
        self._prefix = config.path_prefix
        self._prod = config.prod
        self._cache = cache or AssetCache(trusted=config.prod)
        self.bundle_root = f"{BUNDLE_ROUTE}/{bundle_digest(seed or _process_seed())}/"

    @property
    def cache(self) -> AssetCache:
        return self._cache

    @property
    def route(self) -> str:
        """Router pattern serving combined bundles."""

        return f"{self.bundle_root}*{BUNDLE_PARAM}"

    def functions(self) -> dict[str, Callable[..., Markup]]:
        """Template helpers exposing every asset kind."""

        helpers: dict[str, Callable[..., Markup]] = {
            kind.value: self._bind(self.inline, kind)
            for kind in (AssetKind.PASTE, AssetKind.TPL, AssetKind.MD)
        }
        file_mode = self.combined if self._prod else self.linked
        for kind in (AssetKind.CSS, AssetKind.JS):
            helpers[kind.value] = self._bind(file_mode, kind)
        return helpers

    def unpack(self, sources: Iterable[Any]) -> list[str]:
        """Flatten nested reference lists into plain strings."""

        flattened: list[str] = []
        for source in sources:
            if source is None or isinstance(source, Undefined):
                continue
            if isinstance(source, str):
                flattened.append(source)
            elif isinstance(source, (list, tuple)):
                flattened.extend(self.unpack(source))
            else:
                flattened.append(str(source))
        return flattened

    def resolve(self, references: Iterable[str]) -> list[str]:
        """Expand references to files, keeping a leading ``/`` if present."""

        resolved: list[str] = []
        for source in references:
            try:
                files = list_files(self._directory, source)
            except AssetPathError as exc:
                logger.warning("Skipping asset reference: %s", exc)
                continue
            rooted = source.startswith("/")
            resolved.extend(f"/{rel}" if rooted else rel for rel in files)
        return resolved

    def inline(self, kind: AssetKind, *sources: Any) -> Markup:
        asset_type = ASSET_TYPES[kind]
        tags = []
        for rel in self.resolve(self.unpack(sources)):
            entry = self._cache.file_entry(
                kind.value, rel, lambda rel=rel: self._inline_entry(asset_type, rel)
            )
            content = entry.payload.decode("utf-8", errors="replace")
            tags.append(asset_type.fragment(_join_url(self._prefix, rel), content))
        return Markup("\n".join(tags))

    def linked(self, kind: AssetKind, *sources: Any) -> Markup:
        asset_type = ASSET_TYPES[kind]
        tags = [
            asset_type.fragment(_join_url(self._prefix, rel))
            for rel in self.resolve(self.unpack(sources))
        ]
        return Markup("\n".join(tags))

    def combined(self, kind: AssetKind, *sources: Any) -> Markup:
        asset_type = ASSET_TYPES[kind]
        references = self.unpack(sources)
        if not references:
            return Markup("")
        entry = self.bundle(asset_type, self.resolve(references))
        href = self.bundle_root + entry.name
        if references[0].startswith("/"):
            href = _join_url(self._prefix, href)
        else:
            href = href.lstrip("/")
        return Markup(asset_type.fragment(href))

    def bundle(self, asset_type: AssetType, paths: list[str]) -> AssetEntry:
        """Return the bundle entry for *paths*, building it if needed."""

        name = bundle_digest("".join(paths)) + asset_type.ext
        return self._cache.bundle_entry(
            name, lambda: self._bundle_entry(asset_type, name, paths)
        )

    def serve(self, name: str, *, if_modified_since: str | None = None) -> Response:
        """Respond with a cached bundle, honouring ``If-Modified-Since``."""

        entry = self._cache.bundle(name)
        if entry is None:
            return Response("404 Not Found", status_code=404, media_type="text/plain")
        headers = {"Last-Modified": format_datetime(entry.modified, usegmt=True)}
        if _not_modified(entry.modified, if_modified_since):
            return Response(status_code=304, headers=headers)
        return Response(entry.payload, media_type=entry.mime, headers=headers)

    def read(self, rel: str) -> bytes:
        return resolve_within(self._directory, rel).read_bytes()

    def _bind(
        self, mode: Callable[..., Markup], kind: AssetKind
    ) -> Callable[..., Markup]:
        def helper(*sources: Any) -> Markup:
            return mode(kind, *sources)

        helper.__name__ = kind.value
        return helper

    def _inline_entry(self, asset_type: AssetType, rel: str) -> AssetEntry:
        payload = asset_type.process(self.read(rel))
        return AssetEntry(
            name=rel,
            mime=mime_for_extension(Path(rel).suffix),
            modified=self._cache.now(),
            paths=(rel,),
            payload=payload,
        )

    def _bundle_entry(
        self, asset_type: AssetType, name: str, paths: list[str]
    ) -> AssetEntry:
        chunks = []
        for rel in paths:
            try:
                chunks.append(self.read(rel))
            except (AssetPathError, OSError) as exc:
                logger.warning("Bundle %s skips %s: %s", name, rel, exc)
        logger.debug("Built bundle %s from %d files", name, len(paths))
        return AssetEntry(
            name=name,
            mime=mime_for_extension(asset_type.ext),
            modified=self._cache.now(),
            paths=tuple(paths),
            payload=asset_type.process(b"".join(chunks)),
        )


def _not_modified(modified: datetime, header: str | None) -> bool:
    if not header:
        return False
    try:
        since = parsedate_to_datetime(header)
    except (TypeError, ValueError):
        return False
    if since.tzinfo is None:
        return False
    return modified <= since
