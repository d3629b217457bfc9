"""In-memory cache for inlined asset files and combined bundles."""

from __future__ import annotations

import hashlib
import mimetypes
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Hashable, Mapping, MutableMapping, TypeVar

__all__ = ["AssetCache", "AssetEntry", "bundle_digest", "mime_for_extension"]

_K = TypeVar("_K", bound=Hashable)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def bundle_digest(seed: str) -> str:
    """Return the 12 character hex digest used for bundle and root names."""

    return hashlib.sha1(seed.encode("utf-8")).hexdigest()[:12]


def mime_for_extension(ext: str) -> str:
    mime, _ = mimetypes.guess_type(f"asset{ext}")
    return mime or "application/octet-stream"


@dataclass(frozen=True)
class AssetEntry:
    """A cached payload together with the files it was built from."""

    name: str
    mime: str
    modified: datetime
    paths: tuple[str, ...]
    payload: bytes


class AssetCache:
    """Lock guarded store for per-file and bundle entries.

    The two key spaces are kept in separate mappings. Entries are only reused
    when ``trusted`` is set (production); otherwise every lookup rebuilds the
    entry and overwrites the stored one.
    """

    def __init__(
        self, *, trusted: bool, clock: Callable[[], datetime] | None = None
    ) -> None:
        self._trusted = trusted
        self._clock = clock or _utc_now
        self._files: dict[tuple[str, str], AssetEntry] = {}
        self._bundles: dict[str, AssetEntry] = {}
        self._guard = threading.Lock()

    def now(self) -> datetime:
        return self._clock()

    def file_entry(
        self, kind: str, path: str, build: Callable[[], AssetEntry]
    ) -> AssetEntry:
        return self._get_or_build(self._files, (kind, path), build)

    def bundle_entry(self, name: str, build: Callable[[], AssetEntry]) -> AssetEntry:
        return self._get_or_build(self._bundles, name, build)

    def bundle(self, name: str) -> AssetEntry | None:
        with self._guard:
            return self._bundles.get(name)

    def bundles(self) -> Mapping[str, AssetEntry]:
        with self._guard:
            return dict(self._bundles)

    def _get_or_build(
        self,
        store: MutableMapping[_K, AssetEntry],
        key: _K,
        build: Callable[[], AssetEntry],
    ) -> AssetEntry:
        if self._trusted:
            with self._guard:
                cached = store.get(key)
            if cached is not None:
                return cached
        entry = build()
        with self._guard:
            store[key] = entry
        return entry
