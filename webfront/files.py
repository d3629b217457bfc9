"""Filesystem helpers shared by the template engine and the asset pipeline."""

from __future__ import annotations

import posixpath
from pathlib import Path
from typing import Iterator

__all__ = [
    "AssetPathError",
    "file_name",
    "has_file",
    "is_ignored",
    "list_files",
    "resolve_within",
    "walk_files",
]


class AssetPathError(ValueError):
    """Raised when a reference points outside the site directory."""


def _ignored_segment(segment: str) -> bool:
    if segment.startswith("_"):
        return True
    return len(segment) > 1 and segment[0] == "." and segment[1] != "."


def is_ignored(path: str) -> bool:
    """Return ``True`` when any segment of *path* starts with ``_`` or a dot.

    Parent references (``..``) and the bare current directory (``.``) are not
    considered hidden.
    """

    normalized = path.replace("\\", "/")
    return any(_ignored_segment(segment) for segment in normalized.split("/"))


def file_name(source: str) -> str:
    """Return the base name of *source* without its extension."""

    base = posixpath.basename(source.replace("\\", "/"))
    stem, _ = posixpath.splitext(base)
    return stem


def resolve_within(root: Path, source: str) -> Path:
    """Join *source* onto *root*, refusing references that escape it."""

    root_path = root.resolve()
    candidate = (root_path / source.replace("\\", "/").lstrip("/")).resolve()
    if candidate != root_path and root_path not in candidate.parents:
        raise AssetPathError(f"Reference '{source}' escapes the site directory")
    return candidate


def has_file(root: Path, source: str) -> bool:
    """Return ``True`` when *source* is a regular, visible file under *root*."""

    if is_ignored(source):
        return False
    try:
        return resolve_within(root, source).is_file()
    except (AssetPathError, OSError):
        return False


def list_files(root: Path, source: str) -> list[str]:
    """List files referenced by *source*, relative to *root*.

    A file reference yields itself, a directory yields its visible files in
    name order (depth first), anything else yields nothing.
    """

    if is_ignored(source):
        return []
    target = resolve_within(root, source)
    if target.is_file():
        return [_relative(root, target)]
    if not target.is_dir():
        return []
    return [_relative(root, path) for path in _iter_directory(target)]


def walk_files(root: Path) -> Iterator[str]:
    """Yield every visible file below *root* as a relative POSIX path."""

    if not root.is_dir():
        return
    for path in _iter_directory(root.resolve()):
        yield _relative(root, path)


def _iter_directory(directory: Path) -> Iterator[Path]:
    try:
        entries = sorted(directory.iterdir(), key=lambda entry: entry.name)
    except OSError:
        return
    for entry in entries:
        if is_ignored(entry.name):
            continue
        if entry.is_dir():
            yield from _iter_directory(entry)
        elif entry.is_file():
            yield entry


def _relative(root: Path, path: Path) -> str:
    return path.relative_to(root.resolve()).as_posix()
