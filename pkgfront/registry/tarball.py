"""In-memory access to npm package tarballs.

npm tarballs wrap their contents in a single top-level directory (usually
``package/``). Paths passed to these helpers are relative to that directory.
These functions are CPU-bound; call them through run_in_threadpool.
"""

from __future__ import annotations

import html
import io
import tarfile
from typing import Optional


def _strip_root(member_name: str) -> str:
    _, _, rest = member_name.partition("/")
    return rest


def read_member(data: bytes, filename: str) -> Optional[bytes]:
    """Return the bytes of ``filename`` inside the tarball, or None."""
    wanted = filename.lstrip("/")
    with tarfile.open(fileobj=io.BytesIO(data), mode="r:*") as archive:
        for member in archive:
            if member.isfile() and _strip_root(member.name) == wanted:
                extracted = archive.extractfile(member)
                return extracted.read() if extracted is not None else None
    return None


def list_directory(data: bytes, directory: str) -> Optional[list[str]]:
    """Entries directly under ``directory`` (subdirectories end with "/").

    Returns None when nothing in the tarball lives under ``directory``.
    """
    prefix = directory.strip("/")
    prefix = f"{prefix}/" if prefix else ""
    entries: set[str] = set()
    found = False

    with tarfile.open(fileobj=io.BytesIO(data), mode="r:*") as archive:
        for member in archive:
            path = _strip_root(member.name)
            if not path.startswith(prefix) or path == prefix:
                continue
            found = True
            head, sep, _ = path[len(prefix):].partition("/")
            if head:
                entries.add(head + "/" if sep else head)

    return sorted(entries) if found else None


def render_index(package: str, version: str, directory: str, entries: list[str]) -> str:
    """Minimal HTML listing for a package directory."""
    title = html.escape(f"{package}@{version}{directory}")
    items = []
    if directory != "/":
        items.append('<li><a href="../">../</a></li>')
    for entry in entries:
        escaped = html.escape(entry)
        items.append(f'<li><a href="{escaped}">{escaped}</a></li>')
    return (
        "<!DOCTYPE html>"
        f"<html><head><meta charset=\"utf-8\"><title>Index of {title}</title></head>"
        f"<body><h1>Index of {title}</h1><ul>{''.join(items)}</ul></body></html>"
    )
