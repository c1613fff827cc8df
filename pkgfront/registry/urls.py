"""Package URL parsing.

URL form::

    /<name>[@<version or tag>][/<file path>]

``<name>`` may be scoped (``@scope/name``). The file path keeps its leading
slash; a trailing slash marks a directory request.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

_PACKAGE_URL_RE = re.compile(
    r"^/(?P<name>(?:@[^/@]+/)?[^/@]+)(?:@(?P<spec>[^/]+))?(?P<filename>/.*)?$"
)

# npm package names: lowercase, URL-safe, no leading dot or underscore.
_NAME_RE = re.compile(r"^(?:@[a-z0-9][a-z0-9._~-]*/)?[a-z0-9][a-z0-9._~-]*$")

MAX_NAME_LENGTH = 214


@dataclass(frozen=True)
class PackageURL:
    name: str
    spec: Optional[str]
    filename: str

    @property
    def is_directory(self) -> bool:
        return self.filename.endswith("/")

    def with_version(self, version: str, filename: Optional[str] = None) -> str:
        """Path of the same request pinned to ``version``."""
        return f"/{self.name}@{version}{self.filename if filename is None else filename}"


def parse_package_url(path: str) -> Optional[PackageURL]:
    """Split a request path into package name, version spec and file path.

    ``path`` is the already percent-decoded ASGI path; it is not decoded
    again. Returns None when the path does not name a valid package.
    """
    match = _PACKAGE_URL_RE.match(path)
    if match is None:
        return None

    name = match.group("name")
    if len(name) > MAX_NAME_LENGTH or not _NAME_RE.match(name):
        return None

    filename = match.group("filename") or ""
    if ".." in filename.split("/"):
        return None

    return PackageURL(name=name, spec=match.group("spec"), filename=filename)
