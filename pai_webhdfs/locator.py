"""
Cluster-relative resource locators.

A RemoteLocator names a path on a specific cluster. Paths are kept
normalized and un-encoded; percent-encoding only happens when a
request URL is built.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import unquote, urlsplit

URI_SCHEME = "webhdfs"


def normalize_path(path: str) -> str:
    """
    Normalize a remote path to absolute POSIX form.

    Backslashes are treated as separators, empty and "." segments are
    dropped and ".." folds into its parent (clamped at root).

    Args:
        path: Raw path as typed by a user or produced by a caller.

    Returns:
        Normalized absolute path, "/" for the root.
    """
    segments: list[str] = []
    for segment in path.replace("\\", "/").split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if segments:
                segments.pop()
            continue
        segments.append(segment)
    return "/" + "/".join(segments)


def parent_path(path: str) -> str:
    """Return the parent of a normalized path. The root is its own parent."""
    if path == "/":
        return "/"
    parent = path.rsplit("/", 1)[0]
    return parent or "/"


@dataclass(frozen=True)
class RemoteLocator:
    """A normalized path on a named cluster."""

    cluster_authority: str
    path: str = "/"

    def __post_init__(self):
        if not self.cluster_authority:
            raise ValueError("cluster_authority must not be empty")
        object.__setattr__(self, "path", normalize_path(self.path))

    @classmethod
    def from_uri(cls, uri: str) -> RemoteLocator:
        """
        Parse a ``webhdfs://[user@]authority/path`` URI.

        The user part is ignored; the cluster credential decides which
        user a request runs as.
        """
        parts = urlsplit(uri)
        if parts.scheme != URI_SCHEME:
            raise ValueError(f"Unsupported URI scheme '{parts.scheme}' in {uri!r}")
        authority = parts.netloc.rsplit("@", 1)[-1]
        if not authority:
            raise ValueError(f"Missing cluster authority in {uri!r}")
        return cls(authority, unquote(parts.path) or "/")

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def is_root(self) -> bool:
        return self.path == "/"

    @property
    def parent(self) -> RemoteLocator:
        return RemoteLocator(self.cluster_authority, parent_path(self.path))

    def child(self, name: str) -> RemoteLocator:
        return RemoteLocator(self.cluster_authority, self.path.rstrip("/") + "/" + name)

    def is_within(self, other: RemoteLocator) -> bool:
        """True if this locator is ``other`` or lies below it on the same cluster."""
        if self.cluster_authority != other.cluster_authority:
            return False
        if other.is_root or self.path == other.path:
            return True
        return self.path.startswith(other.path + "/")

    def to_uri(self) -> str:
        return f"{URI_SCHEME}://{self.cluster_authority}{self.path}"

    def __str__(self) -> str:
        return self.to_uri()
