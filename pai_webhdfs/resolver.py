"""
Locator to WebHDFS endpoint resolution.

Pure functions of the locator and the registry contents: nothing here
performs I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote, urlencode

from .locator import RemoteLocator
from .registry import ClusterCredential, ClusterRegistry


def _flag(value: bool) -> str:
    return "true" if value else "false"


@dataclass(frozen=True)
class WebHdfsEndpoints:
    """Request URLs for every operation on one locator."""

    locator: RemoteLocator
    credential: ClusterCredential

    @property
    def base_url(self) -> str:
        return self.credential.endpoint + quote(self.locator.path, safe="/")

    def _url(self, op: str, **params: str) -> str:
        query = {"op": op, **params, "user.name": self.credential.username}
        return f"{self.base_url}?{urlencode(query)}"

    @property
    def list_url(self) -> str:
        return self._url("LISTSTATUS")

    @property
    def status_url(self) -> str:
        return self._url("GETFILESTATUS")

    @property
    def append_url(self) -> str:
        return self._url("APPEND")

    @property
    def mkdir_url(self) -> str:
        return self._url("MKDIRS")

    def open_url(self, offset: int | None = None) -> str:
        if offset:
            return self._url("OPEN", offset=str(offset))
        return self._url("OPEN")

    def create_url(self, overwrite: bool = False) -> str:
        return self._url("CREATE", overwrite=_flag(overwrite))

    def rename_url(self, destination: str) -> str:
        return self._url("RENAME", destination=destination)

    def delete_url(self, recursive: bool = False) -> str:
        return self._url("DELETE", recursive=_flag(recursive))


class WebHdfsResolver:
    """Turns RemoteLocators into WebHdfsEndpoints using a ClusterRegistry."""

    def __init__(self, registry: ClusterRegistry):
        self.registry = registry

    def resolve(self, locator: RemoteLocator) -> WebHdfsEndpoints:
        """
        Resolve a locator to its endpoints.

        Raises:
            UnknownClusterError: If the locator's cluster is not registered.
        """
        credential = self.registry.get_credential(locator.cluster_authority)
        return WebHdfsEndpoints(locator=locator, credential=credential)
