"""
Cluster credentials and token lookup.

The registry is passed explicitly to the resolver and the client; there
is no process-wide cluster state.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Awaitable, Protocol, runtime_checkable

from .errors import UnknownClusterError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClusterCredential:
    base_uri: str  # e.g. "pai.example.com:50070/webhdfs/v1", scheme optional
    username: str
    bearer_token: str | None = None
    password: str | None = None  # HTTP basic auth when no token is available
    https: bool = False

    @property
    def endpoint(self) -> str:
        """Fully qualified WebHDFS root URL without a trailing slash."""
        base = self.base_uri.strip()
        if "://" not in base:
            scheme = "https" if self.https else "http"
            base = f"{scheme}://{base}"
        return base.rstrip("/")

    def __repr__(self) -> str:
        # Never print secrets into logs
        return (
            f"ClusterCredential(base_uri={self.base_uri!r}, username={self.username!r}, "
            f"bearer_token={'***' if self.bearer_token else None}, "
            f"password={'***' if self.password else None}, https={self.https})"
        )


@runtime_checkable
class TokenProvider(Protocol):
    """Supplies a bearer token for a cluster, called before every request.

    Implementations may be plain or ``async`` methods. Returning None means
    the request goes out without a bearer token.
    """

    def get_bearer_token(
        self, cluster_authority: str, credential: ClusterCredential
    ) -> str | None | Awaitable[str | None]:
        ...


class StaticTokenProvider:
    """Returns the token stored on the credential, if any."""

    def get_bearer_token(self, cluster_authority: str, credential: ClusterCredential) -> str | None:
        return credential.bearer_token


async def fetch_token(
    provider: TokenProvider, cluster_authority: str, credential: ClusterCredential
) -> str | None:
    """Call a TokenProvider that may be sync or async."""
    token = provider.get_bearer_token(cluster_authority, credential)
    if inspect.isawaitable(token):
        token = await token
    return token


class ClusterRegistry:
    """
    Maps cluster authorities to credentials.

    The registry is read by the resolver on every call; register and
    unregister take effect for the next operation.
    """

    def __init__(self, credentials: dict[str, ClusterCredential] | None = None):
        self._credentials: dict[str, ClusterCredential] = dict(credentials or {})

    def register(self, cluster_authority: str, credential: ClusterCredential) -> None:
        if not cluster_authority:
            raise ValueError("cluster_authority must not be empty")
        self._credentials[cluster_authority] = credential
        logger.debug("Registered cluster %s -> %s", cluster_authority, credential.endpoint)

    def unregister(self, cluster_authority: str) -> None:
        self._credentials.pop(cluster_authority, None)

    def get_credential(self, cluster_authority: str) -> ClusterCredential:
        """
        Look up the credential for a cluster.

        Raises:
            UnknownClusterError: If the authority is not registered.
        """
        try:
            return self._credentials[cluster_authority]
        except KeyError:
            raise UnknownClusterError(f"Unknown cluster: {cluster_authority}") from None

    def __contains__(self, cluster_authority: object) -> bool:
        return cluster_authority in self._credentials

    def __len__(self) -> int:
        return len(self._credentials)

    @property
    def clusters(self) -> list[str]:
        return list(self._credentials)
