__version__ = "0.1.0"

# Public API exports
from .cache import DirectoryCache
from .config import (
    AppConfig,
    CacheConfig,
    ClusterConfig,
    ConnectionConfig,
    LogConfig,
    load_config,
)
from .errors import (
    AccessDeniedError,
    DestinationExistsError,
    NotEmptyError,
    NotFoundError,
    ProtocolError,
    RemoteOperationError,
    TransportError,
    UnknownClusterError,
    WebHdfsError,
)
from .filesystem import HdfsFileSystem
from .locator import RemoteLocator, normalize_path
from .progress import ProgressEvent, ProgressStream, TransferPhase
from .registry import ClusterCredential, ClusterRegistry, StaticTokenProvider, TokenProvider
from .remote_client import RemoteFileSystem
from .resolver import WebHdfsEndpoints, WebHdfsResolver
from .upload import job_upload_dir, upload_files
from .webhdfs_client import DirectoryEntry, EntryKind, WebHdfsClient

__all__ = [
    "__version__",
    # Configuration
    "AppConfig",
    "ClusterConfig",
    "CacheConfig",
    "ConnectionConfig",
    "LogConfig",
    "load_config",
    # Clusters
    "ClusterCredential",
    "ClusterRegistry",
    "TokenProvider",
    "StaticTokenProvider",
    # Locators and endpoints
    "RemoteLocator",
    "normalize_path",
    "WebHdfsEndpoints",
    "WebHdfsResolver",
    # Client and filesystem
    "WebHdfsClient",
    "DirectoryEntry",
    "EntryKind",
    "RemoteFileSystem",
    "HdfsFileSystem",
    "DirectoryCache",
    # Progress and uploads
    "ProgressEvent",
    "ProgressStream",
    "TransferPhase",
    "job_upload_dir",
    "upload_files",
    # Errors
    "WebHdfsError",
    "UnknownClusterError",
    "NotFoundError",
    "NotEmptyError",
    "DestinationExistsError",
    "AccessDeniedError",
    "TransportError",
    "ProtocolError",
    "RemoteOperationError",
]
