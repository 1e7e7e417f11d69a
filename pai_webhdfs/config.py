import configparser
from dataclasses import dataclass, field
from pathlib import Path

from .registry import ClusterCredential, ClusterRegistry

CLUSTER_SECTION_PREFIX = "cluster:"

_TRUE_VALUES = ("true", "1", "yes")


@dataclass
class ClusterConfig:
    name: str  # cluster authority used in webhdfs:// URIs
    webhdfs_uri: str
    username: str
    token: str | None = None
    password: str | None = None
    https: bool = False

    def to_credential(self) -> ClusterCredential:
        return ClusterCredential(
            base_uri=self.webhdfs_uri,
            username=self.username,
            bearer_token=self.token,
            password=self.password,
            https=self.https,
        )


@dataclass
class CacheConfig:
    enabled: bool = True
    max_entries: int = 1024


@dataclass
class ConnectionConfig:
    timeout_seconds: int = 30
    verify_tls: bool = True


@dataclass
class LogConfig:
    level: str = "INFO"
    file: str = "pai-webhdfs.log"
    console: bool = True


@dataclass
class AppConfig:
    clusters: list[ClusterConfig]
    cache: CacheConfig = field(default_factory=CacheConfig)
    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    logging: LogConfig = field(default_factory=LogConfig)
    default_cluster: str | None = None

    def build_registry(self) -> ClusterRegistry:
        """Create a ClusterRegistry holding every configured cluster."""
        registry = ClusterRegistry()
        for cluster in self.clusters:
            registry.register(cluster.name, cluster.to_credential())
        return registry

    def get_cluster(self, name: str | None = None) -> ClusterConfig:
        """Return the named cluster, or the default one when name is None."""
        name = name or self.default_cluster or self.clusters[0].name
        for cluster in self.clusters:
            if cluster.name == name:
                return cluster
        raise ValueError(f"Cluster not configured: {name}")


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


def _parse_int(section: str, key: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ValueError(
            f"Invalid {key} value in [{section}]: '{value}' - must be an integer"
        ) from None


def load_config(config_path: str | None = None, **cli_args) -> AppConfig:
    """
    Load configuration from an INI file and/or CLI arguments.
    CLI arguments take precedence over config file.

    Clusters are declared as ``[cluster:<name>]`` sections; the name is the
    authority used in ``webhdfs://<name>/path`` locators.

    Args:
        config_path: Path to the INI configuration file.
        **cli_args: Key-value pairs from command line arguments
            (cluster, webhdfs_uri, username, token, password, https, debug).

    Returns:
        AppConfig: The populated configuration object.

    Raises:
        FileNotFoundError: If config_path is provided but does not exist.
        ValueError: If no cluster is configured or a cluster lacks
            webhdfs_uri or username.
    """
    clusters: dict[str, dict] = {}
    cache_config = {
        "enabled": True,
        "max_entries": 1024,
    }
    connection_config = {
        "timeout_seconds": 30,
        "verify_tls": True,
    }
    log_config = {
        "level": "INFO",
        "file": "pai-webhdfs.log",
        "console": True,
    }
    default_cluster = None

    # Parse INI file if provided
    if config_path is not None:
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        parser = configparser.ConfigParser()
        parser.read(config_file, encoding="utf-8")

        for section_name in parser.sections():
            if not section_name.startswith(CLUSTER_SECTION_PREFIX):
                continue
            name = section_name[len(CLUSTER_SECTION_PREFIX) :].strip()
            if not name:
                raise ValueError(f"Cluster section without a name: [{section_name}]")
            section = parser[section_name]
            clusters[name] = {
                "webhdfs_uri": section.get("webhdfs_uri") or None,
                "username": section.get("username") or None,
                "token": section.get("token") or None,
                "password": section.get("password") or None,
                "https": _parse_bool(section.get("https", "false")),
            }

        if parser.has_section("general") and parser["general"].get("default_cluster"):
            default_cluster = parser["general"]["default_cluster"].strip()

        # Load [cache] section
        if parser.has_section("cache"):
            cache_section = parser["cache"]
            if cache_section.get("enabled"):
                cache_config["enabled"] = _parse_bool(cache_section.get("enabled"))
            if cache_section.get("max_entries"):
                cache_config["max_entries"] = _parse_int(
                    "cache", "max_entries", cache_section.get("max_entries")
                )

        # Load [connection] section
        if parser.has_section("connection"):
            conn_section = parser["connection"]
            if conn_section.get("timeout_seconds"):
                connection_config["timeout_seconds"] = _parse_int(
                    "connection", "timeout_seconds", conn_section.get("timeout_seconds")
                )
            if conn_section.get("verify_tls"):
                connection_config["verify_tls"] = _parse_bool(conn_section.get("verify_tls"))

        # Load [logging] section
        if parser.has_section("logging"):
            log_section = parser["logging"]
            if log_section.get("level"):
                log_config["level"] = log_section.get("level")
            if "file" in log_section:
                log_config["file"] = log_section.get("file")
            if log_section.get("console"):
                log_config["console"] = _parse_bool(log_section.get("console"))

    # Override with CLI arguments (cli_args take precedence)
    if cli_args.get("cluster") is not None:
        default_cluster = cli_args["cluster"]
    if cli_args.get("webhdfs_uri") is not None:
        name = default_cluster or "default"
        clusters.setdefault(
            name,
            {"webhdfs_uri": None, "username": None, "token": None, "password": None, "https": False},
        )
        clusters[name]["webhdfs_uri"] = cli_args["webhdfs_uri"]
        default_cluster = name
    if default_cluster is not None and default_cluster in clusters:
        for key in ("username", "token", "password"):
            if cli_args.get(key) is not None:
                clusters[default_cluster][key] = cli_args[key] or None
        if cli_args.get("https"):
            clusters[default_cluster]["https"] = True
    if cli_args.get("debug"):
        log_config["level"] = "DEBUG"
        log_config["console"] = True

    # Validate required fields
    if not clusters:
        raise ValueError("No cluster configured: add a [cluster:<name>] section or --webhdfs-uri")
    if default_cluster is not None and default_cluster not in clusters:
        raise ValueError(f"Default cluster is not configured: {default_cluster}")

    for name, values in clusters.items():
        missing_fields = [key for key in ("webhdfs_uri", "username") if not values[key]]
        if missing_fields:
            raise ValueError(
                f"Missing required configuration fields for cluster '{name}': "
                f"{', '.join(missing_fields)}"
            )

    if cache_config["max_entries"] < 1:
        raise ValueError("max_entries must be at least 1")
    if connection_config["timeout_seconds"] < 1:
        raise ValueError("timeout_seconds must be at least 1")

    # Build and return AppConfig
    return AppConfig(
        clusters=[
            ClusterConfig(
                name=name,
                webhdfs_uri=values["webhdfs_uri"],
                username=values["username"],
                token=values["token"],
                password=values["password"],
                https=values["https"],
            )
            for name, values in clusters.items()
        ],
        cache=CacheConfig(
            enabled=cache_config["enabled"],
            max_entries=cache_config["max_entries"],
        ),
        connection=ConnectionConfig(
            timeout_seconds=connection_config["timeout_seconds"],
            verify_tls=connection_config["verify_tls"],
        ),
        logging=LogConfig(
            level=log_config["level"],
            file=log_config["file"],
            console=log_config["console"],
        ),
        default_cluster=default_cluster,
    )
