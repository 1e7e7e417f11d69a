"""
PAI-WebHDFS - Main Entry Point

Command-line access to cluster storage: list, read, write, move and
upload files on an OpenPAI cluster's WebHDFS endpoint.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from .config import load_config
from .errors import (
    AccessDeniedError,
    DestinationExistsError,
    NotEmptyError,
    NotFoundError,
    TransportError,
    UnknownClusterError,
    WebHdfsError,
)
from .filesystem import HdfsFileSystem
from .locator import URI_SCHEME, RemoteLocator
from .logger import setup_logging
from .upload import job_upload_dir, upload_files
from .webhdfs_client import WebHdfsClient

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="pai-webhdfs",
        description="PAI-WebHDFS - Browse and edit OpenPAI cluster storage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pai-webhdfs --config pai.ini ls /
  pai-webhdfs --config pai.ini put ./train.py /jobs/mnist/train.py
  pai-webhdfs --config pai.ini cat webhdfs://openpai/jobs/mnist/train.py
  pai-webhdfs --webhdfs-uri pai.example.com:50070/webhdfs/v1 --user openpai ls /
  pai-webhdfs --config pai.ini upload --job mnist ./src/*.py
        """,
    )
    parser.add_argument("--config", help="Path to configuration file")
    parser.add_argument("--cluster", help="Cluster to use when a path has no webhdfs:// prefix")
    parser.add_argument("--webhdfs-uri", help="WebHDFS endpoint, e.g. host:50070/webhdfs/v1")
    parser.add_argument("--user", help="Cluster user name")
    parser.add_argument("--token", help="Bearer token")
    parser.add_argument("--https", action="store_true", help="Use HTTPS for a scheme-less endpoint")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    ls_parser = subparsers.add_parser("ls", help="List a directory")
    ls_parser.add_argument("path", nargs="?", default="/")

    stat_parser = subparsers.add_parser("stat", help="Show file or directory metadata")
    stat_parser.add_argument("path")

    cat_parser = subparsers.add_parser("cat", help="Print a remote file to stdout")
    cat_parser.add_argument("path")

    put_parser = subparsers.add_parser("put", help="Upload one local file")
    put_parser.add_argument("local")
    put_parser.add_argument("path")
    put_parser.add_argument("--force", action="store_true", help="Overwrite an existing file")

    append_parser = subparsers.add_parser("append", help="Append a local file to a remote file")
    append_parser.add_argument("local")
    append_parser.add_argument("path")

    mkdir_parser = subparsers.add_parser("mkdir", help="Create a directory (with parents)")
    mkdir_parser.add_argument("path")

    rm_parser = subparsers.add_parser("rm", help="Delete a file or directory")
    rm_parser.add_argument("path")
    rm_parser.add_argument("-r", "--recursive", action="store_true")

    mv_parser = subparsers.add_parser("mv", help="Rename or move")
    mv_parser.add_argument("source")
    mv_parser.add_argument("destination")

    cp_parser = subparsers.add_parser("cp", help="Copy a file")
    cp_parser.add_argument("source")
    cp_parser.add_argument("destination")
    cp_parser.add_argument("--force", action="store_true", help="Overwrite an existing file")

    upload_parser = subparsers.add_parser("upload", help="Upload job code into a remote folder")
    upload_parser.add_argument("files", nargs="+")
    upload_parser.add_argument("--target", default="/", help="Remote storage root (default: /)")
    upload_parser.add_argument("--job", help="Job name; files go to <target>/<job>")
    upload_parser.add_argument("--base-dir", help="Keep paths relative to this local folder")

    return parser.parse_args(argv)


def to_locator(path: str, default_cluster: str) -> RemoteLocator:
    """Accept either a webhdfs:// URI or a plain path on the default cluster."""
    if path.startswith(f"{URI_SCHEME}://"):
        return RemoteLocator.from_uri(path)
    return RemoteLocator(default_cluster, path)


def format_entry(entry) -> str:
    kind = "d" if entry.is_dir else "-"
    mtime = entry.modified_time.strftime("%Y-%m-%d %H:%M")
    return f"{kind} {entry.size:>12} {mtime} {entry.name}"


async def run_command(args, fs: HdfsFileSystem, cluster: str) -> int:
    """Execute one subcommand against the filesystem."""
    if args.command == "ls":
        for entry in await fs.list_directory(to_locator(args.path, cluster)):
            print(format_entry(entry))
    elif args.command == "stat":
        print(format_entry(await fs.stat(to_locator(args.path, cluster))))
    elif args.command == "cat":
        data = await fs.read_file(to_locator(args.path, cluster))
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()
    elif args.command == "put":
        data = Path(args.local).read_bytes()
        target = to_locator(args.path, cluster)
        await fs.create_file(target, data, overwrite=args.force)
        print(f"[OK] Wrote {len(data)} bytes to {target}")
    elif args.command == "append":
        data = Path(args.local).read_bytes()
        target = to_locator(args.path, cluster)
        await fs.append_file(target, data)
        print(f"[OK] Appended {len(data)} bytes to {target}")
    elif args.command == "mkdir":
        target = to_locator(args.path, cluster)
        await fs.create_directory(target)
        print(f"[OK] Created {target}")
    elif args.command == "rm":
        target = to_locator(args.path, cluster)
        await fs.delete(target, recursive=args.recursive)
        print(f"[OK] Deleted {target}")
    elif args.command == "mv":
        source = to_locator(args.source, cluster)
        destination = to_locator(args.destination, cluster)
        await fs.rename(source, destination)
        print(f"[OK] Moved {source} -> {destination}")
    elif args.command == "cp":
        source = to_locator(args.source, cluster)
        destination = to_locator(args.destination, cluster)
        await fs.copy(source, destination, overwrite=args.force)
        print(f"[OK] Copied {source} -> {destination}")
    elif args.command == "upload":
        target = to_locator(args.target, cluster)
        if args.job:
            target = job_upload_dir(target, args.job)
        uploaded = await upload_files(fs, args.files, target, base_dir=args.base_dir)
        print(f"[OK] Uploaded {len(uploaded)} files to {target}")
    return 0


async def _main_async(args, config) -> int:
    cluster = config.get_cluster(args.cluster).name
    client = WebHdfsClient(config.build_registry(), config.connection)
    async with HdfsFileSystem(client, config.cache) as fs:
        return await run_command(args, fs, cluster)


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    if args.command is None:
        print("Usage: pai-webhdfs [--config FILE] <command> [options]")
        print()
        print("Commands: ls, stat, cat, put, append, mkdir, rm, mv, cp, upload")
        print()
        print("Run 'pai-webhdfs <command> --help' for more information.")
        return 1

    try:
        config = load_config(
            config_path=args.config,
            cluster=args.cluster,
            webhdfs_uri=args.webhdfs_uri,
            username=args.user,
            token=args.token,
            https=args.https,
            debug=args.verbose,
        )
    except (ValueError, FileNotFoundError) as e:
        print(f"[ERROR] Configuration error: {e}")
        return 1

    setup_logging(config.logging)
    from . import __version__

    logger.debug("Starting PAI-WebHDFS v%s: %s", __version__, args.command)

    try:
        return asyncio.run(_main_async(args, config))
    except NotFoundError as e:
        print(f"[ERROR] Not found: {e}")
    except NotEmptyError as e:
        print(f"[ERROR] Directory not empty (use -r): {e}")
    except DestinationExistsError as e:
        print(f"[ERROR] Already exists (use --force): {e}")
    except AccessDeniedError as e:
        print(f"[ERROR] Access denied: {e}")
    except UnknownClusterError as e:
        print(f"[ERROR] {e}")
    except TransportError as e:
        print(f"[ERROR] Could not reach the cluster: {e}")
    except WebHdfsError as e:
        print(f"[ERROR] {e}")
    except (ValueError, FileNotFoundError) as e:
        print(f"[ERROR] {e}")
    except KeyboardInterrupt:
        print()
        logger.info("Interrupted")
    return 1


if __name__ == "__main__":
    sys.exit(main() or 0)
