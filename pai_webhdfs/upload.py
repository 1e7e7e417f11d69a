"""
Upload local files into cluster storage.

Used when submitting a job: the job's source files are copied into a
per-job folder under a storage root before the job config references
them.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from pathlib import Path, PurePosixPath

from .errors import WebHdfsError
from .locator import RemoteLocator
from .progress import ProgressEvent, ProgressStream, TransferPhase
from .remote_client import RemoteFileSystem

logger = logging.getLogger(__name__)


def job_upload_dir(root: RemoteLocator, job_name: str) -> RemoteLocator:
    """Remote folder that receives the code of ``job_name`` under ``root``."""
    job_name = job_name.strip().strip("/")
    if not job_name or "/" in job_name or job_name in (".", ".."):
        raise ValueError(f"Invalid job name: {job_name!r}")
    return root.child(job_name)


def _remote_relative(file: Path, base_dir: Path | None) -> PurePosixPath:
    if base_dir is None:
        return PurePosixPath(file.name)
    try:
        relative = file.resolve().relative_to(base_dir.resolve())
    except ValueError:
        raise ValueError(f"{file} is not inside {base_dir}") from None
    return PurePosixPath(*relative.parts)


async def upload_files(
    fs: RemoteFileSystem,
    files: Iterable[str | Path],
    target_dir: RemoteLocator,
    *,
    base_dir: str | Path | None = None,
    overwrite: bool = True,
    progress: ProgressStream | None = None,
) -> list[RemoteLocator]:
    """
    Upload local files into ``target_dir``.

    Files keep their path relative to ``base_dir`` (sub-folders are
    created as needed); without ``base_dir`` they land flat in
    ``target_dir``. Files uploaded before a failure are left in place.

    Args:
        fs: Filesystem to write through.
        files: Local file paths.
        target_dir: Remote folder to upload into; created if missing.
        base_dir: Local folder the remote layout is relative to.
        overwrite: Replace remote files that already exist.
        progress: Optional stream receiving "upload" events.

    Returns:
        Locators of the created remote files, in input order.

    Raises:
        FileNotFoundError: If a local file does not exist.
        ValueError: If a file lies outside ``base_dir``, or two files map
            to the same remote path.
        WebHdfsError: Any remote failure, typed by the error taxonomy.
    """
    base = Path(base_dir) if base_dir is not None else None
    plan: list[tuple[Path, RemoteLocator]] = []
    sources: dict[RemoteLocator, Path] = {}
    for file in files:
        local = Path(file)
        if not local.is_file():
            raise FileNotFoundError(f"Local file not found: {local}")
        relative = _remote_relative(local, base)
        remote = RemoteLocator(target_dir.cluster_authority, f"{target_dir.path}/{relative}")
        if remote in sources:
            raise ValueError(f"{local} and {sources[remote]} would both be uploaded to {remote}")
        sources[remote] = local
        plan.append((local, remote))

    total = sum(local.stat().st_size for local, _ in plan)
    folders = {target_dir} | {remote.parent for _, remote in plan}
    for folder in sorted(folders, key=lambda loc: loc.path):
        await fs.create_directory(folder)

    uploaded: list[RemoteLocator] = []
    done = 0
    for local, remote in plan:
        data = await asyncio.to_thread(local.read_bytes)
        try:
            await fs.create_file(remote, data, overwrite=overwrite)
        except WebHdfsError as e:
            logger.error("Upload of %s to %s failed: %s", local, remote, e)
            if progress is not None:
                progress.publish(
                    ProgressEvent("upload", remote, TransferPhase.FAILED, done, total, str(e))
                )
            raise
        done += len(data)
        uploaded.append(remote)
        logger.debug("Uploaded %s -> %s (%d bytes)", local, remote, len(data))
        if progress is not None:
            progress.publish(ProgressEvent("upload", remote, TransferPhase.TRANSFER, done, total))

    if progress is not None:
        progress.publish(ProgressEvent("upload", target_dir, TransferPhase.DONE, done, total))
    logger.info("Uploaded %d files (%d bytes) to %s", len(uploaded), done, target_dir)
    return uploaded
