"""
Tests for pai_webhdfs.upload module.

Tests cover:
- job_upload_dir naming and validation
- Uploading flat and with a base directory
- Overwrite behaviour and failure reporting
- Upload progress events
"""

from pathlib import Path

import pytest

from pai_webhdfs.errors import DestinationExistsError
from pai_webhdfs.filesystem import HdfsFileSystem
from pai_webhdfs.locator import RemoteLocator
from pai_webhdfs.progress import ProgressStream, TransferPhase
from pai_webhdfs.upload import job_upload_dir, upload_files


@pytest.fixture
def job_sources(tmp_path: Path) -> Path:
    """A small local job folder: train.py, config.yaml and utils/io.py."""
    src = tmp_path / "mnist"
    (src / "utils").mkdir(parents=True)
    (src / "train.py").write_bytes(b"import utils.io\n")
    (src / "config.yaml").write_bytes(b"epochs: 3\n")
    (src / "utils" / "io.py").write_bytes(b"def load(): pass\n")
    return src


class TestJobUploadDir:
    """Tests for job_upload_dir."""

    def test_job_folder_under_root(self):
        root = RemoteLocator("openpai", "/Share/code")
        assert job_upload_dir(root, "mnist-1") == RemoteLocator("openpai", "/Share/code/mnist-1")

    def test_surrounding_slashes_and_spaces_ignored(self):
        root = RemoteLocator("openpai", "/")
        assert job_upload_dir(root, " /mnist/ ").path == "/mnist"

    @pytest.mark.parametrize("name", ["", "  ", "a/b", ".", ".."])
    def test_invalid_job_names(self, name):
        with pytest.raises(ValueError):
            job_upload_dir(RemoteLocator("openpai", "/"), name)


class TestUploadFiles:
    """Tests for upload_files against the in-memory server."""

    @pytest.mark.asyncio
    async def test_flat_upload(self, fs, fake_hdfs, at, job_sources):
        files = [job_sources / "train.py", job_sources / "utils" / "io.py"]

        uploaded = await upload_files(fs, files, at("/code/mnist"))

        assert [loc.path for loc in uploaded] == ["/code/mnist/train.py", "/code/mnist/io.py"]
        assert fake_hdfs.nodes["/code/mnist/train.py"] == b"import utils.io\n"
        assert fake_hdfs.nodes["/code/mnist/io.py"] == b"def load(): pass\n"

    @pytest.mark.asyncio
    async def test_upload_keeps_layout_relative_to_base_dir(self, fs, fake_hdfs, at, job_sources):
        files = sorted(p for p in job_sources.rglob("*") if p.is_file())

        uploaded = await upload_files(fs, files, at("/code/mnist"), base_dir=job_sources)

        assert sorted(loc.path for loc in uploaded) == [
            "/code/mnist/config.yaml",
            "/code/mnist/train.py",
            "/code/mnist/utils/io.py",
        ]
        assert fake_hdfs.is_dir("/code/mnist/utils")
        assert sorted(e.name for e in await fs.list_directory(at("/code/mnist"))) == [
            "config.yaml",
            "train.py",
            "utils",
        ]

    @pytest.mark.asyncio
    async def test_reupload_overwrites_by_default(self, fs, fake_hdfs, at, job_sources):
        fake_hdfs.add_file("/code/train.py", b"stale")

        await upload_files(fs, [job_sources / "train.py"], at("/code"))

        assert fake_hdfs.nodes["/code/train.py"] == b"import utils.io\n"

    @pytest.mark.asyncio
    async def test_no_overwrite_raises(self, fs, fake_hdfs, at, job_sources):
        fake_hdfs.add_file("/code/train.py", b"stale")

        with pytest.raises(DestinationExistsError):
            await upload_files(fs, [job_sources / "train.py"], at("/code"), overwrite=False)

        assert fake_hdfs.nodes["/code/train.py"] == b"stale"

    @pytest.mark.asyncio
    async def test_missing_local_file_uploads_nothing(self, fs, fake_hdfs, at, tmp_path):
        with pytest.raises(FileNotFoundError):
            await upload_files(fs, [tmp_path / "nope.py"], at("/code"))

        assert fake_hdfs.requests == []

    @pytest.mark.asyncio
    async def test_file_outside_base_dir(self, fs, at, job_sources, tmp_path):
        outside = tmp_path / "outside.py"
        outside.write_bytes(b"")

        with pytest.raises(ValueError, match="not inside"):
            await upload_files(fs, [outside], at("/code"), base_dir=job_sources)

    @pytest.mark.asyncio
    async def test_same_basename_twice_rejected(self, fs, fake_hdfs, at, job_sources):
        (job_sources / "utils" / "train.py").write_bytes(b"helper")
        files = [job_sources / "train.py", job_sources / "utils" / "train.py"]

        with pytest.raises(ValueError, match="/code/train.py"):
            await upload_files(fs, files, at("/code"))

        assert fake_hdfs.requests == []

    @pytest.mark.asyncio
    async def test_same_basename_kept_apart_with_base_dir(self, fs, fake_hdfs, at, job_sources):
        (job_sources / "utils" / "train.py").write_bytes(b"helper")
        files = [job_sources / "train.py", job_sources / "utils" / "train.py"]

        await upload_files(fs, files, at("/code"), base_dir=job_sources)

        assert fake_hdfs.nodes["/code/train.py"] == b"import utils.io\n"
        assert fake_hdfs.nodes["/code/utils/train.py"] == b"helper"

    @pytest.mark.asyncio
    async def test_progress_events(self, fs, at, job_sources):
        progress = ProgressStream()
        subscription = progress.subscribe()
        files = [job_sources / "train.py", job_sources / "config.yaml"]

        await upload_files(fs, files, at("/code"), progress=progress)
        progress.close()

        events = [e async for e in subscription]
        assert [(e.phase, e.bytes_done) for e in events] == [
            (TransferPhase.TRANSFER, 16),
            (TransferPhase.TRANSFER, 26),
            (TransferPhase.DONE, 26),
        ]
        assert all(e.bytes_total == 26 for e in events)
        assert events[-1].locator == at("/code")

    @pytest.mark.asyncio
    async def test_failure_publishes_failed_event(self, client, fake_hdfs, at, job_sources):
        progress = ProgressStream()
        subscription = progress.subscribe()
        fs = HdfsFileSystem(client)
        fake_hdfs.add_file("/code/config.yaml", b"keep")
        files = [job_sources / "train.py", job_sources / "config.yaml"]

        with pytest.raises(DestinationExistsError):
            await upload_files(fs, files, at("/code"), overwrite=False, progress=progress)
        progress.close()

        events = [e async for e in subscription]
        assert [e.phase for e in events] == [TransferPhase.TRANSFER, TransferPhase.FAILED]
        assert events[-1].locator == at("/code/config.yaml")
        assert fake_hdfs.nodes["/code/train.py"] == b"import utils.io\n"
