"""
Unit tests for filesystem utilities.

Tests:
- Archive extraction and traversal protection
- Atomic writes
- Guarded deletion
- Staging directories and non-replacing renames
"""

import io
import os
import stat
import tarfile
import threading
import zipfile

import pytest

from xcodeskit.core.filesystem import (
    ArchiveExtractionError,
    FilesystemError,
    InsecureArchiveError,
    OperationCancelledError,
    UnsupportedArchiveFormat,
    atomic_write,
    extract_archive,
    is_in_process_archive,
    is_relative_to,
    make_staging_dir,
    rename_no_replace,
    safe_rmtree,
)


def make_tar(path, members, mode="w:gz"):
    with tarfile.open(path, mode) as tar:
        for name, data in members.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return path


class TestPathUtilities:
    """Test path helpers."""

    def test_is_relative_to(self, temp_dir):
        assert is_relative_to(temp_dir / "a" / "b", temp_dir)
        assert not is_relative_to(temp_dir.parent, temp_dir)

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Xcode.zip", True),
            ("Xcode.tar.gz", True),
            ("Xcode.TGZ", True),
            ("Xcode.tar.xz", True),
            ("Xcode.tar.bz2", True),
            ("Xcode_11.xip", False),
            ("Xcode.dmg", False),
        ],
    )
    def test_is_in_process_archive(self, name, expected):
        assert is_in_process_archive(name) is expected


class TestExtractArchive:
    """Test archive extraction."""

    def test_extract_zip(self, temp_dir):
        archive = temp_dir / "test.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("Xcode.app/Contents/version.plist", "plist")

        progress = []
        extract_archive(archive, temp_dir / "out", lambda current, total: progress.append(current))

        assert (temp_dir / "out" / "Xcode.app" / "Contents" / "version.plist").read_text() == "plist"
        assert progress == [1]

    @pytest.mark.parametrize("suffix,mode", [(".tar.gz", "w:gz"), (".tar.xz", "w:xz"), (".tar.bz2", "w:bz2")])
    def test_extract_tar(self, temp_dir, suffix, mode):
        archive = make_tar(temp_dir / f"test{suffix}", {"Xcode.app/README": b"hello"}, mode)

        extract_archive(archive, temp_dir / "out")

        assert (temp_dir / "out" / "Xcode.app" / "README").read_bytes() == b"hello"

    def test_zip_keeps_permissions_and_symlinks(self, temp_dir):
        archive = temp_dir / "bundle.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            binary = zipfile.ZipInfo("Xcode.app/Contents/MacOS/Xcode")
            binary.external_attr = (stat.S_IFREG | 0o755) << 16
            zf.writestr(binary, "#!/bin/sh\n")
            link = zipfile.ZipInfo("Xcode.app/Contents/Frameworks/Current")
            link.external_attr = (stat.S_IFLNK | 0o777) << 16
            zf.writestr(link, "../MacOS")

        extract_archive(archive, temp_dir / "out")

        contents = temp_dir / "out" / "Xcode.app" / "Contents"
        assert stat.S_IMODE((contents / "MacOS" / "Xcode").stat().st_mode) == 0o755
        current = contents / "Frameworks" / "Current"
        assert current.is_symlink()
        assert os.readlink(current) == "../MacOS"
        assert (current / "Xcode").read_text() == "#!/bin/sh\n"

    @pytest.mark.parametrize("target", ["../../../outside", "/etc"])
    def test_zip_symlink_escape_blocked(self, temp_dir, target):
        archive = temp_dir / "evil.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            link = zipfile.ZipInfo("Xcode.app/link")
            link.external_attr = (stat.S_IFLNK | 0o777) << 16
            zf.writestr(link, target)

        with pytest.raises(InsecureArchiveError):
            extract_archive(archive, temp_dir / "out")

        assert not (temp_dir / "out" / "Xcode.app" / "link").is_symlink()

    @pytest.mark.parametrize("name", ["stopped.zip", "stopped.tar.gz"])
    def test_cancelled_extraction(self, temp_dir, name):
        archive = temp_dir / name
        if name.endswith(".zip"):
            with zipfile.ZipFile(archive, "w") as zf:
                zf.writestr("Xcode.app/README", "hello")
        else:
            make_tar(archive, {"Xcode.app/README": b"hello"})
        stop = threading.Event()
        stop.set()

        with pytest.raises(OperationCancelledError):
            extract_archive(archive, temp_dir / "out", cancel_event=stop)

        assert not (temp_dir / "out" / "Xcode.app").exists()

    def test_zip_traversal_blocked(self, temp_dir):
        archive = temp_dir / "evil.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("../escape.txt", "boom")

        with pytest.raises(InsecureArchiveError):
            extract_archive(archive, temp_dir / "out")

        assert not (temp_dir / "escape.txt").exists()

    def test_tar_traversal_blocked(self, temp_dir):
        archive = make_tar(temp_dir / "evil.tar.gz", {"../../escape.txt": b"boom"})

        with pytest.raises(InsecureArchiveError):
            extract_archive(archive, temp_dir / "out")

    def test_unsupported_format(self, temp_dir):
        archive = temp_dir / "Xcode.dmg"
        archive.write_bytes(b"dmg")

        with pytest.raises(UnsupportedArchiveFormat):
            extract_archive(archive, temp_dir / "out")

    def test_missing_archive(self, temp_dir):
        with pytest.raises(ArchiveExtractionError, match="not found"):
            extract_archive(temp_dir / "missing.zip", temp_dir / "out")

    def test_corrupt_archive(self, temp_dir):
        archive = temp_dir / "broken.zip"
        archive.write_bytes(b"not a zip")

        with pytest.raises(ArchiveExtractionError, match="Failed to extract"):
            extract_archive(archive, temp_dir / "out")


class TestAtomicWrite:
    """Test atomic file writes."""

    def test_write_text(self, temp_dir):
        target = temp_dir / "nested" / "catalog.json"
        atomic_write(target, "[]")
        assert target.read_text() == "[]"

    def test_write_bytes_replaces(self, temp_dir):
        target = temp_dir / "data.bin"
        target.write_bytes(b"old")

        atomic_write(target, b"new")

        assert target.read_bytes() == b"new"
        assert [p.name for p in temp_dir.iterdir()] == ["data.bin"]


class TestSafeRmtree:
    """Test guarded deletion."""

    def test_remove(self, temp_dir):
        victim = temp_dir / "victim"
        (victim / "sub").mkdir(parents=True)

        safe_rmtree(victim, require_prefix=temp_dir)

        assert not victim.exists()

    def test_outside_prefix(self, temp_dir):
        (temp_dir / "a").mkdir()
        (temp_dir / "b").mkdir()

        with pytest.raises(ValueError, match="Refusing to delete"):
            safe_rmtree(temp_dir / "a", require_prefix=temp_dir / "b")

        assert (temp_dir / "a").exists()

    def test_missing_is_ignored(self, temp_dir):
        safe_rmtree(temp_dir / "missing")

    def test_file_rejected(self, temp_dir):
        (temp_dir / "file").write_text("x")
        with pytest.raises(FilesystemError):
            safe_rmtree(temp_dir / "file")


class TestStagingAndRename:
    """Test staging directories and placement renames."""

    def test_make_staging_dir(self, temp_dir):
        staging = make_staging_dir(temp_dir / "Applications")

        assert staging.is_dir()
        assert staging.parent == temp_dir / "Applications"
        assert staging.name.startswith(".xcodeskit-staging-")

    def test_rename_no_replace(self, temp_dir):
        (temp_dir / "source").mkdir()

        rename_no_replace(temp_dir / "source", temp_dir / "destination")

        assert (temp_dir / "destination").is_dir()
        assert not (temp_dir / "source").exists()

    def test_rename_refuses_existing(self, temp_dir):
        (temp_dir / "source").mkdir()
        (temp_dir / "destination").mkdir()

        with pytest.raises(FileExistsError):
            rename_no_replace(temp_dir / "source", temp_dir / "destination")

        assert (temp_dir / "source").exists()
