"""
Tests for installed bundles and the install directory store.
"""

import pytest

from xcodeskit.core.exceptions import InvalidPathError
from xcodeskit.core.locking import LockManager
from xcodeskit.toolchain.installed import (
    InstalledToolchain,
    ToolchainStore,
    is_toolchain_bundle,
    load_installed_toolchain,
    read_bundle_version,
)
from xcodeskit.toolchain.version import Version


@pytest.fixture
def store(install_dir, state_dir):
    return ToolchainStore(install_dir, LockManager(state_dir / "lock"))


class TestBundles:
    """Test bundle detection and version reading."""

    def test_is_toolchain_bundle(self, temp_dir, bundle_factory):
        bundle = bundle_factory(temp_dir, "Xcode.app")
        assert is_toolchain_bundle(bundle)

    def test_app_without_plist(self, temp_dir):
        (temp_dir / "Other.app").mkdir()
        assert not is_toolchain_bundle(temp_dir / "Other.app")

    def test_non_app_directory(self, temp_dir, bundle_factory):
        bundle = bundle_factory(temp_dir, "Xcode.bundle")
        assert not is_toolchain_bundle(bundle)

    def test_version_from_name(self, temp_dir, bundle_factory):
        bundle = bundle_factory(temp_dir, "Xcode-11.0.0-Beta.7.app", short_version="11.0")
        assert read_bundle_version(bundle) == Version(11, 0, 0, "beta", 7)

    def test_version_from_plist(self, temp_dir, bundle_factory):
        bundle = bundle_factory(temp_dir, "Xcode.app", short_version="10.2.1")
        assert read_bundle_version(bundle) == Version(10, 2, 1)

    def test_unreadable_plist(self, temp_dir, bundle_factory):
        bundle = bundle_factory(temp_dir, "Xcode.app")
        (bundle / "Contents" / "version.plist").write_text("garbage")
        assert read_bundle_version(bundle) is None


class TestLoadInstalledToolchain:
    """Test validation of explicit bundle paths."""

    def test_valid(self, temp_dir, bundle_factory):
        bundle = bundle_factory(temp_dir, "Xcode.app", short_version="11.4")
        toolchain = load_installed_toolchain(bundle)
        assert toolchain == InstalledToolchain(Version(11, 4, 0), bundle)

    def test_missing(self, temp_dir):
        with pytest.raises(InvalidPathError, match="does not exist"):
            load_installed_toolchain(temp_dir / "Missing.app")

    def test_not_a_bundle(self, temp_dir):
        (temp_dir / "plain").mkdir()
        with pytest.raises(InvalidPathError, match="not an Xcode bundle"):
            load_installed_toolchain(temp_dir / "plain")


class TestToolchainStore:
    """Test listing, placing and removing installed bundles."""

    def test_empty(self, store):
        assert store.installed_toolchains() == []

    def test_missing_install_directory(self, temp_dir, state_dir):
        store = ToolchainStore(temp_dir / "nowhere", LockManager(state_dir / "lock"))
        assert store.installed_toolchains() == []

    def test_lists_sorted_and_skips_hidden(self, store, install_dir, bundle_factory):
        bundle_factory(install_dir, "Xcode-11.0.0.app", "11.0")
        bundle_factory(install_dir, "Xcode-10.2.1.app", "10.2.1")
        bundle_factory(install_dir, ".xcodeskit-staging-abc", "9.0")
        bundle_factory(install_dir, ".Xcode-9.0.0.app", "9.0")
        (install_dir / "Safari.app").mkdir()

        listed = [t.version.description for t in store.installed_toolchains()]

        assert listed == ["10.2.1", "11.0"]

    def test_find_installed(self, store, install_dir, bundle_factory):
        bundle = bundle_factory(install_dir, "Xcode.app", "11.0")

        found = store.find_installed(Version.parse("11"))
        assert found.path == bundle
        assert store.find_installed(Version.parse("11 Beta 1")) is None

    def test_destination_for(self, store, install_dir):
        destination = store.destination_for(Version.parse("11 Beta 7"))
        assert destination == install_dir / "Xcode-11.0.0-Beta.7.app"

    def test_place_atomically(self, store, install_dir, temp_dir, bundle_factory):
        source = bundle_factory(temp_dir, "Xcode.app", "10.2.1")
        destination = install_dir / "Xcode-10.2.1.app"

        toolchain = store.place_atomically(source, destination)

        assert toolchain == InstalledToolchain(Version(10, 2, 1), destination)
        assert not source.exists()
        assert store.installed_toolchains() == [toolchain]

    def test_place_refuses_existing_destination(self, store, install_dir, temp_dir, bundle_factory):
        existing = bundle_factory(install_dir, "Xcode-10.2.1.app", "10.2.1")
        source = bundle_factory(temp_dir, "Xcode.app", "10.2.1")

        with pytest.raises(FileExistsError):
            store.place_atomically(source, existing)

        assert source.exists()

    def test_place_rejects_non_bundle(self, store, install_dir, temp_dir):
        (temp_dir / "Xcode.app").mkdir()
        with pytest.raises(InvalidPathError):
            store.place_atomically(temp_dir / "Xcode.app", install_dir / "Xcode-1.0.0.app")

    def test_remove(self, store, install_dir, bundle_factory):
        bundle = bundle_factory(install_dir, "Xcode-11.0.0.app", "11.0")
        toolchain = store.installed_toolchains()[0]

        store.remove(toolchain)

        assert not bundle.exists()
        assert list(install_dir.iterdir()) == []
