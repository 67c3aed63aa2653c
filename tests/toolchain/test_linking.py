"""
Tests for the active toolchain link.
"""

import os

import pytest

from xcodeskit.toolchain.linking import ActiveToolchainLink


@pytest.fixture
def link(state_dir):
    return ActiveToolchainLink(state_dir / "active")


class TestActiveToolchainLink:
    """Test reading and swapping the active link."""

    def test_no_link(self, link):
        assert link.resolve() is None
        assert not link.points_to("/anything")

    def test_point_to(self, link, install_dir, bundle_factory):
        bundle = bundle_factory(install_dir, "Xcode-11.0.0.app", "11.0")

        link.point_to(bundle)

        assert link.link_path.is_symlink()
        assert link.resolve() == bundle
        assert link.points_to(bundle)

    def test_swap(self, link, install_dir, bundle_factory):
        first = bundle_factory(install_dir, "Xcode-10.2.1.app", "10.2.1")
        second = bundle_factory(install_dir, "Xcode-11.0.0.app", "11.0")

        link.point_to(first)
        link.point_to(second)

        assert link.resolve() == second
        assert not link.points_to(first)
        # No temporary links are left behind
        assert sorted(p.name for p in link.link_path.parent.iterdir() if p.is_symlink()) == ["active"]

    def test_missing_target(self, link, install_dir):
        with pytest.raises(FileNotFoundError):
            link.point_to(install_dir / "Missing.app")
        assert not link.link_path.is_symlink()

    def test_dangling_link(self, link, install_dir, bundle_factory):
        bundle = bundle_factory(install_dir, "Xcode-11.0.0.app", "11.0")
        link.point_to(bundle)
        os.rename(bundle, install_dir / "Moved.app")

        assert link.resolve() is None
        assert link.points_to(bundle)

    def test_refuses_to_replace_regular_file(self, link, install_dir, bundle_factory):
        bundle = bundle_factory(install_dir, "Xcode-11.0.0.app", "11.0")
        link.link_path.write_text("not a link")

        with pytest.raises(FileExistsError):
            link.point_to(bundle)

        assert link.link_path.read_text() == "not a link"

    def test_clear(self, link, install_dir, bundle_factory):
        link.point_to(bundle_factory(install_dir, "Xcode-11.0.0.app", "11.0"))

        assert link.clear()
        assert not link.clear()
        assert link.resolve() is None
