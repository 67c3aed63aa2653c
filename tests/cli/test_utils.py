"""
Tests for shared CLI output helpers.
"""

from xcodeskit.cli.utils import format_markers, print_error


class TestFormatMarkers:
    """Test listing markers."""

    def test_none(self):
        assert format_markers() == ""
        assert format_markers("", "") == ""

    def test_one(self):
        assert format_markers("Installed", "") == " (Installed)"

    def test_two(self):
        assert format_markers("Installed", "Selected") == " (Installed, Selected)"


class TestPrintHelpers:
    """Test stderr helpers."""

    def test_print_error(self, capsys):
        print_error("Version 9.9.9 not found", "Run `xcodes list` to see available versions")

        err = capsys.readouterr().err
        assert err.splitlines() == [
            "ERROR: Version 9.9.9 not found",
            "  Run `xcodes list` to see available versions",
        ]
