"""Tests for the extension filter and ignore rules."""

import pytest

from one_copy import (
    ConfigError,
    ExtensionMode,
    IgnoreMatcher,
    file_extension,
    parse_extensions,
    parse_patterns,
    should_process,
)


class TestParseExtensions:
    def test_empty(self):
        assert parse_extensions("") == frozenset()
        assert parse_extensions(None) == frozenset()

    def test_normalizes_case_dots_and_spaces(self):
        """Leading dots are stripped and comparison values are lowercased."""
        assert parse_extensions(" JPG, .png ,,pdf ") == frozenset({"jpg", "png", "pdf"})


class TestFileExtension:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("a.txt", "txt"),
            ("photo.JPG", "jpg"),
            ("archive.tar.gz", "gz"),
            ("README", None),
            ("docs/reports/report.pdf", "pdf"),
            ("dir.with.dots/README", None),
            ("trailing.", ""),
        ],
    )
    def test_extension(self, name, expected):
        assert file_extension(name) == expected


class TestShouldProcess:
    def test_empty_list_processes_everything(self):
        assert should_process("README", [], ExtensionMode.INCLUDE)
        assert should_process("a.txt", frozenset(), ExtensionMode.EXCLUDE)

    def test_include_mode(self):
        """Only listed extensions pass; extensionless files are skipped."""
        exts = parse_extensions("jpg,png")
        assert should_process("a.jpg", exts, ExtensionMode.INCLUDE)
        assert should_process("b.PNG", exts, ExtensionMode.INCLUDE)
        assert not should_process("a.txt", exts, ExtensionMode.INCLUDE)
        assert not should_process("README", exts, ExtensionMode.INCLUDE)

    def test_exclude_mode(self):
        """Listed extensions are skipped; extensionless files pass."""
        exts = parse_extensions("mp4")
        assert not should_process("movie.mp4", exts, ExtensionMode.EXCLUDE)
        assert not should_process("MOVIE.MP4", exts, ExtensionMode.EXCLUDE)
        assert should_process("photo.jpg", exts, ExtensionMode.EXCLUDE)
        assert should_process("README", exts, ExtensionMode.EXCLUDE)

    def test_raw_configured_extensions_are_normalized(self):
        assert should_process("a.jpg", [".JPG"], ExtensionMode.INCLUDE)


class TestExtensionMode:
    @pytest.mark.parametrize("raw, mode", [("include", ExtensionMode.INCLUDE), (" Exclude ", ExtensionMode.EXCLUDE)])
    def test_parse(self, raw, mode):
        assert ExtensionMode.parse(raw) is mode

    @pytest.mark.parametrize("raw", ["", "inclusive", "only"])
    def test_unknown_mode_rejected(self, raw):
        with pytest.raises(ConfigError, match="EXTENSION_MODE"):
            ExtensionMode.parse(raw)


class TestIgnoreMatcher:
    def test_no_patterns_ignores_nothing(self):
        matcher = IgnoreMatcher(())
        assert not matcher.is_ignored("a.part")

    def test_gitignore_style_patterns(self):
        matcher = IgnoreMatcher(parse_patterns("*.part, tmp/, .DS_Store"))
        assert matcher.is_ignored("movie.mkv.part")
        assert matcher.is_ignored("deep/dir/file.part")
        assert matcher.is_ignored("tmp/x.jpg")
        assert matcher.is_ignored("photos/.DS_Store")
        assert not matcher.is_ignored("photos/photo1.jpg")
