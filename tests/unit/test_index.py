"""
Unit tests for directory index resolution.
"""

from pathlib import Path

import pytest

from filesend.filesystem import LocalFileSystem
from filesend.ignore import IgnoreMatcher
from filesend.index import IndexAction, find_index, resolve_index
from filesend.sandbox import normalize_root, resolve


@pytest.fixture
def root(fixture_root: Path) -> str:
    return normalize_root(str(fixture_root))


class TestFindIndex:
    """Tests for find_index()."""

    def test_first_existing(self, root):
        found = find_index(resolve(root, "/pets/"), ["nope.html", "index.html"], LocalFileSystem())

        locator, stat = found
        assert locator.path == "/pets/index.html"
        assert stat.is_file
        assert stat.size == len("tobi\nloki\njane")

    def test_none(self, root):
        assert find_index(resolve(root, "/empty-dir/"), ["index.html"], LocalFileSystem()) is None

    def test_directory_candidate_skipped(self, root):
        """Test an index name that is a directory doesn't count."""
        assert find_index(resolve(root, "/nested/"), ["dir"], LocalFileSystem()) is None

    def test_escaping_name_skipped(self, root):
        """Test a configured name can't reach outside the root."""
        found = find_index(resolve(root, "/"), ["../../etc/passwd", "pets/index.html"], LocalFileSystem())

        assert found[0].path == "/pets/index.html"

    def test_ignored_candidate_skipped(self, root, recording_fs):
        """Test ignored candidates are never stat'ed."""
        matcher = IgnoreMatcher(["**/index.html"])

        assert find_index(resolve(root, "/pets/"), ["index.html"], recording_fs, matcher) is None
        assert recording_fs.stats == []


class TestResolveIndex:
    """Tests for resolve_index()."""

    def test_redirect_to_index(self, root):
        result = resolve_index(resolve(root, "/pets"), ["index.html"], LocalFileSystem())

        assert result.action is IndexAction.REDIRECT
        assert result.location == "/pets/index.html"

    def test_redirect_to_slash(self, root):
        result = resolve_index(resolve(root, "/empty-dir"), ["index.html"], LocalFileSystem())

        assert result.action is IndexAction.REDIRECT
        assert result.location == "/empty-dir/"

    def test_serve(self, root):
        result = resolve_index(resolve(root, "/pets/"), ["index.html"], LocalFileSystem())

        assert result.action is IndexAction.SERVE
        assert result.locator.path == "/pets/index.html"
        assert result.stat.is_file

    def test_nothing(self, root):
        result = resolve_index(resolve(root, "/empty-dir/"), [], LocalFileSystem())

        assert result.action is IndexAction.NONE
        assert result.location is None
