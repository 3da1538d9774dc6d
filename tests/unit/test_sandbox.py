"""
Unit tests for path decoding and root confinement.
"""

import warnings
from pathlib import Path

import pytest

from filesend import sandbox
from filesend.errors import BadRequest, Forbidden
from filesend.sandbox import (
    decode_path,
    is_out_of_bounds,
    locate,
    normalize_path,
    normalize_root,
    resolve,
)


ROOT = "/srv/www"


class TestDecodePath:
    """Tests for percent-decoding."""

    def test_plain(self):
        """Test an unencoded path is unchanged."""
        assert decode_path("/a/b.txt") == "/a/b.txt"

    def test_escapes(self):
        """Test escapes are decoded as UTF-8."""
        assert decode_path("/some%20thing.txt") == "/some thing.txt"
        assert decode_path("/caf%C3%A9") == "/café"

    @pytest.mark.parametrize("path", ["/%", "/%2", "/%zz", "/a%g0"])
    def test_malformed_escape(self, path):
        """Test a stray percent sign is rejected."""
        with pytest.raises(BadRequest):
            decode_path(path)

    def test_invalid_utf8(self):
        """Test bytes that aren't UTF-8 are rejected."""
        with pytest.raises(BadRequest):
            decode_path("/%ff%fe")

    def test_nul_byte(self):
        """Test an encoded NUL is rejected."""
        with pytest.raises(BadRequest) as exc:
            decode_path("/nums%00.txt")
        assert exc.value.status_code == 400


class TestNormalizePath:
    """Tests for lexical normalization."""

    @pytest.mark.parametrize("path,expected", [
        ("/a//b", "/a/b"),
        ("/a/./b", "/a/b"),
        ("/a/././b", "/a/b"),
        ("/a/b/../c", "/a/c"),
        ("/a/b/../../c", "/c"),
        ("/a/b/", "/a/b/"),
        ("\\a\\b", "/a/b"),
        ("", "/"),
    ])
    def test_normalize(self, path, expected):
        """Test slashes, dot and parent segments."""
        assert normalize_path(path) == expected

    def test_parent_above_root_kept(self):
        """Test leading parent segments survive for the bounds check."""
        assert normalize_path("/a/../../etc") == "/../etc"

    def test_dots_inside_names(self):
        """Test names containing dots are not segments."""
        assert normalize_path("/do..ts/..hidden") == "/do..ts/..hidden"


class TestBounds:
    """Tests for root containment."""

    def test_inside(self):
        """Test paths under the root."""
        assert not is_out_of_bounds(ROOT, "/srv/www")
        assert not is_out_of_bounds(ROOT, "/srv/www/a/b")

    def test_outside(self):
        """Test parent and sibling paths."""
        assert is_out_of_bounds(ROOT, "/srv")
        assert is_out_of_bounds(ROOT, "/srv/other")
        assert is_out_of_bounds(ROOT, "/etc/passwd")

    def test_sibling_with_common_prefix(self):
        """Test a sibling sharing the root's prefix is outside."""
        assert is_out_of_bounds(ROOT, "/srv/www-private/key")

    def test_name_starting_with_dots(self):
        """Test a child called '..foo' is inside."""
        assert not is_out_of_bounds(ROOT, "/srv/www/..foo")


class TestResolve:
    """Tests for the full decode → normalize → contain chain."""

    def test_file(self):
        """Test a file locator."""
        locator = resolve(ROOT, "/a%20b/c.txt")

        assert locator.path == "/a b/c.txt"
        assert locator.resolved_path == "/a b/c.txt"
        assert locator.realpath == "/srv/www/a b/c.txt"
        assert locator.request_path == "/a%20b/c.txt"
        assert not locator.has_trailing_slash

    def test_root(self):
        """Test the root itself."""
        locator = resolve(ROOT, "/")

        assert locator.realpath == ROOT
        assert locator.has_trailing_slash

    def test_trailing_slash_kept(self):
        """Test a directory request keeps its slash."""
        locator = resolve(ROOT, "/pets/")

        assert locator.resolved_path == "/pets/"
        assert locator.realpath == "/srv/www/pets"

    def test_missing_leading_slash(self):
        """Test a relative target is anchored at the root."""
        assert resolve(ROOT, "nums").path == "/nums"

    @pytest.mark.parametrize("path", [
        "/../etc/passwd",
        "/%2e%2e/etc/passwd",
        "/a/../../etc",
        "/..%5c..%5cetc",
    ])
    def test_traversal(self, path):
        """Test escaping the root is Forbidden."""
        with pytest.raises(Forbidden):
            resolve(ROOT, path)

    def test_bad_encoding_before_bounds(self):
        """Test decoding errors are reported as 400, not 403."""
        with pytest.raises(BadRequest):
            resolve(ROOT, "/../%zz")

    def test_join_for_index(self):
        """Test joining an index name onto a directory locator."""
        directory = resolve(ROOT, "/pets")
        index = directory.join("index.html")

        assert index.path == "/pets/index.html"
        assert index.realpath == "/srv/www/pets/index.html"

    def test_join_cannot_escape(self):
        """Test an index name can't leave the root."""
        with pytest.raises(Forbidden):
            resolve(ROOT, "/").join("../secret")

    def test_locate_direct(self):
        """Test locate() with an already normalized path."""
        locator = locate(ROOT, "/x", "/x/y")

        assert locator.resolved_path == "/x/y"


class TestNormalizeRoot:
    """Tests for root normalization."""

    def test_absolute_posix(self, tmp_path):
        """Test the root becomes an absolute forward-slash path."""
        root = normalize_root(str(tmp_path / "a" / ".." / "b"))

        assert root == (tmp_path / "b").resolve().as_posix()
        assert "\\" not in root


class TestModuleSource:
    """Tests for the module text itself."""

    def test_compiles_without_warnings(self):
        """Test the docstring diagrams hold no invalid escape sequences."""
        source = Path(sandbox.__file__).read_text(encoding="utf-8")

        with warnings.catch_warnings():
            warnings.simplefilter("error")
            compile(source, sandbox.__file__, "exec")
