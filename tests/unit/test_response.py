"""
Unit tests for the response sink, header map and HTTP helpers.
"""

import pytest

from filesend.errors import HeadersSentError
from filesend.http.headers import ResponseHeaders
from filesend.http.response import (
    BufferedResponse,
    create_error_document,
    create_redirect_document,
    encode_path,
    encode_url,
    format_http_date,
    parse_http_date,
)
from filesend.http.status_codes import HTTPStatus


class TestResponseHeaders:
    """Tests for ResponseHeaders."""

    def test_case_insensitive(self):
        """Test lookups ignore case and keep the first casing."""
        headers = ResponseHeaders()
        headers.set("Content-Type", "text/plain")
        headers.set("content-type", "text/html")

        assert headers.get("CONTENT-TYPE") == "text/html"
        assert list(headers) == ["Content-Type"]
        assert "content-type" in headers

    def test_values_stringified(self):
        headers = ResponseHeaders({"Content-Length": 9})

        assert headers["Content-Length"] == "9"

    def test_remove(self):
        headers = ResponseHeaders({"ETag": '"a"'})
        headers.remove("etag")
        headers.remove("missing")

        assert "ETag" not in headers
        assert len(headers) == 0

    def test_setdefault(self):
        headers = ResponseHeaders({"Cache-Control": "no-store"})

        assert headers.setdefault("Cache-Control", "public") == "no-store"
        assert headers.setdefault("ETag", '"a"') == '"a"'

    def test_insertion_order(self):
        headers = ResponseHeaders()
        headers["B"] = "2"
        headers["A"] = "1"

        assert list(headers.items()) == [("B", "2"), ("A", "1")]

    def test_delitem_missing(self):
        with pytest.raises(KeyError):
            del ResponseHeaders()["X"]

    def test_lock(self):
        """Test a locked map rejects every mutation."""
        headers = ResponseHeaders({"ETag": '"a"'})
        headers.lock()

        assert headers.locked
        with pytest.raises(HeadersSentError):
            headers.set("ETag", '"b"')
        with pytest.raises(HeadersSentError):
            headers.remove("ETag")
        assert headers.get("ETag") == '"a"'


class TestBufferedResponse:
    """Tests for the Response lifecycle."""

    def test_end_sets_content_length(self):
        response = BufferedResponse()
        response.end("hello")

        assert response.sent_status == 200
        assert response.sent_headers == {"Content-Length": "5"}
        assert response.body == b"hello"
        assert response.finished

    def test_no_content_length_for_304(self):
        response = BufferedResponse()
        response.set_status(304)
        response.end()

        assert "Content-Length" not in response.sent_headers

    def test_write_flushes_head_once(self):
        """Test the first write locks status and headers."""
        response = BufferedResponse()
        response.headers.set("Content-Length", 6)
        response.write("abc")
        response.write(b"def")

        assert response.headers_sent
        assert response.body == b"abcdef"
        with pytest.raises(HeadersSentError):
            response.set_status(500)
        with pytest.raises(HeadersSentError):
            response.headers.set("X-Late", "1")

    def test_empty_write_keeps_head_open(self):
        response = BufferedResponse()
        response.write(b"")

        assert not response.headers_sent

    def test_double_end(self):
        """Test a second end() is ignored."""
        response = BufferedResponse()
        response.end("a")
        response.end("b")

        assert response.body == b"a"

    def test_write_after_end(self):
        response = BufferedResponse()
        response.end()

        with pytest.raises(RuntimeError):
            response.write("late")

    def test_destroy(self):
        """Test destroy records the error and blocks end()."""
        response = BufferedResponse()
        response.write("part")
        error = OSError("boom")
        response.destroy(error)
        response.end("rest")

        assert response.destroyed
        assert response.error is error
        assert response.body == b"part"
        assert not response.finished

    def test_closed(self):
        """Test closed covers client disconnects."""
        response = BufferedResponse()
        assert not response.closed

        response.close()
        assert response.closed

    def test_custom_reason(self):
        response = BufferedResponse()
        response.set_status(200, "Fine")

        assert response.reason == "Fine"
        assert BufferedResponse().reason == "OK"


class TestHTTPDates:
    """Tests for HTTP-date helpers."""

    def test_format(self):
        assert format_http_date(1700000000) == "Tue, 14 Nov 2023 22:13:20 GMT"

    def test_parse(self):
        assert parse_http_date("Tue, 14 Nov 2023 22:13:20 GMT") == 1700000000

    def test_parse_rfc850(self):
        assert parse_http_date("Tuesday, 14-Nov-23 22:13:20 GMT") == 1700000000

    @pytest.mark.parametrize("value", [None, "", "not a date", "32 Foo 2023"])
    def test_parse_invalid(self, value):
        assert parse_http_date(value) is None


class TestDocuments:
    """Tests for the generated HTML documents."""

    def test_error_document(self):
        document = create_error_document(404)

        assert "<title>404 Not Found</title>" in document
        assert "src=" not in document and "href=" not in document

    def test_error_document_escapes_message(self):
        document = create_error_document(500, "<script>")

        assert "<script>" not in document
        assert "&lt;script&gt;" in document

    def test_redirect_document(self):
        href, body = create_redirect_document("/some dir/")

        assert href == "/some%20dir/"
        assert body == 'Redirecting to <a href="/some%20dir/">/some dir/</a>'

    def test_encode_url_keeps_escapes(self):
        """Test existing escapes aren't double encoded."""
        assert encode_url("/a%20b/100%") == "/a%20b/100%25"
        assert encode_url("/a?x=1&y=2") == "/a?x=1&y=2"

    def test_encode_path_escapes_delimiters(self):
        assert encode_path("/a?b#c/") == "/a%3Fb%23c/"
        assert encode_url(encode_path("/a?b/")) == "/a%3Fb/"


class TestHTTPStatus:
    """Tests for HTTPStatus."""

    def test_phrases(self):
        assert HTTPStatus.RANGE_NOT_SATISFIABLE.phrase == "Range Not Satisfiable"
        assert HTTPStatus.phrase_for(299) == "Unknown"

    def test_classes(self):
        assert HTTPStatus.NOT_FOUND.is_client_error
        assert HTTPStatus.INTERNAL_SERVER_ERROR.is_server_error
        assert HTTPStatus.MOVED_PERMANENTLY.is_redirect
