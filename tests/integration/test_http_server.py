"""
Integration tests: FileSend behind a real http.server socket.
"""

import pytest

from filesend import FileSend
from filesend.handlers import StaticRequestHandler, serve_static


class TestLiveServer:
    """Tests against a threaded http.server."""

    def test_get(self, live_server):
        """Test a plain GET over the wire."""
        conn = live_server.connect()
        conn.request("GET", "/nums")
        response = conn.getresponse()

        assert response.status == 200
        assert response.read() == b"123456789"
        assert response.getheader("Content-Length") == "9"
        assert response.getheader("Accept-Ranges") == "bytes"
        assert response.getheader("ETag").startswith('W/"')
        conn.close()

    def test_range(self, live_server):
        conn = live_server.connect()
        conn.request("GET", "/nums", headers={"Range": "bytes=2-50"})
        response = conn.getresponse()

        assert response.status == 206
        assert response.getheader("Content-Range") == "bytes 2-8/9"
        assert response.read() == b"3456789"
        conn.close()

    def test_multipart_length(self, live_server):
        """Test the multipart body matches its Content-Length."""
        conn = live_server.connect()
        conn.request("GET", "/nums", headers={"Range": "bytes=0-1,4-5"})
        response = conn.getresponse()
        body = response.read()

        assert response.status == 206
        assert response.getheader("Content-Type").startswith("multipart/byteranges")
        assert len(body) == int(response.getheader("Content-Length"))
        conn.close()

    def test_keep_alive(self, live_server):
        """Test several requests share one connection."""
        conn = live_server.connect()

        for expected in (b"tobi", b"123456789"):
            path = "/name.txt" if expected == b"tobi" else "/nums"
            conn.request("GET", path)
            response = conn.getresponse()
            assert response.read() == expected

        conn.close()

    def test_head(self, live_server):
        conn = live_server.connect()
        conn.request("HEAD", "/nums")
        response = conn.getresponse()

        assert response.status == 200
        assert response.getheader("Content-Length") == "9"
        assert response.read() == b""
        conn.close()

    def test_not_modified(self, live_server):
        conn = live_server.connect()
        conn.request("GET", "/nums")
        first = conn.getresponse()
        first.read()

        conn.request("GET", "/nums", headers={"If-None-Match": first.getheader("ETag")})
        second = conn.getresponse()

        assert second.status == 304
        assert second.read() == b""
        conn.close()

    def test_redirect(self, live_server):
        conn = live_server.connect()
        conn.request("GET", "/pets")
        response = conn.getresponse()
        response.read()

        assert response.status == 301
        assert response.getheader("Location") == "/pets/index.html"
        conn.close()

    def test_traversal(self, live_server):
        """Test an encoded traversal is refused."""
        conn = live_server.connect()
        conn.request("GET", "/%2e%2e/%2e%2e/etc/passwd")
        response = conn.getresponse()
        response.read()

        assert response.status == 403
        conn.close()

    @pytest.mark.parametrize("method", ["POST", "DELETE", "PATCH"])
    def test_other_methods(self, live_server, method):
        """Test every other method reaches the engine and gets 405."""
        conn = live_server.connect()
        conn.request(method, "/nums")
        response = conn.getresponse()
        response.read()

        assert response.status == 405
        assert response.getheader("Allow") == "GET, HEAD"
        conn.close()

    def test_not_found(self, live_server):
        conn = live_server.connect()
        conn.request("GET", "/missing")
        response = conn.getresponse()

        assert response.status == 404
        assert b"Not Found" in response.read()
        conn.close()


class TestServeStatic:
    """Tests for the handler factory."""

    def test_binds_engine(self, fixture_root):
        handler = serve_static(str(fixture_root), max_age="1h")

        assert issubclass(handler, StaticRequestHandler)
        assert handler.engine.config.max_age == 3600

    def test_existing_engine(self, fixture_root):
        engine = FileSend(root=str(fixture_root))

        assert serve_static(str(fixture_root), engine=engine).engine is engine

    def test_handlers_are_independent(self, fixture_root):
        first = serve_static(str(fixture_root))
        second = serve_static(str(fixture_root))

        assert first.engine is not second.engine
        assert StaticRequestHandler.engine is None
