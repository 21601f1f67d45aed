"""Tests for the one-shot loopback callback receiver."""

from __future__ import annotations

import http.client
import socket
import threading
import time

import pytest

from nowplaying.auth.callback import CallbackReceiver, _page_for, is_loopback_uri
from nowplaying.exceptions import AuthError


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def _get(port: int, path: str) -> tuple[int, str]:
    deadline = time.monotonic() + 5
    while True:
        conn = http.client.HTTPConnection("127.0.0.1", port, timeout=5)
        try:
            conn.request("GET", path)
            response = conn.getresponse()
            return response.status, response.read().decode("utf-8")
        except ConnectionRefusedError:
            if time.monotonic() > deadline:
                raise
            time.sleep(0.05)
        finally:
            conn.close()


class TestIsLoopbackUri:
    @pytest.mark.parametrize(
        "uri",
        [
            "http://localhost:5173/callback",
            "http://127.0.0.1:8080/callback",
            "http://[::1]:5173/callback",
        ],
    )
    def test_loopback(self, uri: str) -> None:
        assert is_loopback_uri(uri) is True

    @pytest.mark.parametrize(
        "uri",
        [
            "https://localhost:5173/callback",
            "https://nowplaying.example.com/callback",
            "http://192.168.1.10/callback",
            "not a url",
        ],
    )
    def test_not_loopback(self, uri: str) -> None:
        assert is_loopback_uri(uri) is False


class TestCallbackPage:
    def test_error_value_is_escaped(self) -> None:
        page = _page_for("/callback?error=%3Cscript%3Ealert(1)%3C%2Fscript%3E")
        assert "<script>" not in page
        assert "&lt;script&gt;" in page

    def test_success(self) -> None:
        assert "Authorization successful" in _page_for("/callback?code=ABC")

    def test_no_code(self) -> None:
        assert "No authorization code" in _page_for("/callback")


class TestCallbackReceiver:
    def _serve(self, receiver: CallbackReceiver) -> tuple[threading.Thread, dict]:
        result: dict = {}

        def target() -> None:
            try:
                result["path"] = receiver.wait()
            except AuthError as exc:
                result["error"] = exc

        thread = threading.Thread(target=target, daemon=True)
        thread.start()
        return thread, result

    def test_returns_path_and_query(self) -> None:
        port = _free_port()
        with CallbackReceiver(f"http://127.0.0.1:{port}/callback", timeout=10) as receiver:
            thread, result = self._serve(receiver)
            status, body = _get(port, "/callback?code=ABC123")
            thread.join(timeout=10)

        assert result["path"] == "/callback?code=ABC123"
        assert status == 200
        assert "Authorization successful" in body

    def test_redirect_before_wait_is_not_lost(self) -> None:
        port = _free_port()
        with CallbackReceiver(f"http://127.0.0.1:{port}/callback", timeout=10) as receiver:
            # the socket is bound, so a fast browser can connect before wait()
            conn = socket.create_connection(("127.0.0.1", port), timeout=5)
            try:
                conn.sendall(b"GET /callback?code=EARLY HTTP/1.0\r\nHost: localhost\r\n\r\n")
                assert receiver.wait() == "/callback?code=EARLY"
            finally:
                conn.close()

    def test_error_page(self) -> None:
        port = _free_port()
        with CallbackReceiver(f"http://127.0.0.1:{port}/callback", timeout=10) as receiver:
            thread, result = self._serve(receiver)
            _, body = _get(port, "/callback?error=access_denied")
            thread.join(timeout=10)

        assert result["path"] == "/callback?error=access_denied"
        assert "access_denied" in body

    def test_times_out(self) -> None:
        port = _free_port()
        with CallbackReceiver(f"http://127.0.0.1:{port}/callback", timeout=0.2) as receiver:
            with pytest.raises(AuthError, match="No callback received"):
                receiver.wait()

    def test_port_in_use_is_an_auth_error(self) -> None:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as busy:
            busy.bind(("127.0.0.1", 0))
            busy.listen(1)
            port = busy.getsockname()[1]

            receiver = CallbackReceiver(f"http://127.0.0.1:{port}/callback")
            with pytest.raises(AuthError, match="Cannot listen"):
                receiver.open()
