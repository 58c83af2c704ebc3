"""Unit tests for the WebSocket echo handler.

Tests upgrade qualification, handshake validation and the
frame-for-frame echo loop.
"""

import logging

import pytest
from starlette.datastructures import Headers

from echo_service.errors import HandshakeError
from echo_service.handlers.websocket import is_upgrade_request, validate_handshake
from echo_service.server import EchoService


@pytest.fixture
def handshake_headers() -> dict[str, str]:
    """Headers of a valid client opening handshake."""
    return {
        "host": "echo.test",
        "connection": "Upgrade",
        "upgrade": "websocket",
        "sec-websocket-version": "13",
        "sec-websocket-key": "dGhlIHNhbXBsZSBub25jZQ==",
    }


class TestIsUpgradeRequest:
    """Tests for the upgrade qualification check."""

    def test_standard_upgrade(self):
        assert is_upgrade_request(Headers({"Connection": "Upgrade", "Upgrade": "websocket"}))

    def test_upgrade_value_is_substring_match(self):
        assert is_upgrade_request(Headers({"Connection": "Upgrade", "Upgrade": "h2c, websocket"}))

    @pytest.mark.parametrize(
        "headers",
        [
            {},
            {"Connection": "Upgrade"},
            {"Upgrade": "websocket"},
            {"Connection": "upgrade", "Upgrade": "websocket"},
            {"Connection": "keep-alive, Upgrade", "Upgrade": "websocket"},
            {"Connection": "Upgrade", "Upgrade": "WebSocket"},
            {"Connection": "Upgrade", "Upgrade": "h2c"},
        ],
    )
    def test_not_an_upgrade(self, headers):
        assert not is_upgrade_request(Headers(headers))


class TestValidateHandshake:
    """Tests for handshake validation."""

    def test_valid_handshake(self, handshake_headers):
        validate_handshake("GET", Headers(handshake_headers))

    def test_tokens_are_case_insensitive_lists(self, handshake_headers):
        handshake_headers["connection"] = "keep-alive, Upgrade"
        handshake_headers["upgrade"] = "WebSocket"

        validate_handshake("GET", Headers(handshake_headers))

    @pytest.mark.parametrize(
        "header,value,fragment",
        [
            ("connection", "keep-alive", "'Connection' header"),
            ("upgrade", "h2c", "'Upgrade' header"),
            ("sec-websocket-version", "8", "unsupported version"),
            ("sec-websocket-key", "  ", "'Sec-WebSocket-Key' header is missing or blank"),
        ],
    )
    def test_invalid_header(self, handshake_headers, header, value, fragment):
        handshake_headers[header] = value

        with pytest.raises(HandshakeError) as exc_info:
            validate_handshake("GET", Headers(handshake_headers))

        assert fragment in str(exc_info.value)

    def test_missing_key(self, handshake_headers):
        del handshake_headers["sec-websocket-key"]

        with pytest.raises(HandshakeError, match="Sec-WebSocket-Key"):
            validate_handshake("GET", Headers(handshake_headers))

    def test_method_must_be_get(self, handshake_headers):
        with pytest.raises(HandshakeError, match="request method is not GET"):
            validate_handshake("POST", Headers(handshake_headers))


class TestWebSocketEcho:
    """Tests for the echo loop over the Starlette test client."""

    def test_text_frame_echoed(self, client):
        with client.websocket_connect("/") as ws:
            ws.send_text("ping")

            assert ws.receive_text() == "ping"

    def test_binary_frame_echoed(self, client):
        with client.websocket_connect("/") as ws:
            ws.send_bytes(bytes([0x01, 0x02]))

            assert ws.receive_bytes() == b"\x01\x02"

    def test_message_type_preserved(self, client):
        with client.websocket_connect("/") as ws:
            ws.send_text("text")
            ws.send_bytes(b"bin")

            assert ws.receive() == {"type": "websocket.send", "text": "text"}
            assert ws.receive() == {"type": "websocket.send", "bytes": b"bin"}

    def test_order_preserved(self, client):
        with client.websocket_connect("/") as ws:
            for i in range(10):
                ws.send_text(f"message-{i}")

            assert [ws.receive_text() for _ in range(10)] == [f"message-{i}" for i in range(10)]

    def test_payload_unmodified(self, client):
        payload = bytes(range(256)) * 4
        text = '{"json": true}\n\ttabs and ☃'

        with client.websocket_connect("/") as ws:
            ws.send_bytes(payload)
            ws.send_text(text)

            assert ws.receive_bytes() == payload
            assert ws.receive_text() == text

    def test_empty_frames(self, client):
        with client.websocket_connect("/") as ws:
            ws.send_text("")
            ws.send_bytes(b"")

            assert ws.receive_text() == ""
            assert ws.receive_bytes() == b""

    def test_any_path(self, client):
        with client.websocket_connect("/deep/nested/path?token=abc") as ws:
            ws.send_text("hello")

            assert ws.receive_text() == "hello"

    def test_connections_are_independent(self, client):
        with client.websocket_connect("/a") as first, client.websocket_connect("/b") as second:
            first.send_text("from-first")
            second.send_text("from-second")

            assert second.receive_text() == "from-second"
            assert first.receive_text() == "from-first"


class TestRefusedUpgrade:
    """Tests for upgrade requests that arrive as plain HTTP."""

    def test_incomplete_handshake_returns_500(self, client):
        response = client.get("/", headers={"Connection": "Upgrade", "Upgrade": "websocket"})

        assert response.status_code == 500
        assert response.headers["content-type"].startswith("text/plain")
        assert "unsupported version" in response.text

    def test_complete_handshake_not_handed_over(self, client):
        response = client.get(
            "/",
            headers={
                "Connection": "Upgrade",
                "Upgrade": "websocket",
                "Sec-WebSocket-Version": "13",
                "Sec-WebSocket-Key": "dGhlIHNhbXBsZSBub25jZQ==",
            },
        )

        assert response.status_code == 500
        assert "cannot be upgraded" in response.text

    def test_post_upgrade_returns_500(self, client):
        response = client.post("/", headers={"Connection": "Upgrade", "Upgrade": "websocket"})

        assert response.status_code == 500
        assert "request method is not GET" in response.text

    def test_unqualified_upgrade_is_echoed(self, client):
        response = client.get(
            "/",
            headers={"Connection": "keep-alive, Upgrade", "Upgrade": "websocket"},
        )

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/json"

    @pytest.mark.asyncio
    async def test_refusal_ignores_control_directives(self, make_scope, asgi_call):
        scope = make_scope(
            headers=[
                (b"connection", b"Upgrade"),
                (b"upgrade", b"websocket"),
                (b"expect-status", b"200"),
            ]
        )

        result = await asgi_call(EchoService(), scope)

        assert result["status"] == 500


class TestConnectionLifecycle:
    """Tests for the echo loop driven by raw ASGI messages."""

    @pytest.fixture
    def websocket_scope(self) -> dict:
        return {
            "type": "websocket",
            "asgi": {"version": "3.0"},
            "http_version": "1.1",
            "scheme": "ws",
            "path": "/",
            "raw_path": b"/",
            "query_string": b"",
            "root_path": "",
            "headers": [(b"host", b"echo.test")],
            "client": ("127.0.0.1", 50000),
            "server": ("127.0.0.1", 8080),
            "subprotocols": [],
        }

    @staticmethod
    def make_receive(messages: list[dict]):
        async def receive() -> dict:
            return messages.pop(0)

        return receive

    @pytest.mark.asyncio
    async def test_peer_close_ends_handler(self, websocket_scope, caplog):
        caplog.set_level(logging.INFO, logger="echo_service")
        inbound = [
            {"type": "websocket.connect"},
            {"type": "websocket.receive", "text": "ping"},
            {"type": "websocket.disconnect", "code": 1000},
        ]
        sent = []

        async def send(message: dict) -> None:
            sent.append(message)

        await EchoService()(websocket_scope, self.make_receive(inbound), send)

        assert [m["type"] for m in sent] == ["websocket.accept", "websocket.send"]
        assert sent[1]["text"] == "ping"
        assert "Socket error: connection closed (code=1000)" in caplog.text

    @pytest.mark.asyncio
    async def test_write_error_ends_handler(self, websocket_scope, caplog):
        caplog.set_level(logging.INFO, logger="echo_service")
        inbound = [
            {"type": "websocket.connect"},
            {"type": "websocket.receive", "bytes": b"\x01"},
        ]
        sent = []

        async def send(message: dict) -> None:
            if message["type"] == "websocket.send":
                raise OSError("broken pipe")
            sent.append(message)

        await EchoService()(websocket_scope, self.make_receive(inbound), send)

        assert sent[0]["type"] == "websocket.accept"
        assert "Socket error" in caplog.text

    @pytest.mark.asyncio
    async def test_disconnect_before_accept_is_logged(self, websocket_scope, caplog):
        caplog.set_level(logging.WARNING, logger="echo_service")
        inbound = [{"type": "websocket.disconnect", "code": 1006}]
        sent = []

        async def send(message: dict) -> None:
            sent.append(message)

        await EchoService()(websocket_scope, self.make_receive(inbound), send)

        assert sent == []
        assert "upgrade failed" in caplog.text
