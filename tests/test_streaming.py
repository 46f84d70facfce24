"""Tests for GeminiClient SSE streaming."""

from __future__ import annotations

import json
from contextlib import contextmanager
from unittest.mock import MagicMock, patch

import httpx
import pytest

from gemini_craft.config import GeminiConfig
from gemini_craft.errors import ErrorKind, GeminiCraftError
from gemini_craft.llm.client import GeminiClient


@pytest.fixture
def client():
    c = GeminiClient(GeminiConfig(api_key="test-key", cache_enabled=True))
    yield c
    c.close()


def _frame(text: str) -> str:
    return "data: " + json.dumps(
        {"candidates": [{"content": {"parts": [{"text": text}]}}]}
    )


def _sse_response(lines: list[str], status_code: int = 200) -> httpx.Response:
    body = "\n\n".join(lines) + "\n\n"
    return httpx.Response(
        status_code=status_code,
        content=body.encode(),
        request=httpx.Request("POST", "http://test"),
    )


@contextmanager
def _stream_ctx(resp, closed: list | None = None):
    try:
        yield resp
    finally:
        if closed is not None:
            closed.append(True)


class TestStreaming:
    def test_yields_deltas_in_order(self, client):
        resp = _sse_response([_frame("Hel"), _frame("lo"), "data: [DONE]"])
        with patch.object(client.streaming_connection, "stream") as mock_stream:
            mock_stream.return_value = _stream_ctx(resp)
            deltas = list(client.generate("Hi", stream=True))

        assert deltas == ["Hel", "lo"]
        args, kwargs = mock_stream.call_args
        assert args == ("POST", "models/gemini-2.0-flash:streamGenerateContent")
        assert kwargs["params"] == {"key": "test-key", "alt": "sse"}

    def test_stream_flag_not_sent(self, client):
        resp = _sse_response([_frame("a"), "data: [DONE]"])
        with patch.object(client.streaming_connection, "stream") as mock_stream:
            mock_stream.return_value = _stream_ctx(resp)
            list(client.generate("Hi", "sys", {"stream": True}, stream=True))

        body = mock_stream.call_args.kwargs["json"]
        assert "stream" not in body
        assert body["system_instruction"]["parts"][0]["text"] == "sys"

    def test_stops_at_done(self, client):
        resp = _sse_response([_frame("a"), "data: [DONE]", _frame("after")])
        with patch.object(client.streaming_connection, "stream") as mock_stream:
            mock_stream.return_value = _stream_ctx(resp)
            assert list(client.generate("Hi", stream=True)) == ["a"]

    def test_malformed_frame_does_not_abort(self, client):
        resp = _sse_response(["data: {broken", _frame("ok"), "data: [DONE]"])
        with patch.object(client.streaming_connection, "stream") as mock_stream:
            mock_stream.return_value = _stream_ctx(resp)
            assert list(client.generate("Hi", stream=True)) == ["ok"]

    def test_is_lazy(self, client):
        with patch.object(client.streaming_connection, "stream") as mock_stream:
            gen = client.generate("Hi", stream=True)
            assert mock_stream.call_count == 0
            gen.close()
            assert mock_stream.call_count == 0

    def test_close_releases_connection(self, client):
        closed: list = []
        resp = _sse_response([_frame("a"), _frame("b"), _frame("c"), "data: [DONE]"])
        with patch.object(client.streaming_connection, "stream") as mock_stream:
            mock_stream.return_value = _stream_ctx(resp, closed)
            gen = client.generate("Hi", stream=True)
            assert next(gen) == "a"
            assert closed == []
            gen.close()

        assert closed == [True]

    def test_bypasses_cache(self, client):
        with patch.object(client.streaming_connection, "stream") as mock_stream:
            mock_stream.side_effect = lambda *a, **k: _stream_ctx(
                _sse_response([_frame("x"), "data: [DONE]"])
            )
            assert list(client.generate("Hi", stream=True)) == ["x"]
            assert list(client.generate("Hi", stream=True)) == ["x"]

        assert mock_stream.call_count == 2
        assert client.cache_stats().size == 0

    def test_does_not_read_unary_cache(self, client):
        client.cache.set("anything", "cached")
        with patch.object(client.connection, "post") as mock_post, \
             patch.object(client.streaming_connection, "stream") as mock_stream:
            mock_stream.return_value = _stream_ctx(_sse_response([_frame("fresh")]))
            assert list(client.generate("Hi", stream=True)) == ["fresh"]
        mock_post.assert_not_called()


class TestStreamingErrors:
    def test_http_error_status(self, client):
        resp = _sse_response([json.dumps({"error": {"message": "bad key"}})], status_code=401)
        with patch.object(client.streaming_connection, "stream") as mock_stream:
            mock_stream.return_value = _stream_ctx(resp)
            with pytest.raises(GeminiCraftError) as exc:
                list(client.generate("Hi", stream=True))

        assert exc.value.kind is ErrorKind.AUTHENTICATION
        assert "bad key" in exc.value.message

    @pytest.mark.parametrize("status,kind", [
        (409, ErrorKind.API),
        (204, ErrorKind.API),
        (503, ErrorKind.SERVER),
    ])
    def test_unmapped_status_uses_handler_kind(self, client, status, kind):
        resp = _sse_response(["nope"], status_code=status)
        with patch.object(client.streaming_connection, "stream") as mock_stream:
            mock_stream.return_value = _stream_ctx(resp)
            with pytest.raises(GeminiCraftError) as exc:
                list(client.generate("Hi", stream=True))

        assert exc.value.kind is kind
        assert exc.value.status == status

    def test_connect_failure_not_retried(self, client):
        with patch.object(client.streaming_connection, "stream") as mock_stream, \
             patch("gemini_craft.llm.client.time.sleep") as mock_sleep:
            mock_stream.side_effect = httpx.ConnectError("refused")
            with pytest.raises(GeminiCraftError) as exc:
                list(client.generate("Hi", stream=True))

        assert exc.value.kind is ErrorKind.CONNECTION
        assert mock_stream.call_count == 1
        mock_sleep.assert_not_called()

    def test_connect_timeout(self, client):
        with patch.object(client.streaming_connection, "stream") as mock_stream:
            mock_stream.side_effect = httpx.ConnectTimeout("slow")
            with pytest.raises(GeminiCraftError) as exc:
                list(client.generate("Hi", stream=True))
        assert exc.value.kind is ErrorKind.TIMEOUT

    def test_mid_stream_failure(self, client):
        def _lines():
            yield _frame("partial")
            raise httpx.ReadError("connection reset")

        resp = MagicMock()
        resp.status_code = 200
        resp.iter_lines.side_effect = _lines

        received = []
        with patch.object(client.streaming_connection, "stream") as mock_stream:
            mock_stream.return_value = _stream_ctx(resp)
            with pytest.raises(GeminiCraftError) as exc:
                for delta in client.generate("Hi", stream=True):
                    received.append(delta)

        assert received == ["partial"]
        assert exc.value.kind is ErrorKind.STREAMING
        assert mock_stream.call_count == 1
