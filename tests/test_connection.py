"""Tests for unary and streaming session builders."""

import httpx
import pytest

from gemini_craft.config import GeminiConfig
from gemini_craft.llm.connection import (
    STREAM_TIMEOUT_FACTOR,
    ConnectionBuilder,
    StreamingConnectionBuilder,
)


@pytest.fixture
def config() -> GeminiConfig:
    return GeminiConfig(api_key="k", timeout=20)


class TestConnectionBuilder:
    def test_unary_session(self, config):
        client = ConnectionBuilder(config).build()
        try:
            assert isinstance(client, httpx.Client)
            assert client.timeout.read == 20
            assert client.headers["Content-Type"] == "application/json"
            assert client.headers.get("Accept") != "text/event-stream"
        finally:
            client.close()

    def test_streaming_session(self, config):
        client = StreamingConnectionBuilder(config).build()
        try:
            assert client.timeout.read == 20 * STREAM_TIMEOUT_FACTOR
            assert client.timeout.connect == 20
            assert client.headers["Accept"] == "text/event-stream"
        finally:
            client.close()

    def test_connect_timeout_capped(self):
        client = ConnectionBuilder(GeminiConfig(api_key="k", timeout=300)).build()
        try:
            assert client.timeout.connect == 30
            assert client.timeout.read == 300
        finally:
            client.close()

    def test_endpoint_url(self, config):
        client = ConnectionBuilder(config).build()
        try:
            request = client.build_request(
                "POST", "models/gemini-2.0-flash:generateContent",
                params={"key": "k"}, json={},
            )
            assert request.url.host == "generativelanguage.googleapis.com"
            assert request.url.path == "/v1beta/models/gemini-2.0-flash:generateContent"
            assert request.url.params["key"] == "k"
        finally:
            client.close()

    def test_trailing_slash_in_base_url(self):
        cfg = GeminiConfig(api_key="k", api_base_url="http://localhost:8080/v1beta/")
        client = ConnectionBuilder(cfg).build()
        try:
            request = client.build_request("POST", "models/m:generateContent")
            assert request.url.path == "/v1beta/models/m:generateContent"
        finally:
            client.close()
