import asyncio
import json
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from mcp_testgen.config import Settings
from mcp_testgen.pipeline import StatusEvent
from mcp_testgen.server import create_app, ndjson_stream

from conftest import FakeProvider, make_response


def _client(spec, provider, tmp_path):
    settings = Settings(SPEC_SOURCE=str(spec), OUTPUT_DIR=str(tmp_path / "generated-tests"))
    app = create_app(settings, provider=provider, logger=logging.getLogger("mcp_testgen.test"))
    return TestClient(app)


def _events(response):
    return [json.loads(line) for line in response.text.splitlines() if line.strip()]


class TestSpecResource:
    def test_serves_raw_spec(self, spec_file, tmp_path):
        resp = _client(spec_file, FakeProvider([]), tmp_path).get("/mcp/resources/openapi-spec")
        assert resp.status_code == 200
        assert resp.json()["info"]["title"] == "Products API"

    def test_missing_spec(self, tmp_path):
        resp = _client(tmp_path / "missing.json", FakeProvider([]), tmp_path).get("/mcp/resources/openapi-spec")
        assert resp.status_code == 404

    def test_unparsable_spec(self, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("[1, 2")
        resp = _client(bad, FakeProvider([]), tmp_path).get("/mcp/resources/openapi-spec")
        assert resp.status_code == 500


class TestListEndpoints:
    def test_lists_endpoints(self, spec_file, tmp_path):
        resp = _client(spec_file, FakeProvider([]), tmp_path).get("/mcp/tools/list-endpoints")
        assert resp.status_code == 200
        assert resp.json() == {"endpoints": [
            {"path": "/products", "method": "GET"},
            {"path": "/products", "method": "POST"},
            {"path": "/products/:productId", "method": "GET"},
        ]}

    def test_empty_spec_lists_nothing(self, empty_spec_file, tmp_path):
        resp = _client(empty_spec_file, FakeProvider([]), tmp_path).get("/mcp/tools/list-endpoints")
        assert resp.json() == {"endpoints": []}


    def test_non_utf8_spec_is_500(self, tmp_path):
        bad = tmp_path / "latin1.json"
        bad.write_bytes(b'{"paths": {"/a\xff": {"get": {}}}}')
        resp = _client(bad, FakeProvider([]), tmp_path).get("/mcp/tools/list-endpoints")
        assert resp.status_code == 500
        assert resp.json() == {"detail": "Could not parse spec to list endpoints."}


class TestGenerateTests:
    def test_streams_ndjson_until_done(self, two_endpoint_spec, tmp_path):
        provider = FakeProvider([make_response("List items"), make_response("Delete item")], name="groq")
        resp = _client(two_endpoint_spec, provider, tmp_path).post("/mcp/tools/generate-tests-nlp")

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("application/x-ndjson")
        events = _events(resp)
        assert events[0] == {"step": 1, "msg": "Starting AI test generation for 2 endpoints..."}
        assert events[1] == {"step": "analyzing-/items", "msg": "Analyzing GET /items..."}
        assert events[-1]["step"] == "done"
        assert events[-1]["savedTo"].endswith("groq_combined_collection.json")
        assert [i["name"] for i in events[-1]["collection"]["item"]] == ["List items", "Delete item"]
        assert (tmp_path / "generated-tests" / "groq_combined_collection.json").exists()

    def test_empty_spec_is_400_without_events(self, empty_spec_file, tmp_path):
        provider = FakeProvider([])
        resp = _client(empty_spec_file, provider, tmp_path).post("/mcp/tools/generate-tests-nlp")

        assert resp.status_code == 400
        assert resp.json() == {"detail": "No endpoints found"}
        assert provider.prompts == []

    def test_transport_error_ends_stream(self, two_endpoint_spec, tmp_path, transport_error):
        provider = FakeProvider([make_response("List items"), transport_error])
        resp = _client(two_endpoint_spec, provider, tmp_path).post("/mcp/tools/generate-tests-nlp")

        assert resp.status_code == 200
        events = _events(resp)
        assert events[-1] == {"error": "groq: Connection error."}
        assert [e["step"] for e in events[:2]] == [1, "analyzing-/items"]
        assert all(e.get("step") == "stream-/items" for e in events[2:-1])

    def test_missing_spec_is_404(self, tmp_path):
        resp = _client(tmp_path / "missing.json", FakeProvider([]), tmp_path).post("/mcp/tools/generate-tests-nlp")
        assert resp.status_code == 404


class TestHealth:
    def test_health_reports_provider(self, spec_file, tmp_path):
        resp = _client(spec_file, FakeProvider([], name="gemini"), tmp_path).get("/health")
        assert resp.json() == {"status": "healthy", "provider": "gemini"}


class TestRequestLogging:
    def test_incoming_requests_are_logged(self, spec_file, tmp_path, caplog):
        client = _client(spec_file, FakeProvider([]), tmp_path)
        with caplog.at_level(logging.INFO, logger="mcp_testgen.test"):
            client.get("/health")
        assert "Incoming Request: GET http://testserver/health" in caplog.text


def test_create_app_builds_provider_from_settings(spec_file, tmp_path):
    settings = Settings(AI_PROVIDER="openai", SPEC_SOURCE=str(spec_file))
    client = TestClient(create_app(settings))
    assert client.get("/health").json()["provider"] == "openai"


class TestNdjsonStream:
    def _events(self, closed):
        def gen():
            try:
                yield StatusEvent(step=1, msg="first")
                yield StatusEvent(step=2, msg="second")
            finally:
                closed.append(True)
        return gen()

    def _request(self, disconnected=False):
        request = MagicMock()
        request.is_disconnected = AsyncMock(return_value=disconnected)
        return request

    def test_pipeline_closed_when_stream_is_abandoned(self):
        closed = []
        stream = ndjson_stream(self._events(closed), self._request(), logging.getLogger("mcp_testgen.test"))

        async def take_one_then_drop():
            line = await stream.__anext__()
            await stream.aclose()
            return line

        line = asyncio.run(take_one_then_drop())
        assert json.loads(line) == {"step": 1, "msg": "first"}
        assert closed == [True]

    def test_stops_after_disconnect(self):
        closed = []
        stream = ndjson_stream(self._events(closed), self._request(disconnected=True), logging.getLogger("mcp_testgen.test"))

        async def drain():
            return [line async for line in stream]

        lines = asyncio.run(drain())
        assert len(lines) == 1
        assert closed == [True]
