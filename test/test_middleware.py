"""
Tests for structured request logging
"""

import json
import logging

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from homepage_cms.middleware.logging import (
    REQUEST_ID_HEADER,
    RequestIdFilter,
    StructuredFormatter,
    StructuredLoggingMiddleware,
    actor_id_var,
    request_id_var,
)


def make_app() -> FastAPI:
    test_app = FastAPI()
    test_app.add_middleware(StructuredLoggingMiddleware, logger_name="test.access")

    @test_app.get("/ping")
    async def ping():
        return {"ok": True}

    @test_app.get("/health")
    async def health():
        return {"status": "healthy"}

    return test_app


class TestStructuredLoggingMiddleware:
    """Tests for request logging"""

    @pytest.mark.asyncio
    async def test_request_id_round_trip(self):
        async with AsyncClient(transport=ASGITransport(app=make_app()), base_url="http://test") as client:
            response = await client.get("/ping", headers={REQUEST_ID_HEADER: "req-123"})

        assert response.headers[REQUEST_ID_HEADER] == "req-123"

    @pytest.mark.asyncio
    async def test_generates_request_id(self):
        async with AsyncClient(transport=ASGITransport(app=make_app()), base_url="http://test") as client:
            response = await client.get("/ping")

        assert len(response.headers[REQUEST_ID_HEADER]) == 36

    @pytest.mark.asyncio
    async def test_logs_actor(self, caplog):
        with caplog.at_level(logging.INFO, logger="test.access"):
            async with AsyncClient(transport=ASGITransport(app=make_app()), base_url="http://test") as client:
                await client.get("/ping", headers={"X-Actor-Id": "editor-1"})

        (record,) = [r for r in caplog.records if r.name == "test.access"]
        assert record.actor_id == "editor-1"
        assert record.status_code == 200
        assert record.path == "/ping"

    @pytest.mark.asyncio
    async def test_health_not_logged(self, caplog):
        with caplog.at_level(logging.INFO, logger="test.access"):
            async with AsyncClient(transport=ASGITransport(app=make_app()), base_url="http://test") as client:
                await client.get("/health")

        assert [r for r in caplog.records if r.name == "test.access"] == []


class TestStructuredFormatter:
    """Tests for the JSON log formatter"""

    def test_json_fields(self):
        record = logging.LogRecord("homepage_cms.test", logging.INFO, __file__, 1, "Section %s published", (4,), None)
        record.actor_id = "editor-1"
        token = request_id_var.set("req-9")
        try:
            RequestIdFilter().filter(record)
        finally:
            request_id_var.reset(token)

        payload = json.loads(StructuredFormatter().format(record))

        assert payload["message"] == "Section 4 published"
        assert payload["request_id"] == "req-9"
        assert payload["actor_id"] == "editor-1"
        assert payload["level"] == "INFO"

    def test_filter_stamps_bound_actor(self):
        record = logging.LogRecord("homepage_cms.test", logging.INFO, __file__, 1, "draft saved", (), None)
        token = actor_id_var.set("editor-7")
        try:
            RequestIdFilter().filter(record)
        finally:
            actor_id_var.reset(token)

        assert record.actor_id == "editor-7"
        assert record.request_id == ""
