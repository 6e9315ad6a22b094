"""
Tests for the service registry, MCP gateway client and output sinks.
"""

import json

import httpx
import pytest

from mcpflow.engine.errors import ServiceCallError
from mcpflow.services.builtin import keyword_sentiment, text_stats
from mcpflow.services.client import MCPServiceClient
from mcpflow.services.registry import Service, ServiceRegistry, service_registry
from mcpflow.services.sinks import StoreSink, WebhookSink
from mcpflow.storage.memory import OutputStorage


GATEWAY = "https://gateway.test"


# ============================================================
# Registry Tests
# ============================================================

class TestServiceRegistry:
    """Tests for ServiceRegistry."""

    def test_register_decorator(self):
        registry = ServiceRegistry()

        @registry.register(cost_per_call_cents=4, category="text")
        def upper_case(inputs, config):
            """Upper-case a text."""
            return {"text": inputs["text"].upper()}

        service = registry.get("upper-case")
        assert service is not None
        assert service.is_local
        assert service.description == "Upper-case a text."
        assert service.descriptor() == {
            "id": "upper-case",
            "slug": "upper-case",
            "name": "upper-case",
            "cost_per_call_cents": 4,
        }
        assert "upper-case" in registry
        assert len(registry) == 1

    def test_remove(self):
        registry = ServiceRegistry()
        registry.add(Service(slug="remote", name="Remote"))

        assert registry.remove("remote")
        assert not registry.remove("remote")
        assert registry.list_services() == []

    @pytest.mark.asyncio
    async def test_invoke_sync_and_async_handlers(self):
        async def async_handler(inputs, config):
            return {"async": inputs["n"] + 1}

        sync_service = Service(slug="sync", handler=lambda inputs, config: {"sync": inputs["n"] * 2})
        async_service = Service(slug="async", handler=async_handler)

        assert await sync_service.invoke({"n": 2}, {}) == {"sync": 4}
        assert await async_service.invoke({"n": 2}, {}) == {"async": 3}

    @pytest.mark.asyncio
    async def test_remote_service_cannot_be_invoked_locally(self):
        with pytest.raises(RuntimeError):
            await Service(slug="remote").invoke({}, {})

    def test_builtins_registered(self):
        assert service_registry.has("text-stats")
        assert service_registry.has("keyword-sentiment")
        assert service_registry.get("text-stats").cost_per_call_cents == 1


class TestBuiltinServices:
    """Tests for the built-in in-process services."""

    def test_text_stats(self):
        result = text_stats({"text": "Hello world. How are you?\nFine!"}, {})

        assert result["words"] == 6
        assert result["sentences"] == 3
        assert result["lines"] == 2
        assert result["characters"] == 31

    def test_text_stats_empty(self):
        result = text_stats({}, {})
        assert result["words"] == 0
        assert result["average_word_length"] == 0

    def test_sentiment_labels(self):
        assert keyword_sentiment({"text": "Great support, thanks!"}, {})["label"] == "positive"
        assert keyword_sentiment({"text": "The app is slow and broken"}, {})["label"] == "negative"
        assert keyword_sentiment({"text": "It is a Tuesday"}, {})["score"] == 0.0

    def test_sentiment_extra_keywords(self):
        result = keyword_sentiment({"text": "another outage today"}, {"extra_negative": ["outage"]})
        assert result["negative_matches"] == ["outage"]
        assert result["label"] == "negative"


# ============================================================
# Gateway Client Tests
# ============================================================

class TestMCPServiceClient:
    """Tests for MCPServiceClient."""

    @pytest.mark.asyncio
    async def test_gateway_call(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"result": "ok"})

        client = MCPServiceClient(
            registry=ServiceRegistry(),
            gateway_url=GATEWAY + "/",
            transport=httpx.MockTransport(handler),
        )
        result = await client.call("github", {"repo": "x/y"}, {"token": "t"})

        assert result == {"result": "ok"}
        assert seen["url"] == f"{GATEWAY}/call"
        assert seen["body"] == {"server": "github", "inputs": {"repo": "x/y"}, "config": {"token": "t"}}

    @pytest.mark.asyncio
    async def test_non_success_response(self):
        client = MCPServiceClient(
            registry=ServiceRegistry(),
            gateway_url=GATEWAY,
            transport=httpx.MockTransport(lambda request: httpx.Response(502)),
        )

        with pytest.raises(ServiceCallError) as exc_info:
            await client.call("github", {}, {})

        assert str(exc_info.value) == "MCP server call failed: Bad Gateway"
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = MCPServiceClient(
            registry=ServiceRegistry(),
            gateway_url=GATEWAY,
            transport=httpx.MockTransport(handler),
        )

        with pytest.raises(ServiceCallError, match="MCP server call failed: connection refused"):
            await client.call("github", {}, {})

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        client = MCPServiceClient(
            registry=ServiceRegistry(),
            gateway_url=GATEWAY,
            transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"not json")),
        )

        with pytest.raises(ServiceCallError, match="invalid JSON"):
            await client.call("github", {}, {})

    @pytest.mark.asyncio
    async def test_local_service_skips_gateway(self):
        registry = ServiceRegistry()
        registry.add(Service(slug="double", handler=lambda inputs, config: {"n": inputs["n"] * 2}))

        def handler(request):
            raise AssertionError("gateway must not be called")

        client = MCPServiceClient(registry=registry, gateway_url=GATEWAY, transport=httpx.MockTransport(handler))
        assert await client.call("double", {"n": 21}, {}) == {"n": 42}


# ============================================================
# Sink Tests
# ============================================================

class TestOutputSinks:
    """Tests for the webhook and store sinks."""

    @pytest.mark.asyncio
    async def test_webhook_delivery(self):
        received = []

        def handler(request):
            received.append(json.loads(request.content))
            return httpx.Response(204)

        sink = WebhookSink(transport=httpx.MockTransport(handler))
        assert await sink.post("https://hooks.test/in", {"t1": {"a": 1}}) is True
        assert received == [{"t1": {"a": 1}}]

    @pytest.mark.asyncio
    async def test_webhook_failure_is_swallowed(self):
        sink = WebhookSink(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
        assert await sink.post("https://hooks.test/in", {}) is False

    @pytest.mark.asyncio
    async def test_store_sink(self):
        storage = OutputStorage()
        sink = StoreSink(storage=storage)

        await sink.store({"collection": "reports"}, {"t1": {}}, execution_id="exec-1")

        stored = await storage.list_by_execution("exec-1")
        assert len(stored) == 1
        assert stored[0].payload == {"t1": {}}
        assert stored[0].to_dict()["config"] == {"collection": "reports"}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
