"""
Order-routing gateway tests.

The dispatch platform is replaced by ``httpx.MockTransport`` so the real
request building and response parsing run without network access.
"""

import json

import httpx
import pytest

from src.infrastructure.order_routing import OrderRoutingGateway


def _gateway(handler, **kwargs) -> OrderRoutingGateway:
    return OrderRoutingGateway(
        "https://dispatch.test/api/v1/",
        api_key="key-123",
        partner_id="park-7",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestEnableDisable:
    @pytest.mark.asyncio
    async def test_enable_posts_driver_and_partner(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"success": True})

        result = await _gateway(handler).enable_orders(42)

        assert result.success is True
        assert result.orders_enabled is True
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/api/v1/driver/enable"
        assert request.headers["Authorization"] == "Bearer key-123"
        assert json.loads(request.content) == {
            "driver_id": 42,
            "partner_id": "park-7",
            "enable_orders": True,
        }

    @pytest.mark.asyncio
    async def test_disable_posts_to_disable_endpoint(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"success": True})

        result = await _gateway(handler).disable_orders(42)

        assert result.success is True
        assert result.orders_enabled is False
        assert seen[0].url.path == "/api/v1/driver/disable"
        assert json.loads(seen[0].content)["disable_orders"] is True

    @pytest.mark.asyncio
    async def test_unsuccessful_body_is_a_failure(self):
        def handler(request):
            return httpx.Response(200, json={"success": False, "error": "unknown driver"})

        result = await _gateway(handler).enable_orders(42)
        assert result.success is False
        assert result.error == "unknown driver"

    @pytest.mark.asyncio
    async def test_http_error_status_is_a_failure(self):
        def handler(request):
            return httpx.Response(503, json={"success": False})

        result = await _gateway(handler).disable_orders(42)
        assert result.success is False
        assert "503" in result.error

    @pytest.mark.asyncio
    async def test_network_error_never_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        result = await _gateway(handler).enable_orders(42)
        assert result.success is False
        assert "connection refused" in result.error

    @pytest.mark.asyncio
    async def test_malformed_body(self):
        def handler(request):
            return httpx.Response(200, content=b"<html>oops</html>")

        result = await _gateway(handler).enable_orders(42)
        assert result.success is False
        assert result.error == "Malformed response body"


class TestStatus:
    @pytest.mark.asyncio
    async def test_reads_nested_flag(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(
                200,
                json={"success": True, "driver_status": {"orders_enabled": True}},
            )

        result = await _gateway(handler).get_status(42)

        assert result.success is True
        assert result.orders_enabled is True
        assert seen[0].method == "GET"
        assert seen[0].url.params["driver_id"] == "42"

    @pytest.mark.asyncio
    async def test_missing_flag_means_disabled(self):
        def handler(request):
            return httpx.Response(200, json={"success": True})

        result = await _gateway(handler).get_status(42)
        assert result.success is True
        assert result.orders_enabled is False


class TestSimulateMode:
    @pytest.mark.asyncio
    async def test_no_http_calls(self):
        def handler(request):
            raise AssertionError("simulate mode must not call the platform")

        gateway = _gateway(handler, simulate=True)
        assert (await gateway.enable_orders(1)).success
        assert (await gateway.disable_orders(1)).orders_enabled is False
        assert (await gateway.get_status(1)).success
