"""
Order-Routing Gateway
=====================

Thin client for the external dispatch platform that toggles whether a
driver may receive ride orders.

* ``POST {base}/driver/enable``  -- allow orders
* ``POST {base}/driver/disable`` -- stop orders
* ``GET  {base}/driver/status``  -- query the current flag

Calls never raise: every outcome is a ``GatewayResult`` so the permit
engine can record a failed sync without undoing the local transition.
Timeouts belong here (``timeout`` on the ``httpx.AsyncClient``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayResult:
    success: bool
    error: Optional[str] = None
    orders_enabled: Optional[bool] = None
    payload: dict[str, Any] = field(default_factory=dict)


class OrderRoutingGateway:
    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        partner_id: str = "",
        timeout: float = 10.0,
        simulate: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.partner_id = partner_id
        self.timeout = timeout
        self.simulate = simulate
        self._transport = transport

    # ── Public API ────────────────────────────────────────────────────

    async def enable_orders(self, driver_ref: str | int) -> GatewayResult:
        if self.simulate:
            logger.info("[simulated] enabling orders for driver %s", driver_ref)
            return GatewayResult(success=True, orders_enabled=True)
        result = await self._request(
            "POST",
            "/driver/enable",
            json={
                "driver_id": driver_ref,
                "partner_id": self.partner_id,
                "enable_orders": True,
            },
        )
        if result.success:
            logger.info("Orders enabled for driver %s", driver_ref)
            return GatewayResult(True, orders_enabled=True, payload=result.payload)
        logger.warning(
            "Failed to enable orders for driver %s: %s", driver_ref, result.error
        )
        return result

    async def disable_orders(self, driver_ref: str | int) -> GatewayResult:
        if self.simulate:
            logger.info("[simulated] disabling orders for driver %s", driver_ref)
            return GatewayResult(success=True, orders_enabled=False)
        result = await self._request(
            "POST",
            "/driver/disable",
            json={
                "driver_id": driver_ref,
                "partner_id": self.partner_id,
                "disable_orders": True,
            },
        )
        if result.success:
            logger.info("Orders disabled for driver %s", driver_ref)
            return GatewayResult(True, orders_enabled=False, payload=result.payload)
        logger.warning(
            "Failed to disable orders for driver %s: %s", driver_ref, result.error
        )
        return result

    async def get_status(self, driver_ref: str | int) -> GatewayResult:
        if self.simulate:
            return GatewayResult(success=True, orders_enabled=True)
        result = await self._request(
            "GET",
            "/driver/status",
            params={"driver_id": driver_ref, "partner_id": self.partner_id},
        )
        if not result.success:
            logger.warning(
                "Failed to read order status for driver %s: %s",
                driver_ref,
                result.error,
            )
            return result
        status = result.payload.get("driver_status") or {}
        return GatewayResult(
            success=True,
            orders_enabled=bool(status.get("orders_enabled", False)),
            payload=result.payload,
        )

    # ── Internals ─────────────────────────────────────────────────────

    async def _request(self, method: str, path: str, **kwargs: Any) -> GatewayResult:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(method, path, headers=headers, **kwargs)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as exc:
            return GatewayResult(success=False, error=str(exc) or type(exc).__name__)
        except ValueError:
            return GatewayResult(success=False, error="Malformed response body")

        if not isinstance(data, dict) or not data.get("success"):
            error = data.get("error") if isinstance(data, dict) else None
            return GatewayResult(success=False, error=error or "Unknown error")
        return GatewayResult(success=True, payload=data)
