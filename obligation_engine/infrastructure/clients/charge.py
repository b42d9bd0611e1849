"""Charge service client for authorization holds, with exponential backoff retry logic"""

import httpx
import asyncio
from typing import Any, Dict
from obligation_engine.config import settings
from obligation_engine.domain.exceptions import ChargeAPIError
from obligation_engine.infrastructure.observability.metrics import charge_latency_histogram, charge_failure_counter


class ChargeClient:
    """Client for creating, capturing and releasing payment holds"""

    def __init__(self, base_url: str | None = None):
        self.base_url = (base_url or settings.charge_api_base or "").rstrip("/")
        self.timeout = settings.http_timeout_seconds
        self.max_retries = settings.charge_max_retries
        self.backoff_base = settings.charge_backoff_base

    @property
    def configured(self) -> bool:
        return bool(self.base_url)

    async def create_hold(self, amount_cents: int, description: str, metadata: Dict[str, Any]) -> Dict[str, Any]:
        """Create an authorization hold; returns the hold record (with its "id")"""
        return await self._post(
            "/api/holds",
            {"amount_cents": amount_cents, "description": description, "metadata": metadata},
        )

    async def capture_hold(self, hold_id: str, amount_cents: int | None = None) -> Dict[str, Any]:
        """Capture a hold in full, or partially when an amount is given"""
        return await self._post(f"/api/holds/{hold_id}/capture", {"amount_cents": amount_cents})

    async def release_hold(self, hold_id: str) -> Dict[str, Any]:
        return await self._post(f"/api/holds/{hold_id}/release", {})

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST to the charge service with retry logic.

        Retry strategy:
        - Exponential backoff: base * 2^(attempt-1)
        - Retries on 5xx errors and network failures; 4xx fails immediately
        - Tracks latency histogram and failure counter

        Raises:
            ChargeAPIError: service not configured, rejected the request, or
                kept failing after all retries
        """
        if not self.configured:
            raise ChargeAPIError("Charge service is not configured")

        url = f"{self.base_url}{path}"
        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            while True:
                try:
                    with charge_latency_histogram.time():
                        response = await client.post(url, json=payload)
                        response.raise_for_status()
                    return response.json()

                except httpx.HTTPStatusError as e:
                    charge_failure_counter.inc()
                    if e.response.status_code < 500:
                        raise ChargeAPIError(f"Charge API rejected {path}: {e.response.status_code}") from e
                    attempt += 1
                    if attempt >= self.max_retries:
                        raise ChargeAPIError(f"Charge API error on {path}: {e.response.status_code}") from e

                except httpx.RequestError as e:
                    charge_failure_counter.inc()
                    attempt += 1
                    if attempt >= self.max_retries:
                        raise ChargeAPIError(f"Charge API unreachable: {e}") from e

                # Exponential backoff: 1s, 2s, 4s, ...
                backoff = self.backoff_base * (2 ** (attempt - 1))
                await asyncio.sleep(backoff)
