"""Async client for the remote REST API (authoritative trades and instruments).

Endpoints:
  GET    /api/trades          -> list of trades
  GET    /api/instruments     -> list of instruments
  POST   /api/trades          -> created trade
  PUT    /api/trades/{id}     -> updated trade
  DELETE /api/trades/{id}     -> empty (204) or JSON
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from tradesnap.infrastructure.logging.logging import get_logger
from tradesnap.infrastructure.storage.errors import RemoteAPIError

JsonDict = Dict[str, Any]


class RemoteAPIClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout_sec: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._logger = get_logger("remote_api")
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout_sec,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "RemoteAPIClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _request(self, method: str, url: str, *, json: Optional[JsonDict] = None) -> Any:
        try:
            response = await self._client.request(method, url, json=json)
        except httpx.TransportError as e:
            raise RemoteAPIError(f"{method} {url} failed: network error: {e}") from e

        self._logger.debug("remote_response", method=method, url=url, status=response.status_code)
        if response.is_error:
            raise RemoteAPIError(
                f"{method} {url} failed: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise RemoteAPIError(f"{method} {url} returned invalid JSON") from e

    async def _list(self, url: str) -> List[JsonDict]:
        data = await self._request("GET", url)
        if not isinstance(data, list):
            raise RemoteAPIError(f"GET {url} did not return a list")
        return data

    async def list_trades(self) -> List[JsonDict]:
        return await self._list("/api/trades")

    async def list_instruments(self) -> List[JsonDict]:
        return await self._list("/api/instruments")

    async def create_trade(self, payload: JsonDict) -> Optional[JsonDict]:
        return await self._request("POST", "/api/trades", json=payload)

    async def update_trade(self, trade_id: int, payload: JsonDict) -> Optional[JsonDict]:
        return await self._request("PUT", f"/api/trades/{trade_id}", json=payload)

    async def delete_trade(self, trade_id: int) -> None:
        await self._request("DELETE", f"/api/trades/{trade_id}")
