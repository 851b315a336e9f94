"""
Remote persistence used by the sync coordinator.

SyncTransport is the contract; HttpTransport talks to this service's own
HTTP API with httpx. Every call either returns the decoded JSON object or
raises RemotePersistenceError (retryable for network failures, server errors
and non-JSON answers; not retryable for rejected requests) or
InventoryShortage when a work order confirmation needs the user's go-ahead.
"""
import logging
from typing import Any, Dict, Optional, Protocol

import httpx

from app.core.config import settings
from app.core.exceptions import InventoryShortage, RemotePersistenceError, ShortageLine
from app.core.session import SessionContext

logger = logging.getLogger(__name__)


class SyncTransport(Protocol):
    async def pull(self) -> Dict[str, Any]: ...

    async def push_full(self, snapshot: Dict[str, Any]) -> Dict[str, Any]: ...

    async def save_estimate(self, payload: Dict[str, Any]) -> Dict[str, Any]: ...

    async def confirm_work_order(
        self, estimate_id: str, allow_shortage: bool = False, estimate: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]: ...

    async def start_job(self, estimate_id: str) -> Dict[str, Any]: ...

    async def complete_job(self, estimate_id: str, actuals: Dict[str, Any]) -> Dict[str, Any]: ...

    async def delete_estimate(self, estimate_id: str) -> Dict[str, Any]: ...

    async def receive_purchase_order(self, purchase_order: Dict[str, Any]) -> Dict[str, Any]: ...


class HttpTransport:
    def __init__(
        self,
        base_url: str,
        session: SessionContext,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.session = session
        self.client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout if timeout is not None else settings.sync_request_timeout,
            transport=transport,
            headers={
                "X-Company-Id": session.company_id,
                "X-User-Role": session.role,
                "X-Actor": session.actor,
            },
        )

    async def aclose(self):
        await self.client.aclose()

    async def _request(self, method: str, path: str, payload: Any = None) -> Dict[str, Any]:
        try:
            response = await self.client.request(method, path, json=payload)
        except httpx.HTTPError as e:
            raise RemotePersistenceError(f"{method} {path} failed: {e}", cause=e)

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = None
            detail = body.get("detail") if isinstance(body, dict) else response.text

            if response.status_code == 409 and isinstance(detail, dict) and "shortages" in detail:
                raise InventoryShortage([
                    ShortageLine(line["material"], line["required"], line["available"])
                    for line in detail["shortages"]
                ])

            message = f"{method} {path} returned {response.status_code}: {detail}"
            raise RemotePersistenceError(message, retryable=response.status_code >= 500)

        # Proxies and captive portals answer 200 with an HTML page
        try:
            body = response.json()
        except ValueError as e:
            raise RemotePersistenceError(f"{method} {path} returned a non-JSON body", cause=e)
        if not isinstance(body, dict):
            raise RemotePersistenceError(f"{method} {path} returned {type(body).__name__}, expected an object")
        return body

    async def pull(self) -> Dict[str, Any]:
        return await self._request("GET", "/sync")

    async def push_full(self, snapshot: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PUT", "/sync", snapshot)

    async def save_estimate(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/estimates", payload)

    async def confirm_work_order(
        self, estimate_id: str, allow_shortage: bool = False, estimate: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        body = {"allow_shortage": allow_shortage, "estimate": estimate}
        return await self._request("POST", f"/estimates/{estimate_id}/work-order", body)

    async def start_job(self, estimate_id: str) -> Dict[str, Any]:
        return await self._request("POST", f"/estimates/{estimate_id}/start")

    async def complete_job(self, estimate_id: str, actuals: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", f"/estimates/{estimate_id}/complete", {"actuals": actuals})

    async def delete_estimate(self, estimate_id: str) -> Dict[str, Any]:
        return await self._request("DELETE", f"/estimates/{estimate_id}")

    async def receive_purchase_order(self, purchase_order: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/warehouse/purchase-orders", purchase_order)
