"""Async REST client for the Onix CMDB web API.

Usage::

    client = CMDBClient("http://onix:8080", token=await acquire_token(cfg))
    result = await client.put(item, "item")
    existing = await client.get("model", "KUBE")
    services = await client.query("item", {"type": "K8SService", "attrs": "namespace,ns1"})
    await client.aclose()

Resources are addressed as ``{url}/{collection}/{key}``; the batch ``data``
collection is addressed without a key.  Failures of the HTTP exchange itself
raise TransportError.  A rejection the server explains in its Result body is
returned as a Result with ``error=True`` so the caller decides what to do.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx
import structlog

from oxkube.errors import TransportError
from oxkube.models.cmdb import Payload, Result

_log = structlog.get_logger(component="cmdb.client")


class CMDB(Protocol):
    """The operations the synchronization engine needs from the CMDB."""

    async def get(self, collection: str, key: str) -> dict[str, Any] | None: ...

    async def query(self, collection: str, filters: dict[str, str]) -> list[dict[str, Any]]: ...

    async def put(self, payload: Payload, collection: str) -> Result: ...

    async def delete(self, payload: Payload, collection: str) -> Result: ...


class CMDBClient:
    """Onix web API client backed by a pooled ``httpx.AsyncClient``.

    Args:
        base_url:  Root URL of the web API, e.g. ``http://onix:8080``.
        token:     Authorization header value; empty to send none.
        timeout:   Per-request timeout in seconds.
        transport: Optional httpx transport (used by tests).
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("CMDB base url must not be empty")
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if token:
            headers["Authorization"] = token
        self._base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, collection: str, key: str) -> dict[str, Any] | None:
        """Fetch one resource by key.  Returns None when the CMDB reports 404."""
        response = await self._send("GET", self._path(collection, key))
        if response.status_code == 404:
            return None
        if not response.is_success:
            raise TransportError(
                f"GET {collection}/{key} failed: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        body = self._decode(response, f"GET {collection}/{key}")
        if not isinstance(body, dict):
            raise TransportError(f"GET {collection}/{key} returned a non-object body")
        return body

    async def query(self, collection: str, filters: dict[str, str]) -> list[dict[str, Any]]:
        """List resources of a collection matching the query-string filters.

        The web API wraps lists as ``{"values": [...]}``; a bare JSON list is
        accepted too.
        """
        response = await self._send("GET", f"/{collection}", params=filters)
        if response.status_code == 404:
            return []
        if not response.is_success:
            raise TransportError(
                f"GET {collection} failed: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        body = self._decode(response, f"GET {collection}")
        if isinstance(body, dict):
            body = body.get("values") or []
        if not isinstance(body, list):
            raise TransportError(f"GET {collection} returned an unexpected body")
        return [entry for entry in body if isinstance(entry, dict)]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def put(self, payload: Payload, collection: str) -> Result:
        """Create or update *payload* in *collection*."""
        response = await self._send("PUT", self._path(collection, payload.key_value()), json=payload.to_dict())
        return self._result(response, f"PUT {collection}")

    async def delete(self, payload: Payload, collection: str) -> Result:
        """Delete *payload* from *collection*."""
        response = await self._send("DELETE", self._path(collection, payload.key_value()))
        return self._result(response, f"DELETE {collection}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _path(collection: str, key: str) -> str:
        if key:
            return f"/{collection}/{key}"
        return f"/{collection}"

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._http.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            _log.warning("cmdb_request_timeout", method=method, path=path)
            raise TransportError(f"{method} {path} timed out") from exc
        except httpx.HTTPError as exc:
            _log.warning("cmdb_http_error", method=method, path=path, error=str(exc))
            raise TransportError(f"{method} {path} failed: {exc}") from exc

    @staticmethod
    def _decode(response: httpx.Response, what: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(f"{what} returned an undecodable body", status_code=response.status_code) from exc

    def _result(self, response: httpx.Response, what: str) -> Result:
        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            if response.is_success:
                raise TransportError(f"{what} returned an undecodable body", status_code=response.status_code)
            raise TransportError(
                f"{what} failed: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        result = Result.from_dict(body)
        if not response.is_success and not result.error:
            result.error = True
            result.message = result.message or f"{response.status_code} {response.reason_phrase}"
        return result
