import logging
import os
from typing import Any, Dict, List, Mapping, Optional, Union

import httpx

API_BASE = os.getenv("REGISTRY_API_BASE", "http://localhost:8000")
REQUEST_TIMEOUT = 15

logger = logging.getLogger(__name__)


def _error_dict(message: str, **context: Any) -> Dict[str, Any]:
    """Error result handed back instead of raising; keys with no value are left out."""
    return {"error": message, **{k: v for k, v in context.items() if v is not None}}


def is_error(data: Any) -> bool:
    return isinstance(data, dict) and "error" in data


class RegistryClient:
    """Talks to the registry REST API. Never raises for HTTP or network failures."""

    def __init__(self, base_url: str = API_BASE, transport: Optional[httpx.AsyncBaseTransport] = None, timeout: float = REQUEST_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.transport = transport
        self.timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, transport=self.transport, timeout=self.timeout)

    async def _get(self, path: str) -> Union[Dict[str, Any], List[Any]]:
        try:
            async with self._client() as client:
                r = await client.get(path)
                if r.status_code >= 400:
                    return _error_dict(
                        "HTTP error on GET",
                        status_code=r.status_code,
                        details=r.text,
                        request={"method": "GET", "path": path},
                    )
                try:
                    return r.json()
                except ValueError:
                    return _error_dict("Invalid JSON on GET", status_code=r.status_code, details=r.text)
        except httpx.RequestError as e:
            return _error_dict(
                f"Network error on GET: {str(e)}",
                request={"method": "GET", "path": path},
            )

    async def _post(self, path: str, json: Mapping[str, Any]) -> Dict[str, Any]:
        try:
            async with self._client() as client:
                r = await client.post(path, json=dict(json))
                if r.status_code >= 400:
                    return _error_dict(
                        "HTTP error on POST",
                        status_code=r.status_code,
                        details=r.text,
                        request={"method": "POST", "path": path, "json": dict(json)},
                    )
                try:
                    return r.json()
                except ValueError:
                    return _error_dict("Invalid JSON on POST", status_code=r.status_code, details=r.text)
        except httpx.RequestError as e:
            return _error_dict(
                f"Network error on POST: {str(e)}",
                request={"method": "POST", "path": path, "json": dict(json)},
            )

    async def fetch_devices(self) -> Union[List[Dict[str, Any]], Dict[str, Any]]:
        """GET /devices. Returns the device list, or an error dict."""
        data = await self._get("/devices")
        if is_error(data):
            logger.error(f"Error fetching devices: {data['error']} status={data.get('status_code')}")
            return data
        if not isinstance(data, list):
            logger.error(f"Unexpected /devices payload: {type(data).__name__}")
            return _error_dict("Unexpected response shape on GET", details=str(data)[:300])
        if not all(isinstance(d, Mapping) for d in data):
            logger.error("Unexpected /devices payload: list contains non-object items")
            return _error_dict("Unexpected response shape on GET", details=str(data)[:300])
        return data

    async def create_device(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        """POST /devices. Returns the created device, or an error dict."""
        data = await self._post("/devices", payload)
        if is_error(data):
            logger.error(f"Failed to add device: {data['error']} status={data.get('status_code')} details={data.get('details')}")
        return data
