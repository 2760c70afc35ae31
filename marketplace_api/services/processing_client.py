"""Client for the external processing service.

The processing service turns raw input (a JSON payload, an uploaded file, or
its own data source) into product bundles. Responses come in two shapes:
- {"items": [bundle, ...]}  -> several bundles
- {...bundle...}            -> a single bundle

Nothing is retried; every failure becomes an UpstreamError that carries the
upstream status and body so the caller can echo them.
"""

import logging
from typing import Any

import httpx

from marketplace_api.errors import UpstreamError
from marketplace_api.settings import get_settings

logger = logging.getLogger("uvicorn.error")

# Keep echoed upstream bodies small.
MAX_ERROR_BODY = 2000


class ProcessingClient:
    """Async client for the processing / OCR endpoints."""

    def __init__(
        self,
        process_url: str | None = None,
        ocr_url: str | None = None,
        fetch_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.process_url = process_url or settings.processing_url
        self.ocr_url = ocr_url or settings.processing_ocr_url
        self.fetch_url = fetch_url or settings.processing_fetch_url
        self._timeout = settings.upstream_timeout_seconds
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def send_json(self, payload: Any) -> Any:
        """Relay a JSON payload and return the upstream JSON as-is."""
        client = await self._get_client()
        response = await _send(client, "POST", self.process_url, json=payload)
        return _json_body(response)

    async def send_file(
        self,
        filename: str,
        content: bytes,
        content_type: str | None = None,
        *,
        ocr: bool = False,
    ) -> list[Any]:
        """Upload a file as multipart field `file` and return the bundles it produced."""
        url = self.ocr_url if ocr else self.process_url
        files = {"file": (filename, content, content_type or "application/octet-stream")}

        logger.info(f"[processing] uploading {filename} ({len(content)} bytes) ocr={ocr}")
        client = await self._get_client()
        response = await _send(client, "POST", url, files=files)
        return extract_bundles(_json_body(response))

    async def fetch_bundles(self) -> list[Any]:
        """Pull bundles from the processing service's own source."""
        client = await self._get_client()
        response = await _send(client, "GET", self.fetch_url)
        return extract_bundles(_json_body(response))


def extract_bundles(data: Any) -> list[Any]:
    """Normalize a processing response into a list of bundles.

    Raises:
        UpstreamError: The response is neither a bundle nor an `items` list.
    """
    if isinstance(data, dict):
        if "items" not in data:
            return [data]
        items = data["items"]
        if items is None:
            return []
        if isinstance(items, list):
            return items
    raise UpstreamError(
        "Processing service returned an unexpected payload",
        details={"type": type(data).__name__},
    )


async def _send(client: httpx.AsyncClient, method: str, url: str, **kwargs: Any) -> httpx.Response:
    try:
        response = await client.request(method, url, **kwargs)
    except httpx.HTTPError as e:
        logger.error(f"[processing] {method} {url} failed: {e!r}")
        raise UpstreamError(
            "Processing service request failed",
            details={"url": url, "reason": str(e) or type(e).__name__},
        ) from e

    if response.is_error:
        logger.error(f"[processing] {method} {url} -> {response.status_code}")
        raise UpstreamError(
            "Processing service returned an error",
            details={"status": response.status_code, "body": error_body(response)},
        )
    return response


def _json_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise UpstreamError(
            "Processing service returned a non-JSON response",
            details={"status": response.status_code, "body": response.text[:MAX_ERROR_BODY]},
        ) from e


def error_body(response: httpx.Response) -> Any:
    """Upstream error body: parsed JSON when possible, else a text snippet."""
    try:
        return response.json()
    except ValueError:
        return response.text[:MAX_ERROR_BODY]


_client: ProcessingClient | None = None


def get_processing_client() -> ProcessingClient:
    """Get processing client singleton."""
    global _client
    if _client is None:
        _client = ProcessingClient()
    return _client


async def close_processing_client() -> None:
    global _client
    if _client is not None:
        await _client.close()
        _client = None
