"""Speech-to-text via an OpenAI-compatible /audio/transcriptions endpoint.

Request:  multipart `file` + `model`, bearer API key
Response: {"text": "..."}
"""

import logging

import httpx

from marketplace_api.errors import UpstreamError
from marketplace_api.services.processing_client import error_body
from marketplace_api.settings import get_settings

logger = logging.getLogger("uvicorn.error")


class TranscriptionClient:
    """Async client for the transcription API."""

    def __init__(
        self,
        api_url: str | None = None,
        api_key: str | None = None,
        model: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.api_url = api_url or settings.transcription_api_url
        self.api_key = api_key if api_key is not None else settings.transcription_api_key
        self.model = model or settings.transcription_model
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

    async def transcribe(self, filename: str, content: bytes, content_type: str | None = None) -> str:
        """Transcribe an audio file and return the text.

        Raises:
            UpstreamError: Missing API key, transport failure, non-2xx status,
                or a response without text.
        """
        if not self.api_key:
            raise UpstreamError("Transcription API key is not configured")

        headers = {"Authorization": f"Bearer {self.api_key}"}
        files = {"file": (filename, content, content_type or "application/octet-stream")}
        data = {"model": self.model}

        logger.info(f"[transcription] sending {filename} ({len(content)} bytes) model={self.model}")
        client = await self._get_client()
        try:
            response = await client.post(self.api_url, headers=headers, files=files, data=data)
        except httpx.HTTPError as e:
            logger.error(f"[transcription] request failed: {e!r}")
            raise UpstreamError(
                "Transcription request failed",
                details={"reason": str(e) or type(e).__name__},
            ) from e

        if response.is_error:
            logger.error(f"[transcription] upstream returned {response.status_code}")
            raise UpstreamError(
                "Transcription service returned an error",
                details={"status": response.status_code, "body": error_body(response)},
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamError(
                "Transcription service returned a non-JSON response",
                details={"body": response.text[:500]},
            ) from e

        text = payload.get("text") if isinstance(payload, dict) else None
        if not isinstance(text, str):
            raise UpstreamError("Transcription service returned no text", details=payload)
        return text.strip()


_client: TranscriptionClient | None = None


def get_transcription_client() -> TranscriptionClient:
    """Get transcription client singleton."""
    global _client
    if _client is None:
        _client = TranscriptionClient()
    return _client


async def close_transcription_client() -> None:
    global _client
    if _client is not None:
        await _client.close()
        _client = None
