"""Tests for the processing and transcription HTTP clients (no network)."""

import json

import httpx
import pytest

from marketplace_api.errors import UpstreamError
from marketplace_api.services.processing_client import ProcessingClient, extract_bundles
from marketplace_api.services.transcription_client import TranscriptionClient

PROCESS_URL = "http://processing.test/process"
OCR_URL = "http://processing.test/ocr"
FETCH_URL = "http://processing.test/fetch"
TRANSCRIBE_URL = "http://speech.test/v1/audio/transcriptions"


def processing_client(handler) -> ProcessingClient:
    return ProcessingClient(
        process_url=PROCESS_URL,
        ocr_url=OCR_URL,
        fetch_url=FETCH_URL,
        transport=httpx.MockTransport(handler),
    )


class TestExtractBundles:
    def test_single_bundle(self):
        bundle = {"product": {"sku": "A"}}
        assert extract_bundles(bundle) == [bundle]

    def test_items_list(self):
        assert extract_bundles({"items": [{"product": {"sku": "A"}}, {"product": {"sku": "B"}}]}) == [
            {"product": {"sku": "A"}},
            {"product": {"sku": "B"}},
        ]

    def test_null_items(self):
        assert extract_bundles({"items": None}) == []

    @pytest.mark.parametrize("data", [[{"product": {}}], "text", {"items": "nope"}])
    def test_unexpected_shapes(self, data):
        with pytest.raises(UpstreamError):
            extract_bundles(data)


class TestProcessingClient:
    @pytest.mark.asyncio
    async def test_send_json_returns_upstream_body(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True})

        client = processing_client(handler)
        try:
            assert await client.send_json({"text": "hello"}) == {"ok": True}
        finally:
            await client.close()

        assert seen == {"url": PROCESS_URL, "body": {"text": "hello"}}

    @pytest.mark.asyncio
    async def test_send_file_uses_ocr_url_and_multipart(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["content_type"] = request.headers["content-type"]
            seen["body"] = request.content
            return httpx.Response(200, json={"items": [{"product": {"sku": "S1"}}]})

        client = processing_client(handler)
        try:
            bundles = await client.send_file("scan.pdf", b"%PDF-1.7", "application/pdf", ocr=True)
        finally:
            await client.close()

        assert bundles == [{"product": {"sku": "S1"}}]
        assert seen["url"] == OCR_URL
        assert seen["content_type"].startswith("multipart/form-data")
        assert b'name="file"; filename="scan.pdf"' in seen["body"]
        assert b"%PDF-1.7" in seen["body"]

    @pytest.mark.asyncio
    async def test_fetch_bundles(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "GET"
            assert str(request.url) == FETCH_URL
            return httpx.Response(200, json={"product": {"sku": "F"}})

        client = processing_client(handler)
        try:
            assert await client.fetch_bundles() == [{"product": {"sku": "F"}}]
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_error_status_carries_status_and_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(422, json={"detail": "unreadable file"})

        client = processing_client(handler)
        try:
            with pytest.raises(UpstreamError) as exc:
                await client.send_file("x.bin", b"\x00")
        finally:
            await client.close()

        assert exc.value.status_code == 500
        assert exc.value.details == {"status": 422, "body": {"detail": "unreadable file"}}

    @pytest.mark.asyncio
    async def test_text_error_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="Bad Gateway")

        client = processing_client(handler)
        try:
            with pytest.raises(UpstreamError) as exc:
                await client.send_json({})
        finally:
            await client.close()

        assert exc.value.details == {"status": 502, "body": "Bad Gateway"}

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = processing_client(handler)
        try:
            with pytest.raises(UpstreamError) as exc:
                await client.fetch_bundles()
        finally:
            await client.close()

        assert exc.value.details["reason"] == "connection refused"

    @pytest.mark.asyncio
    async def test_non_json_success(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>ok</html>")

        client = processing_client(handler)
        try:
            with pytest.raises(UpstreamError) as exc:
                await client.fetch_bundles()
        finally:
            await client.close()

        assert exc.value.message == "Processing service returned a non-JSON response"


class TestTranscriptionClient:
    @pytest.mark.asyncio
    async def test_transcribe(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["authorization"]
            seen["body"] = request.content
            return httpx.Response(200, json={"text": "  hello world \n"})

        client = TranscriptionClient(
            api_url=TRANSCRIBE_URL,
            api_key="sk-test",
            model="whisper-1",
            transport=httpx.MockTransport(handler),
        )
        try:
            text = await client.transcribe("memo.m4a", b"audio-bytes", "audio/mp4")
        finally:
            await client.close()

        assert text == "hello world"
        assert seen["auth"] == "Bearer sk-test"
        assert b'name="model"' in seen["body"]
        assert b"whisper-1" in seen["body"]
        assert b'filename="memo.m4a"' in seen["body"]

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        client = TranscriptionClient(api_url=TRANSCRIBE_URL, api_key="", transport=httpx.MockTransport(handler))

        with pytest.raises(UpstreamError) as exc:
            await client.transcribe("a.wav", b"RIFF")
        assert exc.value.message == "Transcription API key is not configured"

    @pytest.mark.asyncio
    async def test_upstream_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": {"message": "Invalid API key"}})

        client = TranscriptionClient(api_url=TRANSCRIBE_URL, api_key="bad", transport=httpx.MockTransport(handler))
        try:
            with pytest.raises(UpstreamError) as exc:
                await client.transcribe("a.wav", b"RIFF")
        finally:
            await client.close()

        assert exc.value.details == {"status": 401, "body": {"error": {"message": "Invalid API key"}}}

    @pytest.mark.asyncio
    async def test_response_without_text(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"segments": []})

        client = TranscriptionClient(api_url=TRANSCRIBE_URL, api_key="k", transport=httpx.MockTransport(handler))
        try:
            with pytest.raises(UpstreamError):
                await client.transcribe("a.wav", b"RIFF")
        finally:
            await client.close()
