"""Pass-through integration endpoints.

POST /api/voice-to-text         - audio upload -> transcription API
POST /api/send-to-fastapi       - JSON relay, or file upload -> bundles -> catalog
POST /api/send-to-fastapi-ocr   - file upload -> OCR processing -> bundles -> catalog
GET  /api/fetch-and-store       - processing service source -> bundles -> catalog

Bundles coming back from the processing service are reconciled one by one.
A failing bundle is reported under `errors` and does not stop the others.
"""

import json
import logging

from fastapi import APIRouter, File, Request, UploadFile
from starlette.datastructures import UploadFile as StarletteUploadFile

from marketplace_api.errors import ValidationError
from marketplace_api.schemas import (
    BundleError,
    ProductOut,
    RelayResponse,
    StoredProductsResponse,
    TranscriptionResponse,
)
from marketplace_api.services.processing_client import get_processing_client
from marketplace_api.services.reconciler import ReconcileManyResult, reconcile_many, summarize
from marketplace_api.services.transcription_client import get_transcription_client

router = APIRouter()
logger = logging.getLogger("uvicorn.error")


@router.post("/voice-to-text", response_model=TranscriptionResponse)
async def voice_to_text(audio: UploadFile | None = File(default=None)) -> TranscriptionResponse:
    """Transcribe the uploaded `audio` file."""
    if audio is None:
        raise ValidationError("No audio file provided")

    content = await audio.read()
    text = await get_transcription_client().transcribe(
        filename=audio.filename or "audio",
        content=content,
        content_type=audio.content_type,
    )
    return TranscriptionResponse(transcription=text)


@router.post("/send-to-fastapi", response_model=StoredProductsResponse | RelayResponse)
async def send_to_processing(request: Request) -> StoredProductsResponse | RelayResponse:
    """Relay to the processing service.

    - multipart with a `file` field: upload it, store the returned bundles
    - JSON body: relay verbatim and echo the upstream response
    """
    content_type = request.headers.get("content-type", "")
    client = get_processing_client()

    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        upload = form.get("file")
        if not isinstance(upload, StarletteUploadFile):
            raise ValidationError("No file provided in multipart field 'file'")

        bundles = await client.send_file(
            filename=upload.filename or "upload",
            content=await upload.read(),
            content_type=upload.content_type,
        )
        result = await reconcile_many(bundles)
        return _stored_response(result)

    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError("Request body must be JSON or multipart/form-data") from e

    upstream = await client.send_json(payload)
    return RelayResponse(message="Data sent to processing service successfully", response=upstream)


@router.post("/send-to-fastapi-ocr", response_model=StoredProductsResponse)
async def send_to_ocr(file: UploadFile | None = File(default=None)) -> StoredProductsResponse:
    """Run an uploaded document through OCR processing and store the products found."""
    if file is None:
        raise ValidationError("No file provided")

    bundles = await get_processing_client().send_file(
        filename=file.filename or "upload",
        content=await file.read(),
        content_type=file.content_type,
        ocr=True,
    )
    if not bundles:
        raise ValidationError("No products returned from processing service")

    result = await reconcile_many(bundles)
    return _stored_response(result)


@router.get("/fetch-and-store", response_model=StoredProductsResponse)
async def fetch_and_store() -> StoredProductsResponse:
    """Pull bundles from the processing service and store them."""
    bundles = await get_processing_client().fetch_bundles()
    logger.info(f"[fetch-and-store] received {len(bundles)} bundle(s)")
    result = await reconcile_many(bundles)
    return _stored_response(result)


def _stored_response(result: ReconcileManyResult) -> StoredProductsResponse:
    return StoredProductsResponse(
        success=result.ok,
        message=summarize(result),
        products=[ProductOut.model_validate(p) for p in result.products],
        errors=[BundleError(index=f.index, error=f.error, details=f.details) for f in result.failures],
    )
