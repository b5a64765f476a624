"""
CloudMart Functions — Image Upload Route
=========================================

What:  POST /api/UploadBlob stores a product image in Blob Storage and
       returns its public URL.
How:   The multipart body is read as a stream. The first form-data section
       named "file" (any case) with a file name is validated and streamed
       straight into the upload; nothing is buffered in full.

Request Flow:
    1. Content-Type must be multipart/form-data with a boundary
    2. Sections are walked until the file section is found
    3. Extension / declared content type / declared size are checked
    4. The file header is read and its real type checked (libmagic)
    5. Blob "<uuid>_<file name>" is uploaded (overwrite) via a size-bounded stream
    6. 200 with the blob URL as plain text
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from cloudmart.config import Settings
from cloudmart.dependencies import get_dispatcher, get_settings
from cloudmart.models.storage import BlobObject
from cloudmart.services.dispatcher import StorageDispatcher
from cloudmart.services.payload_decoder import find_file_section
from cloudmart.services.response_mapper import OperationMessages, outcome_response, text
from cloudmart.services.validation import (
    bounded_stream,
    peek_stream,
    validate_image_content,
    validate_upload,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Uploads"])


def _content_length(request: Request):
    raw = request.headers.get("content-length")
    return int(raw) if raw and raw.isdigit() else None


@router.post("/UploadBlob", summary="Upload a product image")
async def upload_blob(
    request: Request,
    settings: Settings = Depends(get_settings),
    dispatcher: StorageDispatcher = Depends(get_dispatcher),
) -> Response:
    logger.info("Processing image upload request.")

    part = await find_file_section(
        request.headers.get("content-type"),
        request.stream(),
        field_name=settings.upload_field_name,
    )
    validate_upload(
        filename=part.filename,
        content_type=part.content_type,
        content_length=_content_length(request),
        allowed_extensions=settings.allowed_extensions_set,
        max_size=settings.max_upload_size,
    )

    head, stream = await peek_stream(bounded_stream(part.stream(), settings.max_upload_size))
    validate_image_content(head, part.filename)

    blob = BlobObject.for_upload(part.filename, stream, content_type=part.content_type)
    logger.info("Uploading file: %s as %s", part.filename, blob.name)

    outcome = await dispatcher.upload_blob(settings.images_container, blob)
    return outcome_response(
        outcome,
        OperationMessages(failure="Error uploading file.", not_found="Container not found."),
        text,
    )
