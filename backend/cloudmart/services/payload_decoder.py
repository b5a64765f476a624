"""
CloudMart Functions — Payload Decoder
======================================

What:  Turns a raw request body plus its declared content type into a typed
       value. Three modes:

    JSON        body → pydantic model (or None for a literal null)
    Raw text    body → str
    Multipart   Content-Type + body stream → the first qualifying file section

How:   Every decode failure raises DecodeError with the client-facing reason.
       Decoding never judges business rules; absent/empty values are passed
       through for the validator to reject.
"""

import json
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from python_multipart.multipart import parse_options_header

from cloudmart.exceptions import DecodeError
from cloudmart.services.multipart_reader import MultipartReader, MultipartSection

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

MULTIPART_FORM_DATA = "multipart/form-data"
MISSING_CONTENT_TYPE = "Missing Content-Type header."
NOT_MULTIPART = "Content-Type must be multipart/form-data."
MISSING_BOUNDARY = "Missing boundary in multipart/form-data."
NO_FILE_FOUND = "No file found in the request."
NOT_UTF8 = "Request body must be UTF-8 text."


# ══════════════════════════════════════════════════════════════════════════
# JSON Mode
# ══════════════════════════════════════════════════════════════════════════

def decode_json(body: bytes, model: Type[ModelT], malformed_message: str) -> Optional[ModelT]:
    """
    Parse the whole body as a single JSON object of the given model.

    Returns:
        The model instance, or None when the body is the JSON literal null.

    Raises:
        DecodeError(malformed_message) for invalid JSON, a non-object
        document, or fields of the wrong type.
    """
    try:
        document = json.loads(body)
    except (ValueError, UnicodeDecodeError) as exc:
        logger.warning("Malformed JSON body for %s: %s", model.__name__, exc)
        raise DecodeError(message=malformed_message, context={"error": str(exc)}) from exc

    if document is None:
        return None
    if not isinstance(document, dict):
        raise DecodeError(
            message=malformed_message,
            context={"error": f"expected a JSON object, got {type(document).__name__}"},
        )

    try:
        return model.model_validate(document)
    except PydanticValidationError as exc:
        logger.warning("JSON body does not match %s: %s", model.__name__, exc.errors())
        raise DecodeError(message=malformed_message, context={"errors": exc.errors()}) from exc


# ══════════════════════════════════════════════════════════════════════════
# Raw Text Mode
# ══════════════════════════════════════════════════════════════════════════

def decode_text(body: bytes) -> str:
    """Read the full body as UTF-8 text. An empty body decodes to ""."""
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError(message=NOT_UTF8, context={"error": str(exc)}) from exc


# ══════════════════════════════════════════════════════════════════════════
# Multipart Mode
# ══════════════════════════════════════════════════════════════════════════

@dataclass
class FilePart:
    """The selected multipart section: client file name, declared type, bytes."""

    filename: str
    content_type: Optional[str]
    section: MultipartSection

    def stream(self) -> AsyncIterator[bytes]:
        return self.section.stream()


def parse_multipart_boundary(content_type: Optional[str]) -> str:
    """
    Extract the boundary from a multipart/form-data Content-Type.

    Each missing piece is a distinct failure:
        no header                 → "Missing Content-Type header."
        not multipart/form-data   → "Content-Type must be multipart/form-data."
        no boundary parameter     → "Missing boundary in multipart/form-data."
    """
    if not content_type or not content_type.strip():
        raise DecodeError(message=MISSING_CONTENT_TYPE)
    if MULTIPART_FORM_DATA not in content_type.lower():
        raise DecodeError(message=NOT_MULTIPART, context={"content_type": content_type})

    _, params = parse_options_header(content_type)
    boundary = params.get(b"boundary", b"").decode("latin-1").strip().strip('"')
    if not boundary:
        raise DecodeError(message=MISSING_BOUNDARY, context={"content_type": content_type})
    return boundary


def is_file_section(section: MultipartSection, field_name: str) -> bool:
    """form-data disposition, matching field name (any case), non-empty filename."""
    disposition_type, params = section.disposition()
    return (
        disposition_type.lower() == "form-data"
        and params.get("name", "").lower() == field_name.lower()
        and bool(params.get("filename", "").strip())
    )


async def find_file_section(
    content_type: Optional[str],
    body: AsyncIterator[bytes],
    field_name: str = "file",
) -> FilePart:
    """
    Walk the multipart body and return the first qualifying file section.

    The returned section is still unread; its stream must be consumed by
    the caller. Sections before it have been drained and discarded.

    Raises:
        DecodeError: Content-Type problems, malformed body, or no file section.
    """
    boundary = parse_multipart_boundary(content_type)
    reader = MultipartReader(boundary, body)

    section = await reader.next_section()
    while section is not None:
        if is_file_section(section, field_name):
            _, params = section.disposition()
            logger.info("Found file section: field=%s filename=%s", field_name, params["filename"])
            return FilePart(
                filename=params["filename"],
                content_type=section.content_type,
                section=section,
            )
        section = await reader.next_section()

    raise DecodeError(message=NO_FILE_FOUND, context={"field": field_name})
