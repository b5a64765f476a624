"""
CloudMart Functions — Payload Validation
=========================================

What:  Per-entity structural and business rules, applied after decoding and
       before any storage call.
How:   Each validator returns the validated value or raises ValidationError
       with the client-facing reason. Rules are checked in order; the first
       failure wins.

Rules:
    Product       present, non-empty Name
    Order         present, non-empty RowKey, Quantity > 0
    Review text   not empty / whitespace-only
    Row key       non-empty, no characters the table service forbids in keys
    Upload        allowed extension, image (or octet-stream) declared type,
                  image content detected from the leading bytes (libmagic),
                  declared and streamed size within max_upload_size
"""

import logging
import re
from pathlib import PureWindowsPath
from typing import AsyncIterator, Iterable, Optional, Tuple

import magic

from cloudmart.exceptions import BackendError, ValidationError
from cloudmart.schemas.order import OrderMessage
from cloudmart.schemas.product import ProductPayload

logger = logging.getLogger(__name__)

INVALID_PRODUCT = "Invalid product data."
INVALID_ORDER = "Invalid order data."
EMPTY_REVIEW = "Review content is empty."
INVALID_ROW_KEY = "Invalid product identifier."

# "/", "\", "#", "?" and control characters are not allowed in table keys
FORBIDDEN_KEY_CHARS = re.compile(r"[/\\#?\x00-\x1f\x7f-\x9f]")

GENERIC_UPLOAD_TYPES = {"application/octet-stream"}

# Detected (not declared) types an upload may have
ALLOWED_IMAGE_MIME_TYPES = {"image/png", "image/jpeg", "image/gif", "image/webp"}

# libmagic needs the file header only
SNIFF_BYTES = 2048

# Content-Length covers the whole multipart request; framing and small form
# fields ride on top of the file. The exact limit is enforced while streaming.
DECLARED_SIZE_ALLOWANCE = 64 * 1024


# ── Records & messages ───────────────────────────────────────────────────

def validate_product(product: Optional[ProductPayload]) -> ProductPayload:
    if product is None or not product.name:
        logger.warning("Product data is null or missing required fields.")
        raise ValidationError(message=INVALID_PRODUCT, field="Name")
    if product.row_key:
        validate_row_key(product.row_key, message=INVALID_PRODUCT)
    return product


def validate_order(order: Optional[OrderMessage]) -> OrderMessage:
    if order is None or not order.row_key or order.quantity <= 0:
        logger.warning("Rejected order: %s", order.model_dump() if order else None)
        raise ValidationError(message=INVALID_ORDER)
    return order


def validate_review(content: str) -> str:
    if not content or not content.strip():
        raise ValidationError(message=EMPTY_REVIEW)
    return content


def validate_row_key(row_key: Optional[str], message: str = INVALID_ROW_KEY) -> str:
    if not row_key or not row_key.strip() or FORBIDDEN_KEY_CHARS.search(row_key):
        raise ValidationError(message=message, field="RowKey", context={"row_key": row_key})
    return row_key


# ── Uploads ──────────────────────────────────────────────────────────────

def _max_mb(max_size: int) -> float:
    return max_size / (1024 * 1024)


def validate_upload(
    filename: str,
    content_type: Optional[str],
    content_length: Optional[int],
    allowed_extensions: Iterable[str],
    max_size: int,
) -> None:
    """
    Check an upload before any byte is stored.

    Order (cheapest first):
        1. Extension in the allow-list (case-insensitive)
        2. Declared section content type is an image, or generic binary
        3. Declared request size (Content-Length) within the limit plus the
           multipart framing allowance
    """
    allowed = set(allowed_extensions)
    ext = PureWindowsPath(filename).suffix.lower()
    if ext not in allowed:
        raise ValidationError(
            message=(
                f"File type '{ext or filename}' is not supported. "
                f"Allowed types: {', '.join(sorted(allowed))}"
            ),
            field="file",
            context={"extension": ext, "allowed": sorted(allowed)},
        )

    if content_type:
        media_type = content_type.split(";", 1)[0].strip().lower()
        if not media_type.startswith("image/") and media_type not in GENERIC_UPLOAD_TYPES:
            raise ValidationError(
                message=f"File content type '{media_type}' is not supported. The file must be an image.",
                field="file",
                context={"content_type": media_type},
            )

    if content_length is not None and content_length > max_size + DECLARED_SIZE_ALLOWANCE:
        raise ValidationError(
            message=f"File size exceeds maximum of {_max_mb(max_size):.0f}MB. Please upload a smaller image.",
            field="file",
            context={"max_size": max_size, "reported_size": content_length},
        )


async def bounded_stream(stream: AsyncIterator[bytes], max_size: int) -> AsyncIterator[bytes]:
    """
    Pass chunks through, raising ValidationError once more than max_size
    bytes have been seen. Content-Length can be absent or wrong, so the
    streamed byte count is checked as well.
    """
    total = 0
    async for chunk in stream:
        total += len(chunk)
        if total > max_size:
            raise ValidationError(
                message=f"File size exceeds maximum of {_max_mb(max_size):.0f}MB. Please upload a smaller image.",
                field="file",
                context={"max_size": max_size, "streamed_at_least": total},
            )
        yield chunk


async def peek_stream(
    stream: AsyncIterator[bytes], size: int = SNIFF_BYTES
) -> Tuple[bytes, AsyncIterator[bytes]]:
    """
    Read at least `size` bytes (or everything, if shorter) from the front
    of a one-shot stream.

    Returns:
        (head, replay) where replay yields the buffered chunks followed by
        the rest of the original stream.
    """
    iterator = stream.__aiter__()
    buffered = []
    total = 0
    while total < size:
        try:
            chunk = await iterator.__anext__()
        except StopAsyncIteration:
            break
        buffered.append(chunk)
        total += len(chunk)

    async def replay() -> AsyncIterator[bytes]:
        for chunk in buffered:
            yield chunk
        async for chunk in iterator:
            yield chunk

    return b"".join(buffered), replay()


def validate_image_content(head: bytes, filename: str) -> str:
    """
    Check the real type of an upload from its leading bytes.

    A renamed file (e.g. a script saved as photo.png and sent as
    application/octet-stream) passes the extension and declared-type checks;
    libmagic reads its signature instead.

    Returns:
        The detected MIME type.

    Raises:
        ValidationError: the content is not an allowed image type (→ 400)
        BackendError: libmagic itself failed (→ 500)
    """
    try:
        mime_type = magic.from_buffer(head, mime=True)
    except magic.MagicException as exc:
        logger.error("MIME type detection failed: %s", exc)
        raise BackendError(
            message="Could not verify file type. Please try again.",
            context={"error": str(exc), "filename": filename},
        ) from exc

    if mime_type not in ALLOWED_IMAGE_MIME_TYPES:
        logger.warning("Rejected upload %s: detected type %s", filename, mime_type)
        raise ValidationError(
            message=f"File content type '{mime_type}' is not supported. The file must be an image.",
            field="file",
            context={"detected": mime_type, "filename": filename},
        )
    return mime_type
