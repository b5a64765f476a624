"""
CloudMart Functions — Customer Review Route
============================================

What:  POST /api/WriteToFileShare saves a customer review or complaint as a
       new text file on the customer-service file share.
How:   Raw text body → non-empty check → file
       "<share>/<directory>/review-<yyyyMMdd-HHmmss>-<suffix>.txt".
       Files are written once and never read back by this service.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from cloudmart.config import Settings
from cloudmart.dependencies import get_dispatcher, get_settings
from cloudmart.models.storage import TextArtifact
from cloudmart.services.dispatcher import StorageDispatcher
from cloudmart.services.payload_decoder import decode_text
from cloudmart.services.response_mapper import OperationMessages, outcome_response, text
from cloudmart.services.validation import validate_review

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Reviews"])


@router.post("/WriteToFileShare", summary="Store a customer review")
async def write_to_file_share(
    request: Request,
    settings: Settings = Depends(get_settings),
    dispatcher: StorageDispatcher = Depends(get_dispatcher),
) -> Response:
    logger.info("WriteToFileShare function triggered.")
    body = await request.body()

    content = validate_review(decode_text(body))
    artifact = TextArtifact.create(content)
    directory = settings.reviews_directory

    outcome = await dispatcher.append_text_artifact(settings.reviews_share, directory, artifact)
    return outcome_response(
        outcome,
        OperationMessages(failure="Error writing review to the file share.", not_found="File share not found."),
        lambda name: text(f"File '{name}' written to the Azure File Share in '{directory}' directory."),
    )
