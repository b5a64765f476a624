"""
CloudMart Functions — Order Queue Route
========================================

What:  POST /api/QueueOrder places a validated order on the order queue.
How:   JSON body → OrderMessage → validate → enqueue (Base64 JSON).
       Order processing itself happens downstream of the queue.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from cloudmart.config import Settings
from cloudmart.dependencies import get_dispatcher, get_settings
from cloudmart.schemas.order import OrderMessage
from cloudmart.services.dispatcher import StorageDispatcher
from cloudmart.services.payload_decoder import decode_json
from cloudmart.services.response_mapper import OperationMessages, outcome_response, text
from cloudmart.services.validation import validate_order

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Orders"])


@router.post("/QueueOrder", summary="Queue an order for processing")
async def queue_order(
    request: Request,
    settings: Settings = Depends(get_settings),
    dispatcher: StorageDispatcher = Depends(get_dispatcher),
) -> Response:
    logger.info("QueueOrder function triggered.")
    body = await request.body()

    order = validate_order(decode_json(body, OrderMessage, "Invalid JSON format."))

    outcome = await dispatcher.enqueue_message(settings.orders_queue, order)
    return outcome_response(
        outcome,
        OperationMessages(failure="Error adding order to the queue.", not_found="Queue not found."),
        lambda _: text("Order added to the queue."),
    )
