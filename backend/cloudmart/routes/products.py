"""
CloudMart Functions — Product Route Handlers
=============================================

What:  CRUD endpoints for the product catalogue (Table Storage).
How:   Each handler reads the raw body, decodes → validates, runs one
       dispatcher operation and renders the Outcome.

    POST   /api/AddProduct               create (RowKey generated unless supplied)
    GET    /api/GetAllProducts           list all products
    GET    /api/GetProduct/{rowKey}      fetch one
    PUT    /api/UpdateProduct/{rowKey}   read-modify-write guarded by the etag
    DELETE /api/DeleteProduct/{rowKey}   delete

All products live in one partition (settings.product_partition).
"""

import logging
import uuid

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from cloudmart.config import Settings
from cloudmart.dependencies import get_dispatcher, get_settings
from cloudmart.schemas.product import ProductPayload, ProductResponse
from cloudmart.services.dispatcher import StorageDispatcher
from cloudmart.services.payload_decoder import decode_json
from cloudmart.services.response_mapper import (
    OperationMessages,
    json_body,
    outcome_response,
    text,
)
from cloudmart.services.validation import validate_product, validate_row_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Products"])

INVALID_PRODUCT_FORMAT = "Invalid product data format."


def _product_json(record) -> dict:
    return ProductResponse.from_record(record).model_dump(mode="json", by_alias=True)


@router.post("/AddProduct", summary="Add a product to the catalogue")
async def add_product(
    request: Request,
    settings: Settings = Depends(get_settings),
    dispatcher: StorageDispatcher = Depends(get_dispatcher),
) -> Response:
    logger.info("Processing a request to add a product.")
    body = await request.body()

    product = validate_product(decode_json(body, ProductPayload, INVALID_PRODUCT_FORMAT))
    row_key = product.row_key or str(uuid.uuid4())
    record = product.to_record(settings.product_partition, row_key)

    outcome = await dispatcher.create_record(settings.products_table, record)
    return outcome_response(
        outcome,
        OperationMessages(failure="An error occurred while adding the product."),
        lambda created: text(
            f"Product '{product.name}' added successfully with RowKey '{created.row_key}'."
        ),
    )


@router.get("/GetAllProducts", summary="List every product")
async def get_all_products(
    settings: Settings = Depends(get_settings),
    dispatcher: StorageDispatcher = Depends(get_dispatcher),
) -> Response:
    logger.info("Processing a request to get all products.")
    outcome = await dispatcher.read_all_records(settings.products_table)
    return outcome_response(
        outcome,
        OperationMessages(failure="Error retrieving products."),
        lambda records: json_body([_product_json(record) for record in records]),
    )


@router.get("/GetProduct/{rowKey}", summary="Fetch one product by RowKey")
async def get_product(
    rowKey: str,
    settings: Settings = Depends(get_settings),
    dispatcher: StorageDispatcher = Depends(get_dispatcher),
) -> Response:
    logger.info("Processing a request to get product with RowKey: %s", rowKey)
    row_key = validate_row_key(rowKey)

    outcome = await dispatcher.read_record(settings.products_table, settings.product_partition, row_key)
    return outcome_response(
        outcome,
        OperationMessages(failure="Error retrieving product."),
        lambda record: json_body(_product_json(record)),
    )


@router.put("/UpdateProduct/{rowKey}", summary="Replace a product's fields")
async def update_product(
    rowKey: str,
    request: Request,
    settings: Settings = Depends(get_settings),
    dispatcher: StorageDispatcher = Depends(get_dispatcher),
) -> Response:
    logger.info("Processing a request to update product with RowKey: %s", rowKey)
    row_key = validate_row_key(rowKey)
    body = await request.body()

    product = validate_product(decode_json(body, ProductPayload, INVALID_PRODUCT_FORMAT))

    outcome = await dispatcher.update_record(
        settings.products_table,
        settings.product_partition,
        row_key,
        product.to_fields(),
    )
    return outcome_response(
        outcome,
        OperationMessages(failure="Error updating product."),
        lambda _: text(f"Product '{product.name}' updated successfully."),
    )


@router.delete("/DeleteProduct/{rowKey}", summary="Delete a product")
async def delete_product(
    rowKey: str,
    settings: Settings = Depends(get_settings),
    dispatcher: StorageDispatcher = Depends(get_dispatcher),
) -> Response:
    logger.info("Processing a request to delete product with RowKey: %s", rowKey)
    row_key = validate_row_key(rowKey)

    outcome = await dispatcher.delete_record(settings.products_table, settings.product_partition, row_key)
    return outcome_response(
        outcome,
        OperationMessages(failure="Error deleting product."),
        lambda _: text(f"Product with RowKey '{row_key}' deleted successfully."),
    )
