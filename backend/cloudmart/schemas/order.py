"""
CloudMart Functions — Order Message Schema
===========================================

What:  The order placed on the order queue by POST /api/QueueOrder.
How:   Serialized as compact JSON with PascalCase names, UTF-8 encoded and
       then Base64 encoded. Consumers of the queue expect Base64 text.
"""

import base64
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class OrderMessage(BaseModel):
    """Queue payload: which product row, how many, and its display name."""

    model_config = ConfigDict(populate_by_name=True)

    row_key: Optional[str] = Field(default=None, alias="RowKey")
    quantity: int = Field(default=0, alias="Quantity")
    product_name: Optional[str] = Field(default=None, alias="ProductName")

    def serialize(self) -> str:
        return self.model_dump_json(by_alias=True)

    def encode(self) -> str:
        """Opaque queue form: Base64 of the UTF-8 JSON document."""
        return base64.b64encode(self.serialize().encode("utf-8")).decode("ascii")
