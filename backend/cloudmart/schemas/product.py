"""
CloudMart Functions — Product Schemas
======================================

What:  Pydantic models for the product JSON contract and its mapping to
       table records.
How:   Wire names are PascalCase ("Name", "InventoryCount") with the
       historical lowercase "description"; Python attributes are snake_case.
       Input accepts "Description" as well.

Stored table columns:
    Name | Price | Description | ImageUrl | InventoryCount
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from cloudmart.models.storage import Record

# Table columns a product update overwrites (everything but the keys)
MUTABLE_COLUMNS = ("Name", "Price", "Description", "ImageUrl", "InventoryCount")


class ProductPayload(BaseModel):
    """
    What:  Product body accepted by AddProduct and UpdateProduct.
    Note:  Defaults mirror a missing JSON property; validation of the
           required name happens in the validator, not here.
    """

    model_config = ConfigDict(populate_by_name=True)

    row_key: Optional[str] = Field(default=None, alias="RowKey")
    name: Optional[str] = Field(default=None, alias="Name")
    price: float = Field(default=0.0, alias="Price")
    description: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("description", "Description"),
    )
    image_url: Optional[str] = Field(default=None, alias="ImageUrl")
    inventory_count: int = Field(default=0, alias="InventoryCount")

    def to_fields(self) -> Dict[str, Any]:
        """Column mapping written to the table (keys excluded)."""
        return {
            "Name": self.name,
            "Price": self.price,
            "Description": self.description,
            "ImageUrl": self.image_url,
            "InventoryCount": self.inventory_count,
        }

    def to_record(self, partition_key: str, row_key: str) -> Record:
        return Record(partition_key=partition_key, row_key=row_key, fields=self.to_fields())


class ProductResponse(BaseModel):
    """
    What:  Product as returned by GetProduct / GetAllProducts.
    How:   Serialized by alias, so the JSON keys match the wire names.
    """

    model_config = ConfigDict(populate_by_name=True)

    partition_key: str = Field(alias="PartitionKey")
    row_key: str = Field(alias="RowKey")
    name: Optional[str] = Field(default=None, alias="Name")
    price: float = Field(default=0.0, alias="Price")
    description: Optional[str] = Field(default=None, alias="description")
    image_url: Optional[str] = Field(default=None, alias="ImageUrl")
    inventory_count: int = Field(default=0, alias="InventoryCount")
    timestamp: Optional[datetime] = Field(default=None, alias="Timestamp")
    etag: Optional[str] = Field(default=None, alias="ETag")

    @classmethod
    def from_record(cls, record: Record) -> "ProductResponse":
        fields = record.fields
        return cls(
            partition_key=record.partition_key,
            row_key=record.row_key,
            name=fields.get("Name"),
            price=fields.get("Price") or 0.0,
            description=fields.get("Description"),
            image_url=fields.get("ImageUrl"),
            inventory_count=fields.get("InventoryCount") or 0,
            timestamp=record.timestamp,
            etag=record.etag,
        )
