"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).

- ``ShippingAddressDTO`` / ``CustomerInfoDTO``: who the order is for.
- ``OrderItemDTO``: a line item with its catalog snapshot.
- ``CreateOrderDTO``: input of the order creation pipeline.
- ``UpdateOrderStatusDTO``: input of a status transition.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
    model_validator,
)

from modules.orders.constants import OrderSource, OrderStatus

_FROZEN = ConfigDict(frozen=True, populate_by_name=True, str_strip_whitespace=True)


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class ShippingAddressDTO(BaseModel):
    model_config = _FROZEN

    street: str = ""
    city: str = ""
    region: str = ""
    postal_code: str = ""
    country: str = ""


class CustomerInfoDTO(BaseModel):
    """Customer identity captured once, at creation."""

    model_config = _FROZEN

    email: EmailStr
    name: str = ""
    address: ShippingAddressDTO = ShippingAddressDTO()

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class OrderItemDTO(BaseModel):
    """A purchased product with the display fields copied at order time.

    Accepts the camelCase keys used by checkout metadata
    (``productId``, ``imageUrl``, ``price``).
    """

    model_config = _FROZEN

    product_id: str = Field(
        validation_alias=AliasChoices("product_id", "productId", "id")
    )
    title: str = Field(default="", validation_alias=AliasChoices("title", "name"))
    brand: str = ""
    era: str = ""
    size: str = ""
    image_url: str = Field(
        default="", validation_alias=AliasChoices("image_url", "imageUrl")
    )
    unit_price: Decimal = Field(
        validation_alias=AliasChoices("unit_price", "unitPrice", "price"),
        ge=0,
    )

    @field_validator("product_id", mode="before")
    @classmethod
    def product_id_must_not_be_blank(cls, v):
        if v is None or str(v).strip() == "":
            raise ValueError("Item product id is required.")
        return str(v).strip()


class CreateOrderDTO(BaseModel):
    """Immutable DTO for order creation.

    ``total`` is the captured amount reported by the gateway; it is
    stored as given and never recomputed from the items.
    """

    model_config = _FROZEN

    payment_reference: str = Field(min_length=1, max_length=255)
    customer_info: CustomerInfoDTO
    items: List[OrderItemDTO]
    subtotal: Decimal = Field(default=Decimal("0.00"), ge=0)
    shipping: Decimal = Field(default=Decimal("0.00"), ge=0)
    tax: Decimal = Field(default=Decimal("0.00"), ge=0)
    total: Decimal = Field(ge=0)
    currency: str = "usd"
    locale: Optional[str] = None
    source: OrderSource = OrderSource.CHECKOUT

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(cls, v: List[OrderItemDTO]) -> List[OrderItemDTO]:
        if not v:
            raise ValueError("Order must have at least one item.")
        return v


class UpdateOrderStatusDTO(BaseModel):
    """Immutable DTO for a status transition request.

    Tracking fields are only meaningful for ``shipped``: the tracking
    number is required there and rejected for any other target.
    """

    model_config = _FROZEN

    status: OrderStatus
    tracking_number: str = ""
    carrier: str = ""
    notes: str = ""

    @model_validator(mode="after")
    def tracking_only_when_shipping(self):
        if self.status == OrderStatus.SHIPPED:
            if not self.tracking_number:
                raise ValueError("A tracking number is required to ship an order.")
        elif self.tracking_number or self.carrier:
            raise ValueError("Tracking details can only be set when shipping.")
        return self
