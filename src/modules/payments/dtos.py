"""Payment gateway DTOs.

Framework-agnostic, immutable (``frozen=True``) views of the gateway's
authoritative payment record.  Metadata items are kept as raw dicts:
deciding whether they are complete enough to rebuild an order is the
reconciliation resolver's job, not the gateway adapter's.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class BillingAddress(BaseModel):
    model_config = ConfigDict(frozen=True)

    line1: str = ""
    line2: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""


class BillingDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    email: str = ""
    name: str = ""
    address: BillingAddress = Field(default_factory=BillingAddress)


class PaymentMetadata(BaseModel):
    """Order-shape metadata attached to the payment at charge time."""

    model_config = ConfigDict(frozen=True)

    items: List[Dict[str, Any]] = Field(default_factory=list)
    subtotal: Optional[Decimal] = None
    shipping: Optional[Decimal] = None
    tax: Optional[Decimal] = None
    locale: Optional[str] = None


class PaymentRecord(BaseModel):
    """Authoritative payment record as reported by the gateway."""

    model_config = ConfigDict(frozen=True)

    payment_reference: str
    amount_captured: Decimal
    currency: str
    metadata: PaymentMetadata = Field(default_factory=PaymentMetadata)
    billing: BillingDetails = Field(default_factory=BillingDetails)


class WebhookEvent(BaseModel):
    """Verified gateway webhook, reduced to what the order engine needs."""

    model_config = ConfigDict(frozen=True)

    event_id: str
    event_type: str
    payment_reference: Optional[str] = None
