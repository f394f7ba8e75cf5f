"""Payment gateway exceptions."""

from __future__ import annotations


class PaymentGatewayError(Exception):
    """Base class for failures talking to the payment gateway."""


class PaymentRecordNotFound(PaymentGatewayError):
    """The gateway has no captured payment for the given reference."""


class PaymentGatewayUnavailable(PaymentGatewayError):
    """The gateway could not be reached or answered with an API error.

    The outcome is unknown; the caller may retry later.
    """


class InvalidWebhookSignature(PaymentGatewayError):
    """A webhook payload failed signature verification."""
