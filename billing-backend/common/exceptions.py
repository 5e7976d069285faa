# common/exceptions.py
"""
Domain errors raised by the billing core and its services.

Every error carries a stable ``code`` (used by API clients), a short
user-facing message and the HTTP status the API layer answers with.
None of them are retryable: the caller fixes the input instead.
"""
from rest_framework import status


class BillingError(Exception):
    code = "billing_error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "The request could not be completed."

    def __init__(self, message=None, **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def as_dict(self):
        data = {"detail": self.message, "code": self.code}
        if self.context:
            data["context"] = {k: str(v) for k, v in self.context.items()}
        return data


class InvalidAmount(BillingError):
    """Negative or non-finite quantity, rate, discount, tax, shipping or payment."""
    code = "invalid_amount"
    default_message = "Amounts must be zero or positive numbers."


class InvalidTransition(BillingError):
    code = "invalid_transition"
    status_code = status.HTTP_409_CONFLICT
    default_message = "This document cannot move to the requested state."


class DuplicateDocumentNumber(BillingError):
    code = "duplicate_document_number"
    status_code = status.HTTP_409_CONFLICT
    default_message = "That document number is already in use. Pick a different number."


class CurrencyMismatch(BillingError):
    code = "currency_mismatch"
    default_message = "Amounts in different currencies cannot be combined. Pick one currency."


class LimitExceeded(BillingError):
    code = "limit_exceeded"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You have reached your plan limit. Upgrade your plan to continue."
