# Overview: Domain error taxonomy shared by services and routes.

"""
Every error raised on purpose by the service layer derives from ShipdeskError.
Routes translate them to HTTP responses:

- NotFoundError      -> 404  {"error": "<Entity> not found"}
- InvalidStateError  -> 400  {"error", "details"}
- StockCheckError    -> 400  {"error", "details"}  (one entry per offending line)
- ValidationError    -> 400  {"error", "details"}  (see validation.py)

Anything else is a bug and surfaces as a 500 with a generic message.
"""

from __future__ import annotations


class ShipdeskError(Exception):
    """Base class for expected, client-visible failures."""

    status_code = 400

    def __init__(self, message: str, details: list[str] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or []

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(ShipdeskError):
    """Referenced entity (order, variant, delivery, ...) does not exist."""

    status_code = 404

    def __init__(self, entity: str, details: list[str] | None = None):
        super().__init__(f"{entity} not found", details)
        self.entity = entity


class InvalidStateError(ShipdeskError):
    """Operation is not allowed for the entity's current status."""


class StockCheckError(ShipdeskError):
    """
    Stock validation failed for one or more order lines.

    missing_skus and insufficient hold the structured data behind details so
    callers do not have to parse the messages.
    """

    def __init__(
        self,
        message: str,
        *,
        missing_skus: list[str] | None = None,
        insufficient: list[dict] | None = None,
    ):
        self.missing_skus = missing_skus or []
        self.insufficient = insufficient or []
        details = [f"Product variant not found for SKU {sku}" for sku in self.missing_skus]
        details.extend(
            f"Insufficient stock for SKU {line['sku']}: "
            f"requested {line['requested']}, available {line['available']}"
            for line in self.insufficient
        )
        super().__init__(message, details)
