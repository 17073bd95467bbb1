# Overview: Error taxonomy shared by the sale engine, ledger and reconciler.

from __future__ import annotations


class PosError(Exception):
    """Base class for business errors surfaced to callers."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class ValidationError(PosError):
    """Malformed request: bad item list, non-positive quantity, etc."""
    status_code = 400


class PermissionDenied(PosError):
    status_code = 403


class NotFound(PosError):
    """Store, product or sale does not exist."""
    status_code = 404

    def __init__(self, entity: str, entity_id=None):
        label = entity.capitalize()
        message = f"{label} not found" if entity_id is None else f"{label} not found: {entity_id}"
        super().__init__(message, details={"entity": entity, "id": entity_id})
        self.entity = entity
        self.entity_id = entity_id


class InsufficientStock(PosError):
    """Requested quantity exceeds what the ledger holds for the pair."""
    status_code = 409

    def __init__(self, *, product_id: int, product_name: str, store_id: int, requested: int, available: int):
        super().__init__(
            f"Insufficient inventory for {product_name}: requested {requested}, available {available}",
            details={
                "product_id": product_id,
                "product_name": product_name,
                "store_id": store_id,
                "requested_quantity": requested,
                "available_quantity": available,
            },
        )
        self.product_id = product_id
        self.product_name = product_name
        self.store_id = store_id
        self.requested = requested
        self.available = available


class SyncInProgress(PosError):
    status_code = 409


class ExternalFetchError(PosError):
    """A call to the external commerce platform failed or timed out."""
    status_code = 502


class PersistenceError(PosError):
    """Transaction or commit failure; fatal to the current operation only."""
    status_code = 500
