"""
Twin Server exceptions.

Error taxonomy shared by the codec engine, the twin reconciler
and the object sync subsystem.
"""
from typing import Any, Dict, List, Optional


class TwinError(Exception):
    """
    Base exception for all twin server errors.

    Carries a machine readable code and optional details so the
    API layer can render it without knowing the concrete type.
    """

    retryable: bool = False

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigError(TwinError):
    """Malformed model, device or visitor configuration. Never retried."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, code="CONFIG_ERROR", details=details)


class ValidationError(ConfigError):
    """
    Raised when admission validation fails.

    Collects every problem found so a single rejection explains
    all of them.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        errors: Optional[Dict[str, List[str]]] = None,
    ):
        self.errors = errors or {}
        super().__init__(message, details={"validation_errors": self.errors})

    def add_error(self, field: str, error: str) -> None:
        """Add a validation error for a specific field."""
        self.errors.setdefault(field, []).append(error)

    def has_errors(self) -> bool:
        return bool(self.errors)

    def __str__(self) -> str:
        if not self.errors:
            return self.message
        parts = [
            f"{field}: {', '.join(messages)}"
            for field, messages in self.errors.items()
        ]
        return f"{self.message} ({'; '.join(parts)})"


class DecodeError(TwinError):
    """Raw bytes could not be turned into a property value."""

    retryable = True

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="DECODE_ERROR", details=details)


class CollectTimeoutError(DecodeError):
    """Device did not answer a collection request in time."""

    def __init__(self, target_id: str, property_name: str, timeout: float):
        self.target_id = target_id
        self.property_name = property_name
        self.timeout = timeout
        super().__init__(
            f"No data for '{property_name}' from {target_id} within {timeout}s",
            details={"target_id": target_id, "property": property_name},
        )


class EncodeError(TwinError):
    """A property value could not be turned into raw bytes."""

    retryable = True

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="ENCODE_ERROR", details=details)


class WriteRejectedError(EncodeError):
    """The device refused a write."""

    def __init__(self, target_id: str, property_name: str, reason: str):
        self.target_id = target_id
        self.property_name = property_name
        super().__init__(
            f"Write of '{property_name}' rejected by {target_id}: {reason}",
            details={"target_id": target_id, "property": property_name},
        )


class TransportError(TwinError):
    """Delivery or reception failure reported by the transport."""

    def __init__(self, message: str, target_id: Optional[str] = None):
        self.target_id = target_id
        super().__init__(
            message,
            code="TRANSPORT_ERROR",
            details={"target_id": target_id},
        )


class SyncConflict(TwinError):
    """Stale or duplicate resource version. Logged and dropped."""

    def __init__(self, key: Any, stored_version: int, incoming_version: int):
        self.key = key
        self.stored_version = stored_version
        self.incoming_version = incoming_version
        super().__init__(
            f"Stale resource version {incoming_version} for {key} "
            f"(stored {stored_version})",
            code="SYNC_CONFLICT",
            details={
                "stored_version": stored_version,
                "incoming_version": incoming_version,
            },
        )


class NotFoundError(TwinError):
    """Raised when a device, model or property cannot be found."""

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"{entity_type} '{entity_id}' not found",
            code="NOT_FOUND",
            details={"entity_type": entity_type, "entity_id": entity_id},
        )
