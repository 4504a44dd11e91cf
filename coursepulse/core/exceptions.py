"""
Custom exceptions for the CoursePulse platform.
"""

from typing import Optional, Any, Dict


class CoursePulseException(Exception):
    """Base exception for all CoursePulse-related errors."""

    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class ValidationError(CoursePulseException):
    """Raised when mutation input is malformed."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="ValidationError", details=details)


class ResourceNotFoundError(CoursePulseException):
    """Raised when a requested record does not exist."""

    def __init__(self, entity_type: str, entity_id: str):
        super().__init__(
            f"{entity_type} not found: {entity_id}",
            error_code="NotFound",
            details={"entity_type": entity_type, "entity_id": entity_id},
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class DuplicateEntityError(CoursePulseException):
    """Raised when a create would break a uniqueness invariant."""

    def __init__(self, entity_type: str, key: Dict[str, Any]):
        rendered = ", ".join(f"{k}={v}" for k, v in key.items())
        super().__init__(
            f"Duplicate {entity_type} for ({rendered})",
            error_code="DuplicateKey",
            details={"entity_type": entity_type, "key": dict(key)},
        )
        self.entity_type = entity_type
        self.key = dict(key)


class InvalidReferenceError(CoursePulseException):
    """Raised when a record points at an entity that does not resolve."""

    def __init__(self, entity_type: str, field_name: str, referenced_id: str):
        super().__init__(
            f"{entity_type}.{field_name} references missing record {referenced_id}",
            error_code="InvalidReference",
            details={"entity_type": entity_type, "field": field_name, "referenced_id": referenced_id},
        )
        self.entity_type = entity_type
        self.field_name = field_name
        self.referenced_id = referenced_id


class RemoteSyncError(CoursePulseException):
    """Raised when the remote mirror cannot be reached or answers badly."""
    pass


class ConfigurationError(CoursePulseException):
    """Raised when configuration is invalid."""
    pass
