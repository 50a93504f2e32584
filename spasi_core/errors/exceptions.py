# =============================================================================
# spasi_core/errors/exceptions.py
# Custom Exception Hierarchy for SPASI
# =============================================================================

from typing import Optional, Dict, Any


class SpasiError(Exception):
    """
    Base exception for all SPASI errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "STORE_001")
        details: Additional context as a dictionary
        recoverable: Whether the error can be recovered from
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "SPASI_000"
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.details:
            base += f" | Details: {self.details}"
        return base

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# FORM SCHEMA EXCEPTIONS
# =============================================================================

class SchemaContractError(SpasiError):
    """Raised when a form schema is malformed or referenced incorrectly"""

    def __init__(
        self,
        message: str,
        field_id: Optional[str] = None,
        disease: Optional[str] = None,
        form: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if field_id:
            details["field_id"] = field_id
        if disease:
            details["disease"] = disease
        if form:
            details["form"] = form

        super().__init__(
            message=message,
            code="SCHEMA_001",
            details=details,
            recoverable=False,
            **kwargs,
        )


# =============================================================================
# PERSISTENCE EXCEPTIONS
# =============================================================================

class LocalStorageError(SpasiError):
    """Raised when the on-device store cannot read or write a case"""

    def __init__(
        self,
        message: str,
        case_id: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if case_id:
            details["case_id"] = case_id
        if operation:
            details["operation"] = operation

        super().__init__(
            message=message,
            code="STORE_001",
            details=details,
            recoverable=False,
            **kwargs,
        )


class RemoteSyncError(SpasiError):
    """Raised when the remote case store rejects or fails an operation"""

    def __init__(
        self,
        message: str,
        case_id: Optional[str] = None,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if case_id:
            details["case_id"] = case_id
        if operation:
            details["operation"] = operation
        if table:
            details["table"] = table

        super().__init__(
            message=message,
            code="SYNC_001",
            details=details,
            **kwargs,
        )


# =============================================================================
# CONFIGURATION EXCEPTIONS
# =============================================================================

class ConfigurationError(SpasiError):
    """Raised when configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected_type:
            details["expected_type"] = expected_type

        super().__init__(
            message=message,
            code="CONFIG_001",
            details=details,
            recoverable=False,
            **kwargs,
        )
