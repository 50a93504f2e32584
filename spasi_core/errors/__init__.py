# =============================================================================
# spasi_core/errors/__init__.py
# Centralized Error Handling for SPASI
# =============================================================================

from .exceptions import (
    SpasiError,
    SchemaContractError,
    LocalStorageError,
    RemoteSyncError,
    ConfigurationError,
)

from .handlers import (
    handle_error,
    notify_sync_result,
    safe_execute,
    ErrorContext,
)

__all__ = [
    # Exceptions
    "SpasiError",
    "SchemaContractError",
    "LocalStorageError",
    "RemoteSyncError",
    "ConfigurationError",
    # Handlers
    "handle_error",
    "notify_sync_result",
    "safe_execute",
    "ErrorContext",
]
