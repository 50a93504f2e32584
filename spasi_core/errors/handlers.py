# =============================================================================
# spasi_core/errors/handlers.py
# Error Handling Utilities for SPASI
# =============================================================================

from __future__ import annotations
import traceback
from typing import Optional, Callable, TypeVar
import streamlit as st

from spasi_core.logging import get_logger
from .exceptions import SpasiError

logger = get_logger(__name__)

T = TypeVar("T")


def handle_error(
    error: Exception,
    show_user_message: bool = True,
    log_error: bool = True,
    user_message: Optional[str] = None,
) -> None:
    """
    Centralized error handling function.

    Args:
        error: The exception to handle
        show_user_message: Whether to display error to user via st.error
        log_error: Whether to log the error
        user_message: Custom message to show user (uses error message if None)
    """
    if isinstance(error, SpasiError):
        message = user_message or error.message
        code = error.code
        details = error.details
        recoverable = error.recoverable
    else:
        message = user_message or str(error)
        code = "UNKNOWN"
        details = {"traceback": traceback.format_exc()}
        recoverable = True

    if log_error:
        logger.error(
            f"[{code}] {message}",
            extra={"details": details},
            exc_info=True,
        )

    if show_user_message:
        if recoverable:
            st.error(f"Error: {message}")
        else:
            st.error(f"Critical Error: {message}. Please contact support.")

        if details and st.session_state.get("debug_mode", False):
            with st.expander("Error Details", expanded=False):
                st.json(details)


def notify_sync_result(result) -> None:
    """
    Surface the outcome of a save/submit to the user.

    Sync failures are shown as a warning only: the record is already safe
    on this device and will be sent on the next save or reconnect.
    """
    outcome = result.outcome.value

    if outcome == "synced":
        st.success(result.message or "Case saved and synchronized.")
    elif outcome == "local_only":
        st.info(result.message or "Case saved on this device (offline).")
    elif outcome == "sync_failed":
        logger.warning(f"Sync failed for case {result.case_id}: {result.message}")
        st.warning(
            result.message
            or "Case saved on this device; it will be sent when the connection returns."
        )
    elif outcome == "validation_failed":
        titles = ", ".join(result.failing_titles) or "the form"
        st.error(f"Please complete the required fields in: {titles}")


def safe_execute(
    func: Callable[..., T],
    *args,
    default: Optional[T] = None,
    error_message: Optional[str] = None,
    reraise: bool = False,
    **kwargs,
) -> Optional[T]:
    """
    Execute a function with automatic error handling.

    Usage:
        cases = safe_execute(
            repository.list_cases,
            case_filter,
            default=[],
            error_message="Could not load cases"
        )
    """
    try:
        return func(*args, **kwargs)
    except Exception as e:
        handle_error(e, user_message=error_message)
        if reraise:
            raise
        return default


class ErrorContext:
    """
    Context manager for error handling with automatic logging and user feedback.

    Usage:
        with ErrorContext("Deleting case", recoverable=True):
            repository.delete_case(case_id)
    """

    def __init__(
        self,
        operation: str,
        recoverable: bool = True,
        show_success: bool = False,
        success_message: Optional[str] = None,
    ):
        self.operation = operation
        self.recoverable = recoverable
        self.show_success = show_success
        self.success_message = success_message

    def __enter__(self) -> ErrorContext:
        logger.info(f"Starting: {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None:
            if isinstance(exc_val, SpasiError):
                handle_error(exc_val)
                # Storage and schema failures must reach the caller
                return self.recoverable and exc_val.recoverable
            handle_error(
                exc_val,
                user_message=f"Error during: {self.operation}",
            )
            return self.recoverable

        logger.info(f"Completed: {self.operation}")
        if self.show_success:
            st.success(self.success_message or f"{self.operation} completed")

        return False
