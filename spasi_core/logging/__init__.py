# =============================================================================
# spasi_core/logging/__init__.py
# Centralized Logging Configuration
# =============================================================================

from .config import setup_logging, get_logger, case_logger, CaseLogger, LogContext

__all__ = ["setup_logging", "get_logger", "case_logger", "CaseLogger", "LogContext"]
