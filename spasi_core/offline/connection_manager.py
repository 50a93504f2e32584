# =============================================================================
# spasi_core/offline/connection_manager.py
# Connection Status Detection and Management
# =============================================================================
"""
ConnectionManager - Detects and monitors connectivity to the remote case store.

Features:
- Bounded socket probes (internet, then the Supabase host)
- Optional background monitoring thread
- Callbacks on status change (reconnect triggers pending-case retry)
- Manual offline mode that survives periodic checks
"""

from __future__ import annotations
import socket
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional
from urllib.parse import urlparse

from spasi_core.config import SpasiSettings
from spasi_core.logging import get_logger

logger = get_logger(__name__)


class ConnectionStatus(Enum):
    """Connection status states."""
    ONLINE = "online"           # Internet + Supabase reachable
    OFFLINE = "offline"         # No connectivity (or forced offline)
    DEGRADED = "degraded"       # Internet OK but Supabase unavailable
    UNKNOWN = "unknown"         # Not checked yet


@dataclass
class ConnectionState:
    """Current connection state with metadata."""
    status: ConnectionStatus = ConnectionStatus.UNKNOWN
    internet_available: bool = False
    supabase_available: bool = False
    last_check: Optional[datetime] = None
    last_online: Optional[datetime] = None
    consecutive_failures: int = 0
    error_message: Optional[str] = None


class ConnectionManager:
    """
    Connectivity monitor for one remote endpoint.

    Usage:
        manager = ConnectionManager.from_settings(settings)
        manager.register_callback(on_change)
        manager.initialize()
        if manager.is_online:
            ...
    """

    CHECK_INTERVAL_ONLINE = 30      # Seconds between checks when online
    CHECK_INTERVAL_OFFLINE = 10     # Seconds between checks when offline
    CONNECTION_TIMEOUT = 5          # Seconds per socket probe

    INTERNET_PROBES = (
        ("8.8.8.8", 53),            # Google DNS
        ("1.1.1.1", 53),            # Cloudflare DNS
    )

    def __init__(self, supabase_url: Optional[str] = None, timeout: Optional[float] = None):
        self.supabase_url = supabase_url
        self.timeout = timeout or self.CONNECTION_TIMEOUT
        self._state = ConnectionState()
        self._callbacks: List[Callable[[ConnectionState], None]] = []
        self._monitor_thread: Optional[threading.Thread] = None
        self._stop_monitoring = threading.Event()
        self._forced_offline = False
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: SpasiSettings) -> ConnectionManager:
        return cls(settings.supabase_url, min(settings.remote_timeout, cls.CONNECTION_TIMEOUT))

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def status(self) -> ConnectionStatus:
        return self._state.status

    @property
    def is_online(self) -> bool:
        """Check if the remote store is reachable."""
        return self._state.status == ConnectionStatus.ONLINE

    @property
    def is_offline(self) -> bool:
        return self._state.status == ConnectionStatus.OFFLINE

    def initialize(self, start_monitoring: bool = False) -> None:
        """Run the first check and optionally start background monitoring."""
        self.check_connection()
        if start_monitoring:
            self.start_monitoring()
        logger.info(f"ConnectionManager initialized. Status: {self._state.status.value}")

    def check_connection(self) -> ConnectionState:
        """
        Probe connectivity and update state.

        Returns:
            Updated ConnectionState
        """
        with self._lock:
            old_status = self._state.status
            self._state.last_check = datetime.now()

            if self._forced_offline:
                new_status = ConnectionStatus.OFFLINE
                internet_ok = supabase_ok = False
            else:
                internet_ok = self._check_internet()
                supabase_ok = internet_ok and self._check_supabase()
                if internet_ok and supabase_ok:
                    new_status = ConnectionStatus.ONLINE
                elif internet_ok:
                    new_status = ConnectionStatus.DEGRADED
                else:
                    new_status = ConnectionStatus.OFFLINE

            self._state.internet_available = internet_ok
            self._state.supabase_available = supabase_ok
            self._state.status = new_status

            if new_status == ConnectionStatus.ONLINE:
                self._state.last_online = datetime.now()
                self._state.consecutive_failures = 0
                self._state.error_message = None
            else:
                self._state.consecutive_failures += 1

        if old_status != new_status:
            logger.info(f"Connection status changed: {old_status.value} -> {new_status.value}")
            self._notify_callbacks()

        return self._state

    def _probe(self, host: str, port: int) -> bool:
        try:
            with socket.create_connection((host, port), timeout=self.timeout):
                return True
        except OSError as e:
            logger.debug(f"Probe {host}:{port} failed: {e}")
            return False

    def _check_internet(self) -> bool:
        return any(self._probe(host, port) for host, port in self.INTERNET_PROBES)

    def _check_supabase(self) -> bool:
        """Open a socket to the Supabase host; no URL means nothing to reach."""
        if not self.supabase_url:
            self._state.error_message = "Supabase is not configured"
            return False

        parsed = urlparse(self.supabase_url)
        if not parsed.hostname:
            self._state.error_message = f"Invalid Supabase URL: {self.supabase_url}"
            return False

        port = parsed.port or (443 if parsed.scheme == "https" else 80)
        reachable = self._probe(parsed.hostname, port)
        if not reachable:
            self._state.error_message = f"Cannot reach {parsed.hostname}:{port}"
        return reachable

    # =========================================================================
    # MONITORING
    # =========================================================================

    def start_monitoring(self) -> None:
        """Start background connection monitoring."""
        if self._monitor_thread is not None and self._monitor_thread.is_alive():
            return

        self._stop_monitoring.clear()
        self._monitor_thread = threading.Thread(
            target=self._monitoring_loop,
            daemon=True,
            name="ConnectionMonitor",
        )
        self._monitor_thread.start()
        logger.debug("Connection monitoring started")

    def stop_monitoring(self) -> None:
        """Stop background connection monitoring."""
        self._stop_monitoring.set()
        if self._monitor_thread:
            self._monitor_thread.join(timeout=5)
        logger.debug("Connection monitoring stopped")

    def _monitoring_loop(self) -> None:
        while not self._stop_monitoring.is_set():
            interval = self.CHECK_INTERVAL_ONLINE if self.is_online else self.CHECK_INTERVAL_OFFLINE
            if self._stop_monitoring.wait(timeout=interval):
                break
            try:
                self.check_connection()
            except Exception as e:
                logger.error(f"Error in connection check: {e}")

    # =========================================================================
    # CALLBACKS
    # =========================================================================

    def register_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        """Register a callback for connection status changes."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self) -> None:
        for callback in list(self._callbacks):
            try:
                callback(self._state)
            except Exception as e:
                # A failing listener must not stop the others
                logger.error(f"Error in connection callback: {e}")

    # =========================================================================
    # MANUAL CONTROL
    # =========================================================================

    def _set_status(self, status: ConnectionStatus) -> None:
        old_status = self._state.status
        self._state.status = status
        available = status == ConnectionStatus.ONLINE
        self._state.internet_available = available
        self._state.supabase_available = available
        if available:
            self._state.last_online = datetime.now()
            self._state.consecutive_failures = 0
        if old_status != status:
            self._notify_callbacks()

    def force_offline(self) -> None:
        """Work offline until ``force_online`` (user preference or tests)."""
        self._forced_offline = True
        self._set_status(ConnectionStatus.OFFLINE)
        logger.info("Forced offline mode")

    def force_online(self) -> None:
        """Leave manual offline mode and mark the remote store reachable."""
        self._forced_offline = False
        self._set_status(ConnectionStatus.ONLINE)
        logger.info("Forced online mode")

    def get_status_display(self) -> dict:
        """Status information for the connection indicator."""
        return {
            "status": self._state.status.value,
            "is_online": self.is_online,
            "internet": self._state.internet_available,
            "supabase": self._state.supabase_available,
            "last_check": self._state.last_check.isoformat() if self._state.last_check else None,
            "last_online": self._state.last_online.isoformat() if self._state.last_online else None,
            "failures": self._state.consecutive_failures,
            "error": self._state.error_message,
            "forced_offline": self._forced_offline,
        }
