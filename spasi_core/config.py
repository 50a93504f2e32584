# =============================================================================
# spasi_core/config.py
# Runtime Settings for SPASI
# =============================================================================
"""
Settings are read from environment variables first and fall back to the
Streamlit secrets file, so the same core runs inside the Streamlit app and
in scripts/tests.

Expected secrets in .streamlit/secrets.toml:
    [supabase]
    url = "https://your-project.supabase.co"
    key = "your-anon-key"
"""

from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import streamlit as st
from streamlit.errors import StreamlitAPIException

from spasi_core.errors import ConfigurationError
from spasi_core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_DB_PATH = Path("local_data") / "spasi.db"


@dataclass(frozen=True)
class SpasiSettings:
    """Resolved runtime configuration."""
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    cases_table: str = "kasus_mr01"
    local_db_path: Path = DEFAULT_DB_PATH
    remote_timeout: float = 10.0       # Seconds per remote call
    autosave_interval: float = 30.0    # Seconds between autosave ticks
    week_start: int = 0                # 0 = Monday
    outbreak_threshold: int = 20       # Weekly cases above this flag a KLB

    @property
    def remote_configured(self) -> bool:
        """True when a remote case store can be reached in principle."""
        return bool(self.supabase_url and self.supabase_key)


def _read_secrets() -> Dict[str, Any]:
    """Return the [supabase] secrets block, or an empty dict."""
    try:
        if "supabase" in st.secrets:
            return dict(st.secrets["supabase"])
    except (FileNotFoundError, StreamlitAPIException):
        # No secrets.toml - environment-only configuration
        pass
    return {}


def _as_number(name: str, raw: Optional[str], default, cast):
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(
            f"Setting {name} must be a number, got {raw!r}",
            config_key=name,
            expected_type=cast.__name__,
        )


def load_settings(env: Optional[Dict[str, str]] = None) -> SpasiSettings:
    """
    Build settings from the environment and Streamlit secrets.

    Args:
        env: Mapping to read instead of os.environ (used by tests)

    Returns:
        SpasiSettings instance
    """
    env = os.environ if env is None else env

    url = env.get("SUPABASE_URL")
    key = env.get("SUPABASE_KEY")
    if not (url and key):
        secrets = _read_secrets()
        url = url or secrets.get("url")
        key = key or secrets.get("key")

    week_start = _as_number("SPASI_WEEK_START", env.get("SPASI_WEEK_START"), 0, int)
    if not 0 <= week_start <= 6:
        raise ConfigurationError(
            "SPASI_WEEK_START must be between 0 (Monday) and 6 (Sunday)",
            config_key="SPASI_WEEK_START",
        )

    settings = SpasiSettings(
        supabase_url=url or None,
        supabase_key=key or None,
        cases_table=env.get("SPASI_CASES_TABLE", "kasus_mr01"),
        local_db_path=Path(env.get("SPASI_DB_PATH", str(DEFAULT_DB_PATH))),
        remote_timeout=_as_number("SPASI_REMOTE_TIMEOUT", env.get("SPASI_REMOTE_TIMEOUT"), 10.0, float),
        autosave_interval=_as_number("SPASI_AUTOSAVE_INTERVAL", env.get("SPASI_AUTOSAVE_INTERVAL"), 30.0, float),
        week_start=week_start,
        outbreak_threshold=_as_number("SPASI_OUTBREAK_THRESHOLD", env.get("SPASI_OUTBREAK_THRESHOLD"), 20, int),
    )

    logger.debug(
        f"Settings loaded (remote configured: {settings.remote_configured}, "
        f"db: {settings.local_db_path})"
    )
    return settings
