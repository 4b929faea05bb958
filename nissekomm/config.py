"""Runtime configuration for NisseKomm.

Settings are read from a flat mapping: Streamlit's ``st.secrets`` when
running under app.py, ``os.environ`` otherwise.
"""

import os
from dataclasses import dataclass
from typing import Mapping

STORAGE_BACKENDS = ("local", "sheets")


class ConfigurationError(Exception):
    """Raised when a configuration value cannot be parsed."""
    pass


@dataclass(frozen=True)
class Settings:
    storage_backend: str = "local"
    local_path: str | None = None
    test_mode: bool = False
    mock_day: int | None = None
    mock_month: int | None = None
    datadog_api_key: str | None = None
    google_sheets_id: str | None = None


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _parse_int(name: str, value, low: int, high: int) -> int | None:
    if value is None or value == "":
        return None
    try:
        number = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from e
    if not low <= number <= high:
        raise ConfigurationError(f"{name} must be between {low} and {high}, got {number}")
    return number


def load_settings(source: Mapping | None = None) -> Settings:
    """Build Settings from a mapping of configuration keys.

    Args:
        source: Mapping to read from (defaults to os.environ)

    Returns:
        Parsed Settings

    Raises:
        ConfigurationError: If the backend name or a mock date is invalid
    """
    if source is None:
        source = os.environ

    backend = str(source.get("NISSEKOMM_STORAGE_BACKEND", "local")).strip().lower()
    if backend not in STORAGE_BACKENDS:
        raise ConfigurationError(
            f"NISSEKOMM_STORAGE_BACKEND must be one of: {', '.join(STORAGE_BACKENDS)}"
        )

    sheets_id = source.get("GOOGLE_SHEETS_ID") or None
    if backend == "sheets" and not sheets_id:
        raise ConfigurationError("GOOGLE_SHEETS_ID is required for the sheets storage backend")

    return Settings(
        storage_backend=backend,
        local_path=source.get("NISSEKOMM_LOCAL_PATH") or None,
        test_mode=_parse_bool(source.get("NISSEKOMM_TEST_MODE", False)),
        mock_day=_parse_int("NISSEKOMM_MOCK_DAY", source.get("NISSEKOMM_MOCK_DAY"), 1, 31),
        mock_month=_parse_int("NISSEKOMM_MOCK_MONTH", source.get("NISSEKOMM_MOCK_MONTH"), 1, 12),
        datadog_api_key=source.get("DATADOG_API_KEY") or None,
        google_sheets_id=sheets_id,
    )
