"""Shared access to ``settings.json``."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict


def read_settings(settings_path: Path) -> Dict[str, Any]:
    """Return the settings object, or an empty dict if it is missing or unreadable."""

    if not settings_path.exists():
        return {}
    try:
        data = json.loads(settings_path.read_text())
    except (OSError, json.JSONDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


__all__ = ["read_settings"]
