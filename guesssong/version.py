from __future__ import annotations

import json
from pathlib import Path

DEV_VERSION = "0.0.0 dev"


def _version_path() -> Path:
    return Path(__file__).resolve().parent.parent / "version.json"


def get_configured_version() -> str:
    try:
        raw = json.loads(_version_path().read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return DEV_VERSION
    version = str(raw.get("version", "")).strip() if isinstance(raw, dict) else ""
    return version or DEV_VERSION


def get_app_title_base() -> str:
    return f"guesssong {get_configured_version()}"
