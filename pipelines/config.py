"""
pipelines/config.py

Runtime configuration read from environment variables.

A ``.env`` file in the working directory is loaded once on import, so local
installs can keep their settings next to the app.  Values are re-read on
every :func:`load_settings` call; tests change them with
``monkeypatch.setenv``.

Variables
---------
SUMA_DB_PATH      SQLite file (default ``data/suma.db`` under the project root)
SUMA_ASSISTANT    ``demo`` | ``gemini`` | ``medgemma``  (default ``demo``)
SUMA_MODEL        model identifier passed to the gateway
GEMINI_API_KEY    API key for the ``gemini`` backend (``GOOGLE_API_KEY`` also accepted)
SUMA_RENEWAL_URL  link shown on the expired-licence screen
SUMA_LOG_LEVEL    root log level (default ``INFO``)
APP_DATA_KEY      Fernet key, read by storage/crypto.py
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

_PROJECT_ROOT = Path(__file__).resolve().parents[1]

ASSISTANT_BACKENDS = ("demo", "gemini", "medgemma")

DEFAULT_MODELS = {
    "demo": "demo",
    "gemini": "gemini-2.5-flash",
    "medgemma": "google/medgemma-1.5-4b-it",
}

ACTIVATION_DAYS = 30
WARNING_DAYS = 7
CRITICAL_DAYS = 3


@dataclass(frozen=True)
class Settings:
    db_path: Path
    assistant: str = "demo"
    model: str = DEFAULT_MODELS["demo"]
    api_key: str | None = None
    renewal_url: str = "https://wa.me/51999999999?text=Hello,%20I%20would%20like%20to%20renew%20my%20Suma%20licence."
    log_level: str = "INFO"


def load_settings() -> Settings:
    """Build :class:`Settings` from the current environment."""
    assistant = os.environ.get("SUMA_ASSISTANT", "demo").strip().lower()
    if assistant not in ASSISTANT_BACKENDS:
        raise ValueError(
            f"SUMA_ASSISTANT must be one of {ASSISTANT_BACKENDS}, got '{assistant}'."
        )

    raw_path = os.environ.get("SUMA_DB_PATH")
    db_path = Path(raw_path) if raw_path else _PROJECT_ROOT / "data" / "suma.db"

    kwargs = {}
    if os.environ.get("SUMA_RENEWAL_URL"):
        kwargs["renewal_url"] = os.environ["SUMA_RENEWAL_URL"]

    return Settings(
        db_path=db_path,
        assistant=assistant,
        model=os.environ.get("SUMA_MODEL") or DEFAULT_MODELS[assistant],
        api_key=os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY"),
        log_level=os.environ.get("SUMA_LOG_LEVEL", "INFO").upper(),
        **kwargs,
    )
