"""
storage/device_state.py

Typed access to the three locally persisted device keys:

    activation-expiry    ISO-8601 instant at which the access grant ends
    user-role            selected UserRole value
    last-active-case-id  identity of the case to reopen on launch

Values live in the ``settings`` table of storage.db.  Any sqlite failure is
raised as :class:`~pipelines.errors.StorageFault`.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime

from pipelines.errors import StorageFault
from storage import db as _db
from storage.models import UserRole

logger = logging.getLogger(__name__)

EXPIRY_KEY = "activation-expiry"
ROLE_KEY = "user-role"
LAST_CASE_KEY = "last-active-case-id"


class DeviceState:
    """Read/write wrapper around the device key/value settings."""

    def __init__(self) -> None:
        try:
            _db.init_db()
        except sqlite3.Error as exc:
            raise StorageFault(f"Could not open local storage: {exc}", "init") from exc

    # -- raw helpers -------------------------------------------------------

    def _get(self, key: str) -> str | None:
        try:
            return _db.get_setting(key)
        except sqlite3.Error as exc:
            raise StorageFault(f"Could not read '{key}': {exc}", "read") from exc

    def _set(self, key: str, value: str) -> None:
        try:
            _db.set_setting(key, value)
        except sqlite3.Error as exc:
            raise StorageFault(f"Could not write '{key}': {exc}", "write") from exc

    def _clear(self, *keys: str) -> None:
        try:
            _db.delete_settings(*keys)
        except sqlite3.Error as exc:
            raise StorageFault(f"Could not clear {keys}: {exc}", "delete") from exc

    # -- activation expiry -------------------------------------------------

    def get_expiry_raw(self) -> str | None:
        return self._get(EXPIRY_KEY)

    def set_expiry(self, expiry: datetime) -> None:
        self._set(EXPIRY_KEY, expiry.isoformat())

    # -- role --------------------------------------------------------------

    def get_role(self) -> UserRole | None:
        raw = self._get(ROLE_KEY)
        if raw is None:
            return None
        try:
            return UserRole(raw)
        except ValueError:
            logger.warning("Ignoring unknown stored role %r", raw)
            return None

    def set_role(self, role: UserRole) -> None:
        self._set(ROLE_KEY, UserRole(role).value)

    # -- last active case --------------------------------------------------

    def get_last_case_id(self) -> int | None:
        raw = self._get(LAST_CASE_KEY)
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            logger.warning("Ignoring malformed last-active case id %r", raw)
            return None

    def remember_case(self, case_id: int) -> None:
        self._set(LAST_CASE_KEY, str(case_id))

    def forget_case(self) -> None:
        self._clear(LAST_CASE_KEY)

    # -- expiry purge ------------------------------------------------------

    def purge(self) -> None:
        """Drop the expiry, the role and the last-active pointer together."""
        self._clear(EXPIRY_KEY, ROLE_KEY, LAST_CASE_KEY)
        logger.info("Access grant purged from device")
