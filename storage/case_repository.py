"""
storage/case_repository.py

Case persistence on top of db.py.

Responsibilities
----------------
- Mapping a ``Case`` to its stored row (encrypted record + clear-text
  ``start_time``/``title`` columns) and back.
- Enforcing the identity discipline: ``create`` only for unsaved cases,
  ``update`` only for saved ones.
- Turning every storage-level failure into ``StorageFault`` so the session
  controller handles one error type.

``update`` replaces the whole record.  There is no optimistic concurrency
check; only one session is ever active per device.
"""

from __future__ import annotations

import logging
import sqlite3

from cryptography.fernet import InvalidToken

from pipelines.errors import StorageFault
from storage import db as _db
from storage.crypto import open_record, seal_record
from storage.models import Case

logger = logging.getLogger(__name__)

# JSONDecodeError and pydantic.ValidationError are both ValueErrors
_CORRUPT_ERRORS = (InvalidToken, ValueError)


def _to_blob(case: Case) -> str:
    return seal_record(case.model_dump(mode="json", exclude={"id"}))


def _from_row(row: dict) -> Case:
    record = open_record(row["encrypted_blob"])
    return Case.model_validate({**record, "id": row["id"]})


class CaseRepository:
    """Create, update, fetch and list cases in the local store."""

    def __init__(self) -> None:
        try:
            _db.init_db()
        except sqlite3.Error as exc:
            raise StorageFault(f"Could not open the case store: {exc}", "init") from exc

    def create(self, case: Case) -> int:
        """
        Persist an unsaved case and return its new identity.

        The caller must attach the returned id (``case.with_id``) before any
        further mutation.

        Raises:
            ValueError:   If *case* already has an identity.
            StorageFault: If the write fails.
        """
        if case.id is not None:
            raise ValueError(f"Case {case.id} is already saved; use update().")
        try:
            case_id = _db.insert_case(case.start_time, case.title, _to_blob(case))
        except sqlite3.Error as exc:
            logger.error("Case create failed: %s", exc)
            raise StorageFault(f"Could not save the case: {exc}", "create") from exc
        logger.info("Created case id=%d title=%r", case_id, case.title)
        return case_id

    def update(self, case: Case) -> int:
        """
        Replace the stored record of a saved case.

        Raises:
            ValueError:   If *case* has no identity.
            StorageFault: If the write fails.
        """
        if case.id is None:
            raise ValueError("Case has no identity; use create() first.")
        try:
            _db.put_case(case.id, case.start_time, case.title, _to_blob(case))
        except sqlite3.Error as exc:
            logger.error("Case update failed for id=%d: %s", case.id, exc)
            raise StorageFault(f"Could not update case {case.id}: {exc}", "update") from exc
        logger.debug("Updated case id=%d (%d messages)", case.id, len(case.chat))
        return case.id

    def fetch(self, case_id: int) -> Case | None:
        """Return the case stored under *case_id*, or ``None`` if absent."""
        try:
            row = _db.get_case_row(case_id)
            if row is None:
                logger.warning("fetch: case %d not found", case_id)
                return None
            return _from_row(row)
        except sqlite3.Error as exc:
            raise StorageFault(f"Could not read case {case_id}: {exc}", "fetch") from exc
        except _CORRUPT_ERRORS as exc:
            raise StorageFault(f"Case {case_id} is unreadable: {exc}", "fetch") from exc

    def list_cases(self) -> list[Case]:
        """
        Return every stored case in store order (oldest identity first).

        Presentation code reverses the list to show the most recent first.
        """
        try:
            return [_from_row(r) for r in _db.get_all_case_rows()]
        except sqlite3.Error as exc:
            raise StorageFault(f"Could not list cases: {exc}", "list") from exc
        except _CORRUPT_ERRORS as exc:
            raise StorageFault(f"A stored case is unreadable: {exc}", "list") from exc
