"""
pipelines/access_gate.py

Local, time-boxed access control.

An activation code (six digits, format-checked only) grants 30 days of use.
The expiry instant is stored on the device and checked on every launch.
Once it has passed, the expiry, the stored role and the last-active case
pointer are purged together; only a new activation restores access.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Union

from pipelines.config import ACTIVATION_DAYS, CRITICAL_DAYS, WARNING_DAYS
from pipelines.errors import ValidationError
from storage.device_state import DeviceState
from storage.models import UserRole

logger = logging.getLogger(__name__)

_CODE_PATTERN = re.compile(r"[0-9]{6}")
_DAY_SECONDS = 24 * 60 * 60


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass(frozen=True)
class Granted:
    days_remaining: int
    role: UserRole | None

    @property
    def show_warning(self) -> bool:
        return self.days_remaining <= WARNING_DAYS

    @property
    def is_critical(self) -> bool:
        return self.days_remaining <= CRITICAL_DAYS


@dataclass(frozen=True)
class Denied:
    """The grant ran out and has just been purged."""


@dataclass(frozen=True)
class NotActivated:
    """No grant has ever been stored (or it was purged earlier)."""


AccessResult = Union[Granted, Denied, NotActivated]


def _parse_expiry(raw: str) -> datetime | None:
    try:
        expiry = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    return expiry


def days_left(expiry: datetime, now: datetime) -> int:
    """Whole days until *expiry*, rounded up."""
    return math.ceil((expiry - now).total_seconds() / _DAY_SECONDS)


class AccessGate:
    """Checks and grants local access."""

    def __init__(self, device: DeviceState, clock: Callable[[], datetime] = utc_now) -> None:
        self._device = device
        self._clock = clock

    def check_access(self) -> AccessResult:
        raw = self._device.get_expiry_raw()
        if raw is None:
            return NotActivated()

        expiry = _parse_expiry(raw)
        remaining = days_left(expiry, self._clock()) if expiry else 0
        if remaining <= 0:
            if expiry is None:
                logger.warning("Unreadable activation expiry %r; treating as expired", raw)
            logger.info("Access expired; purging local grant")
            self._device.purge()
            return Denied()

        return Granted(days_remaining=remaining, role=self._device.get_role())

    def activate(self, code: str) -> datetime:
        """
        Validate *code* and grant access for ``ACTIVATION_DAYS`` from now.

        Returns the new expiry instant.

        Raises:
            ValidationError: *code* is not exactly six digits.
        """
        if not isinstance(code, str) or not _CODE_PATTERN.fullmatch(code):
            raise ValidationError(
                "Please enter a valid 6-digit activation code.", field="code"
            )
        expiry = self._clock() + timedelta(days=ACTIVATION_DAYS)
        self._device.set_expiry(expiry)
        logger.info("Device activated until %s", expiry.isoformat())
        return expiry

    def select_role(self, role: UserRole) -> None:
        self._device.set_role(role)
        logger.info("Role selected: %s", UserRole(role).value)
