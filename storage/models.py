"""
storage/models.py

Pydantic v2 data models for the Suma case session layer.

These models describe the shape of data flowing between the session
controller (pipelines/case_session.py), the case repository and the
Streamlit UI.  They are NOT ORM models; persistence is handled entirely by
db.py.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class UserRole(str, Enum):
    """Professional role of the person operating the device."""
    physician = "Physician"
    paramedic = "Paramedic"
    nurse = "Nurse"
    first_responder = "First Responder"


class Sender(str, Enum):
    """Author of a chat message."""
    user = "user"
    ai = "ai"


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(tz=timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Domain models
# ---------------------------------------------------------------------------


class Message(BaseModel):
    """One chat turn.  Immutable once created."""
    model_config = ConfigDict(frozen=True)

    sender: Sender
    text: str
    timestamp: str = Field(
        default_factory=utc_now_iso, description="ISO-8601 UTC timestamp."
    )


class PatientData(BaseModel):
    """Intake data entered by the professional before the first recommendation."""
    role: UserRole
    age: str = ""
    sex: str = ""
    background: str = ""
    medications: str = ""
    symptoms: str = ""


def derive_title(symptoms: str) -> str:
    """First comma-delimited token of *symptoms*, trimmed."""
    return symptoms.split(",")[0].strip()


class Case(PatientData):
    """
    One clinical consultation: patient data, title, start time and the full
    message transcript.

    ``id`` is ``None`` until the repository persists the case for the first
    time.  ``title`` and ``start_time`` are frozen; the transcript only grows
    through :meth:`with_message`, which returns a new ``Case`` so callers can
    keep the previous value untouched when an operation fails.
    """
    id: int | None = None
    title: str = Field(frozen=True)
    start_time: str = Field(frozen=True, description="ISO-8601 UTC timestamp.")
    chat: list[Message] = Field(default_factory=list)

    @classmethod
    def open(cls, patient: PatientData, start_time: str | None = None) -> "Case":
        """Build a transient (unsaved) case from intake data."""
        return cls(
            **patient.model_dump(),
            title=derive_title(patient.symptoms),
            start_time=start_time or utc_now_iso(),
        )

    @property
    def is_saved(self) -> bool:
        return self.id is not None

    @property
    def patient(self) -> PatientData:
        return PatientData(
            role=self.role,
            age=self.age,
            sex=self.sex,
            background=self.background,
            medications=self.medications,
            symptoms=self.symptoms,
        )

    def with_id(self, case_id: int) -> "Case":
        return self.model_copy(update={"id": case_id})

    def with_message(self, message: Message) -> "Case":
        """Return a copy of this case with *message* appended to the chat."""
        return self.model_copy(update={"chat": [*self.chat, message]})

    def summary_line(self) -> str:
        """Compact one-line header used by the case page and the PDF report."""
        return (
            f"{self.role.value} | {self.sex} {self.age} | {self.background} | "
            f"{self.medications} | {self.symptoms}"
        )
