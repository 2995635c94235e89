"""
pipelines/case_session.py

Case Session Controller: the state machine behind the case screen.

States
------
intake                  no active case, intake form visible
awaiting_initial_reply  first recommendation requested (transient)
active                  case has at least one AI message, chat visible
resuming                rebuilding context for a loaded case (transient)

Every transient state has one success edge and one failure edge back to a
stable state.  Collaborator failures are caught here and turned into a
:class:`Notice` for the UI; nothing escapes except programming errors.

Stale replies
-------------
Navigation (new case, opening a case, expiry) bumps ``generation``.  A
request remembers the generation it started in; if the user has moved on by
the time the reply arrives, the reply is dropped and nothing is persisted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Callable, Literal

from pipelines.access_gate import AccessGate, AccessResult, Denied, Granted, NotActivated
from pipelines.conversation import ConversationSessionManager
from pipelines.errors import (
    AssistantUnavailable,
    ExpiredAccess,
    StorageFault,
    ValidationError,
)
from storage.case_repository import CaseRepository
from storage.device_state import DeviceState
from storage.models import Case, Message, PatientData, Sender, UserRole, utc_now_iso

logger = logging.getLogger(__name__)

APOLOGY_TEXT = "Sorry, an error occurred."


class SessionState(str, Enum):
    intake = "intake"
    awaiting_initial_reply = "awaiting_initial_reply"
    active = "active"
    resuming = "resuming"


class LaunchStep(str, Enum):
    """Where the app should go after the launch-time access check."""
    activation = "activation"
    role_selection = "role_selection"
    case = "case"


@dataclass(frozen=True)
class Notice:
    level: Literal["info", "warning", "error"]
    text: str
    retryable: bool = False


@dataclass
class IntakeForm:
    """Intake fields as typed, individually settable values."""
    age: str = ""
    sex: str = ""
    background: str = ""
    medications: str = ""
    symptoms: str = ""

    def set_age(self, value: str) -> None:
        self.age = value

    def set_sex(self, value: str) -> None:
        self.sex = value

    def set_background(self, value: str) -> None:
        self.background = value

    def set_medications(self, value: str) -> None:
        self.medications = value

    def set_symptoms(self, value: str) -> None:
        self.symptoms = value

    def clear(self) -> None:
        for f in fields(self):
            setattr(self, f.name, "")

    def validate(self) -> None:
        """Age and symptoms are required."""
        if not self.age.strip() or not self.symptoms.strip():
            raise ValidationError(
                "Please fill in at least the age and the symptoms.",
                field="symptoms" if self.age.strip() else "age",
            )

    def to_patient_data(self, role: UserRole) -> PatientData:
        return PatientData(
            role=role,
            age=self.age,
            sex=self.sex,
            background=self.background,
            medications=self.medications,
            symptoms=self.symptoms,
        )


@dataclass
class _Ticket:
    generation: int
    case_id: int | None = field(default=None)


class CaseSessionController:
    """Drives intake, chat and resume for the single active case."""

    def __init__(
        self,
        repository: CaseRepository,
        conversation: ConversationSessionManager,
        device: DeviceState,
        gate: AccessGate,
        clock: Callable[[], str] = utc_now_iso,
    ) -> None:
        self._repository = repository
        self._conversation = conversation
        self._device = device
        self._gate = gate
        self._clock = clock

        self.state = SessionState.intake
        self.case: Case | None = None
        self.form = IntakeForm()
        self.role: UserRole | None = None
        self.notice: Notice | None = None
        self.is_loading = False
        self.access_expired = False
        self.generation = 0

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def pop_notice(self) -> Notice | None:
        notice, self.notice = self.notice, None
        return notice

    def _ticket(self) -> _Ticket:
        return _Ticket(self.generation, self.case.id if self.case else None)

    def _is_stale(self, ticket: _Ticket) -> bool:
        current_id = self.case.id if self.case else None
        if ticket.generation != self.generation or ticket.case_id != current_id:
            logger.info(
                "Discarding stale reply (generation %d, case %s)",
                ticket.generation,
                ticket.case_id,
            )
            return True
        return False

    def _navigate(self) -> None:
        self.generation += 1
        self.is_loading = False

    def _timestamp(self, case: Case | None) -> str:
        """Current time, never earlier than the case's last message."""
        now = self._clock()
        if case and case.chat and case.chat[-1].timestamp > now:
            return case.chat[-1].timestamp
        return now

    def _require_access(self) -> None:
        if not isinstance(self._gate.check_access(), Granted):
            raise ExpiredAccess()

    def _access_ok(self) -> bool:
        """Re-check the grant; on failure the session is left stable with a notice."""
        try:
            self._require_access()
        except ExpiredAccess:
            self._expire()
            return False
        except StorageFault as exc:
            logger.error("Access check failed: %s", exc.to_dict())
            self.notice = Notice(
                "error",
                "Your access could not be verified on this device. Please try again.",
                retryable=True,
            )
            return False
        return True

    def _expire(self) -> None:
        logger.warning("Access expired during session; closing case")
        self._navigate()
        self._conversation.reset()
        self.case = None
        self.role = None
        self.form.clear()
        self.state = SessionState.intake
        self.access_expired = True
        self.notice = Notice("error", "Your access has expired. Enter a new activation code.")

    def _remember(self, case_id: int) -> None:
        try:
            self._device.remember_case(case_id)
        except StorageFault as exc:
            logger.warning("Could not remember last active case: %s", exc)

    def _forget(self) -> None:
        try:
            self._device.forget_case()
        except StorageFault as exc:
            logger.warning("Could not clear last active case: %s", exc)

    # ------------------------------------------------------------------
    # Launch and role
    # ------------------------------------------------------------------

    def launch(self, access: AccessResult) -> LaunchStep:
        """Re-enter the session at app start from the access check result."""
        if isinstance(access, (NotActivated, Denied)):
            self.access_expired = isinstance(access, Denied)
            return LaunchStep.activation

        self.access_expired = False
        self.role = access.role
        if self.role is None:
            return LaunchStep.role_selection

        last_id = None
        try:
            last_id = self._device.get_last_case_id()
        except StorageFault as exc:
            logger.warning("Could not read last active case: %s", exc)

        if last_id is not None:
            self.open_case(last_id)
        else:
            self.start_new_case()
        return LaunchStep.case

    def select_role(self, role: UserRole) -> None:
        try:
            self._gate.select_role(role)
        except StorageFault as exc:
            logger.warning("Role not saved on device: %s", exc)
            self.notice = Notice("warning", "Your role could not be saved on this device.")
        self.role = UserRole(role)
        self.start_new_case()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start_new_case(self) -> None:
        """Back to a blank intake form from any state."""
        self._navigate()
        self._forget()
        self._conversation.reset()
        self.case = None
        self.form.clear()
        self.state = SessionState.intake

    def submit_intake(self) -> SessionState:
        """intake -> awaiting_initial_reply -> active | intake."""
        if self.state is not SessionState.intake or self.is_loading:
            return self.state
        if not self._access_ok():
            return self.state
        try:
            self.form.validate()
        except ValidationError as exc:
            self.notice = Notice("warning", exc.message)
            return self.state
        if self.role is None:
            self.notice = Notice("warning", "Select your role before starting a case.")
            return self.state

        patient = self.form.to_patient_data(self.role)
        draft = Case.open(patient, start_time=self._clock())
        ticket = self._ticket()
        self.state = SessionState.awaiting_initial_reply
        self.is_loading = True
        try:
            recommendation = self._conversation.start_new(patient)
            if self._is_stale(ticket):
                return self.state
            case = draft.with_message(
                Message(sender=Sender.ai, text=recommendation, timestamp=self._timestamp(draft))
            )
            case = case.with_id(self._repository.create(case))
        except (AssistantUnavailable, StorageFault) as exc:
            if self._is_stale(ticket):
                return self.state
            logger.error("Starting case failed: %s", exc.to_dict())
            self._conversation.reset()
            self.state = SessionState.intake
            self.notice = Notice(
                "error",
                "There was an error contacting the assistant. Please try again."
                if isinstance(exc, AssistantUnavailable)
                else "The case could not be saved. Please try again.",
                retryable=True,
            )
            return self.state
        finally:
            if ticket.generation == self.generation:
                self.is_loading = False

        self.case = case
        self.state = SessionState.active
        self._remember(case.id)
        logger.info("Case %d started: %r", case.id, case.title)
        return self.state

    def send_message(self, text: str) -> bool:
        """
        Append a user message and ask the assistant for a reply.

        Returns ``False`` without doing anything when the controller is not
        ready for input.
        """
        if self.state is not SessionState.active or self.is_loading or self.case is None:
            return False
        if not text.strip():
            return False
        if not self._access_ok():
            return False

        user_message = Message(sender=Sender.user, text=text, timestamp=self._timestamp(self.case))
        self.case = self.case.with_message(user_message)
        ticket = self._ticket()
        self.is_loading = True
        try:
            reply = self._conversation.continue_conversation(text)
        except AssistantUnavailable as exc:
            if self._is_stale(ticket):
                return False
            logger.error("Follow-up failed for case %s: %s", self.case.id, exc.to_dict())
            # local only; the stored case stays at the last successful turn
            self.case = self.case.with_message(
                Message(sender=Sender.ai, text=APOLOGY_TEXT, timestamp=self._timestamp(self.case))
            )
            return True
        finally:
            if ticket.generation == self.generation:
                self.is_loading = False

        if self._is_stale(ticket):
            return False
        self.case = self.case.with_message(
            Message(sender=Sender.ai, text=reply, timestamp=self._timestamp(self.case))
        )
        try:
            self._repository.update(self.case)
        except StorageFault as exc:
            logger.warning("Case %s not saved after reply: %s", self.case.id, exc)
            self.notice = Notice("warning", "The conversation could not be saved on this device.")
        return True

    def open_case(self, case_id: int) -> SessionState:
        """(load) -> resuming -> active | intake."""
        if not self._access_ok():
            return self.state

        self._navigate()
        self.state = SessionState.resuming
        self.is_loading = True
        try:
            case = self._repository.fetch(case_id)
            if case is None:
                raise StorageFault(f"Case {case_id} was not found.", "fetch")
            self._conversation.resume_from(case)
        except (AssistantUnavailable, StorageFault) as exc:
            logger.error("Could not resume case %d: %s", case_id, exc.to_dict())
            self._forget()
            self._conversation.reset()
            self.case = None
            self.form.clear()
            self.state = SessionState.intake
            self.notice = Notice(
                "error", "The conversation could not be resumed. Please start a new case."
            )
            return self.state
        finally:
            self.is_loading = False

        self.case = case
        self.state = SessionState.active
        self._remember(case.id)
        return self.state
