from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable

from storage.models import Case, Message, PatientData, Sender, UserRole


class FakeClock:
    """Settable UTC clock for the access gate."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class ScriptedConversation:
    def __init__(self, gateway: "ScriptedGateway") -> None:
        self._gateway = gateway

    def send(self, text: str) -> str:
        return self._gateway.next_reply(text)


class ScriptedGateway:
    """
    Test gateway.

    ``replies`` are consumed in order (an Exception instance is raised
    instead of returned); once exhausted every send echoes the text.
    ``on_send`` runs once, before the next reply is produced.
    """

    model = "scripted"

    def __init__(self, replies: list | None = None, fail_start: bool = False) -> None:
        self.replies = list(replies or [])
        self.fail_start = fail_start
        self.started: list[tuple[str, list]] = []
        self.conversations: list[ScriptedConversation] = []
        self.sent: list[str] = []
        self.on_send: Callable[[str], None] | None = None

    def start_conversation(self, system_instruction, history=None):
        if self.fail_start:
            raise RuntimeError("gateway down")
        self.started.append((system_instruction, list(history or [])))
        conversation = ScriptedConversation(self)
        self.conversations.append(conversation)
        return conversation

    def next_reply(self, text: str) -> str:
        self.sent.append(text)
        hook, self.on_send = self.on_send, None
        if hook is not None:
            hook(text)
        if self.replies:
            reply = self.replies.pop(0)
            if isinstance(reply, Exception):
                raise reply
            return reply
        return f"reply to: {text}"


def fill_intake(ctrl, symptoms: str = "chest pain, dyspnea", age: str = "54") -> None:
    ctrl.form.set_age(age)
    ctrl.form.set_sex("male")
    ctrl.form.set_background("hypertension")
    ctrl.form.set_medications("enalapril")
    ctrl.form.set_symptoms(symptoms)


def make_patient(symptoms: str = "chest pain, dyspnea") -> PatientData:
    return PatientData(
        role=UserRole.paramedic,
        age="54",
        sex="male",
        background="hypertension",
        medications="enalapril",
        symptoms=symptoms,
    )


def make_case(symptoms: str = "chest pain, dyspnea", replies: int = 1) -> Case:
    """Unsaved case with one AI recommendation and *replies - 1* follow-up pairs."""
    case = Case.open(make_patient(symptoms), start_time="2026-01-01T09:00:00+00:00")
    case = case.with_message(Message(sender=Sender.ai, text="1. Check ABC."))
    for i in range(1, replies):
        case = case.with_message(Message(sender=Sender.user, text=f"question {i}"))
        case = case.with_message(Message(sender=Sender.ai, text=f"answer {i}"))
    return case
