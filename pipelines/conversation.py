"""
pipelines/conversation.py

Conversation Session Manager: owns the one live AI conversation.

Handle lifecycle
----------------
``None`` until :meth:`start_new` or :meth:`resume_from` succeeds; each of
those replaces the previous handle, so only the most recent case is
addressable by :meth:`continue_conversation`.  A failed start or resume
leaves no handle.

Resuming a saved case
---------------------
A stored transcript begins with the AI's reply to the intake prompt; the
prompt itself is never stored.  :meth:`resume_from` therefore rebuilds the
history as

    [user: intake prompt] + [user/model turns mapped from the stored chat]

so the replayed context starts with a user turn and the model sees the same
patient data it answered originally.
"""

from __future__ import annotations

import logging

from models.gateway import AssistantGateway, Conversation, Turn
from pipelines.errors import AssistantUnavailable, NoActiveConversation
from storage.models import Case, PatientData, Sender

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = (
    "You are Suma, an AI assistant for health professionals working in first-response "
    "situations. Give clear, concise and prioritized guidance based on the information "
    "provided. You do not replace professional clinical judgment. Your first answer MUST "
    "be a numbered list of immediate actions to consider, citing recognized clinical "
    "authorities such as the WHO, AHA or Red Cross where appropriate. In the follow-up "
    "chat, answer specific questions briefly and directly."
)

INITIAL_FALLBACK = "A recommendation could not be obtained."
REPLY_FALLBACK = "A response could not be obtained."


def build_intake_prompt(patient: PatientData) -> str:
    """Structured first prompt embedding every intake field."""
    return (
        "PATIENT DATA:\n"
        f"- Professional role: {patient.role.value}\n"
        f"- Age: {patient.age}\n"
        f"- Sex: {patient.sex}\n"
        f"- Background: {patient.background}\n"
        f"- Current medications: {patient.medications}\n"
        f"- Main symptoms and signs: {patient.symptoms}\n"
        "\n"
        "QUESTION: WHAT SHOULD I DO?\n"
        "\n"
        "ANSWER (a NUMBERED LIST of immediate, prioritized actions, citing recognized "
        "clinical authorities where appropriate; this does not substitute for "
        "professional judgment):"
    )


def history_from_case(case: Case) -> list[Turn]:
    """Replay history for *case*: synthetic intake prompt, then the stored chat."""
    turns = [Turn("user", build_intake_prompt(case.patient))]
    for message in case.chat:
        role = "user" if message.sender == Sender.user else "model"
        turns.append(Turn(role, message.text))
    return turns


class ConversationSessionManager:
    """Starts, resumes and continues the single live conversation."""

    def __init__(self, gateway: AssistantGateway) -> None:
        self._gateway = gateway
        self._handle: Conversation | None = None
        # bumped by every operation that replaces the handle
        self._epoch = 0

    @property
    def has_conversation(self) -> bool:
        return self._handle is not None

    def reset(self) -> None:
        """Drop the current handle, if any."""
        self._epoch += 1
        self._handle = None

    def start_new(self, patient: PatientData) -> str:
        """
        Open a fresh conversation for *patient* and return the first
        recommendation.

        Raises:
            AssistantUnavailable: The gateway failed; no handle is left.
        """
        self.reset()
        epoch = self._epoch
        prompt = build_intake_prompt(patient)
        try:
            conversation = self._gateway.start_conversation(SYSTEM_INSTRUCTION, history=[])
            reply = conversation.send(prompt)
        except Exception as exc:
            logger.error("Initial recommendation failed: %s", exc)
            raise AssistantUnavailable(
                "The assistant could not be reached.", details={"stage": "start"}
            ) from exc

        if epoch == self._epoch:
            self._handle = conversation
        else:
            logger.info("Conversation was replaced while the first reply was pending")
        if not reply or not reply.strip():
            logger.warning("Empty initial recommendation; using fallback text")
            return INITIAL_FALLBACK
        return reply

    def continue_conversation(self, text: str) -> str:
        """
        Send *text* into the live conversation and return the reply.

        Raises:
            NoActiveConversation: No conversation was started or resumed.
            AssistantUnavailable: The gateway failed.
        """
        if self._handle is None:
            raise NoActiveConversation()
        try:
            reply = self._handle.send(text)
        except Exception as exc:
            logger.error("Follow-up message failed: %s", exc)
            raise AssistantUnavailable(
                "The assistant could not be reached.", details={"stage": "continue"}
            ) from exc
        if not reply or not reply.strip():
            logger.warning("Empty follow-up reply; using fallback text")
            return REPLY_FALLBACK
        return reply

    def resume_from(self, case: Case) -> None:
        """
        Rebuild the conversation context of a saved case without requesting
        a reply.

        Raises:
            AssistantUnavailable: The gateway failed; no handle is left.
        """
        self.reset()
        history = history_from_case(case)
        try:
            self._handle = self._gateway.start_conversation(SYSTEM_INSTRUCTION, history=history)
        except Exception as exc:
            logger.error("Resuming case %s failed: %s", case.id, exc)
            raise AssistantUnavailable(
                "The previous conversation could not be restored.",
                details={"stage": "resume", "case_id": case.id},
            ) from exc
        logger.info("Resumed case %s with %d turns of context", case.id, len(history))
