"""
models/gateway.py

The AI conversation gateway seen by the rest of the app.

A gateway opens conversations; a conversation accepts a user message and
returns the model's reply while keeping its own multi-turn context.

    gateway.start_conversation(system_instruction, history) -> Conversation
    conversation.send(text) -> str

``history`` is a list of :class:`Turn` objects that must start with a
``"user"`` turn.  Backends:

- ``demo``      canned replies, no model (hosting-friendly, used by tests)
- ``gemini``    Google Gemini via langchain-google-genai (models/gemini_client.py)
- ``medgemma``  local MedGemma via transformers (models/medgemma_runner.py)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Protocol

logger = logging.getLogger(__name__)

TurnRole = Literal["user", "model"]


@dataclass(frozen=True)
class Turn:
    """One prior exchange entry handed to a new conversation."""
    role: TurnRole
    text: str


class Conversation(Protocol):
    def send(self, text: str) -> str: ...


class AssistantGateway(Protocol):
    model: str

    def start_conversation(
        self, system_instruction: str, history: list[Turn] | None = None
    ) -> Conversation: ...


def validate_history(history: list[Turn]) -> list[Turn]:
    """Reject histories that do not open with a user turn."""
    if history and history[0].role != "user":
        raise ValueError("Conversation history must start with a 'user' turn.")
    for turn in history:
        if turn.role not in ("user", "model"):
            raise ValueError(f"Unknown turn role '{turn.role}'.")
    return list(history)


# ---------------------------------------------------------------------------
# Demo backend
# ---------------------------------------------------------------------------

_DEMO_INITIAL = """1. Ensure scene safety and assess airway, breathing and circulation (ABC).
2. Obtain a full set of vital signs and monitor continuously.
3. Call local emergency services if any red-flag sign is present.
4. Reassess frequently and document every intervention with its time.

Reference: AHA / ERC basic life support guidance.
This is a simulated response for demonstration purposes and does not replace clinical judgment."""

_DEMO_FOLLOW_UP = (
    "Demo mode: no model is loaded, so this answer is simulated. "
    "Follow local protocols and your clinical judgment for: {question}"
)


class DemoConversation:
    """Conversation that answers from fixed templates."""

    def __init__(self, history: list[Turn]) -> None:
        self.history = list(history)

    def send(self, text: str) -> str:
        first_turn = not any(t.role == "model" for t in self.history)
        reply = _DEMO_INITIAL if first_turn else _DEMO_FOLLOW_UP.format(question=text.strip())
        self.history.append(Turn("user", text))
        self.history.append(Turn("model", reply))
        return reply


class DemoGateway:
    """Gateway used when no model is configured."""

    model = "demo"

    def start_conversation(
        self, system_instruction: str, history: list[Turn] | None = None
    ) -> DemoConversation:
        logger.debug("Demo conversation started (%d prior turns)", len(history or []))
        return DemoConversation(validate_history(history or []))


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def build_gateway(settings) -> AssistantGateway:
    """
    Return the gateway selected by ``settings.assistant``.

    Heavy backends are imported here so the demo backend never loads torch
    or the Google client libraries.
    """
    if settings.assistant == "gemini":
        from models.gemini_client import GeminiConfig, GeminiGateway

        return GeminiGateway(GeminiConfig(api_key=settings.api_key, model=settings.model))

    if settings.assistant == "medgemma":
        from models.medgemma_runner import MedGemmaGateway, MedGemmaRunner

        return MedGemmaGateway(MedGemmaRunner(model_name=settings.model))

    return DemoGateway()
