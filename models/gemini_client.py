"""
models/gemini_client.py

Gemini backend for the conversation gateway, via LangChain.

Each conversation keeps its own message list (system instruction, then
alternating human / AI messages) and replays it on every call, so context
survives across turns and can be rebuilt from stored history.

Auth: GEMINI_API_KEY or GOOGLE_API_KEY (see pipelines/config.py).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from models.gateway import Turn, validate_history

logger = logging.getLogger(__name__)


@dataclass
class GeminiConfig:
    """Configuration for the Gemini chat model."""
    api_key: str | None
    model: str = "gemini-2.5-flash"
    temperature: float = 0.4
    max_output_tokens: int = 2048
    request_timeout_seconds: int = 30
    max_retries: int = 2


def _content_text(response: Any) -> str:
    """Extract plain text from a LangChain chat response."""
    content = getattr(response, "content", response)
    if isinstance(content, list):
        # multi-part responses: keep text parts only
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text", ""))
        return "".join(parts)
    return str(content or "")


class GeminiConversation:
    """One multi-turn Gemini chat."""

    def __init__(self, llm: Any, system_instruction: str, history: list[Turn]) -> None:
        self._llm = llm
        self.messages: list[BaseMessage] = [SystemMessage(content=system_instruction)]
        for turn in history:
            if turn.role == "user":
                self.messages.append(HumanMessage(content=turn.text))
            else:
                self.messages.append(AIMessage(content=turn.text))

    def send(self, text: str) -> str:
        pending = [*self.messages, HumanMessage(content=text)]
        response = self._llm.invoke(pending)
        reply = _content_text(response)
        # only commit the exchange once the model has answered
        self.messages = [*pending, AIMessage(content=reply)]
        return reply


class GeminiGateway:
    """Opens Gemini conversations sharing one LangChain chat model."""

    def __init__(self, config: GeminiConfig, llm: Any | None = None) -> None:
        self.config = config
        self.model = config.model
        if llm is None:
            if not config.api_key:
                raise ValueError(
                    "The gemini assistant needs GEMINI_API_KEY or GOOGLE_API_KEY."
                )
            llm = ChatGoogleGenerativeAI(
                model=config.model,
                temperature=config.temperature,
                max_output_tokens=config.max_output_tokens,
                timeout=config.request_timeout_seconds,
                max_retries=config.max_retries,
                google_api_key=config.api_key,
            )
            logger.info("Gemini gateway initialised with model: %s", config.model)
        self._llm = llm

    def start_conversation(
        self, system_instruction: str, history: list[Turn] | None = None
    ) -> GeminiConversation:
        return GeminiConversation(
            self._llm, system_instruction, validate_history(history or [])
        )
