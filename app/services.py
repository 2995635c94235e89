"""
app/services.py

Wiring between Streamlit and the session layer.

The gateway (and any loaded model) is shared by all browser sessions via
``st.cache_resource``; each browser session gets its own controller, and so
its own conversation handle, in ``st.session_state``.
"""

from __future__ import annotations

import logging

import streamlit as st

from models.gateway import AssistantGateway, build_gateway
from pipelines.access_gate import AccessGate
from pipelines.case_session import CaseSessionController
from pipelines.config import Settings, load_settings
from pipelines.conversation import ConversationSessionManager
from storage.case_repository import CaseRepository
from storage.device_state import DeviceState

logger = logging.getLogger(__name__)


@st.cache_resource(show_spinner="Loading assistant ...")
def get_gateway(assistant: str, model: str) -> AssistantGateway:
    settings = load_settings()
    logger.info("Building %s gateway (model=%s)", assistant, model)
    return build_gateway(settings)


def get_settings() -> Settings:
    if "settings" not in st.session_state:
        st.session_state["settings"] = load_settings()
    return st.session_state["settings"]


def get_gate() -> AccessGate:
    if "gate" not in st.session_state:
        st.session_state["gate"] = AccessGate(DeviceState())
    return st.session_state["gate"]


def get_repository() -> CaseRepository:
    if "repository" not in st.session_state:
        st.session_state["repository"] = CaseRepository()
    return st.session_state["repository"]


def get_controller() -> CaseSessionController:
    if "controller" not in st.session_state:
        settings = get_settings()
        gateway = get_gateway(settings.assistant, settings.model)
        st.session_state["controller"] = CaseSessionController(
            repository=get_repository(),
            conversation=ConversationSessionManager(gateway),
            device=DeviceState(),
            gate=get_gate(),
        )
    return st.session_state["controller"]
