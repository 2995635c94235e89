"""
app/pages/role_selection.py

Role selection shown after the first activation (or after a purge).
"""

from __future__ import annotations

import streamlit as st

from app.services import get_controller
from app.ui import portal_choice
from storage.models import UserRole

_ROLE_HINTS = {
    UserRole.physician: ("🩺", "Full clinical assessment and follow-up"),
    UserRole.paramedic: ("🚑", "Pre-hospital care and transport"),
    UserRole.nurse: ("💉", "Nursing assessment and care"),
    UserRole.first_responder: ("⛑️", "First aid until help arrives"),
}


def render() -> None:
    st.title("Welcome to Suma")
    st.caption("Please select your role to continue.")

    controller = get_controller()

    for role in UserRole:
        icon, hint = _ROLE_HINTS[role]
        portal_choice(role.value, hint, icon_text=icon)
        if st.button(f"Continue as {role.value}", key=f"role_{role.name}", use_container_width=True):
            controller.select_role(role)
            st.session_state["view"] = "case"
            st.rerun()
        st.markdown("<div style='height:8px'></div>", unsafe_allow_html=True)
