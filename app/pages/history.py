"""
app/pages/history.py

Case history: every saved case, newest first.  Opening one resumes its
conversation on the case screen.
"""

from __future__ import annotations

import logging

import streamlit as st

from app.renderers import format_start_time
from app.services import get_controller, get_repository
from app.ui import _esc
from pipelines.errors import StorageFault

logger = logging.getLogger(__name__)


def render() -> None:
    controller = get_controller()

    st.title("Case history")

    c1, c2 = st.columns(2)
    with c1:
        if st.button("⬅ Back", use_container_width=True, key="history_back"):
            st.session_state["view"] = "case"
            st.rerun()
    with c2:
        if st.button("➕ New case", use_container_width=True, key="history_new"):
            controller.start_new_case()
            st.session_state["view"] = "case"
            st.rerun()

    try:
        cases = list(reversed(get_repository().list_cases()))
    except StorageFault as exc:
        logger.error("History unavailable: %s", exc.to_dict())
        st.error("Saved cases could not be read on this device.")
        return

    if not cases:
        st.info("No saved cases yet.")
        return

    current_id = controller.case.id if controller.case else None
    for case in cases:
        st.markdown(
            f"""
<div class="mc-card" style="margin-top:10px;">
  <div class="mc-title">{_esc(case.title or "Untitled case")}</div>
  <div class="mc-sub">{_esc(format_start_time(case.start_time))} · {_esc(case.role.value)}</div>
</div>
            """,
            unsafe_allow_html=True,
        )
        label = "Current case" if case.id == current_id else "Open"
        if st.button(label, key=f"open_case_{case.id}", use_container_width=True):
            with st.spinner("Resuming conversation..."):
                controller.open_case(case.id)
            st.session_state["view"] = "case"
            st.rerun()
