# app/renderers.py
from __future__ import annotations

from datetime import datetime

import streamlit as st

from app.ui import _esc, card_close, card_open
from storage.models import Case, Sender


def format_start_time(iso: str) -> str:
    try:
        return datetime.fromisoformat(iso).astimezone().strftime("%d %b %Y · %H:%M")
    except ValueError:
        return iso


def render_case_header(case: Case) -> None:
    """One-line patient summary shown above the chat."""
    st.markdown(
        f'<div class="su-summary" title="{_esc(case.summary_line())}">'
        f"<b>{_esc(case.role.value)}</b> | {_esc(case.sex)} {_esc(case.age)} | "
        f"{_esc(case.background)} | {_esc(case.medications)} | {_esc(case.symptoms)}</div>",
        unsafe_allow_html=True,
    )


def render_case_report(case: Case) -> None:
    """
    Report block: patient data card followed by the transcript.
    Mirrors what the PDF export contains.
    """
    card_open("Case Report", format_start_time(case.start_time))
    st.markdown(
        f"""
<div style="font-size:13px; margin-top:8px;">
  <div><b>Professional role:</b> {_esc(case.role.value)}</div>
  <div><b>Patient:</b> {_esc(case.sex)} {_esc(case.age)}</div>
  <div><b>Background:</b> {_esc(case.background)}</div>
  <div><b>Medications:</b> {_esc(case.medications)}</div>
  <div><b>Main symptoms:</b> {_esc(case.symptoms)}</div>
</div>
        """,
        unsafe_allow_html=True,
    )
    card_close()

    for message in case.chat:
        side = "user" if message.sender == Sender.user else "ai"
        st.markdown(
            f'<div class="su-row {side}"><div class="su-bubble">{_esc(message.text)}</div></div>',
            unsafe_allow_html=True,
        )
