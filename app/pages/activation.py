"""
app/pages/activation.py

Activation screen:
- 6-digit activation code -> 30-day access grant
- Expired licence -> renewal contact link
"""

from __future__ import annotations

import streamlit as st

from app.services import get_gate, get_settings
from pipelines.errors import StorageFault, ValidationError


def render(expired: bool = False) -> None:
    st.markdown("<div style='height:24px'></div>", unsafe_allow_html=True)
    st.markdown(
        """
<div style="text-align:center;">
  <div style="font-size:48px;">🩺</div>
  <div style="font-weight:1000; font-size:32px;">Suma (Beta)</div>
  <div style="color: rgba(15,23,42,0.55); margin-bottom:24px;">AI Medical Assistant</div>
</div>
        """,
        unsafe_allow_html=True,
    )

    if expired:
        st.error("**Licence expired.** Contact us to renew your access.")
        st.link_button("Contact via WhatsApp", get_settings().renewal_url, use_container_width=True)
        st.divider()
        st.caption("Already have a new code? Enter it below.")

    st.subheader("Activation code")
    code = st.text_input(
        "Activation code",
        max_chars=6,
        placeholder="------",
        label_visibility="collapsed",
        key="activation_code",
    )

    if st.button("Activate", type="primary", use_container_width=True):
        try:
            get_gate().activate(code.strip())
        except ValidationError as exc:
            st.error(exc.message)
            return
        except StorageFault as exc:
            st.error(f"Activation could not be saved on this device. {exc.message}")
            return
        st.session_state["license_expired"] = False
        st.session_state["launched"] = False
        st.rerun()
