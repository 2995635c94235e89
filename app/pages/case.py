"""
app/pages/case.py

Case screen (Suma style)
- Intake form -> "What should I do?" -> first recommendation
- Follow-up chat on the active case
- Footer: emergency call, PDF export, history, new case
"""

from __future__ import annotations

import streamlit as st
import streamlit.components.v1 as components

from app.renderers import render_case_header, render_case_report
from app.services import get_controller
from pipelines.case_session import CaseSessionController, SessionState
from pipelines.emergency import emergency_script, locale_from_accept_language, plan_emergency
from storage.export import export_pdf, report_filename


def _show_notice(controller: CaseSessionController) -> None:
    notice = controller.pop_notice()
    if notice is None:
        return
    if notice.level == "error":
        st.error(notice.text)
    elif notice.level == "warning":
        st.warning(notice.text)
    else:
        st.info(notice.text)


def _browser_locale() -> str | None:
    headers = getattr(st.context, "headers", None) or {}
    return locale_from_accept_language(headers.get("Accept-Language"))


def _render_intake(controller: CaseSessionController) -> None:
    st.subheader("New case")
    if controller.role is not None:
        st.caption(f"Professional role: {controller.role.value}")

    form = controller.form
    with st.form("intake_form"):
        c1, c2 = st.columns(2)
        with c1:
            age = st.text_input("Age *", value=form.age, placeholder="e.g. 54")
        with c2:
            sex = st.text_input("Sex", value=form.sex, placeholder="e.g. male")
        background = st.text_area("Background", value=form.background, height=80)
        medications = st.text_area("Current medications", value=form.medications, height=80)
        symptoms = st.text_area(
            "Main symptoms *",
            value=form.symptoms,
            height=100,
            placeholder="e.g. chest pain, shortness of breath",
        )
        submitted = st.form_submit_button(
            "WHAT SHOULD I DO?",
            type="primary",
            use_container_width=True,
            disabled=controller.is_loading,
        )

    if submitted:
        form.set_age(age)
        form.set_sex(sex)
        form.set_background(background)
        form.set_medications(medications)
        form.set_symptoms(symptoms)
        with st.spinner("Analyzing case..."):
            controller.submit_intake()
        st.rerun()


def _render_active(controller: CaseSessionController) -> None:
    case = controller.case
    if case is None:
        return

    render_case_header(case)
    st.markdown("<div style='height:8px'></div>", unsafe_allow_html=True)
    render_case_report(case)

    prompt = st.chat_input("Write your question...", disabled=controller.is_loading)
    if prompt:
        with st.spinner("Thinking..."):
            controller.send_message(prompt)
        st.rerun()


def _render_footer(controller: CaseSessionController) -> None:
    st.divider()
    plan = plan_emergency(_browser_locale())

    c1, c2, c3, c4 = st.columns(4)
    with c1:
        if st.button(f"🚨 Emergency ({plan.number})", use_container_width=True, key="emergency"):
            components.html(emergency_script(plan), height=0)
            st.link_button(f"Call {plan.number}", plan.dial_url, use_container_width=True)
    with c2:
        case = controller.case
        if case is not None and case.is_saved:
            st.download_button(
                "📄 PDF",
                data=export_pdf(case),
                file_name=report_filename(),
                mime="application/pdf",
                use_container_width=True,
            )
        else:
            st.button("📄 PDF", disabled=True, use_container_width=True, key="pdf_disabled")
    with c3:
        if st.button("🗂 History", use_container_width=True, key="go_history"):
            st.session_state["view"] = "history"
            st.rerun()
    with c4:
        if st.button("➕ New case", use_container_width=True, key="new_case"):
            controller.start_new_case()
            st.rerun()


def render() -> None:
    controller = get_controller()

    if controller.access_expired:
        st.session_state["license_expired"] = True
        st.session_state["view"] = "activation"
        st.rerun()
        return

    st.title("Suma")
    _show_notice(controller)

    if controller.state is SessionState.active:
        _render_active(controller)
    elif controller.state in (SessionState.awaiting_initial_reply, SessionState.resuming):
        st.info("Loading case...")
    else:
        _render_intake(controller)

    _render_footer(controller)
