"""
app/main.py

Suma: Streamlit entry point.
- Launch-time access check (activation code, 30-day grant)
- Role selection
- Case screen (intake -> recommendation -> follow-up chat)
- Case history
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import streamlit as st

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.pages import activation, case, history, role_selection  # noqa: E402
from app.services import get_controller, get_gate, get_settings  # noqa: E402
from app.ui import expiry_bar, inject_theme  # noqa: E402
from pipelines.access_gate import Denied, Granted  # noqa: E402
from pipelines.errors import StorageFault  # noqa: E402

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Page config
# ---------------------------------------------------------------------------
st.set_page_config(
    page_title="Suma",
    page_icon="🩺",
    layout="centered",
    initial_sidebar_state="collapsed",
)

# ---------------------------------------------------------------------------
# Session defaults
# ---------------------------------------------------------------------------
if "view" not in st.session_state:
    st.session_state["view"] = "activation"
if "launched" not in st.session_state:
    st.session_state["launched"] = False
if "license_expired" not in st.session_state:
    st.session_state["license_expired"] = False

inject_theme()

# ---------------------------------------------------------------------------
# Access check (every run) and launch (once per granted session)
# ---------------------------------------------------------------------------
try:
    gate = get_gate()
    controller = get_controller()
    access = gate.check_access()
except StorageFault as exc:
    logger.error("Local storage unavailable: %s", exc.to_dict())
    st.error("Local storage on this device could not be read. Close other Suma tabs and reload the page.")
    st.stop()

if isinstance(access, Denied) or controller.access_expired:
    st.session_state["license_expired"] = True

if not isinstance(access, Granted) or controller.access_expired or not st.session_state["launched"]:
    step = controller.launch(access)
    st.session_state["launched"] = isinstance(access, Granted)
    st.session_state["view"] = step.value
    logger.info("Launch step: %s", step.value)

if isinstance(access, Granted) and access.show_warning and st.session_state["view"] != "activation":
    expiry_bar(access.days_remaining, access.is_critical)

# ---------------------------------------------------------------------------
# Page routing
# ---------------------------------------------------------------------------
view = st.session_state["view"]

if view == "activation":
    activation.render(expired=st.session_state["license_expired"])

elif view == "role_selection":
    role_selection.render()

elif view == "history":
    history.render()

else:
    case.render()
