# =========================
# app/ui.py
# =========================
from __future__ import annotations

import html

import streamlit as st


def inject_theme() -> None:
    st.markdown(
        """
<style>
/* ============================================================
   Suma theme
   - White canvas, clinical navy text
   - Green "what should I do" action, blue chat accents
   - Chat bubbles (user right / assistant left)
   ============================================================ */

[data-testid="stSidebarNav"] { display: none !important; }

:root{
  --primary: 212 72% 20%;
  --accent: 142 70% 33%;
  --canvas: #FFFFFF;
  --card: #F8FAFC;
  --border: rgba(15,23,42,0.10);
  --muted: rgba(15,23,42,0.55);
  --text: rgba(15,23,42,0.92);

  --user-bubble: #E8F5E8;
  --ai-bubble: #E1F5FE;
  --ai-text: #0d3c61;
}

.stApp { background: var(--canvas); }

.stApp, .stMarkdown, .stMarkdown p, .stCaption, label,
h1, h2, h3, h4, h5, h6, div[data-testid="stMarkdownContainer"] {
  color: var(--text);
}

div.block-container {
  padding-top: 1.6rem;
  padding-bottom: 2.2rem;
  max-width: 860px;
}

/* =========================
   Inputs
   ========================= */
div[data-testid="stTextInput"] input,
div[data-testid="stTextArea"] textarea {
  background: #FFFFFF !important;
  color: var(--text) !important;
  border: 1px solid var(--border) !important;
  border-radius: 12px !important;
}

/* =========================
   Buttons
   ========================= */
.stButton>button, .stDownloadButton>button{
  border-radius: 12px;
  border: 1px solid rgba(15,23,42,0.14);
}
.stButton>button[kind="primary"]{
  background: hsl(var(--accent)) !important;
  border: 1px solid hsl(var(--accent)) !important;
  color: white !important;
  font-weight: 800;
}

/* =========================
   Cards
   ========================= */
.mc-card{
  background: var(--card);
  border: 1px solid var(--border);
  border-radius: 16px;
  padding: 14px 16px;
}
.mc-title{ font-weight: 800; font-size: 16px; margin-bottom: 2px; color: var(--text); }
.mc-sub{ color: var(--muted); font-size: 13px; margin-bottom: 0px; }

/* =========================
   Case header + chat
   ========================= */
.su-summary{
  font-size: 12px;
  background: #F5F5F5;
  border: 1px solid var(--border);
  border-radius: 10px;
  padding: 8px 10px;
  white-space: nowrap; overflow: hidden; text-overflow: ellipsis;
}
.su-row{ display:flex; margin: 10px 0; }
.su-row.user{ justify-content: flex-end; }
.su-row.ai{ justify-content: flex-start; }
.su-bubble{
  max-width: 80%;
  padding: 12px 16px;
  border-radius: 18px;
  white-space: pre-wrap;
  box-shadow: 0 1px 2px rgba(15,23,42,0.06);
}
.su-row.user .su-bubble{ background: var(--user-bubble); color: var(--text); }
.su-row.ai .su-bubble{ background: var(--ai-bubble); color: var(--ai-text); }

/* =========================
   Expiry bar
   ========================= */
.su-expiry{
  width:100%;
  padding: 8px;
  text-align:center;
  color:#FFFFFF;
  font-size: 13px;
  font-weight: 700;
  border-radius: 10px;
  margin-bottom: 10px;
}
.su-expiry.warn{ background: #FB923C; }
.su-expiry.critical{ background: #EF4444; }

/* =========================
   Role cards
   ========================= */
.mc-portal{
  display:flex; gap:14px; align-items:center;
  padding:16px;
  border-radius:16px;
  border:1px solid var(--border);
  background:#FFFFFF;
}
.mc-portal-ico{
  width:42px; height:42px; border-radius:12px;
  background: hsla(var(--accent),0.12);
  display:flex; align-items:center; justify-content:center;
  font-weight: 900;
  color: hsl(var(--accent));
}
.mc-portal-title{ font-weight: 900; color: var(--text); }
.mc-portal-sub{ color: var(--muted); font-size: 13px; }
</style>
        """,
        unsafe_allow_html=True,
    )


def _esc(x: str) -> str:
    """Escape any user/DB-provided strings before injecting into HTML."""
    return html.escape(str(x or ""), quote=True)


def card_open(title: str, subtitle: str = "") -> None:
    sub = f'<div class="mc-sub">{_esc(subtitle)}</div>' if subtitle else ""
    st.markdown(
        f'<div class="mc-card"><div class="mc-title">{_esc(title)}</div>{sub}',
        unsafe_allow_html=True,
    )


def card_close() -> None:
    st.markdown("</div>", unsafe_allow_html=True)


def portal_choice(title: str, subtitle: str, icon_text: str = "•") -> None:
    st.markdown(
        f"""
<div class="mc-portal">
  <div class="mc-portal-ico">{_esc(icon_text)}</div>
  <div>
    <div class="mc-portal-title">{_esc(title)}</div>
    <div class="mc-portal-sub">{_esc(subtitle)}</div>
  </div>
</div>
        """,
        unsafe_allow_html=True,
    )


def expiry_message(days_remaining: int) -> str:
    if days_remaining > 1:
        return f"Your access expires in {days_remaining} days."
    if days_remaining == 1:
        return "Your access expires in 1 day."
    return "Your access has expired."


def expiry_bar(days_remaining: int, critical: bool) -> None:
    cls = "critical" if critical else "warn"
    st.markdown(
        f'<div class="su-expiry {cls}">{_esc(expiry_message(days_remaining))}</div>',
        unsafe_allow_html=True,
    )
