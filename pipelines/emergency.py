"""
pipelines/emergency.py

Emergency call + location sharing.

The emergency number is resolved from the browser locale.  The action runs
in the browser: it opens the dialer immediately, and only then tries to get
the device position and share a maps link.  If location or sharing fails,
an alert tells the user to give the location manually.  The dialer never
waits for the location step.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

DEFAULT_EMERGENCY_NUMBER = "112"

# matched as substrings of the lower-cased locale, first hit wins
EMERGENCY_NUMBERS: dict[str, str] = {
    "es-pe": "105",  # Peru
    "es-co": "123",  # Colombia
    "es-ve": "171",  # Venezuela
    "es-mx": "911",  # Mexico
    "es-es": "112",  # Spain
    "es-ar": "107",  # Argentina
    "es-cl": "131",  # Chile
    "es-bo": "110",  # Bolivia
    "es-ec": "911",  # Ecuador
}

GEOLOCATION_TIMEOUT_MS = 10_000


def locale_from_accept_language(header: str | None) -> str | None:
    """First language tag of an ``Accept-Language`` header (``es-PE,es;q=0.9`` -> ``es-PE``)."""
    if not header:
        return None
    first = header.split(",")[0].split(";")[0].strip()
    return first or None


def emergency_number(locale: str | None) -> str:
    lang = (locale or "").lower().replace("_", "-")
    for tag, number in EMERGENCY_NUMBERS.items():
        if tag in lang:
            return number
    return DEFAULT_EMERGENCY_NUMBER


def maps_link(latitude: float, longitude: float) -> str:
    return f"https://maps.google.com/?q={latitude},{longitude}"


def share_text(link: str) -> str:
    return f"SUMA EMERGENCY - Exact location: {link}"


@dataclass(frozen=True)
class EmergencyPlan:
    number: str

    @property
    def dial_url(self) -> str:
        return f"tel:{self.number}"


def plan_emergency(locale: str | None) -> EmergencyPlan:
    return EmergencyPlan(number=emergency_number(locale))


def emergency_script(plan: EmergencyPlan) -> str:
    """
    Browser snippet for the emergency button.

    The dialer is opened synchronously before the geolocation request is
    issued.
    """
    dial_url = json.dumps(plan.dial_url)
    number = json.dumps(plan.number)
    share_prefix = json.dumps(share_text(""))
    return f"""
<script>
(function () {{
  var top = window.parent || window;
  top.open({dial_url}, "_self");

  function fallback() {{
    top.alert("Location could not be obtained. Calling the emergency number: " + {number} + ".");
  }}

  var geo = top.navigator && top.navigator.geolocation;
  if (!geo) {{ fallback(); return; }}
  geo.getCurrentPosition(function (pos) {{
    var link = "https://maps.google.com/?q=" + pos.coords.latitude + "," + pos.coords.longitude;
    var data = {{ title: "Suma emergency", text: {share_prefix} + link }};
    if (top.navigator.share) {{
      top.navigator.share(data).catch(function () {{
        top.alert("Location to share manually:\\n" + link);
      }});
    }} else {{
      top.alert("Location to share manually:\\n" + link);
    }}
  }}, fallback, {{ enableHighAccuracy: true, timeout: {GEOLOCATION_TIMEOUT_MS}, maximumAge: 0 }});
}})();
</script>
"""
