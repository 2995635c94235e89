from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest
from cryptography.fernet import Fernet

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from pipelines.access_gate import AccessGate  # noqa: E402
from pipelines.case_session import CaseSessionController  # noqa: E402
from pipelines.conversation import ConversationSessionManager  # noqa: E402
from storage.case_repository import CaseRepository  # noqa: E402
from storage.crypto import reset_key_cache  # noqa: E402
from storage.device_state import DeviceState  # noqa: E402
from storage.models import UserRole  # noqa: E402

from case_utils import FakeClock, ScriptedGateway  # noqa: E402


@pytest.fixture(autouse=True)
def suma_env(tmp_path, monkeypatch):
    monkeypatch.setenv("SUMA_DB_PATH", str(tmp_path / "suma-test.db"))
    monkeypatch.setenv("SUMA_ASSISTANT", "demo")
    monkeypatch.delenv("SUMA_MODEL", raising=False)
    monkeypatch.setenv("APP_DATA_KEY", Fernet.generate_key().decode("utf-8"))
    reset_key_cache()
    yield tmp_path
    reset_key_cache()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def device() -> DeviceState:
    return DeviceState()


@pytest.fixture
def repository() -> CaseRepository:
    return CaseRepository()


@pytest.fixture
def gate(device, clock) -> AccessGate:
    return AccessGate(device, clock=clock)


@pytest.fixture
def gateway() -> ScriptedGateway:
    return ScriptedGateway()


@pytest.fixture
def make_controller(repository, device, gate):
    def _make(gw) -> CaseSessionController:
        return CaseSessionController(
            repository=repository,
            conversation=ConversationSessionManager(gw),
            device=device,
            gate=gate,
        )

    return _make


@pytest.fixture
def controller(make_controller, gateway, gate) -> CaseSessionController:
    """Controller on an activated device with a Physician role selected."""
    gate.activate("123456")
    ctrl = make_controller(gateway)
    ctrl.select_role(UserRole.physician)
    return ctrl

