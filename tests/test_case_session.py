from __future__ import annotations

import sqlite3

from case_utils import ScriptedGateway, fill_intake, make_case
from pipelines.access_gate import Denied, NotActivated
from pipelines.case_session import APOLOGY_TEXT, LaunchStep, SessionState
from pipelines.conversation import build_intake_prompt
from storage import db
from storage.models import Sender, UserRole


# ---------------------------------------------------------------------------
# New case
# ---------------------------------------------------------------------------


def test_intake_to_active_case_end_to_end(controller, repository, device, gateway):
    gateway.replies = ["1. Call emergency services.\n2. Give aspirin if not allergic."]
    fill_intake(controller)

    state = controller.submit_intake()

    assert state is SessionState.active
    case = controller.case
    assert case.is_saved
    assert case.title == "chest pain"
    assert [m.sender for m in case.chat] == [Sender.ai]
    assert case.chat[0].text.startswith("1.")
    assert case.role is UserRole.physician
    assert repository.fetch(case.id) == case
    assert device.get_last_case_id() == case.id
    assert not controller.is_loading

    assert controller.send_message("Aspirin dose?") is True

    assert [m.sender for m in controller.case.chat] == [Sender.ai, Sender.user, Sender.ai]
    assert controller.case.chat[2].text == "reply to: Aspirin dose?"
    assert len(repository.fetch(case.id).chat) == 3


def test_missing_required_fields_stay_on_intake(controller, gateway, repository):
    fill_intake(controller, symptoms="   ")

    assert controller.submit_intake() is SessionState.intake

    notice = controller.pop_notice()
    assert notice.level == "warning"
    assert gateway.sent == []
    assert repository.list_cases() == []


def test_initial_failure_returns_to_intake_with_retry(controller, gateway, repository):
    gateway.replies = [RuntimeError("service unavailable")]
    fill_intake(controller)

    assert controller.submit_intake() is SessionState.intake

    notice = controller.pop_notice()
    assert notice.level == "error"
    assert notice.retryable
    assert controller.case is None
    assert repository.list_cases() == []
    # the form keeps what was typed so the user can retry
    assert controller.form.age == "54"

    assert controller.submit_intake() is SessionState.active
    assert len(repository.list_cases()) == 1


def test_timestamps_never_go_backwards(controller):
    fill_intake(controller)
    controller.submit_intake()
    controller.send_message("one")
    controller.send_message("two")

    stamps = [m.timestamp for m in controller.case.chat]
    assert stamps == sorted(stamps)
    assert controller.case.start_time <= stamps[0]


# ---------------------------------------------------------------------------
# Follow-up chat
# ---------------------------------------------------------------------------


def test_followup_failure_shows_apology_without_saving(controller, gateway, repository):
    fill_intake(controller)
    controller.submit_intake()
    case_id = controller.case.id
    gateway.replies = [RuntimeError("timeout")]

    assert controller.send_message("Is it safe?") is True

    assert [m.text for m in controller.case.chat[1:]] == ["Is it safe?", APOLOGY_TEXT]
    assert len(repository.fetch(case_id).chat) == 1
    assert controller.state is SessionState.active
    assert not controller.is_loading


def test_send_message_ignores_blank_text_and_inactive_state(controller, gateway):
    assert controller.send_message("hello") is False

    fill_intake(controller)
    controller.submit_intake()
    sent = len(gateway.sent)

    assert controller.send_message("   ") is False
    assert len(gateway.sent) == sent


def test_reply_for_abandoned_case_is_discarded(controller, gateway, repository):
    fill_intake(controller)
    controller.submit_intake()
    case_id = controller.case.id
    gateway.on_send = lambda _text: controller.start_new_case()

    assert controller.send_message("still there?") is False

    assert controller.state is SessionState.intake
    assert controller.case is None
    assert not controller.is_loading
    assert len(repository.fetch(case_id).chat) == 1


def test_first_reply_after_new_case_is_discarded(controller, gateway, repository):
    fill_intake(controller)
    gateway.on_send = lambda _text: controller.start_new_case()

    assert controller.submit_intake() is SessionState.intake

    assert controller.case is None
    assert repository.list_cases() == []
    assert not controller.is_loading


def test_reply_arriving_after_opening_another_case_is_discarded(controller, gateway, repository):
    other_id = repository.create(make_case(symptoms="fever"))
    fill_intake(controller)
    controller.submit_intake()
    first_id = controller.case.id
    gateway.on_send = lambda _text: controller.open_case(other_id)

    assert controller.send_message("dose?") is False

    assert controller.case.id == other_id
    assert len(controller.case.chat) == 1
    assert len(repository.fetch(first_id).chat) == 1


# ---------------------------------------------------------------------------
# Launch, resume and expiry
# ---------------------------------------------------------------------------


def test_launch_without_activation_asks_for_code(make_controller, gateway, gate):
    ctrl = make_controller(gateway)

    assert ctrl.launch(gate.check_access()) is LaunchStep.activation
    assert not ctrl.access_expired


def test_launch_after_expiry_reports_expired(make_controller, gateway, gate, clock):
    gate.activate("123456")
    clock.advance(days=30)
    ctrl = make_controller(gateway)

    access = gate.check_access()
    assert isinstance(access, Denied)
    assert ctrl.launch(access) is LaunchStep.activation
    assert ctrl.access_expired
    assert isinstance(gate.check_access(), NotActivated)


def test_launch_without_role_asks_for_role(make_controller, gateway, gate):
    gate.activate("123456")
    ctrl = make_controller(gateway)

    assert ctrl.launch(gate.check_access()) is LaunchStep.role_selection


def test_launch_with_role_and_no_case_opens_blank_intake(make_controller, gateway, gate):
    gate.activate("123456")
    gate.select_role(UserRole.nurse)
    ctrl = make_controller(gateway)

    assert ctrl.launch(gate.check_access()) is LaunchStep.case
    assert ctrl.state is SessionState.intake
    assert ctrl.role is UserRole.nurse


def test_launch_resumes_last_active_case(make_controller, gate, device, repository):
    stored = make_case(replies=2)
    case_id = repository.create(stored)
    gate.activate("123456")
    gate.select_role(UserRole.paramedic)
    device.remember_case(case_id)
    gateway = ScriptedGateway()
    ctrl = make_controller(gateway)

    assert ctrl.launch(gate.check_access()) is LaunchStep.case

    assert ctrl.state is SessionState.active
    assert ctrl.case == stored.with_id(case_id)
    _, history = gateway.started[-1]
    assert history[0].text == build_intake_prompt(stored.patient)
    assert len(history) == len(stored.chat) + 1

    assert ctrl.send_message("next step?") is True
    assert len(repository.fetch(case_id).chat) == 5


def test_launch_with_dangling_case_pointer_falls_back_to_intake(make_controller, gateway, gate, device):
    gate.activate("123456")
    gate.select_role(UserRole.physician)
    device.remember_case(404)
    ctrl = make_controller(gateway)

    assert ctrl.launch(gate.check_access()) is LaunchStep.case

    assert ctrl.state is SessionState.intake
    assert ctrl.pop_notice().text == "The conversation could not be resumed. Please start a new case."
    assert device.get_last_case_id() is None


def test_resume_failure_clears_pointer_and_returns_to_intake(controller, gateway, repository, device):
    case_id = repository.create(make_case())
    device.remember_case(case_id)
    gateway.fail_start = True

    assert controller.open_case(case_id) is SessionState.intake

    assert controller.case is None
    assert controller.pop_notice().level == "error"
    assert device.get_last_case_id() is None
    assert not controller.is_loading


def test_open_case_from_history_switches_active_case(controller, repository, device):
    fill_intake(controller)
    controller.submit_intake()
    other_id = repository.create(make_case(symptoms="fever"))

    assert controller.open_case(other_id) is SessionState.active

    assert controller.case.title == "fever"
    assert device.get_last_case_id() == other_id


def test_new_case_clears_form_and_pointer(controller, device):
    fill_intake(controller)
    controller.submit_intake()

    controller.start_new_case()

    assert controller.state is SessionState.intake
    assert controller.case is None
    assert controller.form.symptoms == ""
    assert device.get_last_case_id() is None


def test_expiry_during_session_closes_case(controller, clock, device, gateway):
    fill_intake(controller)
    controller.submit_intake()
    sent = len(gateway.sent)
    clock.advance(days=31)

    assert controller.send_message("dose?") is False

    assert controller.access_expired
    assert controller.case is None
    assert controller.state is SessionState.intake
    assert len(gateway.sent) == sent
    assert device.get_role() is None


def test_chest_pain_case_persists_follow_up(controller, repository):
    controller.form.set_age("45")
    controller.form.set_symptoms("chest pain, sweating")

    controller.submit_intake()

    assert controller.case.title == "chest pain"
    assert len(controller.case.chat) == 1

    controller.send_message("is aspirin safe?")

    assert len(repository.fetch(controller.case.id).chat) == 3


# ---------------------------------------------------------------------------
# Local storage failures
# ---------------------------------------------------------------------------


def _locked(*_args, **_kwargs):
    raise sqlite3.OperationalError("database is locked")


def test_unreadable_grant_blocks_follow_up_with_notice(controller, gateway, monkeypatch):
    fill_intake(controller)
    controller.submit_intake()
    sent = len(gateway.sent)
    monkeypatch.setattr(db, "get_setting", _locked)

    assert controller.send_message("dose?") is False

    notice = controller.pop_notice()
    assert notice.level == "error"
    assert notice.retryable
    assert controller.state is SessionState.active
    assert len(controller.case.chat) == 1
    assert len(gateway.sent) == sent
    assert not controller.is_loading
    assert not controller.access_expired


def test_unreadable_grant_blocks_intake_and_open_with_notice(controller, gateway, repository, monkeypatch):
    case_id = repository.create(make_case())
    fill_intake(controller)
    monkeypatch.setattr(db, "get_setting", _locked)

    assert controller.submit_intake() is SessionState.intake
    assert controller.pop_notice().retryable
    assert gateway.sent == []

    assert controller.open_case(case_id) is SessionState.intake
    assert controller.pop_notice().level == "error"
    assert controller.case is None
    assert controller.form.age == "54"


def test_failed_create_returns_to_intake_and_keeps_form(controller, repository, device, monkeypatch):
    fill_intake(controller)
    monkeypatch.setattr(db, "insert_case", _locked)

    assert controller.submit_intake() is SessionState.intake

    notice = controller.pop_notice()
    assert notice.level == "error"
    assert notice.retryable
    assert notice.text == "The case could not be saved. Please try again."
    assert controller.case is None
    assert controller.form.symptoms == "chest pain, dyspnea"
    assert not controller._conversation.has_conversation
    assert not controller.is_loading
    assert repository.list_cases() == []
    assert device.get_last_case_id() is None


def test_failed_update_keeps_reply_in_memory_with_warning(controller, repository, monkeypatch):
    fill_intake(controller)
    controller.submit_intake()
    case_id = controller.case.id
    monkeypatch.setattr(db, "put_case", _locked)

    assert controller.send_message("dose?") is True

    assert [m.sender for m in controller.case.chat] == [Sender.ai, Sender.user, Sender.ai]
    assert controller.pop_notice().level == "warning"
    assert controller.state is SessionState.active
    assert len(repository.fetch(case_id).chat) == 1
