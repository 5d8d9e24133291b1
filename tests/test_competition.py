from datetime import datetime, timedelta, timezone

import pytest

from speedcad_core import (
    InvalidTransition,
    ValidationError,
    apply_transition,
    compute_elapsed,
    current_status,
    default_competition,
    format_elapsed,
)

T0 = datetime(2026, 3, 14, 9, 0, 0, tzinfo=timezone.utc)


def _started(material="Aluminium 6061", weight=1250.0):
    record = default_competition()
    return apply_transition(
        record,
        {"type": "START", "material": material, "reference_weight": weight},
        T0,
    ).record


def test_default_competition_is_waiting():
    record = default_competition(7)
    assert record["id"] == 7
    assert record["status"] == "waiting"
    assert record["start_time"] is None
    assert record["tolerance"] == 5
    assert compute_elapsed(record, T0) == 0


@pytest.mark.parametrize(
    "material, weight",
    [
        ("", 100.0),
        ("   ", 100.0),
        (None, 100.0),
        ("Steel", 0),
        ("Steel", -3.5),
        ("Steel", float("nan")),
        ("Steel", float("inf")),
        ("Steel", "heavy"),
        ("Steel", None),
    ],
)
def test_start_rejects_invalid_parameters_without_state_change(material, weight):
    record = default_competition()
    before = dict(record)
    with pytest.raises(ValidationError):
        apply_transition(
            record, {"type": "START", "material": material, "reference_weight": weight}, T0
        )
    assert record == before
    assert current_status(record) == "waiting"


def test_start_sets_clock_and_parameters():
    record = _started(material="  Brass  ")
    assert record["status"] == "active"
    assert record["start_time"] == T0
    assert record["material"] == "Brass"
    assert record["reference_weight"] == 1250.0
    assert record["tolerance"] == 5
    assert compute_elapsed(record, T0 + timedelta(seconds=90.7)) == 90


def test_start_while_active_overwrites_timing():
    record = _started()
    later = T0 + timedelta(minutes=5)
    outcome = apply_transition(
        record, {"type": "START", "material": "Steel", "reference_weight": 80}, later
    )
    assert outcome.previous_status == "active"
    assert outcome.record["start_time"] == later
    assert outcome.record["material"] == "Steel"
    assert compute_elapsed(outcome.record, later) == 0


def test_pause_freezes_elapsed_and_keeps_start_time():
    record = _started()
    outcome = apply_transition(record, {"type": "PAUSE"}, T0 + timedelta(seconds=30))
    paused = outcome.record
    assert outcome.changes == {"status": "paused", "paused_elapsed": 30}
    assert paused["start_time"] == T0
    assert compute_elapsed(paused, T0 + timedelta(seconds=500)) == 30


def test_resume_continues_from_paused_elapsed():
    record = _started()
    paused = apply_transition(record, {"type": "PAUSE"}, T0 + timedelta(seconds=30)).record
    resume_at = T0 + timedelta(seconds=100)
    resumed = apply_transition(paused, {"type": "RESUME"}, resume_at).record
    assert resumed["status"] == "active"
    assert resumed["paused_elapsed"] is None
    assert resumed["start_time"] == T0 + timedelta(seconds=70)
    assert resumed["start_time"] >= record["start_time"]
    assert compute_elapsed(resumed, resume_at) == 30
    assert compute_elapsed(resumed, resume_at + timedelta(seconds=5)) == 35


def test_stop_expires_and_freezes():
    record = _started()
    stopped = apply_transition(record, {"type": "STOP"}, T0 + timedelta(seconds=50)).record
    assert stopped["status"] == "expired"
    assert stopped["start_time"] == T0
    assert compute_elapsed(stopped, T0 + timedelta(hours=2)) == 50


def test_stop_from_paused_keeps_paused_value():
    record = _started()
    paused = apply_transition(record, {"type": "PAUSE"}, T0 + timedelta(seconds=12)).record
    stopped = apply_transition(paused, {"type": "STOP"}, T0 + timedelta(seconds=40)).record
    assert stopped["status"] == "expired"
    assert compute_elapsed(stopped, T0 + timedelta(seconds=40)) == 12


@pytest.mark.parametrize(
    "status_cmds, cmd",
    [
        ([], "PAUSE"),
        ([], "RESUME"),
        ([], "STOP"),
        (["START"], "RESUME"),
        (["START", "STOP"], "PAUSE"),
        (["START", "STOP"], "RESUME"),
        (["START", "STOP"], "STOP"),
    ],
)
def test_transitions_not_allowed_from_status(status_cmds, cmd):
    record = default_competition()
    for ctype in status_cmds:
        record = apply_transition(
            record, {"type": ctype, "material": "Steel", "reference_weight": 10}, T0
        ).record
    with pytest.raises(InvalidTransition) as exc:
        apply_transition(record, {"type": cmd}, T0)
    assert exc.value.command == cmd
    assert exc.value.status_code == 409


def test_unknown_command_is_validation_error():
    with pytest.raises(ValidationError):
        apply_transition(default_competition(), {"type": "EXPLODE"}, T0)


def test_reset_from_any_state_restores_defaults():
    record = _started()
    record = apply_transition(
        record, {"type": "SET_DRAWING", "drawing_url": "memory://d.pdf"}, T0
    ).record
    expired = apply_transition(record, {"type": "STOP"}, T0 + timedelta(seconds=9)).record
    reset = apply_transition(expired, {"type": "RESET"}, T0 + timedelta(seconds=10)).record
    assert reset == default_competition(record["id"])
    again = apply_transition(reset, {"type": "RESET"}, T0)
    assert again.changes == {}


def test_update_material_keeps_reference_when_omitted():
    record = _started(weight=42.0)
    updated = apply_transition(record, {"type": "UPDATE_MATERIAL", "material": "Titanium"}, T0)
    assert updated.record["material"] == "Titanium"
    assert updated.record["reference_weight"] == 42.0
    assert updated.changes == {"material": "Titanium"}
    with pytest.raises(ValidationError):
        apply_transition(record, {"type": "UPDATE_MATERIAL", "material": ""}, T0)


def test_set_drawing_requires_url():
    with pytest.raises(ValidationError):
        apply_transition(default_competition(), {"type": "SET_DRAWING", "drawing_url": " "}, T0)


def test_elapsed_never_negative_and_legacy_rows():
    record = _started()
    assert compute_elapsed(record, T0 - timedelta(seconds=5)) == 0
    assert current_status({"start_time": T0}) == "active"
    assert current_status({}) == "waiting"
    assert current_status(None) == "waiting"


def test_format_elapsed():
    assert format_elapsed(0) == "00:00"
    assert format_elapsed(65) == "01:05"
    assert format_elapsed(3725) == "01:02:05"
    assert format_elapsed(-4) == "00:00"
