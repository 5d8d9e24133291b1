from __future__ import annotations

from datetime import datetime, timedelta, timezone

from speedcad_core import compute_leaderboard, is_submitted, submission_count

T0 = datetime(2026, 3, 14, 9, 0, 0, tzinfo=timezone.utc)


def _row(email, score, at=None, file_url="memory://f", weight=100.0, **extra):
    row = {
        "email": email,
        "name": email.split("@")[0].title(),
        "college": "MIT",
        "score": score,
        "submitted_weight": weight,
        "file_url": file_url,
        "time_submitted": T0 + timedelta(seconds=at) if at is not None else None,
    }
    row.update(extra)
    return row


def test_ranks_by_score_descending():
    records = [_row("c@x.io", 40, 1), _row("a@x.io", 95.5, 3), _row("b@x.io", 60, 2)]
    out = compute_leaderboard(records)
    assert [e.participant_id for e in out] == ["a@x.io", "b@x.io", "c@x.io"]
    assert [e.rank for e in out] == [1, 2, 3]
    assert out[0].name == "A"
    assert out[0].weight_submitted == 100.0


def test_equal_scores_earlier_submission_wins():
    records = [_row("late@x.io", 80, at=10), _row("early@x.io", 80, at=5)]
    out = compute_leaderboard(records)
    assert [e.participant_id for e in out] == ["early@x.io", "late@x.io"]
    # Dense rank: no shared positions
    assert [e.rank for e in out] == [1, 2]


def test_missing_time_sorts_after_timed_within_same_score():
    records = [
        _row("untimed@x.io", 70, at=None),
        _row("timed@x.io", 70, at=99),
        _row("better@x.io", 71, at=None),
    ]
    out = compute_leaderboard(records)
    assert [e.participant_id for e in out] == ["better@x.io", "timed@x.io", "untimed@x.io"]


def test_unsubmitted_rows_never_appear():
    records = [
        _row("ghost@x.io", 99, at=None, file_url=None),
        _row("real@x.io", 10, at=1),
        _row("time-only@x.io", 5, at=2, file_url=None),
    ]
    out = compute_leaderboard(records)
    assert [e.participant_id for e in out] == ["real@x.io", "time-only@x.io"]
    assert submission_count(records) == 2
    assert not is_submitted(records[0])


def test_missing_or_bad_scores_count_as_zero():
    records = [_row("none@x.io", None, at=1), _row("nan@x.io", float("nan"), at=0)]
    out = compute_leaderboard(records)
    assert [e.score for e in out] == [0.0, 0.0]
    assert [e.participant_id for e in out] == ["nan@x.io", "none@x.io"]


def test_marks_entries_missing_from_previous_board_as_new():
    records = [_row("a@x.io", 50, 1), _row("b@x.io", 40, 2)]
    first = compute_leaderboard(records)
    assert all(e.is_new is False for e in first)
    second = compute_leaderboard(records, previous_ids={"a@x.io"})
    assert {e.participant_id: e.is_new for e in second} == {"a@x.io": False, "b@x.io": True}


def test_empty_collection():
    assert compute_leaderboard([]) == ()
    assert submission_count([]) == 0
