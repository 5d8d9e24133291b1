"""Leaderboard ranking (score desc, earlier submission wins ties).

Single source of truth for the public board and admin views:
- Filter: only rows that submitted (file_url or time_submitted present).
- Comparator: score desc; then time_submitted asc, missing times last;
  then email for a deterministic order.
- Rank: dense 1-based position, tied scores never share a rank.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping, Sequence


@dataclass(frozen=True)
class LeaderboardEntry:
    participant_id: str
    rank: int
    name: str
    college: str
    weight_submitted: float
    score: float
    time: datetime | None
    is_new: bool = False


def is_submitted(record: Mapping[str, Any]) -> bool:
    # Either field counts; the two are written together but old rows may carry only one.
    return bool(record.get("file_url") or record.get("time_submitted"))


def submission_count(records: Iterable[Mapping[str, Any]]) -> int:
    return sum(1 for record in records if is_submitted(record))


def _score_of(record: Mapping[str, Any]) -> float:
    score = record.get("score")
    if score is None or isinstance(score, bool):
        return 0.0
    try:
        value = float(score)
    except (TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0


def _time_key(record: Mapping[str, Any]) -> tuple[int, float]:
    submitted_at = record.get("time_submitted")
    if submitted_at is None:
        return (1, 0.0)
    return (0, submitted_at.timestamp())


def _sort_key(record: Mapping[str, Any]) -> tuple:
    missing, ts = _time_key(record)
    return (-_score_of(record), missing, ts, str(record.get("email") or ""))


def _to_entry(record: Mapping[str, Any], rank: int, previous_ids: set[str] | None) -> LeaderboardEntry:
    participant_id = str(record.get("email") or "")
    weight = record.get("submitted_weight")
    return LeaderboardEntry(
        participant_id=participant_id,
        rank=rank,
        name=record.get("name") or "",
        college=record.get("college") or "",
        weight_submitted=float(weight) if weight is not None else 0.0,
        score=_score_of(record),
        time=record.get("time_submitted"),
        is_new=previous_ids is not None and participant_id not in previous_ids,
    )


def compute_leaderboard(
    records: Sequence[Mapping[str, Any]],
    previous_ids: Iterable[str] | None = None,
) -> tuple[LeaderboardEntry, ...]:
    """
    Rank submitted participants.

    Args:
      records: participant rows as read from the store (any order).
      previous_ids: participant ids shown on the previous board; entries not
        in it get is_new=True. None disables new-entry marking.
    """
    prev = set(previous_ids) if previous_ids is not None else None
    submitted = [record for record in records if is_submitted(record)]
    submitted.sort(key=_sort_key)
    return tuple(
        _to_entry(record, rank, prev) for rank, record in enumerate(submitted, start=1)
    )
