"""Type definitions for competition and participant records."""
from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional, TypedDict

CompetitionStatus = Literal["waiting", "active", "paused", "expired"]
ResetMode = Literal["clear", "delete"]


class CompetitionRecord(TypedDict, total=False):
    """
    TypedDict representing the singleton competition row.

    All fields are optional (total=False) so partially loaded rows from the
    store still type-check, but default_competition() fills every key.
    """
    id: int
    status: str  # 'waiting' | 'active' | 'paused' | 'expired'

    # Timer
    start_time: Optional[datetime]  # aware UTC
    paused_elapsed: Optional[int]  # Seconds frozen at pause/stop

    # Round parameters (reference_weight is hidden from participants)
    material: Optional[str]
    reference_weight: Optional[float]
    tolerance: float
    drawing_url: Optional[str]


class ParticipantRecord(TypedDict, total=False):
    """A participant row, keyed by normalized email."""
    email: str
    name: str
    college: str
    created_at: Optional[datetime]

    # Submission quartet: all set or all unset
    submitted_weight: Optional[float]
    file_url: Optional[str]
    score: float
    time_submitted: Optional[datetime]


class TransitionCommand(TypedDict, total=False):
    """
    TypedDict for commands sent to apply_transition().

    Fields vary by command type.
    """
    type: str

    # START / UPDATE_MATERIAL
    material: Optional[str]
    reference_weight: Optional[float]
    tolerance: Optional[float]

    # SET_DRAWING
    drawing_url: Optional[str]


SUBMISSION_FIELDS = ("file_url", "time_submitted", "submitted_weight", "score")
