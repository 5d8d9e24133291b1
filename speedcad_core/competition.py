"""Core competition clock transitions (pure, no store/storage I/O).

This module implements the pure state machine for a speed-CAD round.
All functions are deterministic given the `now` they are handed.

Architecture:
- State is a plain dict (CompetitionRecord) mirroring the singleton store row
- Commands are plain dicts with a 'type' field (START, PAUSE, RESUME, STOP, RESET, ...)
- apply_transition() takes (record, cmd, now) and returns TransitionOutcome with the new record
- Mutations are performed on a deepcopy to preserve functional purity
- CompetitionClock (clock.py) persists the outcome and only then adopts it

Status machine:
    waiting → active ⇄ paused
    active | paused → expired
    any → waiting (RESET)

Elapsed time:
- Never stored as a counter; derived from start_time + wall clock
- paused_elapsed freezes the value while paused or expired
- RESUME rewrites start_time = now - paused_elapsed so the count continues seamlessly
"""
from __future__ import annotations

import logging
import math
from copy import deepcopy
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from .errors import InvalidTransition, ValidationError
from .scoring import DEFAULT_TOLERANCE
from .validation import MaterialUpdateInput, StartCompetitionInput, validate_input

logger = logging.getLogger(__name__)

WAITING = "waiting"
ACTIVE = "active"
PAUSED = "paused"
EXPIRED = "expired"
STATUSES = (WAITING, ACTIVE, PAUSED, EXPIRED)

# Statuses each command may be issued from
_ALLOWED_FROM = {
    "START": {WAITING, ACTIVE, PAUSED, EXPIRED},
    "PAUSE": {ACTIVE},
    "RESUME": {PAUSED},
    "STOP": {ACTIVE, PAUSED},
    "RESET": {WAITING, ACTIVE, PAUSED, EXPIRED},
    "UPDATE_MATERIAL": {WAITING, ACTIVE, PAUSED, EXPIRED},
    "SET_DRAWING": {WAITING, ACTIVE, PAUSED, EXPIRED},
}


@dataclass
class TransitionOutcome:
    """Result of applying a clock command."""

    record: Dict[str, Any]
    changes: Dict[str, Any]
    previous_status: str


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def default_competition(
    competition_id: int = 1, tolerance: float = DEFAULT_TOLERANCE
) -> Dict[str, Any]:
    """Create the competition row in its bootstrap/reset shape.

    Returns:
        Dict with keys:
        - status: 'waiting'
        - start_time / paused_elapsed: None until START
        - material / reference_weight / drawing_url: None until set by admin
        - tolerance: the configured default (5% unless overridden)
    """
    return {
        "id": competition_id,
        "status": WAITING,
        "start_time": None,
        "paused_elapsed": None,
        "material": None,
        "reference_weight": None,
        "tolerance": tolerance,
        "drawing_url": None,
    }


def current_status(record: Dict[str, Any] | None) -> str:
    if not record:
        return WAITING
    status = record.get("status")
    if status in STATUSES:
        return status
    # Rows written by older clients only carry start_time
    return ACTIVE if record.get("start_time") else WAITING


def compute_elapsed(record: Dict[str, Any] | None, now: datetime) -> int:
    """Whole seconds since start_time, frozen while paused or expired.

    Args:
        record: Latest authoritative competition row
        now: Current wall-clock time (aware)

    Returns:
        - 0 when start_time is unset
        - paused_elapsed when frozen
        - floor((now - start_time) seconds), never negative
    """
    if not record:
        return 0
    start_time = record.get("start_time")
    if start_time is None:
        return 0
    frozen = record.get("paused_elapsed")
    if frozen is not None and current_status(record) in {PAUSED, EXPIRED}:
        return max(0, int(frozen))
    seconds = (now - start_time).total_seconds()
    return max(0, math.floor(seconds))


def format_elapsed(total_seconds: int) -> str:
    """Format seconds as MM:SS, or HH:MM:SS once an hour has passed.

    Examples:
        - 65 → "01:05"
        - 3725 → "01:02:05"
    """
    total_seconds = max(0, int(total_seconds))
    hours, rem = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rem, 60)
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    return f"{minutes:02d}:{seconds:02d}"


def is_accepting_submissions(record: Dict[str, Any] | None) -> bool:
    return current_status(record) == ACTIVE


def _require_from(ctype: str, status: str) -> None:
    allowed = _ALLOWED_FROM.get(ctype)
    if allowed is None:
        raise ValidationError(f"unknown competition command {ctype!r}")
    if status not in allowed:
        raise InvalidTransition(ctype, status)


def _apply(
    record: Dict[str, Any],
    cmd: Dict[str, Any],
    now: datetime,
    default_tolerance: float,
) -> TransitionOutcome:
    """Apply a transition on a deepcopy of the record.

    Command types:
        - START: validate material/reference_weight, start the clock from now
        - PAUSE: freeze elapsed, keep start_time
        - RESUME: shift start_time so elapsed continues from the frozen value
        - STOP: expire the round, keep start_time, freeze elapsed
        - RESET: back to default_competition() (keeps id)
        - UPDATE_MATERIAL: change material and optionally reference_weight
        - SET_DRAWING: attach the uploaded reference drawing
    """
    new_record: Dict[str, Any] = deepcopy(record)
    ctype = cmd.get("type")
    status = current_status(new_record)
    _require_from(ctype, status)

    if ctype == "START":
        params = validate_input(
            StartCompetitionInput,
            material=cmd.get("material"),
            reference_weight=cmd.get("reference_weight"),
            tolerance=cmd.get("tolerance"),
        )
        if status == ACTIVE:
            logger.warning("START issued while already active; restarting the clock")
        new_record["status"] = ACTIVE
        new_record["start_time"] = now
        new_record["paused_elapsed"] = None
        new_record["material"] = params.material
        new_record["reference_weight"] = params.reference_weight
        new_record["tolerance"] = (
            params.tolerance if params.tolerance is not None else default_tolerance
        )

    elif ctype == "PAUSE":
        new_record["paused_elapsed"] = compute_elapsed(new_record, now)
        new_record["status"] = PAUSED

    elif ctype == "RESUME":
        frozen = compute_elapsed(new_record, now)
        new_record["start_time"] = now - timedelta(seconds=frozen)
        new_record["paused_elapsed"] = None
        new_record["status"] = ACTIVE

    elif ctype == "STOP":
        # Already frozen when stopping from paused
        new_record["paused_elapsed"] = compute_elapsed(new_record, now)
        new_record["status"] = EXPIRED

    elif ctype == "RESET":
        new_record = default_competition(record.get("id", 1), default_tolerance)

    elif ctype == "UPDATE_MATERIAL":
        params = validate_input(
            MaterialUpdateInput,
            material=cmd.get("material"),
            reference_weight=cmd.get("reference_weight"),
        )
        new_record["material"] = params.material
        if params.reference_weight is not None:
            new_record["reference_weight"] = params.reference_weight

    elif ctype == "SET_DRAWING":
        drawing_url = cmd.get("drawing_url")
        if not isinstance(drawing_url, str) or not drawing_url.strip():
            raise ValidationError("SET_DRAWING requires non-empty drawing_url")
        new_record["drawing_url"] = drawing_url.strip()

    changes = {
        key: value
        for key, value in new_record.items()
        if key not in record or record.get(key) != value
    }
    return TransitionOutcome(record=new_record, changes=changes, previous_status=status)


def apply_transition(
    record: Dict[str, Any],
    cmd: Dict[str, Any],
    now: datetime | None = None,
    default_tolerance: float = DEFAULT_TOLERANCE,
) -> TransitionOutcome:
    """Apply a clock command to a competition record.

    Args:
        record: Current competition row (not mutated)
        cmd: Command dict with 'type' field and command-specific params
        now: Wall-clock time of the command; defaults to utcnow()
        default_tolerance: Tolerance used by START without one and by RESET

    Returns:
        TransitionOutcome with the new record, the changed fields only, and
        the status before the command

    Raises:
        ValidationError: invalid parameters (record unchanged)
        InvalidTransition: command not allowed from the current status
    """
    outcome = _apply(record, cmd, now or utcnow(), default_tolerance)
    logger.debug(
        f"{cmd.get('type')}: {outcome.previous_status} → {outcome.record.get('status')}"
    )
    return outcome
