"""Participant registration, submission and bulk reset.

Submission flow (no transaction spans upload and metadata):

1. validate weight + admission policy (size, extension) before any I/O
2. read the participant; unknown → NotFoundError, already submitted → ConflictError
3. upload the model file (bounded by upload_timeout_seconds)
4. score against the competition's reference_weight/tolerance, once
5. write file_url/time_submitted/submitted_weight/score in one update that
   only applies while file_url is unset; a lost race → ConflictError

If step 5 fails after step 3 succeeded the artifact is orphaned and
PartialFailure carries its reference so complete_submission() can retry
the metadata write alone. Stores without a conditional update leave a
narrow read-then-write race; the guard in step 2 is then best-effort.
"""
from __future__ import annotations

import logging
import secrets
from datetime import datetime
from typing import Any, Callable, Dict, List

from .competition import is_accepting_submissions, utcnow
from .errors import (
    ConflictError,
    NotFoundError,
    PartialFailure,
    ValidationError,
)
from .ranking import is_submitted, submission_count
from .scoring import calculate_score
from .settings import Settings, get_settings
from .store import ObjectStorage, RecordStore, guarded_call
from .types import SUBMISSION_FIELDS
from .validation import (
    CompletionInput,
    InputSanitizer,
    RegistrationInput,
    SubmissionInput,
    normalize_email,
    validate_input,
)

logger = logging.getLogger(__name__)

RESET_MODES = ("clear", "delete")


def cleared_submission() -> Dict[str, Any]:
    fields: Dict[str, Any] = dict.fromkeys(SUBMISSION_FIELDS)
    fields["score"] = 0.0
    return fields


class ParticipantService:
    def __init__(
        self,
        store: RecordStore,
        storage: ObjectStorage,
        *,
        settings: Settings | None = None,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.storage = storage
        self.settings = settings or get_settings()
        self.now = now

    async def register(self, name: str, email: str, college: str) -> Dict[str, Any]:
        """Create or update a participant; an existing submission is kept."""
        data = validate_input(RegistrationInput, name=name, email=email, college=college)
        timeout = self.settings.io_timeout_seconds
        existing = await guarded_call(
            self.store.get_participant(data.email), timeout, "read participant"
        )
        fields: Dict[str, Any] = {"name": data.name, "college": data.college}
        if existing is None:
            fields.update(cleared_submission())
            fields["created_at"] = self.now()
            logger.info(f"Registering participant {data.email}")
        record = await guarded_call(
            self.store.upsert_participant(data.email, fields), timeout, "register participant"
        )
        return record

    async def get(self, email: str) -> Dict[str, Any] | None:
        return await guarded_call(
            self.store.get_participant(normalize_email(email)),
            self.settings.io_timeout_seconds,
            "read participant",
        )

    async def list_participants(self) -> List[Dict[str, Any]]:
        records = await guarded_call(
            self.store.list_participants(),
            self.settings.io_timeout_seconds,
            "list participants",
        )
        # Newest registrations first
        return sorted(
            records,
            key=lambda r: r.get("created_at").timestamp() if r.get("created_at") else 0.0,
            reverse=True,
        )

    async def counts(self) -> Dict[str, int]:
        records = await self.list_participants()
        return {"participants": len(records), "submissions": submission_count(records)}

    async def submit(
        self,
        email: str,
        filename: str,
        data: bytes,
        weight: float,
        competition: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Upload a model file and record the scored submission.

        Args:
            email: Registered identity
            filename: Original file name (extension checked against the allow-list)
            data: File contents
            weight: Participant's self-measured weight
            competition: Latest competition row (reference_weight is read from it)

        Raises:
            ValidationError: bad weight/file, or the round is not active
            NotFoundError: identity never registered
            ConflictError: identity already submitted
            TransientIOError: store/storage failure before anything was written
            PartialFailure: file stored, participant row not updated
        """
        payload = validate_input(
            SubmissionInput,
            email=email,
            weight=weight,
            filename=filename,
            size=len(data),
            max_bytes=self.settings.max_upload_bytes,
            allowed_extensions=self.settings.submission_extensions,
        )
        if not is_accepting_submissions(competition):
            raise ValidationError("Competition is not active")

        existing = await self.get(payload.email)
        if existing is None:
            raise NotFoundError(f"{payload.email} is not registered")
        if is_submitted(existing):
            raise ConflictError(f"{payload.email} has already submitted")

        path = (
            f"{InputSanitizer.sanitize_path_component(payload.email)}/"
            f"{int(self.now().timestamp() * 1000)}-{secrets.token_hex(4)}-"
            f"{InputSanitizer.sanitize_filename(payload.filename)}"
        )
        logger.info(f"Uploading submission for {payload.email} to {path}")
        file_url = await guarded_call(
            self.storage.upload(self.settings.submissions_bucket, path, data),
            self.settings.upload_timeout_seconds,
            "upload submission",
        )
        return await self.complete_submission(payload.email, file_url, payload.weight, competition)

    async def complete_submission(
        self,
        email: str,
        file_url: str,
        weight: float,
        competition: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Write the four submission fields for an already uploaded file.

        Also the retry path after PartialFailure: the upload is not repeated.

        Raises:
            ValidationError: bad weight, email or file_url
            NotFoundError: identity never registered
            ConflictError: identity already submitted
            PartialFailure: the participant row could not be written
        """
        payload = validate_input(CompletionInput, email=email, file_url=file_url, weight=weight)
        email, file_url, weight = payload.email, payload.file_url, payload.weight
        reference = competition.get("reference_weight")
        tolerance = competition.get("tolerance") or self.settings.default_tolerance
        fields = {
            "file_url": file_url,
            "time_submitted": self.now(),
            "submitted_weight": weight,
            "score": calculate_score(weight, reference, tolerance),
        }
        try:
            applied = await guarded_call(
                self.store.update_participant_where_unset(email, "file_url", fields),
                self.settings.io_timeout_seconds,
                "save submission",
            )
        except Exception as e:
            # The file is already stored; any write error keeps its reference for a retry
            logger.error(f"Submission for {email} stored at {file_url} but not saved: {e}")
            raise PartialFailure(file_url) from e
        if not applied:
            if await self.get(email) is None:
                logger.warning(f"Submission for unknown participant {email}; orphaned {file_url}")
                raise NotFoundError(f"{email} is not registered")
            logger.warning(f"Rejected duplicate submission for {email}; orphaned {file_url}")
            raise ConflictError(f"{email} has already submitted")
        logger.info(f"Scored {email}: {fields['score']} (weight {weight} vs {reference})")
        return {"email": email, **fields}

    async def reset_submissions(self, mode: str = "clear") -> int:
        """Clear every submission quartet ('clear') or drop every row ('delete')."""
        if mode not in RESET_MODES:
            raise ValidationError(f"mode must be one of {RESET_MODES}, got {mode!r}")
        timeout = self.settings.io_timeout_seconds
        if mode == "delete":
            affected = await guarded_call(
                self.store.delete_all_participants(), timeout, "delete participants"
            )
        else:
            affected = await guarded_call(
                self.store.update_all_participants(cleared_submission()),
                timeout,
                "clear submissions",
            )
        logger.info(f"reset_submissions({mode}) affected {affected} participants")
        return affected


__all__ = ["ParticipantService", "RESET_MODES", "SUBMISSION_FIELDS", "cleared_submission"]
