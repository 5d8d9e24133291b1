from .competition import (
    TransitionOutcome,
    apply_transition,
    compute_elapsed,
    current_status,
    default_competition,
    format_elapsed,
    is_accepting_submissions,
)
from .errors import (
    CompetitionError,
    ConflictError,
    InvalidTransition,
    NotFoundError,
    PartialFailure,
    TransientIOError,
    ValidationError,
    describe_error,
)
from .types import CompetitionRecord, ParticipantRecord, TransitionCommand
from .validation import (
    CompletionInput,
    InputSanitizer,
    RegistrationInput,
    StartCompetitionInput,
    SubmissionInput,
)
from .scoring import DEFAULT_TOLERANCE, calculate_score
from .ranking import (
    LeaderboardEntry,
    compute_leaderboard,
    is_submitted,
    submission_count,
)
from .settings import Settings, configure_logging, get_settings
from .store import (
    ChangeFeed,
    InMemoryChangeFeed,
    InMemoryObjectStorage,
    InMemoryRecordStore,
    ObjectStorage,
    RecordStore,
)
from .clock import CompetitionClock
from .participants import ParticipantService
from .leaderboard import Leaderboard

__all__ = [
    "TransitionOutcome",
    "apply_transition",
    "compute_elapsed",
    "current_status",
    "default_competition",
    "format_elapsed",
    "is_accepting_submissions",
    "CompetitionError",
    "ConflictError",
    "InvalidTransition",
    "NotFoundError",
    "PartialFailure",
    "TransientIOError",
    "ValidationError",
    "describe_error",
    "CompetitionRecord",
    "ParticipantRecord",
    "TransitionCommand",
    "CompletionInput",
    "InputSanitizer",
    "RegistrationInput",
    "StartCompetitionInput",
    "SubmissionInput",
    "DEFAULT_TOLERANCE",
    "calculate_score",
    "LeaderboardEntry",
    "compute_leaderboard",
    "is_submitted",
    "submission_count",
    "Settings",
    "configure_logging",
    "get_settings",
    "ChangeFeed",
    "InMemoryChangeFeed",
    "InMemoryObjectStorage",
    "InMemoryRecordStore",
    "ObjectStorage",
    "RecordStore",
    "CompetitionClock",
    "ParticipantService",
    "Leaderboard",
]
