"""
Input validation schemas using Pydantic v2
Validates admin parameters, registrations and submission uploads
"""

import logging
import math
import os
import re
from typing import Any, Optional, Self, Sequence, Type, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _reject_bool(value: Any, info: ValidationInfo) -> Any:
    # Runs before coercion; pydantic would otherwise turn True into 1.0
    if isinstance(value, bool):
        raise ValueError(f"{info.field_name} must be a number")
    return value


def _positive_finite(value: float, field: str) -> float:
    if not math.isfinite(value) or value <= 0:
        raise ValueError(f"{field} must be a positive finite number")
    return value


# ==================== ADMIN INPUT ====================


class StartCompetitionInput(BaseModel):
    """Parameters required to move the clock into 'active'."""

    material: str = Field(..., max_length=255, description="Material label")
    reference_weight: float = Field(..., description="Ground-truth weight")
    tolerance: Optional[float] = Field(None, description="Tolerance percentage")

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("reference_weight", "tolerance", mode="before")
    @classmethod
    def reject_bool(cls, v: Any, info: ValidationInfo) -> Any:
        return _reject_bool(v, info)

    @field_validator("material")
    @classmethod
    def validate_material(cls, v: str) -> str:
        v = InputSanitizer.sanitize_string(v, 255)
        if len(v) == 0:
            raise ValueError("material cannot be empty")
        return v

    @field_validator("reference_weight")
    @classmethod
    def validate_reference_weight(cls, v: float) -> float:
        return _positive_finite(v, "reference_weight")

    @field_validator("tolerance")
    @classmethod
    def validate_tolerance(cls, v: Optional[float]) -> Optional[float]:
        if v is None:
            return v
        return _positive_finite(v, "tolerance")


class MaterialUpdateInput(BaseModel):
    material: str = Field(..., max_length=255)
    reference_weight: Optional[float] = None

    @field_validator("reference_weight", mode="before")
    @classmethod
    def reject_bool(cls, v: Any, info: ValidationInfo) -> Any:
        return _reject_bool(v, info)

    @field_validator("material")
    @classmethod
    def validate_material(cls, v: str) -> str:
        v = InputSanitizer.sanitize_string(v, 255)
        if len(v) == 0:
            raise ValueError("material cannot be empty")
        return v

    @field_validator("reference_weight")
    @classmethod
    def validate_reference_weight(cls, v: Optional[float]) -> Optional[float]:
        if v is None:
            return v
        return _positive_finite(v, "reference_weight")


# ==================== PARTICIPANT INPUT ====================


class RegistrationInput(BaseModel):
    """Registration form; email is the identity key."""

    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=320)
    college: str = Field(..., min_length=1, max_length=255)

    @field_validator("name", "college")
    @classmethod
    def validate_text(cls, v: str) -> str:
        v = InputSanitizer.sanitize_display_text(v)
        if len(v) == 0:
            raise ValueError("value cannot be empty")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = normalize_email(v)
        if not EMAIL_RE.match(v):
            raise ValueError("email is not a valid address")
        return v


class SubmissionInput(BaseModel):
    """A model upload plus the participant's self-measured weight."""

    email: str = Field(..., min_length=3, max_length=320)
    weight: float
    filename: str = Field(..., min_length=1, max_length=255)
    size: int = Field(..., ge=0)

    # Admission policy, filled from Settings by the caller
    max_bytes: int = Field(..., gt=0)
    allowed_extensions: Sequence[str]

    @field_validator("weight", mode="before")
    @classmethod
    def reject_bool(cls, v: Any, info: ValidationInfo) -> Any:
        return _reject_bool(v, info)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("weight")
    @classmethod
    def validate_weight(cls, v: float) -> float:
        return _positive_finite(v, "weight")

    @model_validator(mode="after")
    def validate_upload(self) -> Self:
        check_upload(self.filename, self.size, self.max_bytes, self.allowed_extensions)
        return self


class CompletionInput(BaseModel):
    """Metadata for a file that is already in storage (PartialFailure retry)."""

    email: str = Field(..., min_length=3, max_length=320)
    file_url: str = Field(..., min_length=1)
    weight: float

    @field_validator("weight", mode="before")
    @classmethod
    def reject_bool(cls, v: Any, info: ValidationInfo) -> Any:
        return _reject_bool(v, info)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("file_url")
    @classmethod
    def validate_file_url(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("file_url cannot be empty")
        return v

    @field_validator("weight")
    @classmethod
    def validate_weight(cls, v: float) -> float:
        return _positive_finite(v, "weight")


# ==================== HELPERS ====================


def normalize_email(email: str) -> str:
    return InputSanitizer.sanitize_string(email, 320).lower()


def file_extension(filename: str) -> str:
    """Lowercase dotted suffix of the last path component ("" if none)."""
    _, ext = os.path.splitext(os.path.basename(filename or ""))
    return ext.lower()


def check_upload(
    filename: str,
    size: int,
    max_bytes: int,
    allowed_extensions: Sequence[str],
) -> None:
    """Admission policy applied before any upload attempt.

    Raises:
        ValueError: oversize file or extension not in the allow-list
    """
    if size > max_bytes:
        mb = max_bytes // (1024 * 1024)
        raise ValueError(f"File is too large. Maximum size is {mb}MB.")
    ext = file_extension(filename)
    if ext not in allowed_extensions:
        raise ValueError(
            f"File type not allowed. Accepted formats: {', '.join(allowed_extensions)}"
        )


def validate_input(model: Type[ModelT], **data) -> ModelT:
    """
    Validate keyword data against a schema

    Returns:
        The validated model instance

    Raises:
        ValidationError: If validation fails
    """
    try:
        return model(**data)
    except PydanticValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or model.__name__}: {err['msg']}"
            for err in e.errors()
        )
        logger.warning(f"{model.__name__} validation failed: {details}")
        raise ValidationError(details) from e


class InputSanitizer:
    """Utility class for input sanitization"""

    @staticmethod
    def sanitize_string(value: str, max_length: int = 255) -> str:
        """Sanitize string input"""
        if not isinstance(value, str):
            return str(value)[:max_length]

        # Strip whitespace
        value = value.strip()

        # Limit length
        value = value[:max_length]

        # Remove null bytes
        value = value.replace("\0", "")

        return value

    @staticmethod
    def sanitize_display_text(text: str) -> str:
        """Sanitize names/colleges shown on the public leaderboard"""
        text = InputSanitizer.sanitize_string(text, 255)

        # Keep letters (including diacritics), numbers, spaces, dashes, apostrophes
        dangerous_chars = r'[<>{}[\]\\|;`"\x00-\x1f\x7f]'
        text = re.sub(dangerous_chars, "", text)

        return text.strip()

    @staticmethod
    def sanitize_path_component(value: str) -> str:
        """Replace anything outside [A-Za-z0-9] with underscores for storage paths"""
        return re.sub(r"[^a-zA-Z0-9]", "_", value)

    @staticmethod
    def sanitize_filename(filename: str) -> str:
        name = os.path.basename(InputSanitizer.sanitize_string(filename, 255))
        return re.sub(r"[^\w.\-]", "_", name) or "upload"


# ==================== EXPORT ====================

__all__ = [
    "StartCompetitionInput",
    "MaterialUpdateInput",
    "RegistrationInput",
    "SubmissionInput",
    "CompletionInput",
    "InputSanitizer",
    "check_upload",
    "file_extension",
    "normalize_email",
    "validate_input",
]
