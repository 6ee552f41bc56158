"""Pipeline states, stage-tagged errors and non-fatal diagnostics."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar


class PipelineStage(str, Enum):
    VALIDATING = "VALIDATING"
    GENERATING = "GENERATING"
    RANKING = "RANKING"
    INSERTING = "INSERTING"
    SCORING = "SCORING"
    DONE = "DONE"
    FAILED = "FAILED"


@dataclass
class StageError(Exception):
    """Base class for failures that halt the grading pipeline."""

    stage: PipelineStage
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    cause: BaseException | None = field(default=None, repr=False, compare=False)

    error_code: ClassVar[str] = "STAGE_ERROR"
    http_status: ClassVar[int] = 500

    def __str__(self) -> str:
        return self.message

    def to_payload(self, request_id: str) -> dict[str, object]:
        return {
            "detail": self.message,
            "error_code": self.error_code,
            "stage": self.stage.value,
            "request_id": request_id,
            "details": self.details,
        }


class InputValidationError(StageError):
    error_code = "INVALID_INPUT"
    http_status = 400


class UpstreamError(StageError):
    """The text judge call itself failed (network, quota, empty output)."""

    error_code = "UPSTREAM_ERROR"
    http_status = 502


class JudgeTimeoutError(StageError):
    error_code = "TIMEOUT"
    http_status = 504


class ParseError(StageError):
    """The judge answered, but its text could not be coerced into the expected structure."""

    error_code = "PARSE_ERROR"
    http_status = 502


class IntegrityViolationError(StageError):
    error_code = "INTEGRITY_ERROR"
    http_status = 502


class PipelineCancelledError(StageError):
    error_code = "CANCELLED"
    http_status = 503


@dataclass(frozen=True)
class RangeViolation:
    """A judge-supplied number fell outside its domain and was clamped."""

    field_name: str
    raw_value: int
    clamped_value: int
    lower: int
    upper: int


@dataclass(frozen=True)
class IntegrityWarning:
    stage: PipelineStage
    code: str
    message: str

    def __str__(self) -> str:
        return f"{self.stage.value.lower()}:{self.code}: {self.message}"
