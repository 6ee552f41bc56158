"""Request validation run before any text judge call."""

from __future__ import annotations

from collections.abc import Mapping

from rankscore.errors import InputValidationError, PipelineStage
from rankscore.grading.base import (
    DEFAULT_SAMPLE_COUNT,
    MAX_SAMPLE_COUNT,
    MIN_SAMPLE_COUNT,
    GradingRequest,
    StageResult,
)

REQUIRED_FIELDS = ("topic", "content", "rubric")


def validate_grading_request(fields: Mapping[str, object]) -> StageResult[GradingRequest]:
    """Build a ``GradingRequest`` from raw request fields or explain why not.

    ``fields`` uses the wire names: ``topic``, ``content``, ``rubric`` and the
    optional ``sampleCount``.
    """
    missing = [
        name
        for name in REQUIRED_FIELDS
        if not isinstance(fields.get(name), str) or not str(fields.get(name)).strip()
    ]
    if missing:
        return StageResult.failure(
            InputValidationError(
                PipelineStage.VALIDATING,
                f"Missing or empty required field(s): {', '.join(missing)}",
                details={"missing_fields": missing},
            )
        )

    raw_count = fields.get("sampleCount")
    if raw_count is None:
        sample_count = DEFAULT_SAMPLE_COUNT
    elif isinstance(raw_count, bool) or not isinstance(raw_count, int):
        return StageResult.failure(
            InputValidationError(
                PipelineStage.VALIDATING,
                "sampleCount must be an integer",
                details={"sampleCount": repr(raw_count)},
            )
        )
    else:
        sample_count = raw_count

    if not MIN_SAMPLE_COUNT <= sample_count <= MAX_SAMPLE_COUNT:
        return StageResult.failure(
            InputValidationError(
                PipelineStage.VALIDATING,
                f"sampleCount must be between {MIN_SAMPLE_COUNT} and {MAX_SAMPLE_COUNT}",
                details={"sampleCount": sample_count, "min": MIN_SAMPLE_COUNT, "max": MAX_SAMPLE_COUNT},
            )
        )

    return StageResult.success(
        GradingRequest(
            topic=str(fields["topic"]).strip(),
            submission_content=str(fields["content"]).strip(),
            rubric=str(fields["rubric"]).strip(),
            sample_count=sample_count,
        )
    )
