"""Sample Generator: synthesizes the reference corpus for one grading request."""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field, ValidationError, field_validator

from rankscore.ai.json_extract import extract_json_object, preview
from rankscore.ai.text_judge import TextJudge
from rankscore.errors import IntegrityWarning, ParseError, PipelineStage
from rankscore.grading.base import MAX_SAMPLE_CHARS, ReferenceSample, StageResult, call_judge, coerce_advisory_int
from rankscore.grading.prompts import generate_samples_system_prompt, generate_samples_user_prompt

logger = logging.getLogger(__name__)

_STAGE = PipelineStage.GENERATING


class GeneratedSample(BaseModel):
    id: int
    content: str = Field(min_length=1)
    target_score: int | None = Field(default=None, alias="targetScore")

    # Advisory hint; unusable values become None.
    @field_validator("target_score", mode="before")
    @classmethod
    def _coerce_target_score(cls, value: object) -> int | None:
        return coerce_advisory_int(value)


class GenerationPayload(BaseModel):
    samples: list[GeneratedSample] = Field(min_length=1)


def parse_generated_samples(text: str, count: int, max_chars: int = MAX_SAMPLE_CHARS) -> StageResult[list[ReferenceSample]]:
    extraction = extract_json_object(text)
    if not extraction.ok:
        return StageResult.failure(
            ParseError(_STAGE, f"Reference essays could not be parsed: {extraction.error}", details={"response_preview": preview(text)})
        )

    if not isinstance(extraction.payload.get("samples"), list) or not extraction.payload["samples"]:
        return StageResult.failure(
            ParseError(_STAGE, "Reference essay response has no non-empty 'samples' array", details={"keys": sorted(extraction.payload)})
        )

    try:
        payload = GenerationPayload.model_validate(extraction.payload)
    except ValidationError as exc:
        return StageResult.failure(
            ParseError(_STAGE, "Reference essays have an invalid shape", details={"errors": exc.errors(include_url=False, include_context=False, include_input=False)[:10]}, cause=exc)
        )

    seen: set[int] = set()
    duplicates: list[int] = []
    for item in payload.samples:
        if item.id in seen:
            duplicates.append(item.id)
        seen.add(item.id)
    if duplicates:
        return StageResult.failure(
            ParseError(_STAGE, "Reference essays contain duplicate ids", details={"duplicate_ids": sorted(set(duplicates))})
        )

    warnings: list[IntegrityWarning] = []
    items = payload.samples
    if len(items) > count:
        logger.info("discarding surplus reference essays", extra={"stage": _STAGE.value, "received": len(items), "requested": count})
        items = items[:count]
    elif len(items) < count:
        warnings.append(
            IntegrityWarning(_STAGE, "sample_shortfall", f"requested {count} reference essays, received {len(items)}")
        )

    samples: list[ReferenceSample] = []
    truncated: list[int] = []
    for item in items:
        content = item.content.strip()
        if not content:
            return StageResult.failure(ParseError(_STAGE, f"Reference essay {item.id} has empty content", details={"sample_id": item.id}))
        if len(content) > max_chars:
            truncated.append(item.id)
            content = content[:max_chars]
        samples.append(ReferenceSample(id=item.id, content=content, target_score=item.target_score))
    if truncated:
        warnings.append(
            IntegrityWarning(_STAGE, "sample_truncated", f"{len(truncated)} reference essay(s) exceeded {max_chars} characters and were truncated")
        )

    return StageResult.success(samples, warnings=tuple(warnings))


def generate_reference_samples(
    judge: TextJudge,
    topic: str,
    rubric: str,
    count: int,
    *,
    temperature: float = 0.8,
    request_id: str = "-",
    timeout_seconds: float | None = None,
) -> StageResult[list[ReferenceSample]]:
    reply = call_judge(
        judge,
        _STAGE,
        generate_samples_system_prompt(count),
        generate_samples_user_prompt(topic, rubric),
        temperature,
        request_id=request_id,
        timeout_seconds=timeout_seconds,
    )
    if not reply.ok:
        return StageResult.failure(reply.error)

    result = parse_generated_samples(reply.value, count)
    if not result.ok:
        logger.error(
            "reference essay parsing failed",
            extra={"request_id": request_id, "stage": _STAGE.value, "error": result.error.message, "response_preview": preview(reply.value, 1000)},
        )
        return result

    for warning in result.warnings:
        logger.warning(str(warning), extra={"request_id": request_id, "stage": _STAGE.value})
    logger.info(
        "reference essays generated",
        extra={"request_id": request_id, "stage": _STAGE.value, "requested": count, "generated": len(result.value)},
    )
    return result
