"""Insertion Judge: places the submission within the ordered reference corpus."""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field, ValidationError, field_validator

from rankscore.ai.json_extract import extract_json_object, preview
from rankscore.ai.text_judge import TextJudge
from rankscore.errors import IntegrityWarning, ParseError, PipelineStage
from rankscore.grading.base import InsertionVerdict, RankedCorpus, StageResult, call_judge, coerce_advisory_int
from rankscore.grading.prompts import insert_rank_system_prompt, insert_rank_user_prompt

logger = logging.getLogger(__name__)

_STAGE = PipelineStage.INSERTING


class InsertionPayload(BaseModel):
    rank: int
    reasoning: str = ""
    compared_count: int | None = Field(default=None, alias="comparedCount")

    @field_validator("reasoning", mode="before")
    @classmethod
    def _coerce_reasoning(cls, value: object) -> str:
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)

    @field_validator("compared_count", mode="before")
    @classmethod
    def _coerce_compared_count(cls, value: object) -> int | None:
        return coerce_advisory_int(value)


def clamp_rank(raw_rank: int, total: int) -> int:
    return max(1, min(total, raw_rank))


def parse_insertion(text: str, total: int) -> StageResult[InsertionVerdict]:
    extraction = extract_json_object(text)
    if not extraction.ok:
        return StageResult.failure(
            ParseError(_STAGE, f"Insertion rank could not be parsed: {extraction.error}", details={"response_preview": preview(text)})
        )

    try:
        payload = InsertionPayload.model_validate(extraction.payload)
    except ValidationError as exc:
        return StageResult.failure(
            ParseError(
                _STAGE,
                "Insertion response has no valid integer 'rank'",
                details={"errors": exc.errors(include_url=False, include_context=False, include_input=False)[:10]},
                cause=exc,
            )
        )

    warnings: list[IntegrityWarning] = []
    if payload.compared_count is not None and payload.compared_count != total:
        warnings.append(
            IntegrityWarning(
                _STAGE,
                "compared_count_mismatch",
                f"judge reports comparing against {payload.compared_count} reference essays, {total} were supplied",
            )
        )

    verdict = InsertionVerdict(
        rank=clamp_rank(payload.rank, total),
        reasoning=payload.reasoning.strip(),
        raw_rank=payload.rank,
        compared_count=payload.compared_count,
    )
    return StageResult.success(verdict, warnings=tuple(warnings))


def insert_submission(
    judge: TextJudge,
    topic: str,
    rubric: str,
    submission: str,
    corpus: RankedCorpus,
    *,
    temperature: float = 0.3,
    request_id: str = "-",
    timeout_seconds: float | None = None,
) -> StageResult[InsertionVerdict]:
    ordered_contents = [sample.content for sample in corpus.ordered_samples()]
    total = len(ordered_contents)
    reply = call_judge(
        judge,
        _STAGE,
        insert_rank_system_prompt(total),
        insert_rank_user_prompt(topic, rubric, submission, ordered_contents),
        temperature,
        request_id=request_id,
        timeout_seconds=timeout_seconds,
    )
    if not reply.ok:
        return StageResult.failure(reply.error)

    result = parse_insertion(reply.value, total)
    if not result.ok:
        logger.error(
            "insertion rank rejected",
            extra={"request_id": request_id, "stage": _STAGE.value, "error": result.error.message, "response_preview": preview(reply.value)},
        )
        return result

    verdict = result.value
    if verdict.clamped:
        logger.warning(
            "insertion rank out of range, clamped",
            extra={"request_id": request_id, "stage": _STAGE.value, "raw_rank": verdict.raw_rank, "rank": verdict.rank, "total": total},
        )
    for warning in result.warnings:
        logger.warning(str(warning), extra={"request_id": request_id, "stage": _STAGE.value})
    logger.info(
        "submission inserted",
        extra={"request_id": request_id, "stage": _STAGE.value, "rank": verdict.rank, "total": total},
    )
    return result
