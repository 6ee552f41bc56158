"""Global Ranker: orders the reference corpus from worst to best."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from pydantic import BaseModel, Field, ValidationError

from rankscore.ai.json_extract import extract_json_object, preview
from rankscore.ai.text_judge import TextJudge
from rankscore.errors import IntegrityViolationError, IntegrityWarning, ParseError, PipelineStage
from rankscore.grading.base import RankedCorpus, ReferenceSample, StageResult, call_judge
from rankscore.grading.prompts import rank_samples_system_prompt, rank_samples_user_prompt

logger = logging.getLogger(__name__)

_STAGE = PipelineStage.RANKING


class RankingPayload(BaseModel):
    ranked_ids: list[int] = Field(min_length=1, alias="rankedIds")


@dataclass(frozen=True)
class PermutationReport:
    duplicates: tuple[int, ...] = ()
    unknown: tuple[int, ...] = ()
    missing: tuple[int, ...] = ()

    @property
    def is_permutation(self) -> bool:
        return not (self.duplicates or self.unknown or self.missing)

    def as_details(self) -> dict[str, list[int]]:
        return {"duplicate_ids": list(self.duplicates), "unknown_ids": list(self.unknown), "missing_ids": list(self.missing)}

    def findings(self) -> list[IntegrityWarning]:
        found = []
        if self.duplicates:
            found.append(IntegrityWarning(_STAGE, "duplicate_ids", f"ranking repeats ids {list(self.duplicates)}"))
        if self.unknown:
            found.append(IntegrityWarning(_STAGE, "unknown_ids", f"ranking contains ids never generated {list(self.unknown)}"))
        if self.missing:
            found.append(IntegrityWarning(_STAGE, "missing_ids", f"ranking omits ids {list(self.missing)}"))
        return found


def verify_permutation(ranked_ids: Sequence[int], sample_ids: Sequence[int]) -> PermutationReport:
    expected = set(sample_ids)
    seen: set[int] = set()
    duplicates: list[int] = []
    unknown: list[int] = []
    for sample_id in ranked_ids:
        if sample_id not in expected:
            if sample_id not in unknown:
                unknown.append(sample_id)
            continue
        if sample_id in seen:
            if sample_id not in duplicates:
                duplicates.append(sample_id)
            continue
        seen.add(sample_id)
    missing = [sample_id for sample_id in sample_ids if sample_id not in seen]
    return PermutationReport(tuple(duplicates), tuple(unknown), tuple(missing))


def parse_ranking(text: str, samples: Sequence[ReferenceSample], *, strict: bool = True) -> StageResult[RankedCorpus]:
    extraction = extract_json_object(text)
    if not extraction.ok:
        return StageResult.failure(
            ParseError(_STAGE, f"Ranking could not be parsed: {extraction.error}", details={"response_preview": preview(text)})
        )

    try:
        payload = RankingPayload.model_validate(extraction.payload)
    except ValidationError as exc:
        return StageResult.failure(
            ParseError(
                _STAGE,
                "Ranking response has no valid 'rankedIds' array",
                details={"errors": exc.errors(include_url=False, include_context=False, include_input=False)[:10]},
                cause=exc,
            )
        )

    sample_ids = [sample.id for sample in samples]
    report = verify_permutation(payload.ranked_ids, sample_ids)
    if report.is_permutation:
        return StageResult.success(RankedCorpus(ranked_ids=tuple(payload.ranked_ids), samples=tuple(samples)))

    if strict:
        return StageResult.failure(
            IntegrityViolationError(_STAGE, "Ranking is not a permutation of the generated reference essays", details=report.as_details())
        )

    # Permissive mode keeps the first occurrence of every known id, in judge order.
    known = set(sample_ids)
    kept: list[int] = []
    for sample_id in payload.ranked_ids:
        if sample_id in known and sample_id not in kept:
            kept.append(sample_id)
    warnings = tuple(report.findings())
    if not kept:
        return StageResult.failure(
            IntegrityViolationError(_STAGE, "Ranking references none of the generated reference essays", details=report.as_details()),
            warnings=warnings,
        )
    kept_set = set(kept)
    corpus = RankedCorpus(ranked_ids=tuple(kept), samples=tuple(sample for sample in samples if sample.id in kept_set))
    return StageResult.success(corpus, warnings=warnings)


def rank_reference_samples(
    judge: TextJudge,
    topic: str,
    rubric: str,
    samples: Sequence[ReferenceSample],
    *,
    temperature: float = 0.3,
    strict: bool = True,
    request_id: str = "-",
    timeout_seconds: float | None = None,
) -> StageResult[RankedCorpus]:
    reply = call_judge(
        judge,
        _STAGE,
        rank_samples_system_prompt(),
        rank_samples_user_prompt(topic, rubric, samples),
        temperature,
        request_id=request_id,
        timeout_seconds=timeout_seconds,
    )
    if not reply.ok:
        return StageResult.failure(reply.error)

    result = parse_ranking(reply.value, samples, strict=strict)
    for warning in result.warnings:
        logger.warning(str(warning), extra={"request_id": request_id, "stage": _STAGE.value})
    if not result.ok:
        logger.error(
            "ranking rejected",
            extra={"request_id": request_id, "stage": _STAGE.value, "error": result.error.message, "response_preview": preview(reply.value)},
        )
        return result

    corpus = result.value
    logger.info(
        "reference essays ranked",
        extra={
            "request_id": request_id,
            "stage": _STAGE.value,
            "ranked": corpus.size,
            "worst_id": corpus.ranked_ids[0],
            "best_id": corpus.ranked_ids[-1],
        },
    )
    return result
