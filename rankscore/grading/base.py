"""Domain types shared by the rank-then-score stages."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from rankscore.ai.text_judge import TextJudge
from rankscore.errors import IntegrityWarning, JudgeTimeoutError, PipelineStage, StageError, UpstreamError

logger = logging.getLogger(__name__)

MIN_SAMPLE_COUNT = 10
MAX_SAMPLE_COUNT = 100
DEFAULT_SAMPLE_COUNT = 50
MAX_SCORE = 25
MAX_SAMPLE_CHARS = 550
SCORING_METHOD = "rank-then-score"

T = TypeVar("T")


def coerce_advisory_int(value: object) -> int | None:
    """Best-effort integer for hint fields the judge formats loosely; ``None`` when unusable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if isinstance(value, float) and math.isfinite(value):
        return math.floor(value + 0.5)
    return None


@dataclass(frozen=True)
class GradingRequest:
    topic: str
    submission_content: str
    rubric: str
    sample_count: int = DEFAULT_SAMPLE_COUNT


@dataclass(frozen=True)
class ReferenceSample:
    id: int
    content: str
    target_score: int | None = None


@dataclass(frozen=True)
class RankedCorpus:
    """Reference samples ordered from worst (first) to best (last)."""

    ranked_ids: tuple[int, ...]
    samples: tuple[ReferenceSample, ...]

    @property
    def size(self) -> int:
        return len(self.ranked_ids)

    def ordered_samples(self) -> list[ReferenceSample]:
        by_id = {sample.id: sample for sample in self.samples}
        return [by_id[sample_id] for sample_id in self.ranked_ids]


@dataclass(frozen=True)
class InsertionVerdict:
    rank: int
    reasoning: str
    raw_rank: int
    compared_count: int | None = None

    @property
    def clamped(self) -> bool:
        return self.rank != self.raw_rank


@dataclass(frozen=True)
class ScoreResult:
    score: str
    rank: int
    total_samples: int
    percentile: int
    reasoning: str
    generated_samples: int
    raw_rank: int
    rank_clamped: bool = False
    method: str = SCORING_METHOD
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class StageResult(Generic[T]):
    """Tagged outcome of one stage: either a value or a stage error."""

    value: T | None = None
    error: StageError | None = None
    warnings: tuple[IntegrityWarning, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T, warnings: tuple[IntegrityWarning, ...] = ()) -> "StageResult[T]":
        return cls(value=value, warnings=tuple(warnings))

    @classmethod
    def failure(cls, error: StageError, warnings: tuple[IntegrityWarning, ...] = ()) -> "StageResult[T]":
        return cls(error=error, warnings=tuple(warnings))


def call_judge(
    judge: TextJudge,
    stage: PipelineStage,
    system_prompt: str,
    user_prompt: str,
    temperature: float,
    request_id: str = "-",
    timeout_seconds: float | None = None,
) -> StageResult[str]:
    started = time.perf_counter()
    try:
        completion = judge.complete(system_prompt, user_prompt, temperature, timeout_seconds=timeout_seconds)
    except Exception as exc:
        logger.exception("text judge raised", extra={"request_id": request_id, "stage": stage.value})
        return StageResult.failure(UpstreamError(stage, f"Text judge raised {type(exc).__name__}: {exc}", cause=exc))

    judge_ms = int((time.perf_counter() - started) * 1000)
    if completion.timed_out:
        logger.warning("text judge timed out", extra={"request_id": request_id, "stage": stage.value, "judge_ms": judge_ms})
        return StageResult.failure(JudgeTimeoutError(stage, completion.error or "Text judge timed out"))
    if not completion.success or not completion.text:
        logger.warning(
            "text judge failed",
            extra={"request_id": request_id, "stage": stage.value, "judge_ms": judge_ms, "error": completion.error},
        )
        return StageResult.failure(UpstreamError(stage, completion.error or "Text judge returned no text"))

    logger.info(
        "text judge answered",
        extra={"request_id": request_id, "stage": stage.value, "judge_ms": judge_ms, "prompt_chars": len(system_prompt) + len(user_prompt)},
    )
    return StageResult.success(completion.text)
