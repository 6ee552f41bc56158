"""Rank-then-score orchestration.

One ``PipelineRun`` per grading request walks the state machine

    VALIDATING -> GENERATING -> RANKING -> INSERTING -> SCORING -> DONE

and drops into ``FAILED`` from any non-terminal state as soon as a stage
reports an error. Each remote stage runs in a worker thread under its own
timeout; nothing is retried and no partial result is produced.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from rankscore.ai.text_judge import TextJudge
from rankscore.errors import (
    IntegrityWarning,
    JudgeTimeoutError,
    PipelineCancelledError,
    PipelineStage,
    RangeViolation,
    StageError,
)
from rankscore.grading.base import GradingRequest, ScoreResult, StageResult
from rankscore.grading.generator import generate_reference_samples
from rankscore.grading.insertion import insert_submission
from rankscore.grading.ranker import rank_reference_samples
from rankscore.grading.score_mapper import map_rank_to_score
from rankscore.grading.validation import validate_grading_request
from rankscore.settings import Settings

logger = logging.getLogger(__name__)

_TRANSITIONS: dict[PipelineStage, frozenset[PipelineStage]] = {
    PipelineStage.VALIDATING: frozenset({PipelineStage.GENERATING, PipelineStage.FAILED}),
    PipelineStage.GENERATING: frozenset({PipelineStage.RANKING, PipelineStage.FAILED}),
    PipelineStage.RANKING: frozenset({PipelineStage.INSERTING, PipelineStage.FAILED}),
    PipelineStage.INSERTING: frozenset({PipelineStage.SCORING, PipelineStage.FAILED}),
    PipelineStage.SCORING: frozenset({PipelineStage.DONE, PipelineStage.FAILED}),
    PipelineStage.DONE: frozenset(),
    PipelineStage.FAILED: frozenset(),
}


@dataclass(frozen=True)
class PipelineConfig:
    generate_timeout_seconds: float = 240.0
    rank_timeout_seconds: float = 120.0
    insert_timeout_seconds: float = 120.0
    generate_temperature: float = 0.8
    rank_temperature: float = 0.3
    insert_temperature: float = 0.3
    strict_ranking: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "PipelineConfig":
        return cls(
            generate_timeout_seconds=settings.generate_timeout_seconds,
            rank_timeout_seconds=settings.rank_timeout_seconds,
            insert_timeout_seconds=settings.insert_timeout_seconds,
            generate_temperature=settings.generate_temperature,
            rank_temperature=settings.rank_temperature,
            insert_temperature=settings.insert_temperature,
            strict_ranking=settings.strict_ranking,
        )


@dataclass
class PipelineRun:
    """Mutable trace of a single grading invocation."""

    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: PipelineStage = PipelineStage.VALIDATING
    history: list[PipelineStage] = field(default_factory=lambda: [PipelineStage.VALIDATING])
    result: ScoreResult | None = None
    error: StageError | None = None
    warnings: list[IntegrityWarning] = field(default_factory=list)
    range_violations: list[RangeViolation] = field(default_factory=list)
    timings_ms: dict[str, int] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.state is PipelineStage.DONE

    def transition(self, new_state: PipelineStage) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal pipeline transition {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)

    def fail(self, error: StageError) -> None:
        self.error = error
        self.transition(PipelineStage.FAILED)


class RankThenScorePipeline:
    def __init__(self, judge: TextJudge, config: PipelineConfig | None = None) -> None:
        self._judge = judge
        self._config = config or PipelineConfig()

    async def grade(self, fields: Mapping[str, object], run: PipelineRun | None = None) -> PipelineRun:
        """Grade one submission. Never raises for stage failures; inspect ``run.error``.

        ``asyncio.CancelledError`` is re-raised after the run is marked FAILED.
        """
        run = run or PipelineRun()
        log_extra = {"request_id": run.request_id}

        validated = validate_grading_request(fields)
        if not validated.ok:
            logger.info("grading request rejected", extra={**log_extra, "stage": PipelineStage.VALIDATING.value, "error": validated.error.message})
            run.fail(validated.error)
            return run
        request = validated.value
        logger.info(
            "rank-then-score started",
            extra={
                **log_extra,
                "stage": PipelineStage.VALIDATING.value,
                "topic_preview": request.topic[:30],
                "content_chars": len(request.submission_content),
                "sample_count": request.sample_count,
            },
        )

        try:
            await self._run_stages(request, run)
        except asyncio.CancelledError:
            logger.warning("grading cancelled", extra={**log_extra, "stage": run.state.value})
            if run.state not in (PipelineStage.DONE, PipelineStage.FAILED):
                run.fail(PipelineCancelledError(run.state, "Grading was cancelled"))
            raise

        if run.error is not None:
            logger.error(
                "rank-then-score failed",
                extra={**log_extra, "stage": run.error.stage.value, "error_code": run.error.error_code, "error": run.error.message},
            )
        else:
            logger.info(
                "rank-then-score finished",
                extra={**log_extra, "stage": run.state.value, "score": run.result.score, "rank": run.result.rank, "timings": run.timings_ms},
            )
        return run

    async def _run_stages(self, request: GradingRequest, run: PipelineRun) -> None:
        cfg = self._config

        run.transition(PipelineStage.GENERATING)
        generated = await self._run_stage(
            run,
            PipelineStage.GENERATING,
            cfg.generate_timeout_seconds,
            generate_reference_samples,
            self._judge,
            request.topic,
            request.rubric,
            request.sample_count,
            temperature=cfg.generate_temperature,
            timeout_seconds=cfg.generate_timeout_seconds,
            request_id=run.request_id,
        )
        if generated is None:
            return
        samples = generated

        run.transition(PipelineStage.RANKING)
        corpus = await self._run_stage(
            run,
            PipelineStage.RANKING,
            cfg.rank_timeout_seconds,
            rank_reference_samples,
            self._judge,
            request.topic,
            request.rubric,
            samples,
            temperature=cfg.rank_temperature,
            timeout_seconds=cfg.rank_timeout_seconds,
            strict=cfg.strict_ranking,
            request_id=run.request_id,
        )
        if corpus is None:
            return

        run.transition(PipelineStage.INSERTING)
        verdict = await self._run_stage(
            run,
            PipelineStage.INSERTING,
            cfg.insert_timeout_seconds,
            insert_submission,
            self._judge,
            request.topic,
            request.rubric,
            request.submission_content,
            corpus,
            temperature=cfg.insert_temperature,
            timeout_seconds=cfg.insert_timeout_seconds,
            request_id=run.request_id,
        )
        if verdict is None:
            return
        if verdict.clamped:
            run.range_violations.append(
                RangeViolation(
                    field_name="rank",
                    raw_value=verdict.raw_rank,
                    clamped_value=verdict.rank,
                    lower=1,
                    upper=corpus.size,
                )
            )

        run.transition(PipelineStage.SCORING)
        mapped = map_rank_to_score(verdict.rank, corpus.size)
        run.result = ScoreResult(
            score=mapped.score,
            rank=verdict.rank,
            total_samples=corpus.size,
            percentile=mapped.percentile,
            reasoning=verdict.reasoning,
            generated_samples=len(samples),
            raw_rank=verdict.raw_rank,
            rank_clamped=verdict.clamped,
            warnings=tuple(str(warning) for warning in run.warnings),
        )
        run.transition(PipelineStage.DONE)

    async def _run_stage(
        self,
        run: PipelineRun,
        stage: PipelineStage,
        stage_timeout: float,
        func: Callable[..., StageResult[Any]],
        *args: Any,
        **kwargs: Any,
    ) -> Any | None:
        started = time.perf_counter()
        try:
            result = await asyncio.wait_for(asyncio.to_thread(func, *args, **kwargs), timeout=stage_timeout)
        except asyncio.TimeoutError as exc:
            run.fail(
                JudgeTimeoutError(
                    stage,
                    f"{stage.value.title()} stage exceeded {stage_timeout:g}s",
                    details={"timeout_seconds": stage_timeout},
                    cause=exc,
                )
            )
            return None
        finally:
            run.timings_ms[stage.value.lower()] = int((time.perf_counter() - started) * 1000)

        run.warnings.extend(result.warnings)
        if not result.ok:
            run.fail(result.error)
            return None
        return result.value
