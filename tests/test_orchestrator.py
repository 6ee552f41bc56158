from __future__ import annotations

import asyncio

import pytest

from rankscore.ai.text_judge import JudgeCompletion, MockTextJudge
from rankscore.errors import (
    InputValidationError,
    IntegrityViolationError,
    JudgeTimeoutError,
    ParseError,
    PipelineCancelledError,
    PipelineStage,
    UpstreamError,
)
from rankscore.pipeline.orchestrator import PipelineConfig, PipelineRun, RankThenScorePipeline

HAPPY_PATH = [
    PipelineStage.VALIDATING,
    PipelineStage.GENERATING,
    PipelineStage.RANKING,
    PipelineStage.INSERTING,
    PipelineStage.SCORING,
    PipelineStage.DONE,
]


def _happy_judge(judge_factory, scripted_texts, rank: int = 7, count: int = 20):
    return judge_factory(
        [
            scripted_texts["samples"](count),
            scripted_texts["ranking"](list(range(count, 0, -1))),
            scripted_texts["insertion"](rank, compared_count=count),
        ]
    )


def test_end_to_end_scenario(judge_factory, scripted_texts, grading_fields) -> None:
    judge = _happy_judge(judge_factory, scripted_texts, rank=7)

    run = asyncio.run(RankThenScorePipeline(judge).grade(grading_fields))

    assert run.succeeded
    assert run.history == HAPPY_PATH
    assert run.error is None
    result = run.result
    assert 1 <= result.rank <= 20
    assert result.total_samples == 20
    assert result.generated_samples == 20
    assert result.score == "9/25"
    assert result.percentile == 35
    assert result.method == "rank-then-score"
    assert result.rank_clamped is False
    assert judge.call_count == 3
    assert set(run.timings_ms) == {"generating", "ranking", "inserting"}


@pytest.mark.parametrize("sample_count", [5, 150, 0, 9, 101])
def test_out_of_bounds_sample_count_makes_no_judge_calls(sample_count: int, judge_factory, grading_fields) -> None:
    judge = judge_factory([])
    fields = {**grading_fields, "sampleCount": sample_count}

    run = asyncio.run(RankThenScorePipeline(judge).grade(fields))

    assert run.state is PipelineStage.FAILED
    assert isinstance(run.error, InputValidationError)
    assert run.error.stage is PipelineStage.VALIDATING
    assert judge.call_count == 0


@pytest.mark.parametrize("missing", ["topic", "content", "rubric"])
def test_blank_required_field_is_rejected(missing: str, judge_factory, grading_fields) -> None:
    judge = judge_factory([])
    fields = {**grading_fields, missing: "   "}

    run = asyncio.run(RankThenScorePipeline(judge).grade(fields))

    assert isinstance(run.error, InputValidationError)
    assert run.error.details["missing_fields"] == [missing]
    assert judge.call_count == 0


def test_default_sample_count_is_fifty(judge_factory, scripted_texts, grading_fields) -> None:
    judge = _happy_judge(judge_factory, scripted_texts, rank=25, count=50)
    fields = {key: value for key, value in grading_fields.items() if key != "sampleCount"}

    run = asyncio.run(RankThenScorePipeline(judge).grade(fields))

    assert run.result.total_samples == 50
    assert run.result.score == "13/25"
    assert run.result.percentile == 50
    assert "exactly 50 essays" in judge.calls[0]["system"]


@pytest.mark.parametrize(("raw", "expected"), [(0, 1), (999, 20)])
def test_out_of_range_insertion_is_clamped_before_scoring(raw: int, expected: int, judge_factory, scripted_texts, grading_fields) -> None:
    judge = _happy_judge(judge_factory, scripted_texts, rank=raw)

    run = asyncio.run(RankThenScorePipeline(judge).grade(grading_fields))

    assert run.succeeded
    assert run.result.rank == expected
    assert run.result.raw_rank == raw
    assert run.result.rank_clamped is True
    assert len(run.range_violations) == 1
    violation = run.range_violations[0]
    assert (violation.raw_value, violation.clamped_value, violation.lower, violation.upper) == (raw, expected, 1, 20)


def test_generation_parse_failure_halts_pipeline(judge_factory, grading_fields) -> None:
    judge = judge_factory(["Sorry, here are some essays without JSON."])

    run = asyncio.run(RankThenScorePipeline(judge).grade(grading_fields))

    assert run.history == [PipelineStage.VALIDATING, PipelineStage.GENERATING, PipelineStage.FAILED]
    assert isinstance(run.error, ParseError)
    assert run.error.stage is PipelineStage.GENERATING
    assert run.result is None
    assert judge.call_count == 1


def test_ranking_upstream_failure_halts_before_insertion(judge_factory, scripted_texts, grading_fields) -> None:
    judge = judge_factory([scripted_texts["samples"](20), JudgeCompletion(success=False, error="rate limited")])

    run = asyncio.run(RankThenScorePipeline(judge).grade(grading_fields))

    assert isinstance(run.error, UpstreamError)
    assert run.error.stage is PipelineStage.RANKING
    assert judge.call_count == 2


def test_strict_ranking_rejects_partial_permutation(judge_factory, scripted_texts, grading_fields) -> None:
    judge = judge_factory([scripted_texts["samples"](20), scripted_texts["ranking"](list(range(1, 19)))])

    run = asyncio.run(RankThenScorePipeline(judge).grade(grading_fields))

    assert isinstance(run.error, IntegrityViolationError)
    assert run.error.details["missing_ids"] == [19, 20]


def test_permissive_ranking_scores_against_ranked_subset(judge_factory, scripted_texts, grading_fields) -> None:
    judge = judge_factory(
        [
            scripted_texts["samples"](20),
            scripted_texts["ranking"](list(range(1, 11))),
            scripted_texts["insertion"](5),
        ]
    )
    pipeline = RankThenScorePipeline(judge, PipelineConfig(strict_ranking=False))

    run = asyncio.run(pipeline.grade(grading_fields))

    assert run.succeeded
    assert run.result.total_samples == 10
    assert run.result.generated_samples == 20
    assert run.result.score == "13/25"
    assert any("missing_ids" in warning for warning in run.result.warnings)


def test_stage_timeout_is_distinct_from_upstream_error(judge_factory, scripted_texts, grading_fields) -> None:
    judge = judge_factory([scripted_texts["samples"](20)], delay_seconds=0.5)
    pipeline = RankThenScorePipeline(judge, PipelineConfig(generate_timeout_seconds=0.05))

    run = asyncio.run(pipeline.grade(grading_fields))

    assert isinstance(run.error, JudgeTimeoutError)
    assert not isinstance(run.error, UpstreamError)
    assert run.error.stage is PipelineStage.GENERATING
    assert run.error.error_code == "TIMEOUT"
    assert judge.call_count == 1


def test_cancellation_fails_run_without_later_stages(judge_factory, scripted_texts, grading_fields) -> None:
    judge = judge_factory([scripted_texts["samples"](20)], delay_seconds=0.3)
    run = PipelineRun()

    async def _cancel_midway() -> None:
        task = asyncio.create_task(RankThenScorePipeline(judge).grade(grading_fields, run=run))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(_cancel_midway())

    assert run.state is PipelineStage.FAILED
    assert isinstance(run.error, PipelineCancelledError)
    assert run.error.stage is PipelineStage.GENERATING
    assert judge.call_count == 1


def test_illegal_transition_raises() -> None:
    run = PipelineRun()

    with pytest.raises(RuntimeError):
        run.transition(PipelineStage.SCORING)


def test_mock_judge_drives_full_pipeline(grading_fields) -> None:
    run = asyncio.run(RankThenScorePipeline(MockTextJudge()).grade(grading_fields))

    assert run.succeeded
    assert run.result.total_samples == 20
    assert run.result.rank == 10
    assert run.result.score == "13/25"
    assert run.warnings == []


def test_each_judge_call_is_bounded_by_its_stage_timeout(judge_factory, scripted_texts, grading_fields) -> None:
    judge = _happy_judge(judge_factory, scripted_texts)
    config = PipelineConfig(generate_timeout_seconds=90, rank_timeout_seconds=45, insert_timeout_seconds=30)

    run = asyncio.run(RankThenScorePipeline(judge, config).grade(grading_fields))

    assert run.succeeded
    assert [call["timeout_seconds"] for call in judge.calls] == [90, 45, 30]
