from __future__ import annotations

import json

import pytest

from rankscore.errors import ParseError, PipelineStage
from rankscore.grading.base import RankedCorpus, ReferenceSample
from rankscore.grading.insertion import clamp_rank, insert_submission, parse_insertion


def _corpus(count: int = 50) -> RankedCorpus:
    samples = tuple(ReferenceSample(id=idx, content=f"reference {idx}") for idx in range(1, count + 1))
    return RankedCorpus(ranked_ids=tuple(reversed(range(1, count + 1))), samples=samples)


@pytest.mark.parametrize(("raw", "expected"), [(0, 1), (-3, 1), (999, 50), (51, 50), (1, 1), (50, 50), (23, 23)])
def test_clamp_rank(raw: int, expected: int) -> None:
    assert clamp_rank(raw, 50) == expected


@pytest.mark.parametrize(("raw", "expected"), [(0, 1), (999, 50)])
def test_out_of_range_rank_is_clamped_and_flagged(raw: int, expected: int, judge_factory, scripted_texts) -> None:
    judge = judge_factory([scripted_texts["insertion"](raw)])

    result = insert_submission(judge, "topic", "rubric", "my essay", _corpus())

    assert result.ok
    assert result.value.rank == expected
    assert result.value.raw_rank == raw
    assert result.value.clamped is True


def test_in_range_rank_is_not_flagged(judge_factory, scripted_texts) -> None:
    judge = judge_factory([scripted_texts["insertion"](23, reasoning="  立意清楚。  ")])

    result = insert_submission(judge, "topic", "rubric", "my essay", _corpus())

    assert result.value.rank == 23
    assert result.value.clamped is False
    assert result.value.reasoning == "立意清楚。"


def test_prompt_lists_corpus_in_order_without_ids(judge_factory, scripted_texts) -> None:
    judge = judge_factory([scripted_texts["insertion"](2)])

    insert_submission(judge, "topic", "rubric", "my essay", _corpus(3))

    user_prompt = judge.calls[0]["user"]
    assert "[Position 1]\nreference 3" in user_prompt
    assert "[Position 3]\nreference 1" in user_prompt
    assert "[Essay" not in user_prompt
    assert "from 1 (worse than every reference) to 3" in judge.calls[0]["system"]


def test_compared_count_mismatch_is_warned() -> None:
    result = parse_insertion('{"rank": 10, "reasoning": "ok", "comparedCount": 12}', 50)

    assert result.ok
    assert [warning.code for warning in result.warnings] == ["compared_count_mismatch"]


def test_missing_rank_is_parse_error() -> None:
    result = parse_insertion('{"position": 10, "reasoning": "ok"}', 50)

    assert isinstance(result.error, ParseError)
    assert result.error.stage is PipelineStage.INSERTING


def test_fractional_rank_is_parse_error() -> None:
    result = parse_insertion('{"rank": 10.5}', 50)

    assert isinstance(result.error, ParseError)


def test_missing_reasoning_defaults_to_empty() -> None:
    result = parse_insertion('```json\n{"rank": 4,}\n```', 50)

    assert result.value.reasoning == ""
    assert result.value.rank == 4


def test_null_reasoning_is_accepted_as_empty() -> None:
    result = parse_insertion('{"rank": 10, "reasoning": null}', 50)

    assert result.ok
    assert result.value.rank == 10
    assert result.value.reasoning == ""


@pytest.mark.parametrize(("compared", "warned"), [("50", False), (49.6, False), ("all of them", False), (12, True)])
def test_loosely_formatted_compared_count_never_fails(compared: object, warned: bool) -> None:
    text = json.dumps({"rank": 10, "reasoning": "ok", "comparedCount": compared})

    result = parse_insertion(text, 50)

    assert result.ok
    assert bool(result.warnings) is warned
