"""Prompt builders for the three text judge stages."""

from __future__ import annotations

from collections.abc import Sequence

from rankscore.grading.base import MAX_SAMPLE_CHARS, MAX_SCORE, ReferenceSample

_SEPARATOR = "\n\n---\n\n"

_DIMENSIONS = (
    "- Content and ideas: is the theme clear, relevant to the topic and well chosen?\n"
    "- Expression and style: is the language fluent, precise and rhetorically effective?\n"
    "- Organization: is the structure complete, are paragraphs ordered, is the logic coherent?\n"
    "- Format and mechanics: character/spelling errors, punctuation, formatting."
)


def generate_samples_system_prompt(count: int, max_score: int = MAX_SCORE, max_chars: int = MAX_SAMPLE_CHARS) -> str:
    return (
        "You are a senior language-arts teacher building a calibration set for essay grading. "
        f"Using the topic and rubric provided, write exactly {count} essays of varying quality.\n\n"
        "Requirements:\n"
        f"1. Target scores range from 0 to {max_score} and follow a bell curve: many in the middle, few at the extremes.\n"
        "2. Cover every quality band:\n"
        "   - Excellent (20-25): profound ideas, vivid language, rigorous structure\n"
        "   - Good (15-19): substantial content, fluent expression, clear structure\n"
        "   - Average (10-14): acceptable content, plain expression, basically complete structure\n"
        "   - Passing (6-9): thin content, weak expression, loose structure\n"
        "   - Failing (0-5): off-topic, many errors, chaotic structure\n"
        f"3. Each essay is at most {max_chars} characters long.\n"
        "4. Every essay must address the topic and be written in the language of the topic.\n"
        f"5. Number the essays with ids 1 to {count}; ids must be unique.\n\n"
        "Respond with pure JSON and no Markdown:\n"
        '{\n  "samples": [\n'
        '    {"id": 1, "targetScore": 3, "content": "..."},\n'
        '    {"id": 2, "targetScore": 14, "content": "..."}\n'
        "  ]\n}"
    )


def generate_samples_user_prompt(topic: str, rubric: str) -> str:
    return f"Write the reference essays.\n\nTopic: {topic}\n\nRubric:\n{rubric}"


def rank_samples_system_prompt() -> str:
    return (
        "You are an expert essay assessor. Order the essays by overall quality against the rubric.\n\n"
        "Requirements:\n"
        "1. Follow the rubric strictly and judge each essay holistically on:\n"
        f"{_DIMENSIONS}\n"
        "2. Order from worst to best: the first id is the weakest essay, the last id is the strongest.\n"
        "3. Include every essay id exactly once. Do not assign scores; return only the ordering.\n"
        "4. The intended score shown with each essay is a hint from its author, not a verdict.\n\n"
        "Respond with pure JSON and no Markdown:\n"
        '{\n  "rankedIds": [7, 2, 15]\n}'
    )


def rank_samples_user_prompt(topic: str, rubric: str, samples: Sequence[ReferenceSample]) -> str:
    blocks = []
    for sample in samples:
        hint = "n/a" if sample.target_score is None else str(sample.target_score)
        blocks.append(f"[Essay {sample.id}] (intended score: {hint})\n{sample.content}")
    return (
        "Order the following essays.\n\n"
        f"Topic: {topic}\n\n"
        f"Rubric:\n{rubric}\n\n"
        f"Essays ({len(samples)} in total):\n\n" + _SEPARATOR.join(blocks)
    )


def insert_rank_system_prompt(total: int) -> str:
    return (
        "You are an expert essay assessor. A real student essay must be placed within a set of "
        f"{total} reference essays that are already ordered from worst to best.\n\n"
        "Requirements:\n"
        "1. Compare the student essay against the references using the rubric and these dimensions:\n"
        f"{_DIMENSIONS}\n"
        f"2. Return the position the student essay deserves, from 1 (worse than every reference) to {total} "
        "(better than every reference).\n"
        "3. Give a short reason (one or two sentences) in the language of the essay.\n"
        "4. Report how many reference essays you compared against as comparedCount.\n\n"
        "Respond with pure JSON and no Markdown:\n"
        f'{{\n  "rank": {max(1, (total + 1) // 2)},\n  "comparedCount": {total},\n  "reasoning": "..."\n}}'
    )


def insert_rank_user_prompt(topic: str, rubric: str, content: str, ordered_contents: Sequence[str]) -> str:
    blocks = [f"[Position {position}]\n{text}" for position, text in enumerate(ordered_contents, start=1)]
    return (
        "Place the following student essay within the ordered reference essays.\n\n"
        f"Topic: {topic}\n\n"
        f"Rubric:\n{rubric}\n\n"
        f"Student essay:\n{content}\n\n---\n\n"
        f"Ordered reference essays ({len(ordered_contents)} in total, worst to best):\n\n" + _SEPARATOR.join(blocks)
    )
