from __future__ import annotations

import json
import sys
import threading
import time
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from rankscore.ai.text_judge import JudgeCompletion  # noqa: E402


class ScriptedJudge:
    """Test double that replays canned completions and records every call."""

    def __init__(self, responses: list[JudgeCompletion | str], delay_seconds: float = 0.0) -> None:
        self._responses = list(responses)
        self._delay_seconds = delay_seconds
        self._lock = threading.Lock()
        self.calls: list[dict[str, object]] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        timeout_seconds: float | None = None,
    ) -> JudgeCompletion:
        with self._lock:
            self.calls.append(
                {"system": system_prompt, "user": user_prompt, "temperature": temperature, "timeout_seconds": timeout_seconds}
            )
            if not self._responses:
                raise AssertionError("ScriptedJudge received more calls than scripted responses")
            response = self._responses.pop(0)
        if self._delay_seconds:
            time.sleep(self._delay_seconds)
        if isinstance(response, str):
            return JudgeCompletion(success=True, text=response)
        return response


def samples_text(count: int) -> str:
    samples = [
        {"id": idx, "targetScore": round((idx - 1) * 25 / max(count - 1, 1)), "content": f"參考文章 {idx}：我的夢想是..."}
        for idx in range(1, count + 1)
    ]
    return json.dumps({"samples": samples}, ensure_ascii=False)


def ranking_text(ids: list[int]) -> str:
    return json.dumps({"rankedIds": ids})


def insertion_text(rank: int, reasoning: str = "結構完整，但用詞平實。", compared_count: int | None = None) -> str:
    payload: dict[str, object] = {"rank": rank, "reasoning": reasoning}
    if compared_count is not None:
        payload["comparedCount"] = compared_count
    return json.dumps(payload, ensure_ascii=False)


@pytest.fixture
def judge_factory():
    return ScriptedJudge


@pytest.fixture
def scripted_texts():
    return {"samples": samples_text, "ranking": ranking_text, "insertion": insertion_text}


@pytest.fixture
def grading_fields() -> dict[str, object]:
    return {
        "topic": "我的夢想",
        "content": "我的夢想是成為一名醫生，幫助生病的人恢復健康。",
        "rubric": "content 40%, structure 30%, language 30%",
        "sampleCount": 20,
    }
