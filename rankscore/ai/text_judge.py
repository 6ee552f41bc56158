"""Text judge clients: the external completion oracle used by the grading stages."""

from __future__ import annotations

import json
import logging
import os
import re
import time
from dataclasses import dataclass
from typing import Protocol

import httpx

from rankscore.settings import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JudgeCompletion:
    success: bool
    text: str | None = None
    error: str | None = None
    timed_out: bool = False


class TextJudge(Protocol):
    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        timeout_seconds: float | None = None,
    ) -> JudgeCompletion:
        """Return the raw completion text. Never parses and never raises.

        ``timeout_seconds`` bounds this one request; implementations may cap it further.
        """


class OpenAITextJudge:
    def __init__(
        self,
        model: str,
        timeout_seconds: float = 180.0,
        max_output_tokens: int = 16384,
    ) -> None:
        api_key = os.getenv("OPENAI_API_KEY", "").strip()
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY is not set")

        from openai import APITimeoutError, OpenAI

        # Retries belong to the caller: the pipeline surfaces every failure.
        self._client = OpenAI(api_key=api_key, timeout=timeout_seconds, max_retries=0)
        self._timeout_errors: tuple[type[BaseException], ...] = (httpx.TimeoutException, TimeoutError, APITimeoutError)
        self.model = model
        self._timeout_seconds = timeout_seconds
        self._max_output_tokens = max_output_tokens

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        timeout_seconds: float | None = None,
    ) -> JudgeCompletion:
        request_timeout = self._timeout_seconds if timeout_seconds is None else min(self._timeout_seconds, timeout_seconds)
        started = time.perf_counter()
        try:
            response = self._client.responses.create(
                model=self.model,
                instructions=system_prompt,
                input=user_prompt,
                temperature=temperature,
                max_output_tokens=self._max_output_tokens,
                timeout=request_timeout,
            )
        except Exception as exc:
            timed_out = isinstance(exc, self._timeout_errors)
            status_code = getattr(exc, "status_code", None)
            logger.warning(
                "text judge request failed",
                extra={
                    "stage": "call_openai",
                    "model": self.model,
                    "status_code": status_code,
                    "timed_out": timed_out,
                    "openai_ms": int((time.perf_counter() - started) * 1000),
                },
            )
            prefix = "OpenAI request timed out" if timed_out else "OpenAI request failed"
            if status_code is not None:
                prefix = f"{prefix} ({status_code})"
            return JudgeCompletion(success=False, error=f"{prefix}: {exc}", timed_out=timed_out)

        text = (response.output_text or "").strip()
        logger.info(
            "text judge completion",
            extra={
                "stage": "call_openai",
                "model": self.model,
                "output_chars": len(text),
                "openai_ms": int((time.perf_counter() - started) * 1000),
            },
        )
        if not text:
            return JudgeCompletion(success=False, error="OpenAI returned an empty completion")
        return JudgeCompletion(success=True, text=text)


_MOCK_COUNT_RE = re.compile(r"exactly (\d+) essays")
_MOCK_SAMPLE_RE = re.compile(r"^\[Essay (\d+)\] \(intended score: (\d+|n/a)")
_MOCK_POSITION_RE = re.compile(r"^\[Position (\d+)\]", re.MULTILINE)


class MockTextJudge:
    """Deterministic offline judge for local development (OPENAI_MOCK=1)."""

    model = "mock"

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        timeout_seconds: float | None = None,
    ) -> JudgeCompletion:
        del temperature, timeout_seconds
        if '"samples"' in system_prompt:
            match = _MOCK_COUNT_RE.search(system_prompt)
            count = int(match.group(1)) if match else 10
            samples = [
                {
                    "id": idx,
                    "targetScore": round((idx - 1) * 25 / max(count - 1, 1)),
                    "content": f"Mock reference essay {idx} of {count}.",
                }
                for idx in range(1, count + 1)
            ]
            return JudgeCompletion(success=True, text="```json\n" + json.dumps({"samples": samples}, ensure_ascii=False) + "\n```")

        if '"rankedIds"' in system_prompt:
            hints: list[tuple[int, int]] = []
            for line in user_prompt.splitlines():
                match = _MOCK_SAMPLE_RE.match(line)
                if match:
                    target = int(match.group(2)) if match.group(2).isdigit() else 0
                    hints.append((target, int(match.group(1))))
            ranked = [sample_id for _, sample_id in sorted(hints)]
            return JudgeCompletion(success=True, text=json.dumps({"rankedIds": ranked}))

        total = len(_MOCK_POSITION_RE.findall(user_prompt))
        verdict = {
            "rank": max(1, (total + 1) // 2),
            "comparedCount": total,
            "reasoning": "Mock judge places every submission in the middle of the corpus.",
        }
        return JudgeCompletion(success=True, text=json.dumps(verdict))


def get_text_judge(current: Settings | None = None) -> TextJudge:
    """Build the judge from the environment as it is now, not as it was at import."""
    current = current or Settings()
    if current.judge_mock:
        return MockTextJudge()
    return OpenAITextJudge(
        model=current.openai_model,
        timeout_seconds=current.judge_request_timeout_seconds,
        max_output_tokens=current.judge_max_output_tokens,
    )
