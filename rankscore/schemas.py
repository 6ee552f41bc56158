"""Request and response schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from rankscore.grading.base import SCORING_METHOD, ScoreResult


class ScoreEssayRequest(BaseModel):
    """Body of ``POST /score_essay``.

    Fields are optional here so that missing or blank values reach the
    pipeline's validation stage and come back in the standard error envelope.
    """

    model_config = ConfigDict(populate_by_name=True)

    topic: str | None = None
    content: str | None = None
    rubric: str | None = None
    sample_count: int | None = Field(default=None, alias="sampleCount")

    def to_fields(self) -> dict[str, object]:
        return {"topic": self.topic, "content": self.content, "rubric": self.rubric, "sampleCount": self.sample_count}


class ScoreDetails(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    method: str = SCORING_METHOD
    generated_samples: int = Field(alias="generatedSamples")
    raw_rank: int = Field(alias="rawRank")
    rank_clamped: bool = Field(default=False, alias="rankClamped")
    warnings: list[str] = Field(default_factory=list)


class ScoreEssayResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    score: str
    rank: int
    total_samples: int = Field(alias="totalSamples")
    percentile: int
    reasoning: str
    score_details: ScoreDetails = Field(alias="scoreDetails")

    @classmethod
    def from_result(cls, result: ScoreResult) -> "ScoreEssayResponse":
        return cls(
            score=result.score,
            rank=result.rank,
            total_samples=result.total_samples,
            percentile=result.percentile,
            reasoning=result.reasoning,
            score_details=ScoreDetails(
                method=result.method,
                generated_samples=result.generated_samples,
                raw_rank=result.raw_rank,
                rank_clamped=result.rank_clamped,
                warnings=list(result.warnings),
            ),
        )


class ErrorResponse(BaseModel):
    detail: str
    error_code: str
    stage: str | None = None
    request_id: str | None = None
    details: dict[str, object] = Field(default_factory=dict)
