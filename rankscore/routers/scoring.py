"""Rank-then-score grading endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from rankscore.ai.text_judge import TextJudge, get_text_judge
from rankscore.auth import require_api_key
from rankscore.pipeline.orchestrator import PipelineConfig, RankThenScorePipeline
from rankscore.schemas import ErrorResponse, ScoreEssayRequest, ScoreEssayResponse
from rankscore.settings import settings

router = APIRouter(tags=["grading"], dependencies=[Depends(require_api_key)])
logger = logging.getLogger(__name__)


def get_judge() -> TextJudge:
    try:
        return get_text_judge()
    except RuntimeError as exc:
        logger.error("text judge unavailable", extra={"stage": "judge_config", "error": str(exc)})
        raise HTTPException(status_code=503, detail=f"Text judge is not configured: {exc}") from exc


def get_pipeline(judge: TextJudge = Depends(get_judge)) -> RankThenScorePipeline:
    return RankThenScorePipeline(judge, PipelineConfig.from_settings(settings))


@router.post(
    "/score_essay",
    response_model=ScoreEssayResponse,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}, 504: {"model": ErrorResponse}},
)
async def score_essay(
    payload: ScoreEssayRequest,
    pipeline: RankThenScorePipeline = Depends(get_pipeline),
) -> ScoreEssayResponse | JSONResponse:
    run = await pipeline.grade(payload.to_fields())
    if run.error is not None:
        return JSONResponse(status_code=run.error.http_status, content=run.error.to_payload(run.request_id))
    return ScoreEssayResponse.from_result(run.result)
