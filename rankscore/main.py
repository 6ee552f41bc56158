"""FastAPI application entrypoint."""

import logging
import os

from fastapi import FastAPI
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.responses import Response

from rankscore.errors import PipelineStage
from rankscore.routers.scoring import router as scoring_router
from rankscore.settings import Settings, settings

logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s %(message)s")

app = FastAPI(title=settings.app_name, version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    del request
    errors = [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg", ""), "type": error.get("type", "")}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={
            "detail": "Request body is not valid",
            "error_code": "INVALID_INPUT",
            "stage": PipelineStage.VALIDATING.value,
            "request_id": None,
            "details": {"errors": errors},
        },
    )


app.include_router(scoring_router)


@app.get("/health", tags=["meta"])
def health() -> dict[str, bool | str]:
    openai_api_key = os.getenv("OPENAI_API_KEY", "")
    current = Settings()
    return {
        "ok": True,
        "judge_configured": current.judge_mock or bool(openai_api_key.strip()),
        "model": "mock" if current.judge_mock else current.openai_model,
    }


@app.options("/{path:path}", include_in_schema=False)
async def preflight(path: str) -> Response:
    del path
    return Response(status_code=204)
