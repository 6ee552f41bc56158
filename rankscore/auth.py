"""Shared-secret guard for the grading routes."""

from __future__ import annotations

import logging
import os
import secrets

from fastapi import Header, HTTPException

logger = logging.getLogger(__name__)


def require_api_key(x_api_key: str | None = Header(default=None, alias="X-API-Key")) -> None:
    """Reject the request unless ``X-API-Key`` matches ``RANKSCORE_API_KEY``.

    The variable is read per request; when it is unset or blank the guard is off.
    """
    expected = os.getenv("RANKSCORE_API_KEY", "").strip()
    if not expected:
        return
    if x_api_key is None or not secrets.compare_digest(x_api_key.encode(), expected.encode()):
        logger.warning("grading request rejected", extra={"stage": "auth", "has_key": x_api_key is not None})
        raise HTTPException(status_code=401, detail="Unauthorized")
