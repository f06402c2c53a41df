"""Trigger endpoint: one request runs one badge rotation."""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from slowapi import Limiter
from slowapi.util import get_remote_address

from badge_rotator.config import load_settings
from badge_rotator.models.response import RotateResponse
from badge_rotator.services.pipeline import BadgeRotator

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
router = APIRouter()


def build_rotator() -> BadgeRotator:
    """Construct the pipeline from the process configuration."""
    return BadgeRotator(load_settings())


@router.post(
    "/rotate",
    response_model=RotateResponse,
    summary="Rotate the committed badge image",
    description=(
        "Fetches the badge, renders it to an image, archives it, and opens a "
        "pull request replacing the committed badge.\n\n"
        "Answers 200 on success, 400 when configuration is missing, and 500 "
        "when a pipeline stage fails."
    ),
    responses={400: {"model": RotateResponse}, 500: {"model": RotateResponse}},
)
@limiter.limit("2/minute")
def rotate(request: Request) -> JSONResponse:
    logger.info("Rotate request received")

    try:
        rotator = build_rotator()
    except ValidationError as exc:
        logger.warning("Invalid configuration: %s", exc)
        body = RotateResponse(message=f"Invalid configuration: {exc}", stage="configuration")
        return JSONResponse(status_code=400, content=body.model_dump())

    outcome = rotator.run()
    body = RotateResponse(message=outcome.message, stage=outcome.stage)
    return JSONResponse(status_code=outcome.status_code, content=body.model_dump())
