import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from quiz_sensei.ai_engine import (
    CompletionError,
    CompletionGateway,
    CompletionTimeoutError,
    get_gateway,
)
from quiz_sensei.core.config import settings
from quiz_sensei.schemas.deep_dive import DeepDiveRequest
from quiz_sensei.schemas.envelope import (
    DeepDiveResponse,
    ErrorResponse,
    QuestionsResponse,
    TitleResponse,
)
from quiz_sensei.schemas.quiz import QuestionsRequest
from quiz_sensei.schemas.title import TitleRequest
from quiz_sensei.services.generation import (
    generate_deep_dive,
    generate_questions,
    generate_title,
)
from quiz_sensei.services.prompts import PromptPolicy

logger = logging.getLogger(__name__)

router = APIRouter()

NO_RESULT_MESSAGE = "Model returned no result."

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    405: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
    504: {"model": ErrorResponse},
}


def error_response(status_code: int, message: str, detail: Optional[str] = None) -> JSONResponse:
    body = ErrorResponse(message=message, detail=detail)
    return JSONResponse(status_code=status_code, content=body.to_content())


def gateway_failure(endpoint: str, exc: CompletionError) -> JSONResponse:
    """Translate a gateway failure into its envelope: 504 for timeouts, 502 otherwise."""
    if isinstance(exc, CompletionTimeoutError):
        logger.error(f"[{endpoint}] Timed out: {exc}")
        return error_response(504, str(exc))
    logger.error(f"[{endpoint}] {type(exc).__name__}: {exc}")
    return error_response(502, "AI generation failed.", detail=str(exc))


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 1. TITLE
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@router.post(
    "/get-title",
    response_model=TitleResponse,
    responses=ERROR_RESPONSES,
    summary="Generate a title and description for a text",
)
async def get_title(request: TitleRequest, gateway: CompletionGateway = Depends(get_gateway)):
    try:
        result = await generate_title(gateway, request)
    except CompletionError as e:
        return gateway_failure("TITLE", e)

    if result is None:
        return error_response(400, NO_RESULT_MESSAGE)
    return TitleResponse(data=result)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 2. QUESTIONS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@router.post(
    "/get-questions",
    response_model=QuestionsResponse,
    responses=ERROR_RESPONSES,
    summary="Generate quiz questions from a text",
)
async def get_questions(request: QuestionsRequest, gateway: CompletionGateway = Depends(get_gateway)):
    try:
        result = await generate_questions(gateway, request, PromptPolicy(settings.PROMPT_POLICY))
    except CompletionError as e:
        return gateway_failure("QUESTIONS", e)

    if result is None:
        return error_response(400, NO_RESULT_MESSAGE)
    return QuestionsResponse(data=result)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 3. DEEP DIVE
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@router.post(
    "/deep-dive",
    response_model=DeepDiveResponse,
    responses=ERROR_RESPONSES,
    summary="Generate a markdown deep-dive explanation of a text",
)
async def deep_dive(request: DeepDiveRequest, gateway: CompletionGateway = Depends(get_gateway)):
    try:
        result = await generate_deep_dive(
            gateway,
            request,
            PromptPolicy(settings.PROMPT_POLICY),
            shuffle_choices=settings.DEEP_DIVE_SHUFFLE_CHOICES,
        )
    except CompletionError as e:
        return gateway_failure("DEEP-DIVE", e)

    if result is None:
        return error_response(400, NO_RESULT_MESSAGE)
    return DeepDiveResponse(data=result)
