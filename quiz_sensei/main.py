"""
Quiz Sensei — Quiz Generation API
==================================
FastAPI entry point.
  • Three POST endpoints under /api/v1: get-title, get-questions, deep-dive
  • Uniform JSON envelope on every response: {message, data, errors?, detail?}
  • Validation failures → 400 with a field-level error tree
  • Global exception handler — never crashes, always returns JSON
"""

import logging
from typing import Any, Dict, List

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from quiz_sensei.api.v1.endpoints.generate import router as generate_router
from quiz_sensei.core.config import settings
from quiz_sensei.schemas.envelope import ErrorResponse

# ── Logging ──────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"

# ── App ──────────────────────────────────────────────────────────────────────
app = FastAPI(
    title="Quiz Sensei — Quiz Generation API",
    description=(
        "Turns source text into quiz material.\n"
        "Titles, multiple-choice / true-or-false questions and markdown deep dives."
    ),
    version=VERSION,
    responses={
        400: {"model": ErrorResponse},
        405: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)


# ── Validation Errors ────────────────────────────────────────────────────────

def _error_message(error: Dict[str, Any]) -> str:
    """Prefer the validator's own message over pydantic's 'Value error, ...' wrapper."""
    if error.get("type") == "value_error" and "error" in error.get("ctx", {}):
        return str(error["ctx"]["error"])
    return error.get("msg", "Invalid value")


def format_validation_errors(errors: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Build a field error tree from pydantic errors:
    {"_errors": [...], "userInput": {"_errors": ["User input is required."]}}
    Body-level problems (missing body, malformed JSON) go to the root list.
    """
    tree: Dict[str, Any] = {"_errors": []}
    for error in errors:
        loc = list(error.get("loc", ()))
        if loc and loc[0] == "body":
            loc = loc[1:]
        if error.get("type") == "json_invalid":
            loc = []

        node = tree
        for part in loc:
            node = node.setdefault(str(part), {"_errors": []})
        node["_errors"].append(_error_message(error))
    return tree


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = format_validation_errors(exc.errors())
    fields = [key for key in errors if key != "_errors"]
    logger.info(f"[VALIDATION] {request.url.path} rejected: fields={fields}")
    body = ErrorResponse(message="Invalid request body.", errors=errors)
    return JSONResponse(status_code=400, content=body.to_content())


# ── HTTP Errors (404 / 405) ──────────────────────────────────────────────────

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    body = ErrorResponse(message=str(exc.detail))
    return JSONResponse(status_code=exc.status_code, content=body.to_content(), headers=exc.headers)


# ── Global Exception Handler ────────────────────────────────────────────────

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all: every unhandled exception returns a clean JSON envelope."""
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    body = ErrorResponse(message="An internal server error occurred.", detail=str(exc))
    return JSONResponse(status_code=500, content=body.to_content())


# ── CORS ─────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Health Check ─────────────────────────────────────────────────────────────
@app.get("/", tags=["System"])
async def health_check():
    return {
        "status": "operational",
        "service": "Quiz Sensei API",
        "version": VERSION,
        "provider": settings.AI_PROVIDER,
        "prompt_policy": settings.PROMPT_POLICY,
    }


app.include_router(generate_router, prefix="/api/v1", tags=["Generation"])
