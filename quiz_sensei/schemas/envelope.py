"""
Quiz Sensei — Response Envelopes
=================================
Every response from this API shares one shape:
``{"message": str, "data": ... | null, "errors"?: {...}, "detail"?: str}``.
``data`` is null on any failure; partial results are never returned.
"""

from __future__ import annotations

from typing import Any, Dict, Optional
from pydantic import BaseModel

from quiz_sensei.schemas.deep_dive import DeepDiveResult
from quiz_sensei.schemas.quiz import QuestionSet
from quiz_sensei.schemas.title import TitleResult


SUCCESS_MESSAGE = "All good"


# ── Success Envelopes ────────────────────────────────────────────────────────

class TitleResponse(BaseModel):
    message: str = SUCCESS_MESSAGE
    data: TitleResult


class QuestionsResponse(BaseModel):
    message: str = SUCCESS_MESSAGE
    data: QuestionSet


class DeepDiveResponse(BaseModel):
    message: str = SUCCESS_MESSAGE
    data: DeepDiveResult


# ── Error Envelope ───────────────────────────────────────────────────────────

class ErrorResponse(BaseModel):
    """
    Standard error envelope.
    ``errors`` is only present for validation failures, ``detail`` only for
    upstream failures.
    """
    message: str
    data: None = None
    errors: Optional[Dict[str, Any]] = None
    detail: Optional[str] = None

    def to_content(self) -> Dict[str, Any]:
        content = self.model_dump(exclude_none=True)
        content["data"] = None
        return content
