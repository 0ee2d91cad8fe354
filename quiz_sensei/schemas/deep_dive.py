from pydantic import BaseModel, Field

from quiz_sensei.schemas.quiz import SourceText


class DeepDiveRequest(BaseModel):
    """Request body for a deep-dive explanation. `question` carries the source text."""
    question: SourceText = Field(..., description="Source text to explain in depth")


class DeepDiveResult(BaseModel):
    markdown: str
