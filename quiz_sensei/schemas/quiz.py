from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field
from typing import Annotated, List
from enum import Enum


class QuestionType(str, Enum):
    true_or_false = "true-or-false"
    multiple_choice = "multiple-choice"


class Difficulty(str, Enum):
    easy = "easy"
    medium = "medium"
    hard = "hard"


def require_text(v: str) -> str:
    """Reject empty and whitespace-only source text."""
    if not v.strip():
        raise ValueError("User input is required.")
    return v


SourceText = Annotated[str, AfterValidator(require_text)]


def require_number(v):
    """Accept JSON numbers only; integral floats such as 5.0 pass on to int validation."""
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise ValueError(f"Expected number, received {type(v).__name__}")
    return v


QuestionAmount = Annotated[int, BeforeValidator(require_number)]


# ── Request ──────────────────────────────────────────────────────────────────

class QuestionsRequest(BaseModel):
    """Request body for question generation."""
    model_config = ConfigDict(populate_by_name=True)

    user_input: SourceText = Field(..., alias="userInput", description="Source text the questions are drawn from")
    type: QuestionType = Field(..., description="Question format")
    difficulty: Difficulty = Field(..., description="Desired difficulty level")
    question_amount: QuestionAmount = Field(..., alias="questionAmount", ge=1, le=20)


# ── Response ─────────────────────────────────────────────────────────────────

class Answer(BaseModel):
    """A single answer option with the reasoning for or against it."""
    model_config = ConfigDict(populate_by_name=True)

    text: str
    is_correct: bool = Field(..., alias="isCorrect")
    counter_argument: str = Field(..., alias="counterArgument")


class Question(BaseModel):
    """A single quiz question with its answers and explanation."""
    question: str
    explanation: str
    answers: List[Answer]


class QuestionSet(BaseModel):
    """Structured output requested from the model for question generation."""
    questions: List[Question]
