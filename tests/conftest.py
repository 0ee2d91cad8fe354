from typing import Any, List, Optional

import pytest
from fastapi.testclient import TestClient

from quiz_sensei.ai_engine import get_gateway
from quiz_sensei.core.config import settings
from quiz_sensei.main import app
from quiz_sensei.schemas.quiz import Answer, Question, QuestionSet


class StubGateway:
    """Stands in for CompletionGateway: records calls, returns or raises a preset outcome."""

    def __init__(self, result: Any = None, error: Optional[Exception] = None):
        self.result = result
        self.error = error
        self.calls: List[dict] = []

    async def complete(self, system_prompt, user_content, schema, *, temperature=None, max_tokens=None):
        self.calls.append(
            {
                "system": system_prompt,
                "user": user_content,
                "schema": schema,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        if self.error is not None:
            raise self.error
        return self.result


def make_question(text: str = "Which city is the capital of France?") -> Question:
    return Question(
        question=text,
        explanation="The text states that Paris is the capital of France.",
        answers=[
            Answer(text="Paris", is_correct=True, counter_argument="Stated directly in the text."),
            Answer(text="Lyon", is_correct=False, counter_argument="Lyon is not mentioned."),
            Answer(text="Marseille", is_correct=False, counter_argument="Marseille is not mentioned."),
            Answer(text="Nice", is_correct=False, counter_argument="Nice is not mentioned."),
        ],
    )


@pytest.fixture
def question_set() -> QuestionSet:
    return QuestionSet(questions=[make_question(), make_question("Name the French capital.")])


@pytest.fixture
def stub_gateway():
    stub = StubGateway()
    app.dependency_overrides[get_gateway] = lambda: stub
    yield stub
    app.dependency_overrides.clear()


@pytest.fixture
def client(stub_gateway):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def policy(monkeypatch):
    """Switch the configured prompt policy for one test."""
    def _set(value: str):
        monkeypatch.setattr(settings, "PROMPT_POLICY", value)
    return _set
