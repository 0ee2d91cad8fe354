import asyncio
from types import SimpleNamespace

import httpx
import openai
import pytest

from quiz_sensei.ai_engine import (
    CompletionAuthError,
    CompletionGateway,
    CompletionServiceError,
    CompletionTimeoutError,
    clean_and_parse_json,
    schema_instructions,
)
from quiz_sensei.core.config import Settings
from quiz_sensei.schemas.title import TitleResult


def make_settings(**overrides) -> Settings:
    values = {
        "AI_PROVIDER": "openai",
        "OPENAI_API_KEY": None,
        "GROQ_API_KEY": None,
        "GOOGLE_API_KEY": None,
        "AI_TIMEOUT_SECONDS": 20,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class FakeGroqCompletions:
    def __init__(self, content: str):
        self.content = content
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def groq_gateway(content: str) -> CompletionGateway:
    gateway = CompletionGateway(make_settings(AI_PROVIDER="groq"))
    completions = FakeGroqCompletions(content)
    gateway.groq_client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return gateway


# ── JSON recovery ────────────────────────────────────────────────────────────

def test_parse_plain_json():
    assert clean_and_parse_json('{"title": "A", "description": "B"}') == {"title": "A", "description": "B"}


def test_parse_fenced_json():
    raw = 'Here you go:\n```json\n{"title": "A", "description": "B"}\n```'
    assert clean_and_parse_json(raw) == {"title": "A", "description": "B"}


def test_parse_json_with_preamble():
    raw = 'Sure! {"title": "A", "description": "B"} Hope this helps.'
    assert clean_and_parse_json(raw)["title"] == "A"


@pytest.mark.parametrize("raw", ["", "   ", "not json at all", "{broken", "[1, 2, 3]"])
def test_parse_rejects_unusable_output(raw):
    with pytest.raises(ValueError):
        clean_and_parse_json(raw)


def test_schema_instructions_describe_the_fields():
    text = schema_instructions(TitleResult)
    assert '"title"' in text and '"description"' in text


# ── Settings ─────────────────────────────────────────────────────────────────

def test_settings_reject_unknown_provider():
    with pytest.raises(ValueError):
        make_settings(AI_PROVIDER="llama-local")


def test_settings_reject_unknown_policy():
    with pytest.raises(ValueError):
        make_settings(PROMPT_POLICY="pirate")


def test_settings_accept_legacy_key_name(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setenv("OPEN_AI_API_KEY", "sk-legacy")
    assert Settings(_env_file=None).OPENAI_API_KEY == "sk-legacy"


# ── Gateway ──────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("provider", ["openai", "groq", "gemini"])
def test_missing_key_is_an_auth_error_not_a_crash(provider):
    gateway = CompletionGateway(make_settings(AI_PROVIDER=provider))
    with pytest.raises(CompletionAuthError):
        asyncio.run(gateway.complete("system", "user", TitleResult))


def test_slow_provider_times_out():
    gateway = CompletionGateway(make_settings(OPENAI_API_KEY="sk-test", AI_TIMEOUT_SECONDS=0.05))

    async def never_finishes(*args):
        await asyncio.sleep(5)

    gateway._call_openai = never_finishes
    with pytest.raises(CompletionTimeoutError):
        asyncio.run(gateway.complete("system", "user", TitleResult))


def test_groq_output_is_validated_against_the_schema():
    gateway = groq_gateway('```json\n{"title": "Capital", "description": "About Paris."}\n```')
    result = asyncio.run(gateway.complete("system", "user", TitleResult, temperature=0.7))

    assert result == TitleResult(title="Capital", description="About Paris.")
    kwargs = gateway.groq_client.chat.completions.kwargs
    assert kwargs["temperature"] == 0.7
    assert kwargs["response_format"] == {"type": "json_object"}
    assert '"title"' in kwargs["messages"][0]["content"]


@pytest.mark.parametrize("content", ['{"title": "Only a title"}', "I cannot help with that.", ""])
def test_nonconforming_groq_output_is_none(content):
    gateway = groq_gateway(content)
    assert asyncio.run(gateway.complete("system", "user", TitleResult)) is None


# ── OpenAI ───────────────────────────────────────────────────────────────────

OPENAI_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


class FakeOpenAICompletions:
    def __init__(self, parsed=None, refusal=None, error=None):
        self.parsed = parsed
        self.refusal = refusal
        self.error = error
        self.kwargs = None

    async def parse(self, **kwargs):
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(parsed=self.parsed, refusal=self.refusal)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def openai_gateway(**outcome) -> CompletionGateway:
    gateway = CompletionGateway(make_settings(OPENAI_API_KEY="sk-test"))
    completions = FakeOpenAICompletions(**outcome)
    gateway.openai_client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return gateway


def test_openai_returns_the_parsed_schema():
    title = TitleResult(title="Capital", description="About Paris.")
    gateway = openai_gateway(parsed=title)
    result = asyncio.run(gateway.complete("system", "user", TitleResult, temperature=0.7, max_tokens=50))

    assert result == title
    kwargs = gateway.openai_client.chat.completions.kwargs
    assert kwargs["response_format"] is TitleResult
    assert kwargs["temperature"] == 0.7
    assert kwargs["max_tokens"] == 50
    assert [m["role"] for m in kwargs["messages"]] == ["system", "user"]


def test_openai_refusal_is_none():
    gateway = openai_gateway(parsed=None, refusal="I can't help with that.")
    assert asyncio.run(gateway.complete("system", "user", TitleResult)) is None


def test_openai_truncated_output_is_none():
    error = openai.LengthFinishReasonError(completion=SimpleNamespace(usage=None))
    gateway = openai_gateway(error=error)
    assert asyncio.run(gateway.complete("system", "user", TitleResult)) is None


def test_openai_rejected_key_is_an_auth_error():
    error = openai.AuthenticationError(
        "Incorrect API key provided",
        response=httpx.Response(401, request=OPENAI_REQUEST),
        body=None,
    )
    gateway = openai_gateway(error=error)
    with pytest.raises(CompletionAuthError):
        asyncio.run(gateway.complete("system", "user", TitleResult))


def test_openai_request_timeout_is_a_timeout_error():
    gateway = openai_gateway(error=openai.APITimeoutError(request=OPENAI_REQUEST))
    with pytest.raises(CompletionTimeoutError):
        asyncio.run(gateway.complete("system", "user", TitleResult))


def test_openai_server_error_is_a_service_error():
    error = openai.InternalServerError(
        "The server had an error",
        response=httpx.Response(500, request=OPENAI_REQUEST),
        body=None,
    )
    gateway = openai_gateway(error=error)
    with pytest.raises(CompletionServiceError):
        asyncio.run(gateway.complete("system", "user", TitleResult))


# ── Gemini ───────────────────────────────────────────────────────────────────

class BlockedResponse:
    @property
    def text(self):
        raise ValueError("The response was blocked: finish_reason SAFETY")


def fake_genai(monkeypatch, response=None, error=None):
    """Replace the google.generativeai module used by the gateway."""
    created = []

    class FakeModel:
        def __init__(self, **kwargs):
            self.kwargs = kwargs
            created.append(self)

        def generate_content(self, content):
            if error is not None:
                raise error
            return response

    module = SimpleNamespace(configure=lambda **kwargs: None, GenerativeModel=FakeModel)
    monkeypatch.setattr("quiz_sensei.ai_engine.genai", module)
    return created


def gemini_gateway() -> CompletionGateway:
    return CompletionGateway(make_settings(AI_PROVIDER="gemini", GOOGLE_API_KEY="test-key"))


def test_gemini_output_is_validated_against_the_schema(monkeypatch):
    created = fake_genai(monkeypatch, response=SimpleNamespace(text='{"title": "A", "description": "B"}'))
    result = asyncio.run(gemini_gateway().complete("system", "user", TitleResult))

    assert result == TitleResult(title="A", description="B")
    config = created[0].kwargs["generation_config"]
    assert config["response_mime_type"] == "application/json"
    assert '"title"' in created[0].kwargs["system_instruction"]


def test_gemini_blocked_response_is_none(monkeypatch):
    fake_genai(monkeypatch, response=BlockedResponse())
    assert asyncio.run(gemini_gateway().complete("system", "user", TitleResult)) is None


def test_gemini_invalid_key_is_an_auth_error(monkeypatch):
    fake_genai(monkeypatch, error=RuntimeError("400 API key not valid. Please pass a valid API key."))
    with pytest.raises(CompletionAuthError):
        asyncio.run(gemini_gateway().complete("system", "user", TitleResult))


def test_gemini_other_failures_are_service_errors(monkeypatch):
    fake_genai(monkeypatch, error=RuntimeError("503 The model is overloaded."))
    with pytest.raises(CompletionServiceError):
        asyncio.run(gemini_gateway().complete("system", "user", TitleResult))
