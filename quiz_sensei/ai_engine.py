"""
Quiz Sensei — Completion Gateway
=================================
The single boundary to the hosted text-generation service.

  - One provider per process (OpenAI, Groq or Gemini), chosen by AI_PROVIDER
  - Structured output: every call names a pydantic schema and returns an
    instance of it, or None when the model's output does not conform
  - Hard timeout per call (AI_TIMEOUT_SECONDS); no retries, no failover
  - Distinguishable failures: auth, timeout, service
"""

import json
import re
import logging
import asyncio
from functools import lru_cache
from typing import Optional, Dict, Any, Type, TypeVar

import google.generativeai as genai
import openai
from groq import AsyncGroq
import groq
from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError

from quiz_sensei.core.config import Settings, settings

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# ERRORS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class CompletionError(Exception):
    """Base class for every failure of the completion gateway."""


class CompletionAuthError(CompletionError):
    """Credential missing or rejected by the provider."""


class CompletionTimeoutError(CompletionError):
    """The call did not finish within AI_TIMEOUT_SECONDS."""


class CompletionServiceError(CompletionError):
    """Any other provider or transport failure (quota, 5xx, network)."""


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# JSON RECOVERY
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def clean_and_parse_json(raw_text: str) -> Dict[str, Any]:
    """
    Robust JSON extractor for providers without native structured output:
    1. Strip markdown code fences (```json ... ```)
    2. Extract first { ... } block
    3. Parse with json.loads
    Raises ValueError on failure.
    """
    if not raw_text or not raw_text.strip():
        raise ValueError("Empty AI response received")

    cleaned = raw_text.strip()

    fence_match = re.search(r"```(?:json)?\s*\n?(.*?)\n?\s*```", cleaned, re.DOTALL)
    if fence_match:
        cleaned = fence_match.group(1).strip()

    if not cleaned.startswith("{"):
        brace_match = re.search(r"\{.*\}", cleaned, re.DOTALL)
        if brace_match:
            cleaned = brace_match.group(0)

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ValueError(f"AI returned invalid JSON: {e}")

    if not isinstance(parsed, dict):
        raise ValueError(f"AI returned a JSON {type(parsed).__name__}, expected an object")
    return parsed


def schema_instructions(schema: Type[BaseModel]) -> str:
    """Describe the expected output to providers that only offer a JSON mode."""
    return (
        "\n\nOutput ONLY valid JSON — no markdown fences, no commentary — "
        "matching this JSON Schema:\n"
        f"{json.dumps(schema.model_json_schema(), ensure_ascii=False)}"
    )


def _validate_payload(raw: str, schema: Type[SchemaT]) -> Optional[SchemaT]:
    try:
        return schema.model_validate(clean_and_parse_json(raw))
    except (ValueError, ValidationError) as e:
        # pydantic's ValidationError is a ValueError; both mean "no conforming output"
        logger.warning(f"[GATEWAY] Output did not match {schema.__name__}: {str(e)[:200]}")
        return None


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# GATEWAY
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class CompletionGateway:
    """
    Issues one structured completion call against the configured provider.

    Clients are created once from the settings; a missing key is only logged
    here and reported as CompletionAuthError when a call is attempted.
    """

    def __init__(self, config: Settings = settings):
        self.config = config
        self.provider = config.AI_PROVIDER
        self.openai_client: Optional[AsyncOpenAI] = None
        self.groq_client: Optional[AsyncGroq] = None

        logger.info(f"[GATEWAY] Provider mode: {self.provider}")

        if self.provider == "openai":
            if config.OPENAI_API_KEY:
                self.openai_client = AsyncOpenAI(
                    api_key=config.OPENAI_API_KEY,
                    timeout=config.AI_TIMEOUT_SECONDS,
                    max_retries=0,
                )
                logger.info("[GATEWAY] ✓ OpenAI client ready")
            else:
                logger.warning("[GATEWAY] ✗ OpenAI API key missing")
        elif self.provider == "groq":
            if config.GROQ_API_KEY:
                self.groq_client = AsyncGroq(
                    api_key=config.GROQ_API_KEY,
                    timeout=config.AI_TIMEOUT_SECONDS,
                    max_retries=0,
                )
                logger.info("[GATEWAY] ✓ Groq client ready")
            else:
                logger.warning("[GATEWAY] ✗ Groq API key missing")
        elif self.provider == "gemini":
            if config.GOOGLE_API_KEY:
                genai.configure(api_key=config.GOOGLE_API_KEY, transport="rest")
                logger.info("[GATEWAY] ✓ Gemini client ready")
            else:
                logger.warning("[GATEWAY] ✗ Google API key missing")

    async def complete(
        self,
        system_prompt: str,
        user_content: str,
        schema: Type[SchemaT],
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Optional[SchemaT]:
        """
        Run one completion bounded by AI_TIMEOUT_SECONDS.

        Returns a `schema` instance, or None when the provider answered with
        output that cannot be parsed into it. Raises CompletionError subclasses
        for everything else.
        """
        callers = {
            "openai": self._call_openai,
            "groq": self._call_groq,
            "gemini": self._call_gemini,
        }
        caller = callers[self.provider]
        timeout = self.config.AI_TIMEOUT_SECONDS

        try:
            result = await asyncio.wait_for(
                caller(system_prompt, user_content, schema, temperature, max_tokens),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"[GATEWAY] {self.provider} call timed out after {timeout}s")
            raise CompletionTimeoutError(f"AI generation timed out after {timeout}s.")

        if result is None:
            logger.warning(f"[GATEWAY] {self.provider} returned no usable {schema.__name__}")
        return result

    # ── OpenAI: native structured outputs ────────────────────────────────────

    async def _call_openai(
        self,
        system_prompt: str,
        user_content: str,
        schema: Type[SchemaT],
        temperature: Optional[float],
        max_tokens: Optional[int],
    ) -> Optional[SchemaT]:
        if not self.openai_client:
            raise CompletionAuthError("OpenAI API key missing")

        options: Dict[str, Any] = {}
        if temperature is not None:
            options["temperature"] = temperature
        if max_tokens is not None:
            options["max_tokens"] = max_tokens

        logger.info(f"[GATEWAY] Calling OpenAI ({self.config.OPENAI_MODEL})...")
        try:
            completion = await self.openai_client.chat.completions.parse(
                model=self.config.OPENAI_MODEL,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_content},
                ],
                response_format=schema,
                **options,
            )
        except (openai.LengthFinishReasonError, openai.ContentFilterFinishReasonError, ValidationError) as e:
            logger.warning(f"[GATEWAY] OpenAI output unusable: {type(e).__name__}")
            return None
        except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
            raise CompletionAuthError(f"OpenAI rejected the credential: {e}")
        except openai.APITimeoutError as e:
            raise CompletionTimeoutError(f"OpenAI request timed out: {e}")
        except openai.OpenAIError as e:
            raise CompletionServiceError(f"OpenAI call failed: {e}")

        message = completion.choices[0].message
        if message.refusal:
            logger.warning("[GATEWAY] OpenAI refused the request")
        logger.info("[GATEWAY] ✓ OpenAI call succeeded")
        return message.parsed

    # ── Groq: JSON mode + local validation ───────────────────────────────────

    async def _call_groq(
        self,
        system_prompt: str,
        user_content: str,
        schema: Type[SchemaT],
        temperature: Optional[float],
        max_tokens: Optional[int],
    ) -> Optional[SchemaT]:
        if not self.groq_client:
            raise CompletionAuthError("Groq API key missing")

        logger.info(f"[GATEWAY] Calling Groq ({self.config.GROQ_MODEL})...")
        try:
            completion = await self.groq_client.chat.completions.create(
                model=self.config.GROQ_MODEL,
                messages=[
                    {"role": "system", "content": system_prompt + schema_instructions(schema)},
                    {"role": "user", "content": user_content},
                ],
                response_format={"type": "json_object"},
                temperature=0 if temperature is None else temperature,
                max_tokens=max_tokens or 8000,
            )
        except (groq.AuthenticationError, groq.PermissionDeniedError) as e:
            raise CompletionAuthError(f"Groq rejected the credential: {e}")
        except groq.APITimeoutError as e:
            raise CompletionTimeoutError(f"Groq request timed out: {e}")
        except groq.GroqError as e:
            raise CompletionServiceError(f"Groq call failed: {e}")

        logger.info("[GATEWAY] ✓ Groq call succeeded")
        return _validate_payload(completion.choices[0].message.content or "", schema)

    # ── Gemini: JSON mime type + local validation ────────────────────────────

    async def _call_gemini(
        self,
        system_prompt: str,
        user_content: str,
        schema: Type[SchemaT],
        temperature: Optional[float],
        max_tokens: Optional[int],
    ) -> Optional[SchemaT]:
        if not self.config.GOOGLE_API_KEY:
            raise CompletionAuthError("Google API key missing")

        generation_config: Dict[str, Any] = {
            "response_mime_type": "application/json",
            "temperature": 0 if temperature is None else temperature,
        }
        if max_tokens is not None:
            generation_config["max_output_tokens"] = max_tokens

        logger.info(f"[GATEWAY] Calling Gemini ({self.config.GEMINI_MODEL})...")
        model = genai.GenerativeModel(
            model_name=self.config.GEMINI_MODEL,
            generation_config=generation_config,
            system_instruction=system_prompt + schema_instructions(schema),
        )
        try:
            response = await asyncio.to_thread(model.generate_content, user_content)
            raw = response.text
        except ValueError as e:
            # response.text raises ValueError when the candidate was blocked or empty
            logger.warning(f"[GATEWAY] Gemini returned no text: {str(e)[:200]}")
            return None
        except Exception as e:
            message = str(e)
            if "API key" in message or "PERMISSION_DENIED" in message or "401" in message:
                raise CompletionAuthError(f"Gemini rejected the credential: {message[:200]}")
            raise CompletionServiceError(f"Gemini call failed: {message[:200]}")

        logger.info("[GATEWAY] ✓ Gemini call succeeded")
        return _validate_payload(raw, schema)


@lru_cache
def get_gateway() -> CompletionGateway:
    """FastAPI dependency: one gateway per process, built on first use."""
    return CompletionGateway(settings)
