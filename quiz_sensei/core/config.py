from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── AI Providers ──────────────────────────────────────────────────────────
    AI_PROVIDER: str = "openai"

    @field_validator("AI_PROVIDER")
    @classmethod
    def validate_ai_provider(cls, v: str) -> str:
        allowed = {"openai", "groq", "gemini"}
        if v.lower() not in allowed:
            raise ValueError(f"AI_PROVIDER must be one of {allowed}, got '{v}'")
        return v.lower()

    # OpenAI (native structured outputs)
    OPENAI_API_KEY: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_API_KEY", "OPEN_AI_API_KEY"),
    )
    OPENAI_MODEL: str = "gpt-4o-mini-2024-07-18"

    # Groq (Llama 3 - JSON mode)
    GROQ_API_KEY: Optional[str] = None
    GROQ_MODEL: str = "llama-3.3-70b-versatile"

    # Google (Gemini - JSON mime type)
    GOOGLE_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-2.0-flash"

    # ── Generation ────────────────────────────────────────────────────────────
    AI_TIMEOUT_SECONDS: float = 20  # hard bound on a single completion call
    PROMPT_POLICY: str = "expert-teacher"
    DEEP_DIVE_SHUFFLE_CHOICES: bool = True

    @field_validator("PROMPT_POLICY")
    @classmethod
    def validate_prompt_policy(cls, v: str) -> str:
        allowed = {"expert-teacher", "kuwait-curriculum"}
        if v.lower() not in allowed:
            raise ValueError(f"PROMPT_POLICY must be one of {allowed}, got '{v}'")
        return v.lower()

    # ── Core ──────────────────────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://localhost:5174",
        "http://localhost:3000",
    ]

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }


settings = Settings()
