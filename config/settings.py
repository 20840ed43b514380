"""
Configuration settings for the MedNotes booking agent.
Loads from environment variables with validation.
"""

from functools import lru_cache
from typing import Literal
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment
    environment: Literal["development", "production"] = "development"
    debug: bool = False

    # LLM Configuration (Gemini primary, Groq fallback)
    gemini_api_key: str = Field(..., description="Google Gemini API key")
    gemini_model: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model to use"
    )
    groq_api_key: str = Field(..., description="Groq API key")
    groq_model: str = Field(
        default="llama-3.3-70b-versatile",
        description="Groq model to use"
    )

    # Supabase Configuration
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_service_role_key: str = Field(..., description="Supabase service role key")

    # Agent Configuration
    max_tool_steps: int = 10
    max_output_tokens: int = 1024
    doctor_prompt_limit: int = 5
    # Matched against the primary model's streamed text; a hit triggers the fallback
    stream_error_markers: list[str] = [
        r'"type"\s*:\s*"error"',
        r'"error"\s*:',
        r"RESOURCE_EXHAUSTED",
        r"\bquota\b",
        r"\b429\b",
        r"rate[ _-]?limit",
        r"AI_APICallError",
    ]

    # Appointment Configuration
    clinic_timezone: str = "Asia/Kolkata"
    slot_duration_minutes: int = 30

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 8082

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
