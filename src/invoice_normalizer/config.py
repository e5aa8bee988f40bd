"""
Environment-driven settings for the extraction service and logging.
Values are read from the process environment (and a local .env file, if present).
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
OPENROUTER_DEFAULT_MODEL = "google/gemini-2.5-flash"
OPENAI_DEFAULT_MODEL = "gpt-4o-mini"


@dataclass(frozen=True)
class Settings:
    api_key: Optional[str]
    base_url: Optional[str]
    model: str
    temperature: float = 0.1
    max_tokens: int = 8000
    timeout: float = 120.0
    log_level: str = "INFO"

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning("Invalid %s value: %s", name, raw)
        return default


def get_settings() -> Settings:
    """Build settings from the current environment. OpenRouter wins when both keys are set."""
    openrouter_key = os.getenv("OPENROUTER_API_KEY")
    if openrouter_key:
        api_key: Optional[str] = openrouter_key
        base_url: Optional[str] = OPENROUTER_BASE_URL
        default_model = OPENROUTER_DEFAULT_MODEL
    else:
        api_key = os.getenv("OPENAI_API_KEY")
        base_url = os.getenv("OPENAI_BASE_URL") or None
        default_model = OPENAI_DEFAULT_MODEL

    return Settings(
        api_key=api_key,
        base_url=base_url,
        model=os.getenv("INVOICE_LLM_MODEL") or default_model,
        temperature=_env_number("INVOICE_LLM_TEMPERATURE", 0.1, float),
        max_tokens=_env_number("INVOICE_LLM_MAX_TOKENS", 8000, int),
        timeout=_env_number("INVOICE_LLM_TIMEOUT", 120.0, float),
        log_level=(os.getenv("INVOICE_LOG_LEVEL") or "INFO").upper(),
    )
