"""
Shared OpenAI-compatible client for the extraction service. Lazily initialized and reused.
"""
from __future__ import annotations

from typing import Optional

from .config import Settings, get_settings

_client: Optional["OpenAI"] = None


def get_openai_client(settings: Optional[Settings] = None) -> Optional["OpenAI"]:
    """Return shared OpenAI client, or None if no API key."""
    global _client
    if _client is not None:
        return _client
    settings = settings or get_settings()
    if not settings.has_api_key:
        return None
    from openai import OpenAI
    kwargs = {"api_key": settings.api_key, "timeout": settings.timeout}
    if settings.base_url:
        kwargs["base_url"] = settings.base_url
    _client = OpenAI(**kwargs)
    return _client
