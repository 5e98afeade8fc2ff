import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from pdf_highlighter.ner.prompts import NER_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

# Preference namespace in the environment
PREF_PREFIX = "PDF_HIGHLIGHTER_"

# Preference key -> environment variable suffix
PREF_KEYS = {
    "apiKey": "API_KEY",
    "baseURL": "BASE_URL",
    "model": "MODEL",
    "systemPrompt": "SYSTEM_PROMPT",
}

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "z-ai/glm-4.5-air:free"

MAX_RETRIES = 3
REQUEST_TIMEOUT = 30.0   # seconds
BACKOFF_BASE = 1.0       # seconds


@dataclass(frozen=True)
class LLMConfig:
    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    system_prompt: str = NER_SYSTEM_PROMPT
    timeout: float = REQUEST_TIMEOUT
    max_retries: int = MAX_RETRIES
    backoff_base: float = BACKOFF_BASE

    @property
    def completions_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"


def get_pref(key: str, prefs: Optional[Mapping[str, str]] = None) -> str:
    """Read one namespaced preference (e.g. "apiKey") as a stripped string."""
    source = os.environ if prefs is None else prefs
    value = source.get(PREF_PREFIX + PREF_KEYS[key], "")
    return str(value or "").strip()


def load_llm_config(prefs: Optional[Mapping[str, str]] = None) -> LLMConfig:
    """Build an LLMConfig from the current preference values.

    Called per request so edits to the preferences take effect on the next call.
    Empty values fall back to the defaults.
    """
    config = LLMConfig(
        api_key=get_pref("apiKey", prefs),
        base_url=get_pref("baseURL", prefs) or DEFAULT_BASE_URL,
        model=get_pref("model", prefs) or DEFAULT_MODEL,
        system_prompt=get_pref("systemPrompt", prefs) or NER_SYSTEM_PROMPT,
    )
    if not config.api_key:
        logger.debug("No API key configured; sending requests without Authorization header.")
    return config
