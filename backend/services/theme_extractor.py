"""
Theme Extractor - short topical themes from free text.

Two paths:
- extract_themes_naive(): word-frequency heuristic, always available
- ThemeExtractor.extract(): asks a small Anthropic model for a comma-separated
  list, falling back to the heuristic on a missing key, any API failure, or
  an empty parse
"""

import logging
import re
from collections import Counter
from typing import Any, List, Optional

import anthropic

from config import runtime_config

logger = logging.getLogger(__name__)

MAX_THEMES = 5
MAX_INPUT_CHARS = 2000
FALLBACK_THEME = "trends"

STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "to", "of", "in", "on", "for", "is", "are",
    "was", "were", "with", "as", "by", "at", "from", "that", "this", "it", "be",
    "have", "has", "had", "not", "but", "we", "you", "they", "he", "she", "i",
})

# Reply preambles the model sometimes adds despite the prompt
_FILLER_PREFIXES = ("based on", "here are")

THEME_SYSTEM_PROMPT = (
    "You are a theme extraction assistant specialized in identifying statistical research topics. "
    "Your task is to analyze text and extract 3-5 key themes that would be valuable for statistical "
    "analysis and data research. Focus on:\n"
    "1. Economic trends and indicators\n"
    "2. Social patterns and demographics\n"
    "3. Industry-specific metrics\n"
    "4. Consumer behavior patterns\n"
    "5. Technology adoption trends\n"
    "6. Healthcare and public health statistics\n"
    "7. Environmental and sustainability metrics\n\n"
    "Return only the themes as a simple comma-separated list. "
    "Be specific and actionable for statistical searches."
)


def extract_themes_naive(text: str) -> List[str]:
    """Top words by frequency, ignoring stop words and tokens under 3 chars.

    Ties keep first-seen order. Never returns an empty list.
    """
    freq = Counter(
        token
        for token in re.split(r"\W+", (text or "").lower())
        if len(token) >= 3 and token not in STOP_WORDS
    )
    themes = [word for word, _ in freq.most_common(MAX_THEMES)]
    return themes or [FALLBACK_THEME]


def parse_theme_reply(reply: str) -> List[str]:
    """Parse a comma-separated model reply into at most 5 lower-case themes."""
    themes = []
    for line in reply.split("\n"):
        if not line.strip():
            continue
        # Explanation lines ("Themes:" headers) carry a colon but no list
        if ":" in line and "," not in line:
            continue
        for fragment in line.split(","):
            theme = fragment.strip().lower()
            if len(theme) < 3 or theme.startswith(_FILLER_PREFIXES):
                continue
            themes.append(theme)
    return themes[:MAX_THEMES]


class ThemeExtractor:
    """Extracts themes with the Anthropic API when a key is configured.

    Without an explicit ``api_key`` the key is read from runtime_config on
    every call, so a key set through the config endpoint takes effect for
    the next request.
    """

    def __init__(self, api_key: Optional[str] = None, client: Any = None):
        self._api_key = api_key
        self._client = client
        self._client_key: Optional[str] = None
        self._injected = client is not None

    @property
    def api_key(self) -> str:
        return self._api_key if self._api_key is not None else runtime_config.anthropic_api_key

    def _get_client(self):
        key = self.api_key
        if not self._injected and (self._client is None or self._client_key != key):
            self._client = anthropic.AsyncAnthropic(api_key=key)
            self._client_key = key
        return self._client

    async def extract(self, text: str) -> List[str]:
        if not self.api_key and not self._injected:
            logger.debug("No Anthropic API key configured, using naive theme extraction")
            return extract_themes_naive(text)

        try:
            response = await self._get_client().messages.create(
                model=runtime_config.model_themes,
                max_tokens=runtime_config.theme_max_tokens,
                temperature=runtime_config.theme_temperature,
                system=THEME_SYSTEM_PROMPT,
                messages=[{
                    "role": "user",
                    "content": f"Extract themes from this text:\n\n{text[:MAX_INPUT_CHARS]}",
                }],
            )
        except Exception as e:
            logger.warning(f"Theme extraction failed, falling back to heuristic: {e}")
            return extract_themes_naive(text)

        reply = ""
        for block in response.content or []:
            if getattr(block, "type", "") == "text":
                reply += block.text

        themes = parse_theme_reply(reply)
        if not themes:
            logger.info("Model returned no usable themes, falling back to heuristic")
            return extract_themes_naive(text)

        logger.info(f"Extracted themes: {themes}")
        return themes
