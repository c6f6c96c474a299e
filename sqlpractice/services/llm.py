"""
Chat-completion client used as the evaluation oracle.

Talks to any OpenAI-compatible endpoint; Groq is the default.
"""
import logging
from functools import lru_cache
from typing import Optional

import openai

from sqlpractice.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

FALLBACK_FEEDBACK = "Unable to generate feedback"


class FeedbackError(Exception):
    """The evaluator could not produce feedback."""


class FeedbackClient:
    def __init__(self, settings: Settings):
        self.settings = settings
        self._client: Optional[openai.OpenAI] = None

    @property
    def client(self) -> openai.OpenAI:
        if self._client is None:
            if not self.settings.GROQ_API_KEY:
                raise FeedbackError("GROQ_API_KEY is not configured")
            self._client = openai.OpenAI(
                api_key=self.settings.GROQ_API_KEY.get_secret_value(),
                base_url=self.settings.LLM_BASE_URL,
                timeout=self.settings.LLM_TIMEOUT_SECONDS,
            )
        return self._client

    def complete(self, prompt: str) -> str:
        """Send a single-message prompt and return the reply text."""
        try:
            response = self.client.chat.completions.create(
                model=self.settings.LLM_MODEL,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.settings.LLM_TEMPERATURE,
                max_tokens=self.settings.LLM_MAX_TOKENS,
            )
        except openai.OpenAIError as e:
            logger.error(f"Evaluator API error: {e}", exc_info=True)
            raise FeedbackError(str(e)) from e

        if not response.choices:
            return FALLBACK_FEEDBACK
        return response.choices[0].message.content or FALLBACK_FEEDBACK


@lru_cache()
def get_feedback_client() -> FeedbackClient:
    return FeedbackClient(get_settings())
