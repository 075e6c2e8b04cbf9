# clients/llm_client.py
import logging
from typing import Optional

from openai import OpenAI, OpenAIError

from services.settings import Settings

logger = logging.getLogger(__name__)


class LLMGenerationError(Exception):
    """Raised when one chat-completion call fails or returns no content."""
    pass


class LLMClient:
    """
    Thin OpenAI-compatible chat-completion wrapper (Mistral by default).
    Performs exactly one HTTP attempt per call; retry policy belongs to the caller.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.mistral.ai/v1",
        model: str = "mistral-large-latest",
        timeout: float = 30.0,
        max_tokens: int = 4000,
        temperature: float = 0.1,
        client: Optional[OpenAI] = None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client = client or OpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )
        logger.info(f"Initialized LLM client: base_url={base_url}, model={model}")

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMClient":
        return cls(
            api_key=settings.llm_api_key,
            base_url=settings.llm_base_url,
            model=settings.llm_model,
            timeout=settings.llm_timeout,
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
        )

    def complete(self, prompt: str) -> str:
        """
        Send a single user prompt and return the raw text reply.
        Raises:
            LLMGenerationError: non-success status, network/timeout error or empty content.
        """
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except OpenAIError as e:
            raise LLMGenerationError(f"LLM request failed: {e}") from e

        if not response.choices or not response.choices[0].message.content:
            raise LLMGenerationError("Empty response content from LLM")

        return response.choices[0].message.content
