"""
helpmate/services/llm_service.py

Purpose: Language model integration

- Chat completions for customer replies
- Short conversation titles
- Summaries of knowledge that overflows the prompt budget
- Maps provider failures to ExternalServiceError
"""

from typing import Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from helpmate.core.config import settings
from helpmate.core.exceptions import ExternalServiceError
from helpmate.core.logging import get_logger
from utils.constants import TITLE_PROMPT, SUMMARY_PROMPT, DEFAULT_CHAT_TITLE

logger = get_logger(__name__)


class LLMService:
    """
    Thin wrapper over an OpenAI-compatible chat completion API.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        title_model: Optional[str] = None,
    ):
        self.model = model or settings.OPENAI_MODEL
        self.title_model = title_model or settings.OPENAI_TITLE_MODEL
        self._api_key = api_key or settings.OPENAI_API_KEY
        self._base_url = base_url or settings.OPENAI_BASE_URL
        self._client: Optional[AsyncOpenAI] = None

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._api_key:
                raise ExternalServiceError("Language model provider is not configured")
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=self._base_url,
                timeout=settings.LLM_TIMEOUT_SECONDS,
            )
        return self._client

    async def complete(
        self,
        messages: List[Dict[str, str]],
        max_tokens: int = 800,
        temperature: float = 0.7,
        model: Optional[str] = None,
    ) -> str:
        """
        Runs a chat completion.

        Args:
            messages: [{role, content}] in conversation order
            max_tokens: Completion token limit
            temperature: Sampling temperature
            model: Overrides the default reply model

        Returns:
            The assistant's reply text

        Raises:
            ExternalServiceError: If the provider fails or returns nothing
        """
        model_name = model or self.model
        try:
            response = await self.client.chat.completions.create(
                model=model_name,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except OpenAIError as e:
            logger.error(f"LLM request to {model_name} failed: {e}")
            raise ExternalServiceError("The AI service is temporarily unavailable") from e

        if not getattr(response, "choices", None):
            logger.error(f"LLM {model_name} returned no choices")
            raise ExternalServiceError("The AI service returned an empty response")

        content = (response.choices[0].message.content or "").strip()
        if not content:
            raise ExternalServiceError("The AI service returned an empty response")

        logger.debug(
            f"LLM reply from {model_name}",
            extra={"messages": len(messages), "reply_chars": len(content)}
        )
        return content

    async def generate_title(self, first_message: str) -> str:
        """
        Generates a short title for a new conversation.
        Falls back to the default title when the provider fails.
        """
        try:
            title = await self.complete(
                [
                    {"role": "system", "content": TITLE_PROMPT},
                    {"role": "user", "content": first_message},
                ],
                max_tokens=15,
                temperature=0.3,
                model=self.title_model,
            )
        except ExternalServiceError:
            logger.warning("Title generation failed, keeping default title")
            return DEFAULT_CHAT_TITLE

        title = title.replace('"', "").replace("'", "").strip()
        return title or DEFAULT_CHAT_TITLE

    async def summarize(self, text: str, question: str, max_tokens: int) -> str:
        """
        Condenses reference text, favouring what relates to ``question``.

        Raises:
            ExternalServiceError: If the provider fails
        """
        return await self.complete(
            [
                {"role": "system", "content": SUMMARY_PROMPT.format(question=question)},
                {"role": "user", "content": text},
            ],
            max_tokens=max_tokens,
            temperature=0.2,
            model=self.title_model,
        )

    async def close(self):
        if self._client is not None:
            await self._client.close()
            self._client = None


# Global service instance
_llm_service: Optional[LLMService] = None


def get_llm_service() -> LLMService:
    """Get or create the shared LLM service."""
    global _llm_service
    if _llm_service is None:
        _llm_service = LLMService()
    return _llm_service


def set_llm_service(service: Optional[LLMService]):
    """Replaces the shared instance (tests inject fakes here)."""
    global _llm_service
    _llm_service = service


async def close_llm_service():
    """Close the shared LLM client (call on app shutdown)."""
    global _llm_service
    if _llm_service:
        await _llm_service.close()
        _llm_service = None
