"""
LLM classifier client using LangChain's ChatOpenAI against Perplexity

Perplexity exposes an OpenAI-compatible chat completions endpoint, so the
same ChatOpenAI client works with a different base_url and model.
"""

import logging

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from jobfeed.config import Settings
from jobfeed.exceptions import ClassifierError, ConfigurationError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 30


class PerplexityClient:
    """Thin wrapper that sends one system + user prompt and returns raw text"""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.perplexity.ai",
        model: str = "sonar",
        temperature: float = 0.1,
    ):
        if not api_key:
            raise ConfigurationError("PERPLEXITY_API_KEY not configured")
        self.model = model
        self.llm = ChatOpenAI(
            api_key=api_key,
            base_url=base_url,
            model=model,
            temperature=temperature,
            timeout=REQUEST_TIMEOUT_SECONDS,
            max_retries=1,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "PerplexityClient":
        """
        Raises:
            ConfigurationError: If no API key is configured
        """
        if not settings.perplexity_api_key:
            raise ConfigurationError("PERPLEXITY_API_KEY not configured")
        return cls(
            api_key=settings.perplexity_api_key,
            base_url=settings.perplexity_base_url,
            model=settings.perplexity_model,
        )

    def complete(self, system: str, user: str, max_tokens: int = 100) -> str:
        """
        Send one prompt and return the response text

        Args:
            system: Fixed system prompt
            user: Per-item user prompt
            max_tokens: Response size cap

        Returns:
            Raw response text (untrusted; parse with response_parser)

        Raises:
            ClassifierError: Transport or API failure
        """
        messages = [SystemMessage(content=system), HumanMessage(content=user)]
        try:
            response = self.llm.invoke(messages, max_tokens=max_tokens)
        except Exception as e:
            logger.error(f"Classifier request failed ({self.model}): {e}")
            raise ClassifierError(str(e)) from e

        content = response.content
        if isinstance(content, list):
            content = "".join(
                part.get("text", "") if isinstance(part, dict) else str(part) for part in content
            )
        return (content or "").strip()
