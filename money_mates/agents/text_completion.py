"""
Text Completion Client

DESIGN DECISION: The coach and the decision game only need "prompt in,
text out". Both depend on the TextCompletionClient interface, so tests
can substitute a scripted client and the Gemini details stay here.

RESILIENCE:
- A missing API key is a configuration error: raised immediately,
  never retried, and reported with its own message.
- Each attempt is bounded by a timeout.
- Timeouts and transient API errors are retried with exponential
  backoff (tenacity), up to a fixed number of attempts.
- Anything else fails straight away as CompletionFailedError.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from money_mates.config import GeminiSettings, get_settings


DEFAULT_SYSTEM_PROMPT = "You are a helpful financial assistant."

# Worth another attempt
TRANSIENT_ERRORS = (
    asyncio.TimeoutError,
    google_exceptions.DeadlineExceeded,
    google_exceptions.InternalServerError,
    google_exceptions.ServiceUnavailable,
    google_exceptions.TooManyRequests,
)


class TextCompletionError(Exception):
    """Base exception for text completion."""
    pass


class MissingCredentialError(TextCompletionError):
    """No API key is configured."""
    pass


class CompletionFailedError(TextCompletionError):
    """The completion failed, after retries where retrying made sense."""
    pass


class TextCompletionClient(ABC):
    """Stateless prompt-to-text collaborator."""

    @abstractmethod
    async def complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """
        Generate text for a prompt.

        Returns:
            The generated text, possibly empty

        Raises:
            MissingCredentialError: If no credential is configured
            CompletionFailedError: If generation failed
        """
        pass


class GeminiTextCompletion(TextCompletionClient):
    """
    Gemini-backed text completion.

    model_factory builds a model for a system prompt; it defaults to
    genai.GenerativeModel and exists so tests can avoid the network.
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model_factory: Optional[Callable[[str], Any]] = None,
    ):
        self._settings = settings or get_settings().gemini
        self._model_factory = model_factory
        self._models: dict[str, Any] = {}

    @property
    def is_configured(self) -> bool:
        return bool(self._settings.api_key)

    def _get_model(self, system_prompt: str) -> Any:
        if system_prompt not in self._models:
            if self._model_factory is not None:
                self._models[system_prompt] = self._model_factory(system_prompt)
            else:
                genai.configure(api_key=self._settings.api_key)
                self._models[system_prompt] = genai.GenerativeModel(
                    model_name=self._settings.model_name,
                    system_instruction=system_prompt,
                    generation_config={
                        "temperature": self._settings.temperature,
                        "max_output_tokens": self._settings.max_tokens,
                    },
                )
        return self._models[system_prompt]

    async def _attempt(self, model: Any, prompt: str) -> str:
        response = await asyncio.wait_for(
            model.generate_content_async(prompt),
            timeout=self._settings.timeout_seconds,
        )
        try:
            return (response.text or "").strip()
        except ValueError:
            # Blocked or empty candidates: no text to return
            return ""

    async def complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        if not self.is_configured:
            raise MissingCredentialError("GEMINI_API_KEY is not set")

        model = self._get_model(system_prompt or DEFAULT_SYSTEM_PROMPT)
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._settings.max_attempts),
            wait=wait_exponential(
                multiplier=1,
                min=self._settings.backoff_min_seconds,
                max=self._settings.backoff_max_seconds,
            ),
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._attempt(model, prompt)
        except TRANSIENT_ERRORS as e:
            raise CompletionFailedError(
                f"Text completion failed after {self._settings.max_attempts} attempts: {e!r}"
            ) from e
        except Exception as e:
            raise CompletionFailedError(f"Text completion failed: {e}") from e
