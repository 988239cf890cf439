"""Completion client for the OpenAI-compatible chat completions API."""

import logging
from typing import Dict, List, Optional

from openai import (
    AsyncOpenAI,
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    RateLimitError,
)
from tenacity import (
    retry,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config import settings
from ..errors import (
    CompletionOverloadedError,
    CompletionRateLimitedError,
    CompletionServiceError,
    CompletionTimeoutError,
    CompletionUnavailableError,
)

logger = logging.getLogger(__name__)

# Upstream statuses that mean "busy, try again later"
OVERLOADED_STATUSES = {502, 503, 504, 529}


def _retry_after_seconds(error: APIStatusError) -> Optional[int]:
    """Read the provider's Retry-After hint, if any."""
    try:
        value = error.response.headers.get("retry-after")
    except AttributeError:
        return None
    if not value:
        return None
    try:
        return max(0, int(float(value)))
    except ValueError:
        return None


class CompletionClient:
    """Single-turn text completion with a system prompt and message history.

    The underlying client enforces its own request timeout. A timed out
    request is not retried, it already spent the whole budget; other
    connection failures are retried a few times. Everything surfaces as one
    of the ``Completion*Error`` types.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.llm_api_key
        self.model = model or settings.llm_model
        self.client = AsyncOpenAI(
            api_key=self.api_key or "not-configured",
            base_url=base_url or settings.llm_base_url,
            timeout=timeout or settings.llm_timeout_seconds,
            max_retries=0,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @retry(
        retry=(
            retry_if_exception_type(APIConnectionError)
            & retry_if_not_exception_type(APITimeoutError)
        ),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _call_api(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> str:
        """Make an API call to the completion service."""
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        return response.choices[0].message.content or ""

    async def complete(
        self,
        system_prompt: str,
        messages: List[Dict[str, str]],
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Generate the assistant's next turn.

        Args:
            system_prompt: Instruction placed before the history
            messages: ``[{"role": "user"|"assistant", "content": str}, ...]``
                oldest first, starting with a user turn

        Returns:
            The assistant text (possibly empty)

        Raises:
            CompletionUnavailableError: No API key configured
            CompletionRateLimitedError: Provider rate limit, with retry hint
            CompletionOverloadedError: Provider overloaded or unavailable
            CompletionTimeoutError: No answer within the request timeout
            CompletionServiceError: Connection failure or any other API error
        """
        if not self.is_configured:
            raise CompletionUnavailableError()

        payload = [{"role": "system", "content": system_prompt}, *messages]

        try:
            return await self._call_api(
                payload,
                temperature=temperature,
                max_tokens=max_tokens or settings.llm_max_tokens,
            )

        except RateLimitError as e:
            retry_after = _retry_after_seconds(e)
            logger.warning(f"Completion service rate limited (retry after {retry_after}s)")
            raise CompletionRateLimitedError(retry_after=retry_after) from e

        except APIStatusError as e:
            if e.status_code in OVERLOADED_STATUSES:
                logger.warning(f"Completion service overloaded: HTTP {e.status_code}")
                raise CompletionOverloadedError() from e
            logger.error(f"Completion service error: HTTP {e.status_code} - {e.message}")
            raise CompletionServiceError(f"Completion service returned HTTP {e.status_code}") from e

        except APITimeoutError as e:
            logger.warning(f"Completion service timed out: {e}")
            raise CompletionTimeoutError() from e

        except APIConnectionError as e:
            logger.error(f"Completion service unreachable: {e}")
            raise CompletionServiceError(f"Connection failed: {e}") from e


# Singleton
_completion_client: Optional[CompletionClient] = None


def get_completion_client() -> CompletionClient:
    """Get the completion client singleton."""
    global _completion_client
    if _completion_client is None:
        _completion_client = CompletionClient()
    return _completion_client
