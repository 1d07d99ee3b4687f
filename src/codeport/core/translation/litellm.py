"""LiteLLM-based translation client."""

import asyncio
from typing import Any, Awaitable, Callable, Optional

from litellm import acompletion, completion_cost, model_cost
from litellm.exceptions import (
    APIConnectionError,
    APIError,
    AuthenticationError,
    BadRequestError,
    ContentPolicyViolationError,
    ContextWindowExceededError,
    InternalServerError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    ServiceUnavailableError,
    Timeout,
    UnprocessableEntityError,
)
from litellm.utils import get_max_tokens, token_counter
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_random_exponential,
)

from codeport.core.translation.interface import (
    ModelInterface,
    ServiceFailure,
    TranslationRequest,
    TranslationResult,
)
from codeport.core.types import FailureKind, Success
from codeport.utils.chunks import restore_whitespace, strip_code_fences
from codeport.utils.logging import get_logger

logger = get_logger(__name__)


def classify_exception(error: BaseException) -> ServiceFailure:
    """Map an exception from the completion call onto a failure kind.

    Args:
        error: Exception raised while calling the service

    Returns:
        The classified failure, flagged retryable for transient errors
    """
    message = str(error) or type(error).__name__

    # litellm.Timeout must be checked before connection errors
    if isinstance(error, (asyncio.TimeoutError, Timeout)):
        return ServiceFailure(FailureKind.TIMEOUT, f"Request timed out: {message}", retryable=True)
    if isinstance(error, (AuthenticationError, PermissionDeniedError)):
        return ServiceFailure(FailureKind.AUTH, message)
    if isinstance(error, RateLimitError):
        return ServiceFailure(FailureKind.RATE_LIMIT, message, retryable=True)
    # Content policy and context window errors are bad requests too
    if isinstance(error, ContentPolicyViolationError):
        return ServiceFailure(FailureKind.REJECTED, f"Content policy violation: {message}")
    if isinstance(error, ContextWindowExceededError):
        return ServiceFailure(FailureKind.REJECTED, f"Request exceeds context window: {message}")
    if isinstance(error, NotFoundError):
        return ServiceFailure(FailureKind.SERVICE, message)
    if isinstance(error, (BadRequestError, UnprocessableEntityError)):
        return ServiceFailure(FailureKind.REJECTED, message)
    if isinstance(error, (APIConnectionError, InternalServerError, ServiceUnavailableError)):
        return ServiceFailure(FailureKind.SERVICE, message, retryable=True)
    if isinstance(error, APIError):
        status_code = getattr(error, "status_code", None)
        retryable = status_code is None or status_code >= 500
        return ServiceFailure(FailureKind.SERVICE, message, retryable=retryable)

    return ServiceFailure(FailureKind.SERVICE, f"{type(error).__name__}: {message}", retryable=True)


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, ServiceFailure) and error.retryable


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.info(
        "Retrying request",
        attempt=retry_state.attempt_number,
        kind=getattr(getattr(error, "kind", None), "value", None),
        error=str(error),
        wait=round(retry_state.next_action.sleep, 2) if retry_state.next_action else None,
    )


class LiteLLMTranslator(ModelInterface):
    """LiteLLM-based implementation of the model interface."""

    def __init__(
        self,
        model_name: str,
        api_key: Optional[str] = None,
        *,
        timeout: float = 60.0,
        max_attempts: int = 3,
        temperature: float = 0.0,
        max_tokens: Optional[int] = None,
        backoff_base: float = 1.0,
        backoff_max: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the translator.

        Args:
            model_name: LiteLLM model string
            api_key: API key sent with every request
            timeout: Timeout for a single attempt in seconds
            max_attempts: Maximum attempts per request, including the first
            temperature: Model temperature. Defaults to 0.0.
            max_tokens: Maximum tokens in the response, or None to size it from the model's limits
            backoff_base: Multiplier of the exponential backoff in seconds
            backoff_max: Upper bound of a single backoff in seconds
            sleep: Coroutine used to wait between attempts
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.model_name = model_name
        self.api_key = api_key
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self._sleep = sleep

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception(_is_retryable),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_random_exponential(multiplier=self.backoff_base, max=self.backoff_max),
            before_sleep=_log_retry,
            sleep=self._sleep,
            reraise=True,
        )

    def _model_limits(self) -> tuple[Optional[int], Optional[int]]:
        """Look up the context window and output limit of the model, if known."""
        info = model_cost.get(self.model_name) or {}
        max_output = info.get("max_output_tokens") or info.get("max_tokens")
        if not max_output:
            try:
                max_output = get_max_tokens(self.model_name)
            except Exception:
                logger.debug("No token limits for model", model=self.model_name)
                max_output = None
        return info.get("max_input_tokens"), max_output

    def _completion_budget(self, messages: list[dict[str, str]]) -> Optional[int]:
        """Work out `max_tokens` for a prompt.

        An explicit `max_tokens` wins. Otherwise the answer may use the
        model's output limit, capped by what the context window leaves after
        the prompt. Unknown models get no limit.

        Raises:
            ServiceFailure: If the prompt alone fills the context window
        """
        if self.max_tokens:
            return self.max_tokens

        context_window, max_output = self._model_limits()
        if not context_window:
            return max_output

        prompt_tokens = token_counter(model=self.model_name, messages=messages)
        remaining = context_window - prompt_tokens
        if remaining <= 0:
            raise ServiceFailure(
                FailureKind.REJECTED,
                f"Prompt of {prompt_tokens} tokens fills the {context_window}-token context "
                f"window; lower the chunk size",
            )
        return min(remaining, max_output) if max_output else remaining

    async def _make_completion_request(self, request: TranslationRequest) -> Any:
        """Make a single completion call bounded by the attempt timeout.

        Raises:
            ServiceFailure: If the call fails
        """
        params: dict[str, Any] = {}
        max_tokens = self._completion_budget(request.messages)
        if max_tokens:
            params["max_tokens"] = max_tokens

        try:
            return await asyncio.wait_for(
                acompletion(
                    model=self.model_name,
                    messages=request.messages,
                    api_key=self.api_key,
                    temperature=self.temperature,
                    timeout=self.timeout,
                    drop_params=True,
                    **params,
                ),
                timeout=self.timeout,
            )
        except Exception as e:
            raise classify_exception(e) from e

    def _parse_response(self, response: Any) -> tuple[str, int, float]:
        """Extract text, token usage and cost from a completion response.

        Raises:
            ServiceFailure: If the response carries no usable translation
        """
        choices = getattr(response, "choices", None)
        if not choices:
            raise ServiceFailure(FailureKind.SERVICE, "No response from model", retryable=True)

        choice = choices[0]
        finish_reason = getattr(choice, "finish_reason", None)
        if finish_reason == "content_filter":
            raise ServiceFailure(FailureKind.REJECTED, "Response blocked by content filter")
        if finish_reason == "length":
            raise ServiceFailure(
                FailureKind.REJECTED,
                "Response truncated at the token limit; lower the chunk size",
            )

        message = getattr(choice, "message", None)
        content = getattr(message, "content", None)
        if not content or not content.strip():
            raise ServiceFailure(FailureKind.SERVICE, "No content returned from model", retryable=True)

        tokens = getattr(getattr(response, "usage", None), "total_tokens", 0) or 0

        cost = 0.0
        hidden_params = getattr(response, "_hidden_params", None) or {}
        if hidden_params.get("response_cost") is not None:
            cost = hidden_params["response_cost"]
        else:
            try:
                cost = completion_cost(completion_response=response)
            except Exception:
                # Unknown model pricing leaves the cost at zero
                logger.debug("No pricing for model", model=self.model_name)

        return strip_code_fences(content), tokens, cost

    async def translate(self, request: TranslationRequest) -> TranslationResult:
        """Translate one request, retrying transient failures.

        Args:
            request: The translation request

        Returns:
            The terminal result; failures are returned, not raised
        """
        path = request.unit.relative_path.as_posix()

        # Nothing to translate; keep the whitespace as-is
        if not request.source_text.strip():
            return TranslationResult(
                unit=request.unit,
                chunk_index=request.chunk_index,
                outcome=Success(text=request.source_text),
                attempts_used=0,
            )

        attempts = 0
        try:
            async for attempt in self._retrying():
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    logger.debug(
                        "Making completion request",
                        path=path,
                        chunk=request.chunk_index,
                        attempt=attempts,
                    )
                    response = await self._make_completion_request(request.for_attempt(attempts))
                    text, tokens, cost = self._parse_response(response)
        except ServiceFailure as failure:
            message = failure.message
            if failure.retryable:
                message = f"{message} (gave up after {attempts} attempts)"
            logger.warning(
                "Translation failed",
                path=path,
                chunk=request.chunk_index,
                kind=failure.kind.value,
                attempts=attempts,
                error=failure.message,
            )
            return TranslationResult(
                unit=request.unit,
                chunk_index=request.chunk_index,
                outcome=ServiceFailure(failure.kind, message).to_failure(),
                attempts_used=attempts,
            )

        return TranslationResult(
            unit=request.unit,
            chunk_index=request.chunk_index,
            outcome=Success(text=restore_whitespace(request.source_text, text)),
            attempts_used=attempts,
            tokens_used=tokens,
            cost=cost,
        )
