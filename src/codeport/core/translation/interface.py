"""Translation interface definitions."""

from typing import Protocol

from pydantic import BaseModel, Field, ConfigDict

from codeport.core.types import Failure, FailureKind, Outcome, Success, TranslationUnit


class TranslationError(Exception):
    """Base class for translation-related errors."""

    pass


class ServiceFailure(TranslationError):
    """A classified failure of one call to the completion service."""

    def __init__(self, kind: FailureKind, message: str, retryable: bool = False) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.retryable = retryable

    def to_failure(self) -> Failure:
        return Failure(kind=self.kind, message=self.message)


class TranslationRequest(BaseModel):
    """A self-contained request to translate one chunk of a unit."""

    unit: TranslationUnit  # Back-reference; the run owns the unit
    chunk_index: int = Field(ge=0)
    chunk_count: int = Field(ge=1)
    source_text: str  # Chunk of unit content sent in this request
    messages: list[dict[str, str]]  # Chat prompt for the model
    attempt_number: int = Field(default=1, ge=1)

    model_config = ConfigDict(frozen=True)

    def for_attempt(self, attempt_number: int) -> "TranslationRequest":
        """Copy of this request tagged with another attempt number."""
        return self.model_copy(update={"attempt_number": attempt_number})


class TranslationResult(BaseModel):
    """Terminal result of a translation request."""

    unit: TranslationUnit
    chunk_index: int = Field(default=0, ge=0)
    outcome: Outcome
    attempts_used: int = Field(ge=0)
    tokens_used: int = Field(default=0, ge=0)
    cost: float = Field(default=0.0, ge=0.0)

    model_config = ConfigDict(frozen=True)

    @property
    def succeeded(self) -> bool:
        return isinstance(self.outcome, Success)


class ModelInterface(Protocol):
    """Protocol for completion services translating requests."""

    async def translate(
        self,
        request: TranslationRequest,
    ) -> TranslationResult:
        """Translate one request.

        Service failures are returned as a `Failure` outcome, never raised.

        Args:
            request: The translation request

        Returns:
            The terminal result for the request
        """
        ...
