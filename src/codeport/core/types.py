"""Core data types for the Codeport translation pipeline."""

from enum import Enum
from pathlib import Path
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from codeport.utils.language import LanguageError, normalize_language, resolve_extensions


class RunState(str, Enum):
    """Phases of a pipeline run."""

    DISCOVERING = "discovering"
    DISPATCHING = "dispatching"
    DRAINING = "draining"
    DONE = "done"


class FailureKind(str, Enum):
    """Why a unit did not produce a translated file."""

    # Reported by the completion service
    AUTH = "AuthError"
    RATE_LIMIT = "RateLimitExceeded"
    SERVICE = "ServiceError"
    TIMEOUT = "TimeoutError"
    REJECTED = "RejectedContentError"
    # Raised locally by the pipeline
    UNREADABLE = "UnreadableFileError"
    WRITE = "WriteError"
    INVALID_PATH = "InvalidPathError"
    CANCELLED = "Cancelled"


class Success(BaseModel):
    """Translated text for a request."""

    status: Literal["success"] = "success"
    text: str

    model_config = ConfigDict(frozen=True)


class Failure(BaseModel):
    """A classified failure for a request or unit."""

    status: Literal["failure"] = "failure"
    kind: FailureKind
    message: str

    model_config = ConfigDict(frozen=True)


Outcome = Annotated[Union[Success, Failure], Field(discriminator="status")]


class TranslationUnit(BaseModel):
    """One source file loaded into memory."""

    source_path: Path
    relative_path: Path
    content: str
    size_bytes: int = Field(ge=0)

    model_config = ConfigDict(frozen=True)


class RunOptions(BaseModel):
    """Options for a translation run."""

    # Languages
    source_language: str = "java"
    target_language: str = "php"
    source_extensions: Optional[list[str]] = Field(
        default=None,
        description="Suffixes to translate; defaults to the source language's extensions",
    )
    target_extension: Optional[str] = Field(
        default=None,
        description="Suffix of written files; defaults to the target language's extension",
    )

    # Model settings
    model_name: str = Field(
        default="gpt-4o-mini",
        description="LiteLLM model string (e.g., 'gpt-4o-mini', 'anthropic/claude-3-5-sonnet')",
    )
    temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, gt=0)

    # Dispatch settings
    concurrency: int = Field(
        default=4,
        gt=0,
        description="Maximum number of units translated at once",
    )
    timeout: float = Field(
        default=60.0,
        gt=0.0,
        description="Timeout for a single request attempt in seconds",
    )
    max_attempts: int = Field(
        default=3,
        gt=0,
        description="Maximum attempts per request, including the first",
    )
    backoff_base: float = Field(default=1.0, ge=0.0)
    backoff_max: float = Field(default=30.0, ge=0.0)

    # Chunking
    chunk_size: int = Field(
        default=16_000,
        gt=0,
        description="Largest chunk sent in one request (bytes)",
    )

    model_config = ConfigDict(
        frozen=True,
        protected_namespaces=(),  # Allow model_* field names
    )

    @field_validator("source_language", "target_language")
    @classmethod
    def validate_language(cls, v: str) -> str:
        """Normalize language names and aliases."""
        try:
            return normalize_language(v).value
        except LanguageError as e:
            raise ValueError(str(e)) from e

    @model_validator(mode="after")
    def validate_extensions(self) -> "RunOptions":
        """Check the language pair and extension overrides together."""
        try:
            resolve_extensions(
                self.source_language,
                self.target_language,
                self.source_extensions,
                self.target_extension,
            )
        except LanguageError as e:
            raise ValueError(str(e)) from e
        return self

    @property
    def source_suffixes(self) -> frozenset[str]:
        """Suffixes of files picked up by discovery."""
        return resolve_extensions(
            self.source_language,
            self.target_language,
            self.source_extensions,
            self.target_extension,
        )[0]

    @property
    def target_suffix(self) -> str:
        """Suffix given to translated files."""
        return resolve_extensions(
            self.source_language,
            self.target_language,
            self.source_extensions,
            self.target_extension,
        )[1]


class UnitReport(BaseModel):
    """Terminal record of one unit."""

    source_path: Path
    destination_path: Optional[Path] = None
    outcome: Outcome
    attempts_used: int = Field(default=0, ge=0)
    tokens_used: int = Field(default=0, ge=0)
    cost: float = Field(default=0.0, ge=0.0)

    model_config = ConfigDict(frozen=True)

    @property
    def succeeded(self) -> bool:
        return isinstance(self.outcome, Success)


class FailedUnit(BaseModel):
    """A unit that did not produce a translated file."""

    path: Path
    kind: FailureKind
    message: str

    model_config = ConfigDict(frozen=True)

    @property
    def reason(self) -> str:
        return f"{self.kind.value}: {self.message}"


class RunSummary(BaseModel):
    """Outcome of a whole run."""

    total_units: int = Field(ge=0)
    succeeded: int = Field(ge=0)
    failed: list[FailedUnit] = Field(default_factory=list)
    written: list[Path] = Field(default_factory=list)
    tokens_used: int = Field(default=0, ge=0)
    cost: float = Field(default=0.0, ge=0.0)
    time_taken: float = Field(default=0.0, ge=0.0)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_counts(self) -> "RunSummary":
        """Every unit is counted exactly once."""
        if self.succeeded + len(self.failed) != self.total_units:
            raise ValueError(
                f"Unit counts do not add up: {self.succeeded} succeeded + "
                f"{len(self.failed)} failed != {self.total_units} total"
            )
        return self

    @property
    def ok(self) -> bool:
        """True when every unit was translated and written."""
        return not self.failed


class PlannedUnit(BaseModel):
    """A unit as it would be dispatched, without calling the service."""

    source_path: Path
    destination_path: Path
    size_bytes: int = Field(ge=0)
    requests: int = Field(ge=1)

    model_config = ConfigDict(frozen=True)


class RunPlan(BaseModel):
    """What a run would do: units to dispatch and units already failed."""

    units: list[PlannedUnit] = Field(default_factory=list)
    failed: list[FailedUnit] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def total_units(self) -> int:
        return len(self.units) + len(self.failed)

    @property
    def total_requests(self) -> int:
        return sum(unit.requests for unit in self.units)

    @property
    def total_bytes(self) -> int:
        return sum(unit.size_bytes for unit in self.units)
