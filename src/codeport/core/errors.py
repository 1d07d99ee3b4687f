"""Exceptions raised by the Codeport pipeline."""

from pathlib import Path
from typing import Optional


class CodeportError(Exception):
    """Base class for pipeline errors."""

    pass


class DiscoveryError(CodeportError):
    """The source tree cannot be enumerated, so no run can start."""

    pass


class UnitError(CodeportError):
    """Error confined to a single translation unit."""

    def __init__(self, message: str, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.path = path


class InvalidPathError(UnitError):
    """A source path lies outside the source root."""

    pass


class UnreadableFileError(UnitError):
    """A source file cannot be read as text."""

    pass


class WriteError(UnitError):
    """A translated file cannot be written to its destination."""

    pass


class AuthError(CodeportError):
    """The completion service rejected the credentials.

    Every later request would fail the same way, so the run stops here.
    """

    pass
