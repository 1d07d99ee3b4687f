"""Writing of translated units to the destination tree."""

import asyncio
import contextlib
import os
import tempfile
from pathlib import Path
from typing import Iterator, Sequence

from codeport.core.errors import WriteError
from codeport.core.mirror import PathMirror
from codeport.core.translation.interface import TranslationResult
from codeport.core.types import Failure, FailureKind, Success, TranslationUnit, UnitReport
from codeport.utils.logging import get_logger

logger = get_logger(__name__)


@contextlib.contextmanager
def temporary_sibling(path: Path) -> Iterator[Path]:
    """Create a temporary file next to `path`, removed unless it was moved away."""
    fd, name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    os.close(fd)
    temp_path = Path(name)
    try:
        yield temp_path
    finally:
        with contextlib.suppress(FileNotFoundError):
            temp_path.unlink()


def atomic_write(path: Path, text: str) -> None:
    """Write text to `path` through a temporary file and a rename.

    Readers never observe a partially written file; on failure the temporary
    file is removed and any previous file at `path` is left untouched.
    """
    with temporary_sibling(path) as temp_path:
        with temp_path.open("w", encoding="utf-8", newline="") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_path, path)


class ResultWriter:
    """Reassembles chunk results and writes translated units."""

    def __init__(self, mirror: PathMirror) -> None:
        self.mirror = mirror

    def write(self, destination: Path, text: str) -> None:
        """Write translated text, creating parent directories.

        Raises:
            WriteError: If the directory or file cannot be written
        """
        try:
            self.mirror.ensure_parent(destination)
            atomic_write(destination, text)
        except UnicodeEncodeError as e:
            raise WriteError(f"Cannot encode {destination} as UTF-8: {e}", path=destination) from e
        except OSError as e:
            raise WriteError(f"Cannot write {destination}: {e}", path=destination) from e

    async def commit(
        self,
        unit: TranslationUnit,
        destination: Path,
        results: Sequence[TranslationResult],
    ) -> UnitReport:
        """Turn the chunk results of a unit into its terminal report.

        Chunk texts are joined in chunk order, whatever order the results
        arrived in. Nothing is written when any chunk failed.

        Args:
            unit: The translated unit
            destination: Mapped destination path
            results: One result per chunk

        Returns:
            The unit's report
        """
        ordered = sorted(results, key=lambda result: result.chunk_index)
        attempts = sum(result.attempts_used for result in ordered)
        tokens = sum(result.tokens_used for result in ordered)
        cost = sum(result.cost for result in ordered)

        failure = next(
            (result.outcome for result in ordered if isinstance(result.outcome, Failure)),
            None,
        )
        if failure is not None:
            return UnitReport(
                source_path=unit.source_path,
                outcome=failure,
                attempts_used=attempts,
                tokens_used=tokens,
                cost=cost,
            )

        text = "".join(result.outcome.text for result in ordered)
        try:
            await asyncio.to_thread(self.write, destination, text)
        except WriteError as e:
            logger.error("Write failed", path=str(destination), error=str(e))
            return UnitReport(
                source_path=unit.source_path,
                outcome=Failure(kind=FailureKind.WRITE, message=str(e)),
                attempts_used=attempts,
                tokens_used=tokens,
                cost=cost,
            )

        logger.debug("Wrote translated unit", path=str(destination), size=len(text))
        return UnitReport(
            source_path=unit.source_path,
            destination_path=destination,
            outcome=Success(text=text),
            attempts_used=attempts,
            tokens_used=tokens,
            cost=cost,
        )
