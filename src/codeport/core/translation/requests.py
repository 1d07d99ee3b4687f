"""Chunking of translation units and prompt construction."""

from typing import List

from codeport.core.translation.interface import TranslationRequest
from codeport.core.types import TranslationUnit
from codeport.utils.language import LanguageSupport, get_language_support
from codeport.utils.logging import get_logger

logger = get_logger(__name__)


def _byte_size(text: str) -> int:
    return len(text.encode("utf-8"))


def _cut_line(line: str, chunk_size: int) -> List[str]:
    """Cut a line longer than the budget into pieces of at most `chunk_size` bytes."""
    pieces: List[str] = []
    current: List[str] = []
    size = 0
    for char in line:
        char_size = _byte_size(char)
        if current and size + char_size > chunk_size:
            pieces.append("".join(current))
            current = []
            size = 0
        current.append(char)
        size += char_size
    if current:
        pieces.append("".join(current))
    return pieces


def split_source(text: str, chunk_size: int) -> List[str]:
    """Split source code into chunks of at most `chunk_size` bytes.

    Priority order for split points:
    1. Blank lines (usually between top-level declarations)
    2. Line breaks
    3. The byte budget itself, for single lines longer than the budget

    Joining the returned chunks gives back `text` exactly.

    Args:
        text: Source code to split
        chunk_size: Budget per chunk in UTF-8 bytes

    Returns:
        List of chunks in source order; a single chunk when the text fits

    Raises:
        ValueError: If chunk_size is not positive
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    if _byte_size(text) <= chunk_size:
        return [text]

    chunks: List[str] = []
    current: List[str] = []
    current_size = 0
    last_break = 0  # Number of lines in `current` up to and including the last blank line

    def flush(count: int) -> None:
        nonlocal current, current_size
        chunks.append("".join(current[:count]))
        current = current[count:]
        current_size = sum(_byte_size(line) for line in current)

    for line in text.splitlines(keepends=True):
        line_size = _byte_size(line)

        if line_size > chunk_size:
            if current:
                flush(len(current))
            chunks.extend(_cut_line(line, chunk_size))
            last_break = 0
            continue

        if current_size + line_size > chunk_size:
            flush(last_break or len(current))
            last_break = 0
            # Lines carried over after the blank line may still leave no room
            if current and current_size + line_size > chunk_size:
                flush(len(current))

        current.append(line)
        current_size += line_size
        if not line.strip():
            last_break = len(current)

    if current:
        flush(len(current))

    return chunks


class RequestBuilder:
    """Builds translation requests for units."""

    def __init__(
        self,
        source_language: str,
        target_language: str,
        chunk_size: int,
    ) -> None:
        """Initialize the builder.

        Args:
            source_language: Language of the source files
            target_language: Language to translate into
            chunk_size: Largest chunk per request (bytes)
        """
        self.source: LanguageSupport = get_language_support(source_language)
        self.target: LanguageSupport = get_language_support(target_language)
        self.chunk_size = chunk_size

    def _system_prompt(self, unit: TranslationUnit) -> str:
        source, target = self.source.name, self.target.name
        return (
            f"You are an expert software engineer translating {source} source code to {target}. "
            f"Translate the code you are given into idiomatic {target} that keeps its behavior, "
            f"structure, identifiers and comments. Follow the usual {target} conventions for a file "
            f"named '{unit.relative_path.stem}'. "
            f"Output only the translated {target} code. Do not add explanations, notes or "
            f"markdown code fences."
        )

    def _create_prompt(
        self,
        unit: TranslationUnit,
        chunk: str,
        chunk_index: int,
        chunk_count: int,
    ) -> list[dict[str, str]]:
        messages = [{"role": "system", "content": self._system_prompt(unit)}]

        if chunk_count > 1:
            messages.append(
                {
                    "role": "user",
                    "content": (
                        f"[TRANSLATION_CONTEXT]This is part {chunk_index + 1} of {chunk_count} "
                        f"of {unit.relative_path.as_posix()}. Translate only this part. The "
                        f"translated parts are joined in order afterwards, so do not repeat, "
                        f"close or complete code from other parts.[/TRANSLATION_CONTEXT]"
                    ),
                }
            )

        source, target = self.source.name, self.target.name
        messages.append(
            {
                "role": "user",
                "content": f"#{source} to {target}:\n{source}:\n{chunk.strip()}\n\n{target}:",
            }
        )
        return messages

    def build(self, unit: TranslationUnit) -> List[TranslationRequest]:
        """Build the requests for a unit, one per chunk, in source order.

        Args:
            unit: The unit to translate

        Returns:
            List of requests; exactly one when the unit fits the chunk size
        """
        chunks = split_source(unit.content, self.chunk_size)

        if len(chunks) > 1:
            logger.info(
                "Splitting oversized unit",
                path=unit.relative_path.as_posix(),
                size_bytes=unit.size_bytes,
                chunks=len(chunks),
            )

        return [
            TranslationRequest(
                unit=unit,
                chunk_index=index,
                chunk_count=len(chunks),
                source_text=chunk,
                messages=self._create_prompt(unit, chunk, index, len(chunks)),
            )
            for index, chunk in enumerate(chunks)
        ]
