"""Discovery and loading of source files."""

import asyncio
from pathlib import Path
from typing import Iterable, List, Tuple

import pathspec

from codeport.core.errors import DiscoveryError, UnreadableFileError
from codeport.core.types import TranslationUnit
from codeport.utils.logging import get_logger

logger = get_logger(__name__)

# Ignore files honored in every directory of the tree, in order of precedence
IGNORE_FILES = (".gitignore", ".ignore")

# (directory holding the ignore file, its patterns)
IgnoreRules = List[Tuple[Path, pathspec.GitIgnoreSpec]]


def is_hidden(path: Path) -> bool:
    """Check whether a file or directory name starts with a dot."""
    return path.name.startswith(".")


def load_ignore_rules(directory: Path) -> IgnoreRules:
    """Read the ignore files of a single directory.

    Raises:
        DiscoveryError: If an ignore file exists but cannot be read
    """
    rules: IgnoreRules = []
    for name in IGNORE_FILES:
        ignore_file = directory / name
        if not ignore_file.is_file():
            continue
        try:
            lines = ignore_file.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError) as e:
            raise DiscoveryError(f"Cannot read ignore file {ignore_file}: {e}") from e
        rules.append((directory, pathspec.GitIgnoreSpec.from_lines(lines)))
    return rules


def is_ignored(path: Path, is_dir: bool, rules: IgnoreRules) -> bool:
    """Check a path against ignore rules, deeper and later rules winning.

    Negated patterns (`!keep.java`) re-include a path ignored by an
    earlier rule.
    """
    ignored = False
    for base, spec in rules:
        relative = path.relative_to(base).as_posix()
        if is_dir:
            relative += "/"
        result = spec.check_file(relative)
        if result.include is not None:
            ignored = result.include
    return ignored


def _walk(directory: Path, extensions: frozenset[str], rules: IgnoreRules) -> Iterable[Path]:
    try:
        entries = list(directory.iterdir())
    except OSError as e:
        raise DiscoveryError(f"Cannot list directory {directory}: {e}") from e

    rules = rules + load_ignore_rules(directory)

    for entry in entries:
        if is_hidden(entry):
            continue
        if entry.is_dir():
            if entry.is_symlink():
                logger.debug("Skipping symlinked directory", path=str(entry))
                continue
            if is_ignored(entry, True, rules):
                logger.debug("Skipping ignored directory", path=str(entry))
                continue
            yield from _walk(entry, extensions, rules)
        elif entry.is_file() and entry.suffix.lower() in extensions:
            if is_ignored(entry, False, rules):
                logger.debug("Skipping ignored file", path=str(entry))
                continue
            yield entry


def discover_sources(source_root: Path, extensions: frozenset[str]) -> list[Path]:
    """Enumerate the files to translate.

    A single file is returned as-is. A directory is walked recursively,
    keeping files whose suffix is in `extensions` and skipping hidden files
    and directories as well as paths matched by `.gitignore` or `.ignore`
    files found in the tree. Files are ordered lexicographically by their
    path relative to the root, so `a.java` comes before `a/x.java`.

    Args:
        source_root: Source file or directory
        extensions: Lower-case suffixes to keep, including the dot

    Returns:
        Absolute paths of the files to translate, in discovery order

    Raises:
        DiscoveryError: If the root does not exist or a directory cannot be listed
    """
    source_root = Path(source_root).absolute()

    if source_root.is_file():
        return [source_root]

    if not source_root.is_dir():
        raise DiscoveryError(f"{source_root}: No such file or directory")

    sources = sorted(
        _walk(source_root, extensions, []),
        key=lambda path: path.relative_to(source_root).as_posix(),
    )
    logger.info(
        "Discovered source files",
        root=str(source_root),
        count=len(sources),
    )
    return sources


def read_source(path: Path) -> str:
    """Read a source file as UTF-8 text.

    Raises:
        UnreadableFileError: If the file cannot be read or decoded
    """
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise UnreadableFileError(f"Invalid UTF-8 encoding: {e}", path=path) from e
    except OSError as e:
        raise UnreadableFileError(f"Cannot read file: {e}", path=path) from e


async def load_unit(path: Path, relative_path: Path) -> TranslationUnit:
    """Load a source file into a translation unit.

    Args:
        path: Absolute path of the source file
        relative_path: Path relative to the mirror base

    Returns:
        The loaded unit

    Raises:
        UnreadableFileError: If the file cannot be read
    """
    content = await asyncio.to_thread(read_source, path)
    return TranslationUnit(
        source_path=path,
        relative_path=relative_path,
        content=content,
        size_bytes=len(content.encode("utf-8")),
    )
