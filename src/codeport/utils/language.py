"""Programming language names and file extensions for Codeport."""

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field, ConfigDict


class ProgrammingLanguage(str, Enum):
    """Languages with a known display name and file extensions."""

    JAVA = "java"
    PHP = "php"
    PYTHON = "python"
    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"
    KOTLIN = "kotlin"
    CSHARP = "csharp"
    CPP = "cpp"
    C = "c"
    GO = "go"
    RUST = "rust"
    RUBY = "ruby"
    SWIFT = "swift"
    SCALA = "scala"


class LanguageSupport(BaseModel):
    """Display name and extensions of a programming language."""

    language: ProgrammingLanguage
    name: str
    extensions: tuple[str, ...] = Field(min_length=1)

    model_config = ConfigDict(frozen=True)

    @property
    def primary_extension(self) -> str:
        """Extension used for files written in this language."""
        return self.extensions[0]


LANGUAGES: Dict[ProgrammingLanguage, LanguageSupport] = {
    support.language: support
    for support in [
        LanguageSupport(language=ProgrammingLanguage.JAVA, name="Java", extensions=(".java",)),
        LanguageSupport(language=ProgrammingLanguage.PHP, name="PHP", extensions=(".php",)),
        LanguageSupport(language=ProgrammingLanguage.PYTHON, name="Python", extensions=(".py", ".pyi")),
        LanguageSupport(
            language=ProgrammingLanguage.JAVASCRIPT,
            name="JavaScript",
            extensions=(".js", ".mjs", ".cjs", ".jsx"),
        ),
        LanguageSupport(language=ProgrammingLanguage.TYPESCRIPT, name="TypeScript", extensions=(".ts", ".tsx")),
        LanguageSupport(language=ProgrammingLanguage.KOTLIN, name="Kotlin", extensions=(".kt", ".kts")),
        LanguageSupport(language=ProgrammingLanguage.CSHARP, name="C#", extensions=(".cs",)),
        LanguageSupport(
            language=ProgrammingLanguage.CPP,
            name="C++",
            extensions=(".cpp", ".cc", ".cxx", ".hpp", ".hh"),
        ),
        LanguageSupport(language=ProgrammingLanguage.C, name="C", extensions=(".c", ".h")),
        LanguageSupport(language=ProgrammingLanguage.GO, name="Go", extensions=(".go",)),
        LanguageSupport(language=ProgrammingLanguage.RUST, name="Rust", extensions=(".rs",)),
        LanguageSupport(language=ProgrammingLanguage.RUBY, name="Ruby", extensions=(".rb",)),
        LanguageSupport(language=ProgrammingLanguage.SWIFT, name="Swift", extensions=(".swift",)),
        LanguageSupport(language=ProgrammingLanguage.SCALA, name="Scala", extensions=(".scala",)),
    ]
}

# Common aliases mapping to canonical language identifiers
LANGUAGE_ALIASES: Dict[str, str] = {
    "py": "python",
    "python3": "python",
    "js": "javascript",
    "node": "javascript",
    "ts": "typescript",
    "kt": "kotlin",
    "c#": "csharp",
    "cs": "csharp",
    "c++": "cpp",
    "cxx": "cpp",
    "golang": "go",
    "rs": "rust",
    "rb": "ruby",
}


class LanguageError(Exception):
    """Exception raised for language-related errors."""

    pass


def normalize_language(name: str) -> ProgrammingLanguage:
    """Normalize a language name or alias.

    Args:
        name: A language name or alias (e.g., 'java', 'Python', 'c++')

    Returns:
        The matching language

    Raises:
        LanguageError: If the language is not recognized
    """
    normalized = name.lower().strip()

    try:
        return ProgrammingLanguage(normalized)
    except ValueError:
        pass

    if normalized in LANGUAGE_ALIASES:
        return ProgrammingLanguage(LANGUAGE_ALIASES[normalized])

    raise LanguageError(
        f"Unsupported language: {name}. "
        f"Supported languages: {', '.join(lang.value for lang in ProgrammingLanguage)}"
    )


def get_language_support(name: str) -> LanguageSupport:
    """Look up display name and extensions for a language name or alias."""
    return LANGUAGES[normalize_language(name)]


def normalize_extension(extension: str) -> str:
    """Return an extension in lower case with a leading dot."""
    extension = extension.strip().lower()
    if not extension:
        raise LanguageError("Empty file extension")
    return extension if extension.startswith(".") else f".{extension}"


def validate_language_pair(
    source: str, target: str
) -> tuple[LanguageSupport, LanguageSupport]:
    """Validate a source-target language pair.

    Args:
        source: Source language name or alias
        target: Target language name or alias

    Returns:
        Tuple of (source, target) language support records

    Raises:
        LanguageError: If either language is unknown or both are the same
    """
    source_support = get_language_support(source)
    target_support = get_language_support(target)

    if source_support.language == target_support.language:
        raise LanguageError(
            f"Source and target languages are the same: {source_support.name}"
        )

    return source_support, target_support


def resolve_extensions(
    source: str,
    target: str,
    source_extensions: Optional[list[str]] = None,
    target_extension: Optional[str] = None,
) -> tuple[frozenset[str], str]:
    """Work out which suffixes to translate and which suffix to write.

    Explicit overrides win over the extensions known for each language.
    """
    source_support, target_support = validate_language_pair(source, target)

    if source_extensions:
        suffixes = frozenset(normalize_extension(ext) for ext in source_extensions)
    else:
        suffixes = frozenset(source_support.extensions)

    if target_extension:
        suffix = normalize_extension(target_extension)
    else:
        suffix = target_support.primary_extension

    return suffixes, suffix
