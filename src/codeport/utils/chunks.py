import re

_FENCE_PATTERN = re.compile(r"^\s*```[^\n]*\n(?P<body>.*?)\n?```\s*$", re.DOTALL)


def extract_whitespace_formatting(content: str) -> tuple[str, str, str]:
    """Extract prefix, core content, and suffix from text.

    Args:
        content: Input text content

    Returns:
        tuple: (prefix_whitespace, core_content, suffix_whitespace)
    """
    core = content.strip()

    if not core:
        # If content is only whitespace, treat it all as prefix
        return content, "", ""

    prefix_match = re.match(r"^(\s*)", content)
    suffix_match = re.search(r"(\s*)$", content)

    prefix = prefix_match.group(1) if prefix_match else ""
    suffix = suffix_match.group(1) if suffix_match else ""

    return prefix, core, suffix


def strip_code_fences(text: str) -> str:
    """Remove a single markdown code fence wrapping the whole text.

    Models often answer with ```lang ... ``` even when told to emit bare code.
    Fences inside the code are left alone.

    Args:
        text: Raw completion text

    Returns:
        The fenced body, or the text unchanged when it is not fenced
    """
    match = _FENCE_PATTERN.match(text)
    if not match:
        return text
    return match.group("body")


def restore_whitespace(original: str, translated: str) -> str:
    """Give translated text the leading and trailing whitespace of the original."""
    prefix, _, suffix = extract_whitespace_formatting(original)
    if not original.strip():
        return original
    return prefix + translated.strip() + suffix
