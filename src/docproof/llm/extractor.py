"""Pull code, JSON and whole artifacts out of free-form LLM responses."""

from __future__ import annotations

import re

_FENCE_PATTERN = re.compile(r"```(?P<lang>[A-Za-z0-9_+-]*)[ \t]*\n(?P<code>.*?)```", re.DOTALL)
_WRAPPER_LANGS = ("markdown", "md", "")


def _fences(text: str) -> list[tuple[str, str]]:
    return [
        (match.group("lang").lower(), match.group("code").strip())
        for match in _FENCE_PATTERN.finditer(text)
    ]


def extract_code_block(response: str, language: str = "python") -> str:
    """Return the first ``language`` fence, else the first fence, else the raw text."""
    trimmed = response.strip()
    fences = _fences(trimmed)
    for lang, code in fences:
        if lang == language:
            return code
    if fences:
        return fences[0][1]
    return trimmed


def extract_python_script(response: str) -> str:
    """Extract a Python script, or ``""`` when the response does not look like one.

    A plain fence that holds a JSON object is not a script.
    """
    trimmed = response.strip()
    fences = _fences(trimmed)
    for lang, code in fences:
        if lang in ("python", "py"):
            return code
    for lang, code in fences:
        if lang == "" and not code.startswith("{"):
            return code

    if "import " in trimmed or "def " in trimmed or trimmed.startswith("#"):
        return trimmed
    return ""


def extract_json_block(text: str) -> str:
    """Locate the JSON object in *text*.

    Tries a ```json fence, then any fence whose body starts with ``{``, then the
    span from the first ``{`` to the last ``}``. Falls back to the trimmed text.
    """
    trimmed = text.strip()
    fences = _fences(trimmed)
    for lang, code in fences:
        if lang == "json":
            return code
    for _, code in fences:
        if code.startswith("{"):
            return code

    start = trimmed.find("{")
    end = trimmed.rfind("}")
    if start != -1 and end > start:
        return trimmed[start : end + 1]
    return trimmed


def strip_markdown_fences(content: str) -> str:
    """Unwrap an artifact the model returned inside a single markdown fence."""
    trimmed = content.strip()
    if not (trimmed.startswith("```") and trimmed.endswith("```")) or len(trimmed) < 6:
        return content

    first_line, _, rest = trimmed.partition("\n")
    if first_line[3:].strip().lower() not in _WRAPPER_LANGS:
        return content
    return rest.removesuffix("```").strip()
