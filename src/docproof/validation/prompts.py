"""Prompt for synthesising a runnable test program from one usage pattern."""

from __future__ import annotations

from docproof.artifact.parser import UsagePattern

PASS_MARKER = "✓ Test passed:"


def build_test_prompt(
    pattern: UsagePattern,
    local_package: str | None = None,
    custom_instructions: str | None = None,
) -> str:
    sections: list[str] = [
        "Write a complete, runnable Python script that exercises this documented usage pattern.",
        "",
        f"Pattern: {pattern.name}",
        f"Description: {pattern.description}",
        "",
        "Example from the documentation:",
        "```python",
        pattern.code,
        "```",
        "",
        "The script runs via `uv run test.py` in a container with network access and no TTY.",
        "",
        "Rules:",
        "1. Begin with a PEP 723 header listing every third-party package by its PyPI name:",
        "   # /// script",
        '   # requires-python = ">=3.11"',
        '   # dependencies = ["package-name"]',
        "   # ///",
        "2. Call the API exactly as the example does; do not invent parameters.",
        "3. Assert on real behaviour (shapes, lengths, ranges, membership), never on exact floats,",
        "   terminal colours or exact exception text.",
        "4. No placeholders. Keep it short.",
        f'5. Print "{PASS_MARKER} {pattern.name}" when every assertion holds.',
        "",
        "Reply with a single ```python block.",
    ]

    if local_package:
        sections += [
            "",
            f'IMPORTANT: "{local_package}" is installed locally, not from PyPI.',
            f'Do NOT include "{local_package}" in the PEP 723 dependencies list; '
            "list only the other packages the script needs.",
        ]

    if custom_instructions:
        sections += ["", "## Additional Instructions", "", custom_instructions]

    return "\n".join(sections)
