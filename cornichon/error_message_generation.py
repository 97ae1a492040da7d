"""
Utility functions for generating error messages.
"""

from typing import Optional, Tuple

from textwrap import indent


def offset_to_line_and_column(string: str, offset: int) -> Tuple[int, int]:
    """
    Return the (1-indexed) line and column number corresponding with the
    specified offset.

    Offsets beyond the end of the string are clamped to the end. When the
    string ends with a newline, the end of the string is reported as the
    first column of the (empty) line which follows it.
    """
    offset = max(0, min(offset, len(string)))

    lineno = 0
    line = ""
    remaining = offset
    for lineno, line in enumerate(string.splitlines(keepends=True)):
        if remaining < len(line):
            return lineno + 1, remaining + 1
        else:
            remaining -= len(line)

    if line and line.splitlines()[0] != line:
        return lineno + 2, 1

    # Otherwise point just off the end of the last line
    return lineno + 1, len(line) + 1


def extract_line(string: str, line: int) -> str:
    """
    Given a line number (from :py:func:`offset_to_line_and_column`), return
    just that line (without any trailing newlines). Lines beyond the end of
    the string are returned as the empty string.
    """
    lines = string.splitlines()
    if 1 <= line <= len(lines):
        return lines[line - 1]
    else:
        return ""


def format_error_message(
    line: int,
    column: int,
    snippet: str,
    message: str,
    source_name: Optional[str] = None,
) -> str:
    """
    Generate a formatted error message of the style::

        At line 100 column 6 of example.feature:
            your snippet here...
                 ^
        Your message here...

    Takes a line and column number (from :py:func:`offset_to_line_and_column`)
    and a one-line snippet (from :py:func:`extract_line`), a message and,
    optionally, the name of the document the error was found in.
    """
    snippet = snippet.rstrip()
    pointer = (" " * (column - 1)) + "^"
    indented_snippet = indent(f"{snippet}\n{pointer}", "    ")

    location = f"At line {line} column {column}"
    if source_name is not None:
        location += f" of {source_name}"

    return f"{location}:\n{indented_snippet}\n{message}"
