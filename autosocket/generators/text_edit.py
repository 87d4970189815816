"""
Structural text editing for the engine's brace-delimited text format.

There is no grammar for the format here. Edits locate their target with
fixed anchor substrings and brace-depth counting over raw characters, and
splice text in at the positions found.
"""

import re
from dataclasses import dataclass
from typing import Optional

from ..errors import TemplateError


@dataclass(frozen=True)
class BlockSpan:
    """Location of ``keyword ... { body }`` in a text.

    ``open`` and ``close`` index the braces themselves, so
    ``text[open + 1:close]`` is the body.
    """

    keyword_start: int
    open: int
    close: int

    @property
    def body_start(self) -> int:
        return self.open + 1

    @property
    def body_end(self) -> int:
        return self.close


@dataclass
class Segment:
    """One immediate child of a block body: a nested block or loose text."""

    text: str
    is_block: bool


def find_balanced_span(text: str, open_idx: int) -> tuple[int, int]:
    """Return ``(open_idx, close_idx)`` for the brace at ``open_idx``.

    Braces inside double-quoted strings are not counted, matching
    :func:`split_children`.

    Raises:
        TemplateError: ``text[open_idx]`` is not ``{`` or it is never closed.
    """
    if open_idx < 0 or open_idx >= len(text) or text[open_idx] != "{":
        raise TemplateError(f"No opening brace at offset {open_idx}")
    depth = 0
    i = open_idx
    while i < len(text):
        c = text[i]
        i += 1
        if c == '"':
            quote_end = text.find('"', i)
            i = len(text) if quote_end == -1 else quote_end + 1
        elif c == "{":
            depth += 1
        elif c == "}":
            depth -= 1
            if depth == 0:
                return open_idx, i - 1
    raise TemplateError(f"Unbalanced braces: block opened at offset {open_idx} is never closed")


def find_block_after_keyword(text: str, keyword: str, start: int = 0) -> Optional[BlockSpan]:
    """Find the first ``keyword`` (whole word) and the block it opens.

    Returns None when the keyword does not occur or no brace follows it.
    """
    m = re.compile(rf"(?<![A-Za-z0-9_]){re.escape(keyword)}(?![A-Za-z0-9_])").search(text, start)
    if not m:
        return None
    open_idx = text.find("{", m.end())
    if open_idx == -1:
        return None
    _, close_idx = find_balanced_span(text, open_idx)
    return BlockSpan(keyword_start=m.start(), open=open_idx, close=close_idx)


def insert_before_anchor(text: str, anchor: str, closing_anchor: str, insertion: str) -> str:
    """Insert ``insertion`` just before ``closing_anchor`` following ``anchor``.

    Appends to the end of ``text`` when either anchor is missing.
    """
    pos = text.find(anchor)
    if pos != -1:
        cpos = text.find(closing_anchor, pos)
        if cpos != -1:
            return text[:cpos] + "\n" + insertion + text[cpos:]
    return text + "\n" + insertion


def insert_after_line(text: str, needle: str, insertion: str) -> str:
    """Insert ``insertion`` on a new line after the first line containing ``needle``.

    Appends to the end of ``text`` when the needle or its line end is missing.
    """
    pos = text.find(needle)
    if pos != -1:
        endline = text.find("\n", pos)
        if endline != -1:
            return text[:endline] + "\n" + insertion + text[endline:]
    return text + "\n" + insertion


def remove_blank_lines(text: str) -> str:
    """Drop whitespace-only lines. A trailing newline is kept if present."""
    lines = [line for line in text.splitlines() if line.strip()]
    out = "\n".join(lines)
    if out and text.endswith("\n"):
        out += "\n"
    return out


def split_children(body: str) -> list[Segment]:
    """Split a block body into its immediate children.

    A nested block runs from the start of the line holding its opening brace
    to the end of the line holding its matching close (or just the close
    when another brace follows on that line). Braces inside double-quoted
    strings (``"{GUID}"`` labels) never open a child. Everything between
    nested blocks is returned as loose text. Joining the segments' text gives
    back ``body`` unchanged.
    """
    segments: list[Segment] = []
    cursor = 0
    i = 0
    while i < len(body):
        c = body[i]
        if c == '"':
            quote_end = body.find('"', i + 1)
            i = len(body) if quote_end == -1 else quote_end + 1
            continue
        if c == "}":
            raise TemplateError("Unbalanced closing brace in block body")
        if c != "{":
            i += 1
            continue
        block_start = max(body.rfind("\n", cursor, i) + 1, cursor)
        _, close_idx = find_balanced_span(body, i)
        nl = body.find("\n", close_idx)
        end = len(body) if nl == -1 else nl + 1
        if "{" in body[close_idx + 1 : end] or "}" in body[close_idx + 1 : end]:
            end = close_idx + 1
        if block_start > cursor:
            segments.append(Segment(body[cursor:block_start], is_block=False))
        segments.append(Segment(body[block_start:end], is_block=True))
        cursor = i = end
    if cursor < len(body):
        segments.append(Segment(body[cursor:], is_block=False))
    return segments


def line_indent(text: str, idx: int) -> str:
    """Leading whitespace of the line containing offset ``idx``."""
    start = text.rfind("\n", 0, idx) + 1
    end = start
    while end < len(text) and text[end] in " \t":
        end += 1
    return text[start:end]


def detect_newline(text: str) -> str:
    return "\r\n" if "\r\n" in text else "\n"


def to_lf(text: str) -> str:
    return text.replace("\r\n", "\n")


def to_newline(text: str, newline: str) -> str:
    """Convert LF text to ``newline`` endings."""
    if newline == "\n":
        return text
    return to_lf(text).replace("\n", newline)
