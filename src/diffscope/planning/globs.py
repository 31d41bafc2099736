"""Repository-path glob dialect used by surface and infrastructure patterns.

Supported syntax:

- ``*`` any run of characters inside one path segment
- ``?`` one character inside a segment
- ``[abc]`` / ``[!abc]`` character classes
- ``{a,b}`` alternation (expanded before compilation)
- ``**`` as a whole segment: zero or more segments
- a trailing ``/`` is shorthand for ``/**``

Patterns always match the full repository-relative path.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final

from diffscope.domain.errors import InvalidGlobPattern

_MAX_BRACE_EXPANSIONS: Final[int] = 256


@dataclass(frozen=True, slots=True)
class GlobPattern:
    """Compiled glob with its original source text kept for explainability."""

    source: str
    regex: re.Pattern[str]

    def matches(self, path: str) -> bool:
        return self.regex.fullmatch(path) is not None

    def __str__(self) -> str:
        return self.source


def compile_glob(pattern: str) -> GlobPattern:
    """Compile ``pattern`` or raise ``InvalidGlobPattern`` naming the offending text."""

    if not isinstance(pattern, str):
        raise InvalidGlobPattern(repr(pattern), "pattern must be a string")
    source = pattern.strip()
    if not source:
        raise InvalidGlobPattern(pattern, "pattern must not be empty")
    if "\x00" in source:
        raise InvalidGlobPattern(pattern, "pattern must not contain NUL bytes")
    if source.startswith("/"):
        raise InvalidGlobPattern(pattern, "pattern must be repository-relative")

    alternatives = _expand_braces(source, original=pattern)
    translated = [_translate_path(item, original=pattern) for item in alternatives]
    if len(translated) == 1:
        body = translated[0]
    else:
        body = "|".join(f"(?:{item})" for item in translated)
    return GlobPattern(source=source, regex=re.compile(body, re.DOTALL))


def compile_globs(patterns: tuple[str, ...] | list[str]) -> tuple[GlobPattern, ...]:
    return tuple(compile_glob(item) for item in patterns)


def first_match(patterns: tuple[GlobPattern, ...], path: str) -> GlobPattern | None:
    for pattern in patterns:
        if pattern.matches(path):
            return pattern
    return None


def _expand_braces(pattern: str, *, original: str) -> list[str]:
    start = _find_unescaped(pattern, "{")
    stray_close = _find_unescaped(pattern, "}")
    if start < 0:
        if stray_close >= 0:
            raise InvalidGlobPattern(original, "unbalanced '}'")
        return [pattern]
    if 0 <= stray_close < start:
        raise InvalidGlobPattern(original, "unbalanced '}'")

    depth = 0
    options: list[str] = []
    segment_start = start + 1
    end = -1
    index = start
    while index < len(pattern):
        char = pattern[index]
        if char == "\\":
            index += 2
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                options.append(pattern[segment_start:index])
                end = index
                break
        elif char == "," and depth == 1:
            options.append(pattern[segment_start:index])
            segment_start = index + 1
        index += 1

    if end < 0:
        raise InvalidGlobPattern(original, "unbalanced '{'")

    prefix = pattern[:start]
    suffix = pattern[end + 1 :]
    expanded: list[str] = []
    for option in options:
        for tail in _expand_braces(option + suffix, original=original):
            expanded.append(prefix + tail)
            if len(expanded) > _MAX_BRACE_EXPANSIONS:
                raise InvalidGlobPattern(original, "too many brace alternatives")
    return expanded


def _find_unescaped(text: str, needle: str) -> int:
    index = 0
    while index < len(text):
        if text[index] == "\\":
            index += 2
            continue
        if text[index] == needle:
            return index
        index += 1
    return -1


def _translate_path(pattern: str, *, original: str) -> str:
    normalized = pattern
    while normalized.startswith("./"):
        normalized = normalized[2:]
    if normalized.endswith("/"):
        normalized = normalized.rstrip("/") + "/**"
    if not normalized or normalized == "/**":
        raise InvalidGlobPattern(original, "pattern must name at least one path segment")

    segments = normalized.split("/")
    parts: list[str] = []
    last_index = len(segments) - 1
    for index, segment in enumerate(segments):
        if segment == "":
            raise InvalidGlobPattern(original, "empty path segment")
        if segment == "**":
            parts.append(".*" if index == last_index else "(?:[^/]+/)*")
            continue
        if "**" in segment:
            raise InvalidGlobPattern(original, "'**' must be a whole path segment")
        parts.append(_translate_segment(segment, original=original))
        if index != last_index:
            parts.append("/")
    return "".join(parts)


def _translate_segment(segment: str, *, original: str) -> str:
    out: list[str] = []
    index = 0
    while index < len(segment):
        char = segment[index]
        if char == "*":
            out.append("[^/]*")
        elif char == "?":
            out.append("[^/]")
        elif char == "[":
            closing = _class_end(segment, index)
            if closing < 0:
                raise InvalidGlobPattern(original, "unbalanced '['")
            out.append(_translate_class(segment[index + 1 : closing]))
            index = closing
        elif char == "]":
            raise InvalidGlobPattern(original, "unbalanced ']'")
        elif char == "\\":
            if index + 1 >= len(segment):
                raise InvalidGlobPattern(original, "dangling escape")
            index += 1
            out.append(re.escape(segment[index]))
        else:
            out.append(re.escape(char))
        index += 1
    return "".join(out)


def _class_end(segment: str, start: int) -> int:
    index = start + 1
    if index < len(segment) and segment[index] in "!^":
        index += 1
    if index < len(segment) and segment[index] == "]":
        index += 1
    while index < len(segment):
        if segment[index] == "]":
            return index
        index += 1
    return -1


def _translate_class(body: str) -> str:
    negate = bool(body) and body[0] in "!^"
    if negate:
        body = body[1:]
    escaped = (
        body.replace("\\", "\\\\").replace("^", "\\^").replace("[", "\\[").replace("]", "\\]")
    )
    if negate:
        return f"[^/{escaped}]"
    return f"[{escaped}]"


__all__ = ["GlobPattern", "compile_glob", "compile_globs", "first_match"]
