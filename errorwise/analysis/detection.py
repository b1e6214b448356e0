"""Heuristic language / error-type detection and stack-trace parsing.

Used when the caller supplies no hints. Rules are ordered: the first matching
rule wins, so more specific patterns come before generic ones.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

DEFAULT_ERROR_TYPE = "runtime"
DEFAULT_LANGUAGE = "javascript"

# ---------------------------------------------------------------------------
# Error type rules: (error_type, any-of keywords)
# ---------------------------------------------------------------------------
_ERROR_TYPE_RULES: list[tuple[str, tuple[str, ...]]] = [
    ("syntax", ("syntax", "unexpected token", "unexpected identifier", "indentation")),
    ("type", ("cannot read property", "cannot read properties", "undefined is not", "null is not")),
    ("scope", ("reference", "is not defined")),
    ("algorithm", ("time limit", "timeout exceeded", "maximum call stack", "stack overflow", "recursion")),
    ("mathematical", ("division by zero", "divide by zero", "overflow", "underflow", "nan", "infinity")),
    ("logic", ("assertion", "expected", "incorrect result")),
    ("network", ("network", "fetch", "cors", "connection", "refused")),
    ("dependency", ("import", "module")),
    ("architectural", ("architecture", "design pattern", "coupling", "solid", "microservice", "monolith")),
    ("configuration", ("config", "environment", "api key", "credentials", ".env", "missing variable")),
    ("deployment", ("deploy", "build failed", "ci/cd", "pipeline", "docker", "container")),
    ("performance", ("slow", "performance", "bottleneck", "n+1", "memory leak")),
    ("permission", ("permission", "access", "denied")),
]

_WORD = re.compile(r"[a-z0-9+.]+")
_TYPE_ERROR = re.compile(r"type\s?error")
_NAME_ERROR = re.compile(r"name\s?error")
_INDEX_ERROR = re.compile(r"index\s?error|index out of|out of bounds|out of range")


def _has(msg: str, keyword: str) -> bool:
    # Short single-word keywords must match whole tokens ("nan" not in "nano")
    if len(keyword) <= 4 and " " not in keyword:
        return keyword in _WORD.findall(msg)
    return keyword in msg


def detect_error_type(error_message: str | None) -> str:
    """Classify an error message into a coarse error type."""
    msg = (error_message or "").lower()
    if not msg:
        return DEFAULT_ERROR_TYPE

    # Named error classes take precedence over loose keywords
    if _TYPE_ERROR.search(msg) and "syntax" not in msg:
        return "type"
    if _NAME_ERROR.search(msg):
        return "scope"
    if _INDEX_ERROR.search(msg):
        return "index"

    for error_type, keywords in _ERROR_TYPE_RULES:
        if any(_has(msg, k) for k in keywords):
            return error_type

    if "timeout" in msg:
        return "network"

    return DEFAULT_ERROR_TYPE


# ---------------------------------------------------------------------------
# Language detection
# ---------------------------------------------------------------------------
_SCRIPT_RANGES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"[ঀ-৿]"), "bengali"),
    (re.compile(r"[਀-੿]"), "punjabi"),
    (re.compile(r"[଀-୿]"), "odia"),
    (re.compile(r"[஀-௿]"), "tamil"),
    (re.compile(r"[ఀ-౿]"), "telugu"),
    (re.compile(r"[ಀ-೿]"), "kannada"),
    (re.compile(r"[ഀ-ൿ]"), "malayalam"),
]
_DEVANAGARI = re.compile(r"[ऀ-ॿ]")

# (language, message keywords, code keywords)
_LANGUAGE_RULES: list[tuple[str, tuple[str, ...], tuple[str, ...]]] = [
    ("javascript", ("typeerror", "referenceerror", "syntaxerror"), ()),
    ("typescript", ("ts(",), ("interface ", ": string", ": number")),
    (
        "python",
        ("indentationerror", "nameerror", "attributeerror", "modulenotfounderror", "importerror", "traceback (most recent call last)"),
        ("def ", "import ", "print("),
    ),
    (
        "java",
        ("nullpointerexception", "classnotfoundexception", "arrayindexoutofboundsexception", "illegalargumentexception"),
        ("public class", "public static void"),
    ),
    ("c++", ("segmentation fault", "core dumped", "undefined reference", "cannot find symbol"), ("#include", "std::")),
    ("go", ("panic", "goroutine"), ("func ", "package ")),
    ("rust", ("borrow checker", "lifetime"), ("fn ", "impl ", "trait ")),
    ("php", ("parse error", "fatal error"), ("<?php",)),
    ("ruby", ("nomethoderror", "undefined method"), ()),
]


def detect_language(error_message: str | None, code_snippet: str | None = "") -> str:
    """Best-guess language (programming or Indic natural language) of the input."""
    text = f"{error_message or ''} {code_snippet or ''}"
    msg = (error_message or "").lower()
    code = (code_snippet or "").lower()

    if _DEVANAGARI.search(text):
        if re.search(r"संस्कृत|वेद|श्लोक", text):
            return "sanskrit"
        if re.search(r"मराठी|महाराष्ट्र", text):
            return "marathi"
        return "hindi"
    for pattern, language in _SCRIPT_RANGES:
        if pattern.search(text):
            return language

    for language, msg_keys, code_keys in _LANGUAGE_RULES:
        if any(k in msg for k in msg_keys) or any(k in code for k in code_keys):
            return language

    if "def " in code and "end" in code:
        return "ruby"

    return DEFAULT_LANGUAGE


# ---------------------------------------------------------------------------
# Stack traces
# ---------------------------------------------------------------------------
_JS_FRAME = re.compile(r"at\s+(.+?)\s+\((.+?):(\d+):(\d+)\)")
_PY_FRAME = re.compile(r'File\s+"(.+?)",\s+line\s+(\d+),\s+in\s+(\S+)')


@dataclass(frozen=True)
class StackFrame:
    function: str
    file: str
    line: int
    column: int = 0

    def __str__(self) -> str:
        location = f"{self.file}:{self.line}"
        if self.column:
            location = f"{location}:{self.column}"
        return f"{self.function} at {location}"


def parse_stack_trace(error_message: str | None) -> list[StackFrame]:
    """Extract JavaScript-style and Python-style frames, in order of appearance."""
    frames: list[StackFrame] = []
    for line in (error_message or "").splitlines():
        match = _JS_FRAME.search(line)
        if match:
            frames.append(
                StackFrame(
                    function=match.group(1),
                    file=match.group(2),
                    line=int(match.group(3)),
                    column=int(match.group(4)),
                )
            )
            continue
        match = _PY_FRAME.search(line)
        if match:
            frames.append(StackFrame(function=match.group(3), file=match.group(1), line=int(match.group(2))))
    return frames
