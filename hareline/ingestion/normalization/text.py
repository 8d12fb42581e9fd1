"""
hareline.ingestion.normalization.text

HTML entity decoding and tag stripping. Everything else in extraction
builds on these, so they are pure and never raise.

Entity decoding runs three passes in a fixed order: named, hexadecimal,
decimal. Malformed or out-of-range entities pass through unchanged.
"""

from __future__ import annotations

import re
from html.entities import html5
from typing import Any, Optional

_NAMED_ENTITY = re.compile(r"&([A-Za-z][A-Za-z0-9]{1,31};)")
_HEX_ENTITY = re.compile(r"&#[xX]([0-9A-Fa-f]{1,6});")
_DEC_ENTITY = re.compile(r"&#([0-9]{1,7});")

_SCRIPT_STYLE = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_COMMENT = re.compile(r"<!--.*?-->", re.DOTALL)
_BR = re.compile(r"<br\s*/?>", re.IGNORECASE)
_BLOCK_TAG = re.compile(
    r"</?(?:p|div|li|ul|ol|tr|td|th|table|h[1-6]|section|article|header|footer|blockquote)\b[^>]*>",
    re.IGNORECASE,
)
# Only real tags: "<" followed by a letter or "/letter". "a < b" survives.
_TAG = re.compile(r"</?[A-Za-z][^>]*>")

_WS = re.compile(r"\s+")
_INLINE_WS = re.compile(r"[^\S\n]+")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _codepoint(value: int) -> Optional[str]:
    if value <= 0 or value > 0x10FFFF or 0xD800 <= value <= 0xDFFF:
        return None
    return chr(value)


def _named(m: re.Match) -> str:
    return html5.get(m.group(1), m.group(0))


def _hex(m: re.Match) -> str:
    return _codepoint(int(m.group(1), 16)) or m.group(0)


def _dec(m: re.Match) -> str:
    return _codepoint(int(m.group(1))) or m.group(0)


def decode_entities(text: Any) -> str:
    """Decode named, then hex, then decimal HTML entities."""
    s = _as_text(text)
    if "&" not in s:
        return s
    s = _NAMED_ENTITY.sub(_named, s)
    s = _HEX_ENTITY.sub(_hex, s)
    s = _DEC_ENTITY.sub(_dec, s)
    return s


def normalize_ws(text: Any) -> str:
    return _WS.sub(" ", _as_text(text)).strip()


def strip_tags(html: Any, *, keep_lines: bool = False) -> str:
    """
    Remove markup. Script/style blocks and comments are dropped wholesale.

    With ``keep_lines`` line breaks and block boundaries become newlines
    (used by label extraction); otherwise they become spaces.
    """
    s = _as_text(html)
    s = _SCRIPT_STYLE.sub(" ", s)
    s = _COMMENT.sub(" ", s)
    sep = "\n" if keep_lines else " "
    s = _BR.sub(sep, s)
    s = _BLOCK_TAG.sub(sep, s)
    s = _TAG.sub("", s)
    return s


def decode(text: Any) -> str:
    """Decode entities, strip tags, collapse whitespace, trim."""
    return normalize_ws(strip_tags(decode_entities(text)))


def decode_lines(text: Any) -> str:
    """Like ``decode`` but keeps one line per block/line break."""
    s = strip_tags(decode_entities(text), keep_lines=True)
    lines = (_INLINE_WS.sub(" ", line).strip() for line in s.split("\n"))
    return "\n".join(line for line in lines if line)


def strip_or_none(x: Any) -> Optional[str]:
    if x is None:
        return None
    s = str(x).strip()
    return s if s else None


def truncate(text: Optional[str], limit: int) -> Optional[str]:
    if text is None or len(text) <= limit:
        return text
    return text[:limit]
