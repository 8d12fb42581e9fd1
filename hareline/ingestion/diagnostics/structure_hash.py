"""
hareline.ingestion.diagnostics.structure_hash

Structural fingerprint of fetched markup, used to spot layout drift.

The skeleton keeps tag names, nesting, and class names. It drops text,
attribute values other than class, inline formatting tags, comments and
script/style blocks, classes containing digits (post ids, dates), and
everything below prose tags such as ``p`` and ``li``. Siblings that share
a tag and class set are reduced to the first one, so more or fewer posts
or table rows leave the hash unchanged.
"""

from __future__ import annotations

import hashlib
import re
from typing import Optional

from bs4 import BeautifulSoup, Tag

DROP_TAGS = frozenset({"script", "style", "noscript", "template", "svg", "iframe", "link", "meta"})
INLINE_TAGS = frozenset(
    {"a", "b", "strong", "em", "i", "u", "span", "br", "img", "small", "sup", "sub", "font", "abbr", "mark", "s", "wbr"}
)
PROSE_TAGS = frozenset({"p", "li", "blockquote", "pre", "dd", "dt", "h1", "h2", "h3", "h4", "h5", "h6", "figcaption"})
MAX_DEPTH = 24

_HAS_DIGIT = re.compile(r"\d")


def _signature(el: Tag) -> str:
    classes = sorted({c for c in (el.get("class") or []) if not _HAS_DIGIT.search(c)})
    return el.name + "".join(f".{c}" for c in classes)


def _children(el: Tag) -> list[Tag]:
    """Element children with inline wrappers flattened away."""
    out: list[Tag] = []
    for child in el.children:
        if not isinstance(child, Tag) or child.name in DROP_TAGS:
            continue
        if child.name in INLINE_TAGS:
            out.extend(_children(child))
        else:
            out.append(child)
    return out


def _skeleton(el: Tag, depth: int = 0) -> str:
    sig = _signature(el)
    if el.name in PROSE_TAGS or depth >= MAX_DEPTH:
        return sig

    parts: list[str] = []
    seen: set[str] = set()
    for child in _children(el):
        child_sig = _signature(child)
        if child_sig in seen:
            continue
        seen.add(child_sig)
        parts.append(_skeleton(child, depth + 1))
    if not parts:
        return sig
    return f"{sig}({','.join(parts)})"


def structure_skeleton(html: str, scope: Optional[str] = None) -> str:
    """Skeleton string for ``html`` (optionally only the CSS ``scope`` matches)."""
    soup = BeautifulSoup(html or "", "lxml")
    if scope:
        roots = soup.select(scope)
        if not roots:
            return f"MISSING:{scope}"
    else:
        roots = [soup.body or soup]

    parts: list[str] = []
    seen: set[str] = set()
    for root in roots:
        if not isinstance(root, Tag):
            continue
        sk = _skeleton(root)
        if sk not in seen:
            seen.add(sk)
            parts.append(sk)
    return "\n".join(parts)


def generate_structure_hash(html: str, scope: Optional[str] = None) -> str:
    """SHA-256 hex digest of the markup skeleton."""
    return hashlib.sha256(structure_skeleton(html, scope).encode("utf-8")).hexdigest()
