"""Name canonicalisation used as a comparison key across catalogs."""

from __future__ import annotations

import re
import unicodedata

_SEPARATORS = re.compile(r"[:\-–—]")
_DISALLOWED = re.compile(r"[^a-z0-9 ]")
_WHITESPACE = re.compile(r"\s+")


def normalize_name(name: str) -> str:
    """Return the comparison form of ``name``.

    >>> normalize_name("Spirit Island: Branch & Claw")
    'spirit island branch and claw'
    """

    decomposed = unicodedata.normalize("NFKD", name)
    text = "".join(char for char in decomposed if not unicodedata.combining(char)).lower()
    text = _SEPARATORS.sub(" ", text)
    text = text.replace("&", " and ")
    # tabs and newlines become spaces before the strip so words stay apart
    text = _WHITESPACE.sub(" ", text)
    text = _DISALLOWED.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()
