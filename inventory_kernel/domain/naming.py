"""
Product naming -- normalized keys and derived product ids.

Two product names that differ only in case, diacritics or whitespace name
the same product ("Gạo ST25", "gao  st25 ").  ``normalize_name`` produces
the comparison key used by duplicate detection and by name-based linking;
``generate_product_id`` derives the stable id a product receives at
creation, so creating "the same" name twice collides unless forced.
"""

from __future__ import annotations

import re
import unicodedata

_WHITESPACE = re.compile(r"\s+")
_NON_ALNUM = re.compile(r"[^A-Z0-9]+")

# Letters NFD does not decompose into base letter + combining mark.
_SPECIAL_LETTERS = str.maketrans({"đ": "d", "Đ": "D", "ł": "l", "Ł": "L", "ø": "o", "Ø": "O"})

EMPTY_NAME_ID = "PRODUCT"


def strip_diacritics(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text.translate(_SPECIAL_LETTERS))
    return "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")


def normalize_name(name: str | None) -> str:
    """Case-, diacritic- and whitespace-insensitive comparison key."""
    if not name:
        return ""
    return _WHITESPACE.sub(" ", strip_diacritics(name)).strip().casefold()


def generate_product_id(name: str | None) -> str:
    """
    Deterministic id for a product name.

    >>> generate_product_id("Gạo ST25 (5kg)")
    'GAO-ST25-5KG'
    """
    slug = _NON_ALNUM.sub("-", normalize_name(name).upper()).strip("-")
    return slug or EMPTY_NAME_ID
