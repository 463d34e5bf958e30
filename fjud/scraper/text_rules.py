"""Text-level rewrite rules shared by the reformatting windows.

All functions are pure ``str -> str`` transforms.
"""
from __future__ import annotations

import re

# CJK Unified Ideographs (BMP, Extension A, compatibility block and the
# supplementary-plane extensions B to D).
CJK_IDEOGRAPH = (
    "[\u4E00-\u9FCC\u3400-\u4DB5\uFA0E\uFA0F\uFA11\uFA13\uFA14\uFA1F\uFA21"
    "\uFA23\uFA24\uFA27-\uFA29"
    "\U00020000-\U0002A6D6\U0002A700-\U0002B734\U0002B740-\U0002B81D]"
)
_CJK_SIDE = f"(?:{CJK_IDEOGRAPH}|[\u3001\u3003-\u303F()（）])"
_LATIN_RUN = "[A-Za-z0-9_.○]+"

_CJK_THEN_LATIN = re.compile(f"({_CJK_SIDE})({_LATIN_RUN})")
_LATIN_THEN_CJK = re.compile(f"({_LATIN_RUN})({_CJK_SIDE})")

# Line breaks inside a wrapped sentence: the preceding character is part of
# the running text.
_SOFT_EOL = re.compile(f"([A-Za-z0-9_]|{CJK_IDEOGRAPH}|[（）：、，]|○)\n")
_HARD_EOL_PLACEHOLDER = "\uE000"

_BEFORE_CLOSURE = re.compile("\n(?=[）)」』】〕，,、])")
_SENTENCE_END = re.compile(r"(.+)。\n")

_COMMA_VARIANTS = re.compile("[\uFF0C\uFE10\uFE50]")
_HORIZONTAL_SPACE = re.compile("[ \t\u3000]")
_BLANK_RUN = re.compile(r"\n{2,}")


def normalize(text: str) -> str:
    """Unify line breaks and commas, drop horizontal whitespace and blank lines."""

    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _COMMA_VARIANTS.sub("，", text)
    text = _HORIZONTAL_SPACE.sub("", text)
    text = _BLANK_RUN.sub("\n", text)
    return text.strip("\n")


def add_sentence_breaks(text: str) -> str:
    """Insert a blank line after every line that ends with ``。``."""

    return _SENTENCE_END.sub("\\1。\n\n", text)


def add_cjk_latin_spacing(text: str) -> str:
    """Put one space between CJK text and an adjacent Latin/digit run."""

    text = _CJK_THEN_LATIN.sub(r"\1 \2", text)
    return _LATIN_THEN_CJK.sub(r"\1 \2", text)


def remove_unwanted_eol(text: str) -> str:
    """Re-join hard-wrapped lines; breaks after ``。`` survive."""

    text = text.replace("。\n", "。" + _HARD_EOL_PLACEHOLDER)
    text = _SOFT_EOL.sub(r"\1", text)
    return text.replace(_HARD_EOL_PLACEHOLDER, "\n")


def merge_closures(text: str) -> str:
    """Pull closing brackets and commas back onto the previous line."""

    return _BEFORE_CLOSURE.sub("", text)


__all__ = [
    "CJK_IDEOGRAPH",
    "normalize",
    "add_sentence_breaks",
    "add_cjk_latin_spacing",
    "remove_unwanted_eol",
    "merge_closures",
]
