from __future__ import annotations

import re


_VIDEO_NOISE_PATTERN = re.compile(r"(official\s*)?(music\s*)?video", re.IGNORECASE)
_REMIX_NOTE_PATTERN = re.compile(r"\(.*?remix.*?\)", re.IGNORECASE)
_PARENS_CONTENT_PATTERN = re.compile(r"\(.*?\)")
_BRACKETS_CONTENT_PATTERN = re.compile(r"\[.*?\]")
_FEAT_PATTERN = re.compile(r"ft\.|feat\.", re.IGNORECASE)
_NON_WORD_SPACE_PATTERN = re.compile(r"[^\w\s]", re.UNICODE)
_MULTISPACE_PATTERN = re.compile(r"\s+")
_REMIX_PATTERN = re.compile(r"remix", re.IGNORECASE)


def clean_title(title: str) -> str:
    """Strip video noise, bracketed notes and featuring markers from a source title.

    The result is only used to build search queries.
    """
    value = title or ""
    value = _VIDEO_NOISE_PATTERN.sub("", value)
    value = _REMIX_NOTE_PATTERN.sub("", value)
    value = _PARENS_CONTENT_PATTERN.sub("", value)
    value = _BRACKETS_CONTENT_PATTERN.sub("", value)
    value = _FEAT_PATTERN.sub("", value)
    return _MULTISPACE_PATTERN.sub(" ", value).strip()


def normalize_string(value: str) -> str:
    value = (value or "").lower()
    value = _NON_WORD_SPACE_PATTERN.sub("", value)
    return _MULTISPACE_PATTERN.sub(" ", value).strip()


def is_remix(title: str) -> bool:
    return bool(_REMIX_PATTERN.search(title or ""))
