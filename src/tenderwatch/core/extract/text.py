"""
Text and URL helpers shared by the extractors.
"""

from __future__ import annotations

import copy
import re
from typing import Iterable
from urllib.parse import urljoin, urlsplit

from lxml import etree
from lxml.html import HtmlElement

_WHITESPACE = re.compile(r"\s+")

DOCUMENT_HINTS = (".pdf", "download", "doc")


def clean_text(value: str | None) -> str:
    """Collapse runs of whitespace (including non-breaking spaces) and trim."""
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value.replace("\xa0", " ")).strip()


def element_text(element: HtmlElement, strip_tags: Iterable[str] = ()) -> str:
    """Text content of an element with the given descendant tags removed first.

    The element itself is left untouched; stripping works on a copy.
    Tail text of removed elements is kept.
    """
    tags = list(strip_tags)
    if tags:
        element = copy.deepcopy(element)
        etree.strip_elements(element, *tags, with_tail=False)
    return clean_text(element.text_content())


def is_absolute_url(url: str) -> bool:
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return bool(parts.scheme and (parts.netloc or parts.scheme not in ("http", "https")))


def resolve_url(url: str, base_url: str) -> str:
    """Resolve a possibly relative URL against ``base_url``.

    Absolute URLs come back unchanged. Anything that cannot be parsed
    is returned as-is instead of being dropped.
    """
    url = url.strip()
    if not url or is_absolute_url(url):
        return url
    try:
        return urljoin(base_url, url)
    except ValueError:
        return url


def looks_like_document(href: str) -> bool:
    lowered = href.lower()
    return any(hint in lowered for hint in DOCUMENT_HINTS)
