"""
Plain-text extraction.

Narration arrives as markup owned by the host system.  The pipeline only
needs two strings per scene, the text to speak and the text to caption, so
extraction is a pluggable collaborator.  TagStrippingExtractor is the
stand-alone default: it drops HTML-style tags and collapses whitespace.
"""
from __future__ import annotations

import html
import re
from typing import NamedTuple, Protocol

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")


class PlainText(NamedTuple):
    narration: str
    caption: str


class PlainTextExtractor(Protocol):
    def extract(self, markup: str) -> PlainText:
        ...


class TagStrippingExtractor:

    def extract(self, markup: str) -> PlainText:
        text = _TAG_RE.sub(" ", markup or "")
        text = html.unescape(text)
        text = _WS_RE.sub(" ", text).strip()
        return PlainText(narration=text, caption=text)
