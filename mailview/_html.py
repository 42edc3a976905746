"""Small BeautifulSoup helpers shared by the HTML passes."""

import re
from typing import Optional

from bs4 import BeautifulSoup

# Inline style declarations that make an element invisible to the reader.
# Applied to the style attribute after lower-casing and removing whitespace.
HIDDEN_STYLE_PATTERNS = [
    re.compile(r"display:none"),
    re.compile(r"visibility:hidden"),
    re.compile(r"font-size:0(?![.\d])"),
    re.compile(r"max-height:0(?![.\d])"),
]


def parse_html(html: str) -> BeautifulSoup:
    """Parse with the lenient stdlib-backed parser (never raises on junk)."""
    return BeautifulSoup(html or "", "html.parser")


def serialize(soup: BeautifulSoup) -> str:
    """Serialize a parsed document, preferring the <body> contents if present."""
    if soup.body is not None:
        return soup.body.decode_contents()
    return soup.decode()


def is_hidden_style(style: Optional[str]) -> bool:
    if not style:
        return False
    compact = re.sub(r"\s+", "", style).lower()
    return any(pattern.search(compact) for pattern in HIDDEN_STYLE_PATTERNS)


def visible_text(html: str) -> str:
    """Best-effort readable text of an HTML fragment, one block per line."""
    soup = parse_html(html)
    for tag in soup(["script", "style", "head"]):
        tag.decompose()
    text = soup.get_text("\n")
    lines = [re.sub(r"[ \t\xa0]+", " ", line).strip() for line in text.splitlines()]
    text = "\n".join(lines)
    return re.sub(r"\n{3,}", "\n\n", text).strip()
