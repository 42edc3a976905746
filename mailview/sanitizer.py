"""
Email HTML sanitizer.

Strips everything from an HTML email body that should never reach the
reader: markup junk, hidden preheaders, tracking pixels, layout tables and
presentational attributes. The passes run in a fixed order; later passes
rely on earlier ones (table classification needs width/role/cellpadding,
which the attribute pass removes afterwards).

Best effort only. html.parser accepts any input, so malformed markup is
passed through rather than rejected.
"""

import logging
import re
from typing import Optional

from bs4 import BeautifulSoup, Comment, Declaration, Doctype, NavigableString, ProcessingInstruction

from ._html import is_hidden_style, parse_html, serialize
from .tables import LayoutPolicy, unwrap_tables_in_tree

logger = logging.getLogger(__name__)

JUNK_TAGS = ["style", "script", "head", "xml", "title", "meta", "link"]

# Only these tags are checked for inline hidden styles
HIDDEN_CANDIDATE_TAGS = ["div", "span", "td", "p", "table", "tr"]

STRIP_ATTRIBUTES = {"style", "class", "id", "dir", "align", "bgcolor", "role"}

_COMMENT_RE = re.compile(r"<!--[\s\S]*?-->")
_INVISIBLE_CHARS_RE = re.compile("[\u200b\u200c\u200d\u2060\ufeff\u034f\u00ad]")
_WHITESPACE_CHARS_RE = re.compile("[\u00a0\u2002\u2003\u2009]")
_MIDDLE_DOT_RE = re.compile("\u30fb")
_PIXEL_SIZE_RE = re.compile(r"^\s*([01])\s*(px)?\s*$", re.IGNORECASE)
_MARKDOWN_BOLD_RE = re.compile(r"\*\*[^*\n]+?\*\*")


def sanitize_email_html(html: Optional[str], policy: Optional[LayoutPolicy] = None) -> str:
    """
    Clean an HTML email body for Markdown conversion.

    Removes: comments, <style>/<script>/<head>/<xml>, Office <o:*> tags,
    hidden elements, tracking pixels, presentational attributes, invisible
    Unicode padding and preheader debris. Layout tables are flattened to
    <div> blocks; data tables are kept.
    """
    if not html:
        return ""

    html = _COMMENT_RE.sub("", html)
    soup = parse_html(html)

    _remove_junk(soup)
    _remove_hidden_elements(soup)
    _remove_tracking_pixels(soup)
    unwrap_tables_in_tree(soup, policy)
    _strip_attributes(soup)
    _clean_text(soup)
    _remove_preheader_debris(soup)
    _collapse_blank_text(soup)

    return serialize(soup).strip()


def _remove_junk(soup: BeautifulSoup) -> None:
    for node in soup.find_all(string=lambda s: isinstance(s, (Comment, Declaration, Doctype, ProcessingInstruction))):
        node.extract()
    for tag in soup.find_all(JUNK_TAGS):
        tag.extract()
    # Outlook namespace wrappers such as <o:p>
    for tag in soup.find_all(lambda t: t.name.startswith("o:")):
        tag.extract()


def _remove_hidden_elements(soup: BeautifulSoup) -> None:
    removed = 0
    for tag in soup.find_all(HIDDEN_CANDIDATE_TAGS):
        if is_hidden_style(tag.get("style")):
            tag.extract()
            removed += 1
    if removed:
        logger.debug(f"Removed {removed} hidden elements")


def _is_pixel(value) -> bool:
    return value is not None and bool(_PIXEL_SIZE_RE.match(str(value)))


def _remove_tracking_pixels(soup: BeautifulSoup) -> None:
    for img in soup.find_all("img"):
        width, height = img.get("width"), img.get("height")
        if (_is_pixel(width) and _is_pixel(height)) or str(width).strip() == "0" or str(height).strip() == "0":
            img.extract()
        elif is_hidden_style(img.get("style")):
            img.extract()


def _strip_attributes(soup: BeautifulSoup) -> None:
    for tag in soup.find_all(True):
        for name in list(tag.attrs):
            if name in STRIP_ATTRIBUTES or name.startswith("data-"):
                del tag[name]


def _clean_text(soup: BeautifulSoup) -> None:
    for tag in soup.find_all("wbr"):
        tag.extract()
    for node in soup.find_all(string=True):
        if type(node) is not NavigableString:
            continue
        cleaned = _INVISIBLE_CHARS_RE.sub("", node)
        cleaned = _WHITESPACE_CHARS_RE.sub(" ", cleaned)
        cleaned = _MIDDLE_DOT_RE.sub(" · ", cleaned)
        if cleaned != node:
            node.replace_with(NavigableString(cleaned))


def _non_space_length(text: str) -> int:
    return len(re.sub(r"\s", "", text))


def _is_markdown_preview(div) -> bool:
    """A single-line, text-only <div> that is mostly literal **bold** markers (a plaintext preview copy)."""
    if div.find(True) is not None:
        return False
    text = div.get_text().strip()
    if not text or "\n" in text:
        return False
    bold = _MARKDOWN_BOLD_RE.findall(text)
    if len(bold) < 2:
        return False
    return 2 * sum(_non_space_length(b) for b in bold) >= _non_space_length(text)


def _remove_preheader_debris(soup: BeautifulSoup) -> None:
    for span in soup.find_all("span"):
        span.unwrap()
    for div in soup.find_all("div"):
        if _is_markdown_preview(div):
            div.extract()
    # Reverse document order visits nested divs before their parents
    for div in reversed(soup.find_all("div")):
        if not div.get_text().strip() and div.find("img") is None:
            div.extract()


def _collapse_blank_text(soup: BeautifulSoup) -> None:
    # Removed elements leave their surrounding whitespace nodes side by side
    soup.smooth()
    for node in soup.find_all(string=True):
        if type(node) is not NavigableString or node.strip() or "\n" not in node:
            continue
        if node != "\n" and node.find_parent("pre") is None:
            node.replace_with(NavigableString("\n"))
