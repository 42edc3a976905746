"""
HTML to Markdown conversion for sanitized email bodies.

A markdownify converter with email-specific rules: links are shortened for
terminal display, image placeholders get their own paragraph, surviving
data tables become pipe tables, and empty <div> debris disappears.
"""

import logging
import re
from typing import Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup
from markdownify import ATX, BACKSLASH, MarkdownConverter, chomp

from ._html import is_hidden_style
from .images import PLACEHOLDER_ATTR
from .tables import column_count, row_width, table_rows

logger = logging.getLogger(__name__)

# Hrefs at least this long are treated as tracking links and dropped
MAX_INLINE_HREF = 80

_ESCAPED_RE = re.compile(r"\\([*_])")


def _short_url(href: str) -> str:
    """host/path form of a URL, without scheme, query or trailing slash."""
    parsed = urlparse(href)
    if not parsed.netloc:
        return href
    path = parsed.path.rstrip("/")
    return f"{parsed.netloc}{path}"


def _trailing_placeholders(el) -> str:
    """Full placeholders for images referenced inside a table or heading."""
    tokens = [span.get_text().strip() for span in el.find_all("span", attrs={PLACEHOLDER_ATTR: True})]
    return "".join(f"\n\n{token}" for token in tokens)


class EmailMarkdownConverter(MarkdownConverter):
    """markdownify converter tuned for terminal display of email."""

    class Options(MarkdownConverter.DefaultOptions):
        heading_style = ATX
        bullets = "-"
        escape_misc = False
        newline_style = BACKSLASH

    def convert_soup(self, soup: BeautifulSoup) -> str:
        # Anything the sanitizer missed
        for tag in soup.find_all(["script", "style"]):
            tag.decompose()
        for tag in soup.find_all(style=True):
            if not tag.decomposed and is_hidden_style(tag.get("style")):
                tag.decompose()
        return super().convert_soup(soup)

    # =========================================================================
    # Inline
    # =========================================================================

    def convert_a(self, el, text, parent_tags):
        if "_noformat" in parent_tags:
            return text
        prefix, suffix, text = chomp(text)
        href = str(el.get("href") or "").strip()

        if not text:
            host = urlparse(href).netloc
            return f"{prefix}[{host}]{suffix}" if host else ""
        if not href or href.startswith("#"):
            return f"{prefix}{text}{suffix}"
        if _ESCAPED_RE.sub(r"\1", text) == href:
            return f"{prefix}{_short_url(href)}{suffix}"
        if href.startswith(("http://", "https://")) and len(href) < MAX_INLINE_HREF:
            return f"{prefix}{text} ({href}){suffix}"
        return f"{prefix}{text}{suffix}"

    def convert_span(self, el, text, parent_tags):
        if el.has_attr(PLACEHOLDER_ATTR):
            if "_inline" in parent_tags:
                # Table cells and headings get a short reference; the full
                # placeholder follows the enclosing block
                return f" [IMG:{el[PLACEHOLDER_ATTR]}] "
            return f"\n\n{el.get_text().strip()}\n\n"
        return text

    # =========================================================================
    # Blocks
    # =========================================================================

    def convert_div(self, el, text, parent_tags):
        if "_inline" in parent_tags:
            text = text.strip()
            return f" {text} " if text else ""
        text = text.strip()
        return f"\n\n{text}\n\n" if text else ""

    convert_article = convert_div
    convert_section = convert_div
    convert_center = convert_div

    def convert_hN(self, n, el, text, parent_tags):
        heading = super().convert_hN(n, el, text, parent_tags)
        if "_inline" in parent_tags:
            return heading
        return heading.rstrip("\n") + _trailing_placeholders(el) + "\n\n"

    # =========================================================================
    # Data tables
    # =========================================================================

    def convert_table(self, el, text, parent_tags):
        body = text.strip()
        if not body:
            return ""
        caption = el.find("caption")
        if caption is not None and caption.find_parent("table") is el:
            title = caption.get_text(" ", strip=True)
            if title:
                body = f"**{title}**\n\n{body}"
        if "_inline" not in parent_tags:
            body += _trailing_placeholders(el)
        return f"\n\n{body}\n\n"

    def convert_caption(self, el, text, parent_tags):
        return ""

    def convert_td(self, el, text, parent_tags):
        colspan = 1
        if str(el.get("colspan", "")).isdigit():
            colspan = max(1, min(1000, int(el["colspan"])))
        cell = re.sub(r"\\?\n", " ", text.strip()).replace("|", "\\|")
        return f" {cell}" + " |" * colspan

    convert_th = convert_td

    def convert_tr(self, el, text, parent_tags):
        table = el.find_parent("table")
        if table is None:
            return text
        columns = column_count(table)
        line = "|" + text + "  |" * max(0, columns - row_width(el)) + "\n"

        rows = table_rows(table)
        if rows and rows[0] is el:
            # First row always acts as the header
            line += "| " + " | ".join(["---"] * max(columns, 1)) + " |\n"
        return line


def html_to_markdown(html: Optional[str], converter: Optional[EmailMarkdownConverter] = None) -> str:
    """Convert sanitized email HTML to Markdown."""
    if not html:
        return ""
    converter = converter or EmailMarkdownConverter()
    markdown = converter.convert(html)
    markdown = re.sub(r"[ \t]+\n", "\n", markdown)
    markdown = re.sub(r"\n{3,}", "\n\n", markdown)
    return markdown.strip()
