"""
Email body rendering pipeline.

    HTML -> sanitize -> extract images -> Markdown -> ANSI -> line index

Every entry point returns a RenderResult; a stage failure degrades to the
plain visible text of the sanitized HTML instead of raising.
"""

import logging
from typing import Optional

from ._html import visible_text
from .images import extract_images
from .line_index import build_render_result
from .markdown import html_to_markdown
from .models import CalendarEvent, RenderResult
from .sanitizer import sanitize_email_html
from .tables import LayoutPolicy
from .terminal import MIN_WIDTH, markdown_to_terminal

logger = logging.getLogger(__name__)

DEFAULT_WIDTH = 80


def _clamp_width(width: Optional[int]) -> int:
    return max(MIN_WIDTH, width or DEFAULT_WIDTH)


def render_html_email(
    html: Optional[str],
    width: Optional[int] = DEFAULT_WIDTH,
    policy: Optional[LayoutPolicy] = None,
) -> RenderResult:
    """Render an HTML email body as indexed terminal lines."""
    width = _clamp_width(width)
    sanitized = sanitize_email_html(html, policy)
    extraction = extract_images(sanitized)

    try:
        markdown = html_to_markdown(extraction.html)
        ansi_text = markdown_to_terminal(markdown, width)
    except Exception as e:
        logger.warning(f"Rich rendering failed (non-fatal), falling back to plain text: {e}")
        return render_plain_text_email(visible_text(sanitized), width)

    return build_render_result(ansi_text, extraction.images, width)


def render_plain_text_email(text: Optional[str], width: Optional[int] = None) -> RenderResult:
    """
    Index a plain-text body.

    Lines are kept as written (terminals wrap them); `width` is accepted so
    both renderers share a call shape.
    """
    text = (text or "").replace("\r\n", "\n").replace("\r", "\n")
    lines = [line.rstrip() for line in text.split("\n")]
    return build_render_result("\n".join(lines))


def render_email_body(
    html: Optional[str],
    text: Optional[str],
    width: Optional[int] = DEFAULT_WIDTH,
    calendar_event: Optional[CalendarEvent] = None,
    policy: Optional[LayoutPolicy] = None,
) -> RenderResult:
    """
    Pick the body to show and render it.

    The HTML body wins unless the message carries a calendar event, whose HTML
    part is usually just a rendered invite table duplicating the event.
    """
    if html and html.strip() and calendar_event is None:
        return render_html_email(html, width, policy)
    if text and text.strip():
        return render_plain_text_email(text, width)
    if html:
        return render_html_email(html, width, policy)
    return RenderResult()
