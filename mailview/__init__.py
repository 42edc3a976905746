"""Terminal rendering of HTML email bodies and calendar invites."""

from .models import (
    TableKind,
    CalendarMethod,
    AttendeeStatus,
    AttendeeRole,
    ExtractedImage,
    ExtractedLink,
    RenderResult,
    EmailAddress,
    CalendarAttendee,
    CalendarEvent,
)
from .sanitizer import sanitize_email_html
from .tables import LayoutPolicy, classify_table, unwrap_layout_tables
from .images import ImageExtraction, extract_images
from .markdown import EmailMarkdownConverter, html_to_markdown
from .terminal import markdown_to_terminal, strip_ansi
from .line_index import build_render_result
from .renderer import render_email_body, render_html_email, render_plain_text_email
from .ics import find_calendar_part, parse_ics, unescape_ics_text
from .config import RenderSettings, load_settings

__all__ = [
    # Models
    "TableKind",
    "CalendarMethod",
    "AttendeeStatus",
    "AttendeeRole",
    "ExtractedImage",
    "ExtractedLink",
    "RenderResult",
    "EmailAddress",
    "CalendarAttendee",
    "CalendarEvent",
    # HTML pipeline
    "sanitize_email_html",
    "LayoutPolicy",
    "classify_table",
    "unwrap_layout_tables",
    "ImageExtraction",
    "extract_images",
    "EmailMarkdownConverter",
    "html_to_markdown",
    "markdown_to_terminal",
    "strip_ansi",
    "build_render_result",
    "render_email_body",
    "render_html_email",
    "render_plain_text_email",
    # Calendar
    "find_calendar_part",
    "parse_ics",
    "unescape_ics_text",
    # Settings
    "RenderSettings",
    "load_settings",
]
