import email
import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from mailview import (
    CalendarEvent,
    RenderSettings,
    find_calendar_part,
    html_to_markdown,
    load_settings,
    parse_ics,
    render_email_body,
    sanitize_email_html,
    strip_ansi,
)
from mailview.images import extract_images

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Configure logging with RichHandler on stderr."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, markup=False)],
        force=True,
    )


# Load environment variables from .env file if present
load_dotenv()

app = typer.Typer(
    help="Render HTML email and calendar invites for the terminal.",
    no_args_is_help=True,
    add_completion=False,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """mailview root command."""
    setup_logging(verbose)


def _read_input(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    file_path = Path(path).expanduser()
    if not file_path.is_file():
        raise typer.BadParameter(f"File not found: {path}")
    return file_path.read_text(encoding="utf-8", errors="replace")


def _settings(**overrides) -> RenderSettings:
    try:
        return load_settings(**overrides)
    except ValidationError as e:
        errors = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
        raise typer.BadParameter(errors)


@app.command()
def render(
    path: str = typer.Argument(..., help="HTML file to render, or - for stdin"),
    width: Optional[int] = typer.Option(None, "--width", "-w", help="Render width in columns"),
    plain: bool = typer.Option(False, "--plain", help="Strip ANSI styling"),
    json_output: bool = typer.Option(False, "--json", help="Output the indexed result as JSON"),
    text_path: Optional[str] = typer.Option(None, "--text", help="Plain-text body used when there is no HTML"),
):
    """Render an HTML email body as terminal text."""
    settings = _settings(width=width)
    html = _read_input(path)
    text = _read_input(text_path) if text_path else None

    result = render_email_body(html, text, settings.width, policy=settings.layout_policy)

    if json_output:
        typer.echo(result.model_dump_json(indent=2))
        return

    for line in result.lines:
        typer.echo(strip_ansi(line) if plain else line, color=None if plain else True)


@app.command()
def sanitize(
    path: str = typer.Argument(..., help="HTML file to sanitize, or - for stdin"),
):
    """Print the sanitized HTML."""
    settings = _settings()
    typer.echo(sanitize_email_html(_read_input(path), settings.layout_policy))


@app.command()
def markdown(
    path: str = typer.Argument(..., help="HTML file to convert, or - for stdin"),
):
    """Print the intermediate Markdown."""
    settings = _settings()
    sanitized = sanitize_email_html(_read_input(path), settings.layout_policy)
    typer.echo(html_to_markdown(extract_images(sanitized).html))


def _format_event(event: CalendarEvent) -> str:
    lines = [event.summary]
    if event.is_cancellation:
        lines[0] = f"[CANCELLED] {event.summary}"

    when = event.start
    if event.end and event.end != event.start:
        when = f"{event.start} - {event.end}"
    if event.all_day:
        when += " (all day)"
    lines.append(f"  When: {when}")

    if event.location:
        lines.append(f"  Where: {event.location}")
    if event.conference_url:
        lines.append(f"  Join: {event.conference_url}")
    if event.organizer:
        organizer = event.organizer.email
        if event.organizer.name:
            organizer = f"{event.organizer.name} <{organizer}>"
        lines.append(f"  Organizer: {organizer}")
    if event.recurrence:
        lines.append(f"  Repeats: {event.recurrence}")
    for attendee in event.attendees:
        name = f"{attendee.name} <{attendee.email}>" if attendee.name else attendee.email
        lines.append(f"  - {name} ({attendee.status})")
    lines.append(f"  Method: {event.method} | Your status: {event.my_status}")
    return "\n".join(lines)


@app.command()
def ics(
    path: str = typer.Argument(..., help=".ics file or raw RFC 822 message, or - for stdin"),
    viewer_email: Optional[str] = typer.Option(None, "--viewer-email", help="Your address, for RSVP status"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Summarize the calendar invite in an .ics file or email message."""
    settings = _settings(user_email=viewer_email)
    raw = _read_input(path)

    if not raw.lstrip().upper().startswith("BEGIN:VCALENDAR"):
        message = email.message_from_string(raw)
        raw = find_calendar_part(message) or ""

    event = parse_ics(raw, settings.user_email)
    if event is None:
        typer.echo("No calendar event found.", err=True)
        raise typer.Exit(code=1)

    if json_output:
        typer.echo(event.model_dump_json(indent=2))
    else:
        typer.echo(_format_event(event))


if __name__ == "__main__":
    app()
