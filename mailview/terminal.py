"""
Markdown to ANSI terminal text via rich.
"""

import io
import re
from typing import List, Optional

from rich.console import Console, ConsoleOptions, RenderResult
from rich.markdown import Heading, Markdown

MIN_WIDTH = 20

# CSI sequences (colours, cursor movement) and OSC sequences (hyperlinks)
_ANSI_RE = re.compile(r"\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)|\x1b\[[0-?]*[ -/]*[@-~]")
_SGR_RE = re.compile(r"\x1b\[[0-9;]*m")
_TRAILING_PADDING_RE = re.compile(r"(?:\x1b\[[0-9;]*m| )+$")
_TOKEN_RE = re.compile(f"({_ANSI_RE.pattern})|(.)", re.DOTALL)
_RESET = "\x1b[0m"


class _LeftHeading(Heading):
    """Headings as plain styled lines: no centring, no extra spacing."""

    def __rich_console__(self, console: Console, options: ConsoleOptions) -> RenderResult:
        text = self.text.copy()
        text.justify = "left"
        yield text


class EmailMarkdown(Markdown):
    elements = {**Markdown.elements, "heading_open": _LeftHeading}


def strip_ansi(text: str) -> str:
    """Remove ANSI escape sequences. Idempotent."""
    return _ANSI_RE.sub("", text or "")


def slice_ansi(text: str, start: int, end: Optional[int] = None) -> str:
    """
    Visible characters [start:end] of an ANSI-styled line.

    Styles already in effect at `start` are carried into the slice, and a
    reset closes it.
    """
    active: List[str] = []
    out: List[str] = []
    column = 0
    for escape, char in _TOKEN_RE.findall(text or ""):
        inside = column >= start and (end is None or column < end)
        if escape:
            if inside:
                out.append(escape)
            elif column < start and _SGR_RE.fullmatch(escape):
                active = [] if escape in (_RESET, "\x1b[m") else active + [escape]
            continue
        if inside:
            out.append(char)
        column += 1

    styled = "".join(active + out)
    if styled != strip_ansi(styled) and not styled.endswith(_RESET):
        styled += _RESET
    return styled


def _rstrip_padding(line: str) -> str:
    """Drop trailing spaces rich pads lines with, keeping any style resets."""
    match = _TRAILING_PADDING_RE.search(line)
    if not match:
        return line
    return line[:match.start()] + "".join(_SGR_RE.findall(match.group(0)))


def markdown_to_terminal(markdown: str, width: int = 80) -> str:
    """
    Render Markdown as ANSI-styled text wrapped to `width` columns.

    Output uses the basic 16-colour palette so any terminal can show it, and
    never adds blank lines beyond the paragraph breaks already in the source.
    """
    if not markdown or not markdown.strip():
        return ""

    console = Console(
        width=max(MIN_WIDTH, width),
        file=io.StringIO(),
        force_terminal=True,
        color_system="standard",
        highlight=False,
        emoji=False,
        legacy_windows=False,
    )
    with console.capture() as capture:
        console.print(EmailMarkdown(markdown, justify="default", hyperlinks=False))

    lines = [_rstrip_padding(line) for line in capture.get().split("\n")]
    return "\n".join(lines).strip("\n")
