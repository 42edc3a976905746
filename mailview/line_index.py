"""
Line indexer.

Turns rendered terminal text into a RenderResult: blank runs are collapsed,
image placeholders are moved onto lines of their own, and every image line
and first URL per line is indexed for keyboard navigation.
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

from .images import PLACEHOLDER_MARK
from .models import ExtractedImage, ExtractedLink, RenderResult
from .terminal import slice_ansi, strip_ansi

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(re.escape(PLACEHOLDER_MARK) + r" \[IMG:(\d+)\]")
IMAGE_LINE_RE = re.compile("^" + PLACEHOLDER_RE.pattern)
URL_RE = re.compile(r"https?://[^\s)\]>│┃|]+")
_URL_PART_RE = re.compile(r"[^\s)\]>│┃|]+")

_URL_TRAILING = ".,;:!?'\""


def _is_blank(line: str) -> bool:
    return not strip_ansi(line).strip()


def collapse_blank_lines(lines: List[str]) -> List[str]:
    """At most one blank line in a row, none at either end."""
    result: List[str] = []
    for line in lines:
        if _is_blank(line):
            if result and result[-1] != "":
                result.append("")
        else:
            result.append(line)
    while result and result[-1] == "":
        result.pop()
    return result


# =============================================================================
# Placeholder de-interleaving
# =============================================================================

def _label_overlap(text: str, label: str) -> int:
    """Length of the longest word-aligned prefix of `label` that `text` starts with."""
    for k in range(len(label), 0, -1):
        if (k == len(label) or label[k] == " ") and text.startswith(label[:k]):
            return k
    return 0


def _consume_pending(text: str, pending: str) -> Tuple[str, str]:
    """Remove the wrapped remainder of a placeholder label from the next line."""
    stripped = text.lstrip()
    if not pending or not stripped:
        return text, pending
    if stripped.startswith(pending):
        return stripped[len(pending):], ""
    if pending.startswith(stripped):
        return "", pending[len(stripped):].strip()
    return text, ""


def _trim(text: str, start: int, end: int, left: bool = True) -> Tuple[int, int]:
    """Bounds of text[start:end] without surrounding whitespace."""
    while left and start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    return start, end


def _split_line(
    text: str,
    styled: str,
    images: Dict[int, ExtractedImage],
) -> Tuple[List[str], str]:
    """
    Split one line around its placeholders.

    `text` is the ANSI-stripped form of `styled`. Returns the pieces (styled
    prose and plain placeholders, each its own line) and the part of the last
    placeholder's label that wrapped onto the following line.
    """
    pieces: List[str] = []
    pending = ""
    cursor = 0

    while True:
        match = PLACEHOLDER_RE.search(text, cursor)
        if match is None:
            break
        # Indentation before the first placeholder is kept
        start, end = _trim(text, cursor, match.start(), left=cursor > 0)
        if start < end:
            pieces.append(slice_ansi(styled, start, end))

        image = images.get(int(match.group(1)))
        if image is None:
            pieces.append(match.group(0))
            cursor = match.end()
            pending = ""
            continue

        # Prefer the full "⬚ [IMG:n] label" form, then whatever part of the
        # label stayed on this line
        label = image.placeholder[len(match.group(0)):]
        overlap = _label_overlap(text[match.end():], label)
        cursor = match.end() + overlap
        pieces.append(image.placeholder)
        pending = ""
        if overlap < len(label) and not text[cursor:].strip():
            pending = label[overlap:].strip()

    start, end = _trim(text, cursor, len(text))
    if start < end:
        pieces.append(slice_ansi(styled, start, end))
    return pieces, pending


def deinterleave_placeholders(lines: List[str], images: List[ExtractedImage]) -> List[str]:
    """Give every image placeholder a line of its own."""
    by_number = {image.number: image for image in images}
    result: List[str] = []
    pending = ""

    for line in lines:
        plain = strip_ansi(line)
        if pending:
            rest, pending = _consume_pending(plain, pending)
            if rest != plain:
                start, end = _trim(plain, len(plain) - len(rest), len(plain))
                if start == end:
                    continue
                line = slice_ansi(line, start, end)
                plain = plain[start:end]

        if PLACEHOLDER_RE.search(plain) is None:
            result.append(line)
            continue

        pieces, pending = _split_line(plain, line, by_number)
        result.extend(pieces)

    return result


# =============================================================================
# Index construction
# =============================================================================

def find_url(line: str) -> Optional[str]:
    """First URL on an ANSI-stripped line, without trailing punctuation."""
    match = URL_RE.search(line)
    if match is None:
        return None
    url = match.group(0).rstrip(_URL_TRAILING)
    return url if len(url) > len("https://") else None


def _folded_url(lines: List[str], index: int, width: Optional[int]) -> Optional[str]:
    """
    The first URL on lines[index], joined with the pieces rich folded onto
    the following lines.

    A URL continues only while the line holding it is filled to `width` and
    the next line starts with URL characters.
    """
    plain = lines[index].rstrip()
    match = URL_RE.search(plain)
    if match is None:
        return None
    url = match.group(0)
    if width:
        while match.end() == len(plain) and len(plain) >= width and index + 1 < len(lines):
            index += 1
            plain = lines[index].rstrip()
            match = _URL_PART_RE.match(plain)
            if match is None:
                break
            url += match.group(0)
    return find_url(url)


def build_render_result(
    ansi_text: str,
    images: Optional[List[ExtractedImage]] = None,
    width: Optional[int] = None,
) -> RenderResult:
    """
    Index rendered terminal text for image and link navigation.

    `width` is the column width the text was wrapped to; when given, URLs
    folded across lines are rejoined.
    """
    images = images or []
    by_number = {image.number: image for image in images}

    lines = collapse_blank_lines((ansi_text or "").split("\n"))
    lines = deinterleave_placeholders(lines, images)
    lines = collapse_blank_lines(lines)
    plain_lines = [strip_ansi(line) for line in lines]

    image_line_map: Dict[int, str] = {}
    link_line_map: Dict[int, str] = {}
    links: List[ExtractedLink] = []

    for index, plain in enumerate(plain_lines):
        match = IMAGE_LINE_RE.match(plain)
        if match and int(match.group(1)) in by_number:
            image_line_map[index] = by_number[int(match.group(1))].id
            continue
        url = _folded_url(plain_lines, index, width)
        if url:
            link = ExtractedLink(id=f"link-{len(links) + 1}", href=url, line_index=index)
            links.append(link)
            link_line_map[index] = link.id

    logger.debug(f"Indexed {len(lines)} lines: {len(image_line_map)} images, {len(links)} links")
    return RenderResult(
        lines=lines,
        images=images,
        image_line_map=image_line_map,
        links=links,
        link_line_map=link_line_map,
    )
