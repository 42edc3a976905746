"""
Image extraction.

Replaces each <img> with an inert placeholder span so the image survives
Markdown conversion and terminal rendering as plain text, and can be found
again on the rendered lines.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List

from ._html import parse_html, serialize
from .models import ExtractedImage

logger = logging.getLogger(__name__)

PLACEHOLDER_MARK = "⬚"
PLACEHOLDER_ATTR = "data-mailview-img"

# Characters that Markdown would interpret inside the label
_LABEL_JUNK_RE = re.compile(r"[\[\]*_`<>#|\\]")


@dataclass
class ImageExtraction:
    """HTML with placeholders plus the images they stand for."""
    html: str
    images: List[ExtractedImage] = field(default_factory=list)


def placeholder_label(alt: str) -> str:
    label = _LABEL_JUNK_RE.sub("", alt)
    label = re.sub(r"\s+", " ", label).strip()
    return label or "image"


def make_placeholder(number: int, alt: str) -> str:
    return f"{PLACEHOLDER_MARK} [IMG:{number}] {placeholder_label(alt)}"


def extract_images(html: str) -> ImageExtraction:
    """
    Swap every <img> for a `⬚ [IMG:n] alt` placeholder span.

    Ids are assigned in document order, starting at 1 for every call.
    Missing alt text defaults to "image".
    """
    if not html:
        return ImageExtraction(html="")

    soup = parse_html(html)
    images: List[ExtractedImage] = []

    for number, img in enumerate(soup.find_all("img"), start=1):
        alt = str(img.get("alt") or "").strip() or "image"
        title = str(img.get("title") or "").strip() or None
        placeholder = make_placeholder(number, alt)
        images.append(ExtractedImage(
            id=f"img-{number}",
            number=number,
            src=str(img.get("src") or "").strip(),
            alt=alt,
            title=title,
            placeholder=placeholder,
        ))

        span = soup.new_tag("span")
        span[PLACEHOLDER_ATTR] = str(number)
        span.string = placeholder
        img.replace_with(span)

    logger.debug(f"Extracted {len(images)} images")
    return ImageExtraction(html=serialize(soup), images=images)
