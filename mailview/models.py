"""
Value objects produced by the rendering pipeline and the ICS parser.

All models are frozen: a render or parse call builds them fresh and nothing
mutates them afterwards.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# =============================================================================
# Enums
# =============================================================================

class TableKind(str, Enum):
    """Outcome of the layout/data table heuristic."""

    LAYOUT = "layout"  # Positioning only, flattened to <div> blocks
    DATA = "data"  # Real tabular data, kept for the Markdown table


class CalendarMethod(str, Enum):
    """iCalendar METHOD values seen in mail (REQUEST = invite)."""

    REQUEST = "REQUEST"
    REPLY = "REPLY"
    CANCEL = "CANCEL"
    PUBLISH = "PUBLISH"


class AttendeeStatus(str, Enum):
    """PARTSTAT values we surface in the UI."""

    NEEDS_ACTION = "NEEDS-ACTION"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    TENTATIVE = "TENTATIVE"


class AttendeeRole(str, Enum):
    REQ_PARTICIPANT = "REQ-PARTICIPANT"
    OPT_PARTICIPANT = "OPT-PARTICIPANT"
    CHAIR = "CHAIR"
    NON_PARTICIPANT = "NON-PARTICIPANT"


# =============================================================================
# Rendering
# =============================================================================

class ExtractedImage(BaseModel):
    """An <img> that survived sanitization, replaced by a placeholder token."""

    model_config = ConfigDict(frozen=True)

    id: str  # img-1, img-2, ... in document order
    number: int  # The n in [IMG:n]
    src: str = ""
    alt: str = "image"
    title: Optional[str] = None
    placeholder: str  # Exact token embedded in the markdown stream


class ExtractedLink(BaseModel):
    """A URL found on a rendered line (identity is positional)."""

    model_config = ConfigDict(frozen=True)

    id: str  # link-1, link-2, ...
    href: str
    line_index: int


class RenderResult(BaseModel):
    """Line-addressable terminal text handed to the view layer."""

    model_config = ConfigDict(frozen=True)

    lines: List[str] = Field(default_factory=list)
    images: List[ExtractedImage] = Field(default_factory=list)
    image_line_map: Dict[int, str] = Field(default_factory=dict)
    links: List[ExtractedLink] = Field(default_factory=list)
    link_line_map: Dict[int, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_indices(self) -> "RenderResult":
        image_ids = {image.id for image in self.images}
        link_ids = {link.id for link in self.links}
        for index, image_id in self.image_line_map.items():
            if not 0 <= index < len(self.lines) or image_id not in image_ids:
                raise ValueError(f"image map entry {index} -> {image_id} is invalid")
        for index, link_id in self.link_line_map.items():
            if not 0 <= index < len(self.lines) or link_id not in link_ids:
                raise ValueError(f"link map entry {index} -> {link_id} is invalid")
        return self

    def image_lines(self) -> List[int]:
        return sorted(self.image_line_map)

    def link_lines(self) -> List[int]:
        return sorted(self.link_line_map)

    def next_image_line(self, after: int = -1) -> Optional[int]:
        """First image line below `after`, wrapping to the top."""
        return _cycle(self.image_lines(), after, forward=True)

    def previous_image_line(self, before: int) -> Optional[int]:
        return _cycle(self.image_lines(), before, forward=False)

    def next_link_line(self, after: int = -1) -> Optional[int]:
        return _cycle(self.link_lines(), after, forward=True)

    def previous_link_line(self, before: int) -> Optional[int]:
        return _cycle(self.link_lines(), before, forward=False)

    def image_at(self, line_index: int) -> Optional[ExtractedImage]:
        image_id = self.image_line_map.get(line_index)
        return next((image for image in self.images if image.id == image_id), None)

    def link_at(self, line_index: int) -> Optional[ExtractedLink]:
        link_id = self.link_line_map.get(line_index)
        return next((link for link in self.links if link.id == link_id), None)


def _cycle(positions: List[int], current: int, forward: bool) -> Optional[int]:
    if not positions:
        return None
    if forward:
        return next((p for p in positions if p > current), positions[0])
    return next((p for p in reversed(positions) if p < current), positions[-1])


# =============================================================================
# Calendar
# =============================================================================

class EmailAddress(BaseModel):
    model_config = ConfigDict(frozen=True)

    email: str
    name: Optional[str] = None


class CalendarAttendee(BaseModel):
    """An ATTENDEE line of a VEVENT."""

    model_config = ConfigDict(frozen=True)

    email: str
    name: Optional[str] = None
    status: str = AttendeeStatus.NEEDS_ACTION.value  # PARTSTAT
    role: Optional[str] = None  # ROLE


class CalendarEvent(BaseModel):
    """The first VEVENT of a text/calendar part."""

    model_config = ConfigDict(frozen=True)

    uid: str = ""
    summary: str = "(No title)"
    description: Optional[str] = None
    location: Optional[str] = None
    start: str = ""  # YYYY-MM-DD or YYYY-MM-DDTHH:MM:SS[Z]
    end: str = ""
    all_day: bool = False
    organizer: Optional[EmailAddress] = None
    attendees: List[CalendarAttendee] = Field(default_factory=list)  # Invite order
    method: str = CalendarMethod.REQUEST.value
    status: Optional[str] = None  # CONFIRMED, TENTATIVE, CANCELLED
    recurrence: Optional[str] = None  # Raw RRULE
    sequence: Optional[int] = None
    conference_url: Optional[str] = None
    my_status: str = AttendeeStatus.NEEDS_ACTION.value

    @property
    def is_cancellation(self) -> bool:
        return self.method == CalendarMethod.CANCEL.value or self.status == "CANCELLED"
