"""
Lightweight iCalendar (RFC 5545) reader for calendar invites in mail.

Content lines are unfolded and split with icalendar's parser; only the first
VEVENT is read, and only the properties an invite summary needs. Malformed
input degrades to defaults; it never raises.
"""

import logging
import re
from dataclasses import dataclass, field
from email.message import Message
from typing import Dict, List, Optional, Tuple

from icalendar.parser import Contentline, Contentlines, unescape_backslash

from .models import (
    AttendeeStatus,
    CalendarAttendee,
    CalendarEvent,
    CalendarMethod,
    EmailAddress,
)

logger = logging.getLogger(__name__)

_DATE_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})$")
_DATETIME_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})T(\d{2})(\d{2})(\d{2})(Z)?$")
_MAILTO_RE = re.compile(r"^mailto:", re.IGNORECASE)
_CONFERENCE_RE = re.compile(
    r"https?://(?:[\w-]+\.)*(?:meet\.google\.com|zoom\.us|teams\.microsoft\.com|teams\.live\.com)[^\s<>\"]*"
)

Params = Dict[str, str]


@dataclass
class Property:
    """One content line: NAME;PARAM=VALUE:value (value still escaped)"""
    name: str
    value: str
    params: Params = field(default_factory=dict)


# =============================================================================
# Content lines
# =============================================================================

def unfold(raw: str) -> List[str]:
    """Join folded continuation lines and split into content lines."""
    try:
        return [str(line) for line in Contentlines.from_ical(raw or "") if line]
    except ValueError as e:
        logger.warning(f"Could not split calendar data into lines: {e}")
        return []


def unescape_ics_text(text: str) -> str:
    r"""Undo TEXT escaping in a single pass: \n, \N, \, \; \: and \\."""
    return unescape_backslash(text)


def _param_text(value) -> str:
    # Unquoted comma-separated parameter values come back as a list
    if isinstance(value, list):
        return ",".join(value)
    return str(value)


def parse_content_line(line: str) -> Optional[Property]:
    """
    Split one unfolded line into name, parameters and raw value.

    Colons and semicolons inside quoted parameter values are not separators.
    Returns None for lines icalendar cannot split.
    """
    try:
        name, params, value = Contentline(line).raw_parts()
    except ValueError:
        logger.debug(f"Skipping malformed content line: {line!r}")
        return None
    return Property(
        name=name.upper(),
        value=value,
        params={key.upper(): _param_text(val).strip() for key, val in params.items()},
    )


def _split_components(lines: List[str]) -> Tuple[List[str], Optional[List[str]]]:
    """
    Return (calendar-level lines, first VEVENT's own lines).

    Components nested inside the VEVENT (VALARM) are skipped. Calendar-level
    lines after the event are still collected.
    """
    top_level: List[str] = []
    event: Optional[List[str]] = None
    closed = False
    depth = 0
    in_event = False
    event_depth = 0

    for line in lines:
        upper = line.strip().upper()
        if upper.startswith("BEGIN:"):
            depth += 1
            if upper == "BEGIN:VEVENT" and event is None:
                event = []
                in_event = True
                event_depth = depth
            continue
        if upper.startswith("END:"):
            if in_event and depth == event_depth and upper == "END:VEVENT":
                in_event = False
                closed = True
            depth = max(0, depth - 1)
            continue
        if in_event:
            if depth == event_depth:
                event.append(line)
        elif depth <= 1:
            top_level.append(line)

    # BEGIN:VEVENT without END:VEVENT
    return top_level, event if closed else None


# =============================================================================
# Values
# =============================================================================

def parse_date_value(value: str, params: Optional[Params] = None) -> Tuple[str, bool]:
    """
    Normalise a DTSTART/DTEND value.

    Returns (iso_string, is_date). Dates become YYYY-MM-DD, date-times
    YYYY-MM-DDTHH:MM:SS with a trailing Z kept for UTC. Anything else is
    returned unchanged.
    """
    value = (value or "").strip()
    params = params or {}
    if not value:
        return "", False

    match = _DATE_RE.match(value)
    if match or params.get("VALUE", "").upper() == "DATE":
        digits = value[:8]
        if re.match(r"^\d{8}$", digits):
            return f"{digits[:4]}-{digits[4:6]}-{digits[6:8]}", True

    match = _DATETIME_RE.match(value)
    if match:
        y, mo, d, h, mi, s, z = match.groups()
        return f"{y}-{mo}-{d}T{h}:{mi}:{s}{z or ''}", False

    return value, False


def _address(value: str) -> str:
    return _MAILTO_RE.sub("", value or "").strip()


def _parse_organizer(prop: Optional[Property]) -> Optional[EmailAddress]:
    if prop is None:
        return None
    email = _address(prop.value)
    if not email:
        return None
    name = prop.params.get("CN")
    return EmailAddress(email=email, name=unescape_ics_text(name) if name else None)


def _parse_attendee(prop: Property) -> Optional[CalendarAttendee]:
    email = _address(prop.value)
    if not email:
        return None
    name = prop.params.get("CN")
    role = prop.params.get("ROLE")
    return CalendarAttendee(
        email=email,
        name=unescape_ics_text(name) if name else None,
        status=(prop.params.get("PARTSTAT") or AttendeeStatus.NEEDS_ACTION.value).upper(),
        role=role.upper() if role else None,
    )


def _conference_url(props: Dict[str, Property], location: Optional[str], description: Optional[str]) -> Optional[str]:
    google = props.get("X-GOOGLE-CONFERENCE")
    if google and google.value.strip():
        return google.value.strip()
    if location and re.match(r"^https?://", location.strip()):
        return location.strip()
    if description:
        match = _CONFERENCE_RE.search(description)
        if match:
            return match.group(0)
    return None


# =============================================================================
# Public API
# =============================================================================

def parse_ics(raw: Optional[str], viewer_email: Optional[str] = None) -> Optional[CalendarEvent]:
    """
    Parse the first VEVENT of an iCalendar document.

    Args:
        raw: Decoded text/calendar body.
        viewer_email: The reader's own address, used to look up their RSVP.

    Returns:
        CalendarEvent, or None when the document has no VEVENT.
    """
    top_level, event_lines = _split_components(unfold(raw or ""))
    if event_lines is None:
        logger.debug("No VEVENT in calendar data")
        return None

    method = CalendarMethod.REQUEST.value
    for line in top_level:
        prop = parse_content_line(line)
        if prop and prop.name == "METHOD" and prop.value.strip():
            method = prop.value.strip().upper()
            break

    # First occurrence wins for single-valued properties
    props: Dict[str, Property] = {}
    attendees: List[CalendarAttendee] = []
    for line in event_lines:
        prop = parse_content_line(line)
        if prop is None:
            continue
        if prop.name == "ATTENDEE":
            attendee = _parse_attendee(prop)
            if attendee:
                attendees.append(attendee)
            continue
        props.setdefault(prop.name, prop)

    def text(name: str) -> Optional[str]:
        prop = props.get(name)
        if prop is None or not prop.value:
            return None
        return unescape_ics_text(prop.value)

    dtstart = props.get("DTSTART")
    start, all_day = parse_date_value(dtstart.value, dtstart.params) if dtstart else ("", False)

    dtend = props.get("DTEND")
    if dtend is not None:
        end, _ = parse_date_value(dtend.value, dtend.params)
    elif "DURATION" in props:
        end = props["DURATION"].value.strip()
    else:
        end = ""

    sequence = None
    if "SEQUENCE" in props:
        try:
            sequence = int(props["SEQUENCE"].value.strip())
        except ValueError:
            logger.debug(f"Ignoring invalid SEQUENCE: {props['SEQUENCE'].value!r}")

    status = props["STATUS"].value.strip().upper() if "STATUS" in props else None
    recurrence = props["RRULE"].value.strip() if "RRULE" in props else None
    description = text("DESCRIPTION")
    location = text("LOCATION")

    my_status = AttendeeStatus.NEEDS_ACTION.value
    if viewer_email:
        me = next((a for a in attendees if a.email.lower() == viewer_email.strip().lower()), None)
        if me:
            my_status = me.status

    return CalendarEvent(
        uid=props["UID"].value.strip() if "UID" in props else "",
        summary=text("SUMMARY") or "(No title)",
        description=description,
        location=location,
        start=start,
        end=end,
        all_day=all_day,
        organizer=_parse_organizer(props.get("ORGANIZER")),
        attendees=attendees,
        method=method,
        status=status or None,
        recurrence=recurrence or None,
        sequence=sequence,
        conference_url=_conference_url(props, location, description),
        my_status=my_status,
    )


def _decode_part(part: Message) -> Optional[str]:
    payload = part.get_payload(decode=True)
    if payload is None:
        return None
    charset = part.get_content_charset() or "utf-8"
    try:
        return payload.decode(charset, errors="replace")
    except LookupError:
        return payload.decode("utf-8", errors="replace")


def find_calendar_part(message: Message) -> Optional[str]:
    """
    Decoded text of the calendar part of a MIME message.

    A text/calendar part is preferred; an application/ics or *.ics attachment
    is used otherwise.
    """
    for part in message.walk():
        if part.get_content_type() == "text/calendar":
            text = _decode_part(part)
            if text:
                return text

    for part in message.walk():
        filename = (part.get_filename() or "").lower()
        if part.get_content_type() == "application/ics" or filename.endswith(".ics"):
            text = _decode_part(part)
            if text:
                return text

    return None
