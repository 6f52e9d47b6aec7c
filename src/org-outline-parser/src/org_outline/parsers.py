"""Element-level parsers for org-mode syntax.

Every rule is total: it returns the parsed value, or None when the input does
not match. Nothing in here raises on malformed text.

The ``match_*`` rules scan from a position and return ``(value, end)`` so they
can be chained: a planning line is a sequence of keyword + timestamp-range
matches, a clock line is a timestamp range followed by a duration.
"""

import re
from datetime import datetime, timedelta
from typing import Optional

from org_outline.model import (
    ClockEntry,
    Keyword,
    OrgLink,
    Planning,
    Property,
    PropertyDrawer,
    RepeaterType,
    Timestamp,
    TimestampType,
)

_TIMESTAMP_RE = re.compile(
    r"(?P<open>[<\[])"
    r"(?P<year>\d{4})-(?P<month>\d{1,2})-(?P<day>\d{1,2})"
    r"(?:[ \t]+(?P<dayname>[^\W\d_]+\.?))?"
    r"(?:[ \t]+(?P<hour>\d{1,2}):(?P<minute>\d{2}))?"
    r"(?:[ \t]+(?P<repeater>(?:\.\+|\+\+|\+)\d+[hdwmy](?:/\d+[hdwmy])?))?"
    r"(?:[ \t]+(?P<delay>--?\d+[hdwmy]))?"
    r"[ \t]*(?P<close>[>\]])"
)

_REPEATER_RE = re.compile(r"^(\.\+|\+\+|\+)(\d+)([hdwmy])(?:/\d+[hdwmy])?$")

_CLOSERS = {"<": ">", "[": "]"}

_PROPERTY_LINE_RE = re.compile(r"^\s*:([^:\s][^:\n]*):(?:[ \t]+(.*?))?\s*$")

_KEYWORD_LINE_RE = re.compile(r"^#\+([^:\s]+):[ \t]*(.*?)\s*$")

_PLANNING_KEYWORD_RE = re.compile(r"(SCHEDULED|DEADLINE|CLOSED):[ \t]*")

_CLOCK_PREFIX_RE = re.compile(r"\s*CLOCK:[ \t]*")

_CLOCK_DURATION_RE = re.compile(r"[ \t]*=>[ \t]*(\d+):(\d{2})")


# --- Timestamps ---


def match_timestamp(text: str, pos: int = 0) -> Optional[tuple[Timestamp, int]]:
    """Match a single timestamp starting exactly at ``pos``.

    Returns:
        (Timestamp, end index) or None if there is no valid timestamp at pos
    """
    m = _TIMESTAMP_RE.match(text, pos)
    if not m or _CLOSERS[m.group("open")] != m.group("close"):
        return None

    has_time = m.group("hour") is not None
    try:
        date = datetime(
            int(m.group("year")),
            int(m.group("month")),
            int(m.group("day")),
            int(m.group("hour")) if has_time else 0,
            int(m.group("minute")) if has_time else 0,
        )
    except ValueError:
        return None

    ts_type = TimestampType.ACTIVE if m.group("open") == "<" else TimestampType.INACTIVE
    ts = Timestamp(
        type=ts_type,
        date=date,
        has_time=has_time,
        repeater=m.group("repeater"),
        delay=m.group("delay"),
    )
    return ts, m.end()


def match_timestamp_range(text: str, pos: int = 0) -> Optional[tuple[Timestamp, int]]:
    """Match a timestamp optionally followed by ``--<timestamp>``."""
    start = match_timestamp(text, pos)
    if start is None:
        return None

    ts, end = start
    if text.startswith("--", end):
        range_end = match_timestamp(text, end + 2)
        if range_end is not None:
            end_ts, end = range_end
            end_ts.range_end = None
            ts.range_end = end_ts
    return ts, end


def parse_timestamp(text: str) -> Optional[Timestamp]:
    """Parse text that consists of exactly one timestamp (no range)."""
    s = text.strip()
    result = match_timestamp(s)
    if result is None or result[1] != len(s):
        return None
    return result[0]


def parse_timestamp_range(text: str) -> Optional[Timestamp]:
    """Parse text that consists of exactly one timestamp or timestamp range."""
    s = text.strip()
    result = match_timestamp_range(s)
    if result is None or result[1] != len(s):
        return None
    return result[0]


def parse_repeater(s: str) -> Optional[tuple[RepeaterType, int, str]]:
    """Parse a repeater cookie into (type, count, unit).

    Examples:
        >>> parse_repeater("+1w")
        (<RepeaterType.STANDARD: '+'>, 1, 'w')
        >>> parse_repeater(".+2d")
        (<RepeaterType.FROM_TODAY: '.+'>, 2, 'd')
    """
    m = _REPEATER_RE.match(s)
    if not m:
        return None
    return RepeaterType(m.group(1)), int(m.group(2)), m.group(3)


# --- Links ---


def parse_link(text: str) -> Optional[OrgLink]:
    """Parse ``[[path]]`` or ``[[path][description]]``.

    The path is split on the last ``::`` into path and search option, then on
    the first ``:`` into link type and path. Without a type prefix the link
    type is "fuzzy".
    """
    if not (text.startswith("[[") and text.endswith("]]")) or len(text) < 5:
        return None

    inner = text[2:-2]
    if "][" in inner:
        full_path, description = inner.split("][", 1)
    else:
        full_path, description = inner, None

    if not full_path or "]" in full_path:
        return None

    search_option = None
    idx = full_path.rfind("::")
    if idx >= 0:
        full_path, search_option = full_path[:idx], full_path[idx + 2:]

    colon = full_path.find(":")
    if colon < 0:
        link_type, path = "fuzzy", full_path
    else:
        link_type, path = full_path[:colon], full_path[colon + 1:]

    return OrgLink(
        link_type=link_type,
        path=path,
        description=description,
        search_option=search_option,
    )


def find_all_links(text: str) -> list[OrgLink]:
    """Find every bracket link in text, with positions relative to text."""
    links = []
    start = 0
    while True:
        idx = text.find("[[", start)
        if idx < 0:
            break
        end = text.find("]]", idx)
        if end < 0:
            break
        link = parse_link(text[idx:end + 2])
        if link is not None:
            link.position = idx
            links.append(link)
        start = end + 2
    return links


# --- Properties and keywords ---


def parse_property_line(line: str) -> Optional[Property]:
    """Parse ``:key: value``. The value may be empty."""
    m = _PROPERTY_LINE_RE.match(line)
    if not m:
        return None
    return Property(key=m.group(1).strip(), value=(m.group(2) or "").strip())


def parse_property_drawer(text: str) -> Optional[PropertyDrawer]:
    """Parse the first ``:PROPERTIES: ... :END:`` drawer found in text.

    Lines inside the drawer that are not property lines are skipped. An
    unterminated drawer yields None.
    """
    lines = text.split("\n")
    for i, line in enumerate(lines):
        if line.strip() != ":PROPERTIES:":
            continue
        props = []
        for inner in lines[i + 1:]:
            if inner.strip() == ":END:":
                return PropertyDrawer(properties=props)
            prop = parse_property_line(inner)
            if prop is not None:
                props.append(prop)
        return None
    return None


def parse_keyword_line(line: str) -> Optional[Keyword]:
    """Parse a ``#+KEY: value`` line."""
    m = _KEYWORD_LINE_RE.match(line)
    if not m:
        return None
    return Keyword(key=m.group(1).strip(), value=m.group(2).strip())


# --- Planning ---


def parse_planning_line(line: str) -> Optional[Planning]:
    """Parse a planning line such as ``SCHEDULED: <...> DEADLINE: <...>``.

    Items may appear in any order, separated by whitespace. The whole line
    must be consumed; any trailing text fails the parse. When a keyword is
    repeated, the first occurrence wins.
    """
    s = line.strip()
    items: dict[str, Timestamp] = {}
    pos = 0

    while True:
        m = _PLANNING_KEYWORD_RE.match(s, pos)
        if not m:
            return None
        ts_match = match_timestamp_range(s, m.end())
        if ts_match is None:
            return None
        ts, pos = ts_match
        items.setdefault(m.group(1), ts)

        if pos == len(s):
            break
        ws = pos
        while ws < len(s) and s[ws] in " \t":
            ws += 1
        if ws == pos:
            return None
        pos = ws

    return Planning(
        scheduled=items.get("SCHEDULED"),
        deadline=items.get("DEADLINE"),
        closed=items.get("CLOSED"),
    )


# --- Clock lines ---


def parse_clock_line(line: str) -> Optional[ClockEntry]:
    """Parse ``CLOCK: [start]``, ``CLOCK: [start]--[end]`` and ``... => H:MM``.

    The textual duration is kept as-is; clocking out recomputes it.
    """
    m = _CLOCK_PREFIX_RE.match(line)
    if not m:
        return None

    start_match = match_timestamp(line, m.end())
    if start_match is None:
        return None
    start, pos = start_match

    end = None
    if line.startswith("--", pos):
        end_match = match_timestamp(line, pos + 2)
        if end_match is not None:
            end, pos = end_match

    duration = None
    dm = _CLOCK_DURATION_RE.match(line, pos)
    if dm:
        duration = timedelta(hours=int(dm.group(1)), minutes=int(dm.group(2)))
        pos = dm.end()

    if line[pos:].strip():
        return None

    return ClockEntry(start=start, end=end, duration=duration)
