"""Render model objects back to org text."""

from datetime import datetime
from typing import Optional

from org_outline.model import (
    Headline,
    Keyword,
    OrgLink,
    Planning,
    PropertyDrawer,
    Timestamp,
    TimestampType,
)

# Locale-independent, org always writes English abbreviations
_DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


def day_name(date: datetime) -> str:
    return _DAY_NAMES[date.weekday()]


def format_timestamp(ts: Timestamp) -> str:
    """Format a timestamp (and its range end, if any).

    Examples:
        >>> from datetime import datetime
        >>> format_timestamp(Timestamp(TimestampType.ACTIVE, datetime(2026, 2, 1), repeater="+1w"))
        '<2026-02-01 Sun +1w>'
    """
    open_char, close_char = ("<", ">") if ts.type == TimestampType.ACTIVE else ("[", "]")

    parts = [ts.date.strftime("%Y-%m-%d"), day_name(ts.date)]
    if ts.has_time:
        parts.append(ts.date.strftime("%H:%M"))
    if ts.repeater:
        parts.append(ts.repeater)
    if ts.delay:
        parts.append(ts.delay)

    text = f"{open_char}{' '.join(parts)}{close_char}"
    if ts.range_end is not None:
        end = Timestamp(
            type=ts.range_end.type,
            date=ts.range_end.date,
            has_time=ts.range_end.has_time,
            repeater=ts.range_end.repeater,
            delay=ts.range_end.delay,
        )
        text += "--" + format_timestamp(end)
    return text


def format_inactive_now(now: datetime) -> str:
    """Inactive timestamp with time, as used in log entries: ``[2026-02-03 Tue 10:00]``."""
    return format_timestamp(Timestamp(type=TimestampType.INACTIVE, date=now, has_time=True))


def format_active(date: datetime, has_time: bool = False) -> str:
    return format_timestamp(Timestamp(type=TimestampType.ACTIVE, date=date, has_time=has_time))


def format_link(link: OrgLink) -> str:
    path = link.path
    if link.search_option is not None:
        path = f"{path}::{link.search_option}"
    if link.link_type != "fuzzy":
        path = f"{link.link_type}:{path}"

    if link.description is not None:
        return f"[[{path}][{link.description}]]"
    return f"[[{path}]]"


def format_property_drawer(drawer: PropertyDrawer) -> str:
    lines = [":PROPERTIES:"]
    lines.extend(f":{p.key}: {p.value}" for p in drawer.properties)
    lines.append(":END:")
    return "\n".join(lines)


def format_planning(planning: Planning) -> str:
    """Planning line in canonical SCHEDULED, DEADLINE, CLOSED order."""
    parts = []
    if planning.scheduled is not None:
        parts.append("SCHEDULED: " + format_timestamp(planning.scheduled))
    if planning.deadline is not None:
        parts.append("DEADLINE: " + format_timestamp(planning.deadline))
    if planning.closed is not None:
        parts.append("CLOSED: " + format_timestamp(planning.closed))
    return " ".join(parts)


def format_tags(tags: list[str]) -> Optional[str]:
    """``:a:b:`` or None for an empty list."""
    if not tags:
        return None
    return ":" + ":".join(tags) + ":"


def format_headline(headline: Headline) -> str:
    """Render the headline line only (no planning or drawers)."""
    parts = ["*" * headline.level]
    if headline.todo_keyword:
        parts.append(headline.todo_keyword)
    if headline.priority:
        parts.append(f"[#{headline.priority}]")
    parts.append(headline.title)

    line = " ".join(parts)
    tags = format_tags(headline.tags)
    if tags:
        line += " " + tags
    return line


def format_keywords(keywords: list[Keyword]) -> str:
    return "\n".join(f"#+{kw.key}: {kw.value}" for kw in keywords)
