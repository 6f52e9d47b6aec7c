"""Data model for parsed org-mode documents.

These types only describe structure. Parsing lives in ``parsers`` and
``document``; text-preserving edits live in ``editor`` and ``mutations``.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional


class TimestampType(Enum):
    """Whether a timestamp is active (<...>) or inactive ([...])."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class RepeaterType(Enum):
    """Repeater flavours: +1w, .+1d and ++1m."""

    STANDARD = "+"
    FROM_TODAY = ".+"
    NEXT_FUTURE = "++"


@dataclass
class Timestamp:
    """An org-mode timestamp, optionally the start of a range.

    Attributes:
        type: Active or inactive
        date: Date with the time of day folded in (midnight when untimed)
        has_time: True if the source carried an H:MM component
        repeater: Raw repeater cookie (e.g. "+1w", ".+1d")
        delay: Raw warning/delay cookie (e.g. "-2d")
        range_end: End of a <start>--<end> range
    """

    type: TimestampType
    date: datetime
    has_time: bool = False
    repeater: Optional[str] = None
    delay: Optional[str] = None
    range_end: Optional["Timestamp"] = None

    def __post_init__(self):
        # Ranges nest one level only
        if self.range_end is not None and self.range_end.range_end is not None:
            self.range_end.range_end = None


@dataclass
class OrgLink:
    """A bracket link found in document text.

    ``link_type`` is "fuzzy" when the path carries no ``type:`` prefix.
    ``position`` is the index of the opening ``[[`` in the file content.
    """

    link_type: str
    path: str
    description: Optional[str] = None
    search_option: Optional[str] = None
    position: int = 0


@dataclass
class Property:
    key: str
    value: str


@dataclass
class PropertyDrawer:
    """Ordered key/value pairs from a :PROPERTIES: drawer.

    Keys keep their original case; lookup is case-insensitive.
    """

    properties: list[Property] = field(default_factory=list)

    def get(self, key: str) -> Optional[str]:
        upper = key.upper()
        for prop in self.properties:
            if prop.key.upper() == upper:
                return prop.value
        return None


@dataclass
class Keyword:
    """File-level ``#+KEY: value`` line. Duplicates are kept in order."""

    key: str
    value: str


@dataclass
class Planning:
    scheduled: Optional[Timestamp] = None
    deadline: Optional[Timestamp] = None
    closed: Optional[Timestamp] = None


@dataclass
class Headline:
    """One outline node.

    Attributes:
        level: Number of leading stars (>= 1; 0 only for the synthetic file node)
        todo_keyword: TODO keyword if the effective keyword set recognised one
        priority: Single priority letter from a [#X] cookie
        title: Headline text without keyword, priority and tags
        tags: Tags in source order
        planning: Planning line directly under the headline
        properties: First property drawer of the section
        position: Index of the first '*' of the headline in the file content
    """

    level: int
    title: str
    todo_keyword: Optional[str] = None
    priority: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    planning: Optional[Planning] = None
    properties: Optional[PropertyDrawer] = None
    position: int = 0


@dataclass
class OrgDocument:
    """A parsed org file.

    ``headlines`` is flat and in document order. Parent/child relations are
    derived on demand by scanning backwards for a smaller level.
    ``links`` pairs each link with the ID of the node that contains it.
    """

    file_path: Optional[str] = None
    keywords: list[Keyword] = field(default_factory=list)
    file_properties: Optional[PropertyDrawer] = None
    headlines: list[Headline] = field(default_factory=list)
    links: list[tuple[OrgLink, Optional[str]]] = field(default_factory=list)


@dataclass
class ClockEntry:
    start: Timestamp
    end: Optional[Timestamp] = None
    duration: Optional[timedelta] = None


@dataclass
class ResolvedLink:
    link: OrgLink
    target_file: Optional[str] = None
    target_headline: Optional[str] = None
    target_pos: Optional[int] = None


def get_property(drawer: Optional[PropertyDrawer], key: str) -> Optional[str]:
    """Look up a property value in an optional drawer (case-insensitive)."""
    if drawer is None:
        return None
    return drawer.get(key)


def get_id(drawer: Optional[PropertyDrawer]) -> Optional[str]:
    return get_property(drawer, "ID")


def get_title(keywords: list[Keyword]) -> Optional[str]:
    for kw in keywords:
        if kw.key.upper() == "TITLE":
            return kw.value
    return None


def get_file_tags(keywords: list[Keyword]) -> list[str]:
    """Tags from the first ``#+FILETAGS:`` line (``:a:b:`` syntax)."""
    for kw in keywords:
        if kw.key.upper() == "FILETAGS":
            return [t for t in kw.value.split(":") if t.strip()]
    return []


def split_quoted_string(s: str) -> list[str]:
    """Split on spaces, keeping double-quoted segments together.

    Examples:
        >>> split_quoted_string('foo "bar baz" qux')
        ['foo', 'bar baz', 'qux']
    """
    words = []
    current = []
    in_quote = False
    i = 0
    while i < len(s):
        c = s[i]
        if in_quote and c == "\\" and i + 1 < len(s) and s[i + 1] == '"':
            current.append('"')
            i += 2
            continue
        if c == '"':
            if in_quote:
                words.append("".join(current))
                current = []
            in_quote = not in_quote
        elif c == " " and not in_quote:
            word = "".join(current)
            if word.strip():
                words.append(word)
            current = []
        else:
            current.append(c)
        i += 1

    final = "".join(current)
    if final.strip():
        words.append(final)
    return words
