"""Text-preserving edits on a single headline.

``split`` cuts the content at a headline into ordered regions::

    before | headline line | planning | :PROPERTIES: | :LOGBOOK: | body

Each mutation rewrites one region and ``reassemble`` glues them back
together, so every byte outside the touched region survives unchanged.
"""

import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, Optional

from org_outline.config import build_headline_regex
from org_outline.document import inside_block
from org_outline.errors import HeadlineNotFoundError
from org_outline.writer import format_inactive_now

_HEADLINE_START_RE = re.compile(r"^\*+ ", re.MULTILINE)

_PLANNING_LINE_RE = re.compile(r"^(SCHEDULED:|DEADLINE:|CLOSED:)\s")

_PLANNING_PARTS_RE = re.compile(
    r"(SCHEDULED|DEADLINE|CLOSED):\s*"
    r"((?:<[^>]+>|\[[^\]]+\])(?:--(?:<[^>]+>|\[[^\]]+\]))?)"
)

PLANNING_ORDER = ("SCHEDULED", "DEADLINE", "CLOSED")


@dataclass
class HeadlineSection:
    """One headline cut into regions. Optional regions are None when absent."""

    before: str
    headline_line: str
    planning_line: Optional[str] = None
    property_drawer: Optional[str] = None
    logbook_drawer: Optional[str] = None
    body: str = ""


def is_headline_start(content: str, pos: int) -> bool:
    """True if pos points at the first '*' of a headline line outside literal blocks."""
    if pos < 0 or pos >= len(content):
        return False
    return _HEADLINE_START_RE.match(content, pos) is not None and not inside_block(content, pos)


def _take_drawer(lines: list[str], idx: int, name: str) -> tuple[Optional[str], int]:
    if idx >= len(lines) or lines[idx].strip() != f":{name}:":
        return None, idx
    end = idx + 1
    while end < len(lines) and lines[end].strip() != ":END:":
        end += 1
    if end >= len(lines):
        # Unterminated: leave it in the body
        return None, idx
    return "\n".join(lines[idx:end + 1]), end + 1


def split(content: str, pos: int, logbook_name: str = "LOGBOOK") -> HeadlineSection:
    """Split content at the headline starting at pos.

    Args:
        content: Full file content
        pos: Offset of the headline's first '*'
        logbook_name: Drawer treated as the logbook region

    Returns:
        HeadlineSection whose reassembly equals content

    Raises:
        HeadlineNotFoundError: If pos does not point at a headline start
    """
    if not is_headline_start(content, pos):
        raise HeadlineNotFoundError(f"No headline at position {pos}", detail=str(pos))

    lines = content[pos:].split("\n")
    idx = 1

    planning_line = None
    if idx < len(lines) and _PLANNING_LINE_RE.match(lines[idx].lstrip()):
        planning_line = lines[idx]
        idx += 1

    property_drawer, idx = _take_drawer(lines, idx, "PROPERTIES")
    logbook_drawer, idx = _take_drawer(lines, idx, logbook_name)

    return HeadlineSection(
        before=content[:pos],
        headline_line=lines[0],
        planning_line=planning_line,
        property_drawer=property_drawer,
        logbook_drawer=logbook_drawer,
        body="\n".join(lines[idx:]),
    )


def reassemble(section: HeadlineSection) -> str:
    parts = [section.before, section.headline_line, "\n"]
    for region in (section.planning_line, section.property_drawer, section.logbook_drawer):
        if region is not None:
            parts.append(region)
            parts.append("\n")
    parts.append(section.body)
    return "".join(parts)


# --- Headline line ---


def get_state(keywords: list[str], headline_line: str) -> Optional[str]:
    m = build_headline_regex(keywords).match(headline_line)
    return m.group(2) if m and m.group(2) else None


def parse_tags(keywords: list[str], headline_line: str) -> list[str]:
    m = build_headline_regex(keywords).match(headline_line)
    if not m or not m.group(5):
        return []
    return [t for t in m.group(5).split(":") if t]


def _rebuild(m: re.Match, keyword: Optional[str], priority: Optional[str], tail: str) -> str:
    parts = [m.group(1), " "]
    if keyword:
        parts.append(keyword + " ")
    if priority:
        parts.append(f"[#{priority}] ")
    parts.append(tail)
    return "".join(parts)


def replace_keyword(keywords: list[str], headline_line: str, new_state: Optional[str]) -> str:
    """Swap the TODO keyword, keeping priority, title and tag spacing as written."""
    m = build_headline_regex(keywords).match(headline_line)
    if not m:
        return headline_line
    return _rebuild(m, new_state, m.group(3), headline_line[m.start(4):])


def replace_priority(keywords: list[str], headline_line: str, priority: Optional[str]) -> str:
    m = build_headline_regex(keywords).match(headline_line)
    if not m:
        return headline_line
    return _rebuild(m, m.group(2), priority, headline_line[m.start(4):])


def replace_tags(keywords: list[str], headline_line: str, tags: list[str]) -> str:
    """Rewrite the tag cookie. Existing whitespace before the tags is reused."""
    m = build_headline_regex(keywords).match(headline_line)
    if not m:
        return headline_line

    title = m.group(4)
    if not tags:
        return _rebuild(m, m.group(2), m.group(3), title)

    gap = headline_line[m.end(4):m.start(5)] if m.group(5) else " "
    return _rebuild(m, m.group(2), m.group(3), f"{title}{gap}:{':'.join(tags)}:")


# --- Planning ---


def parse_planning_parts(line: str) -> dict[str, str]:
    """Raw timestamp text per planning keyword. A repeated keyword keeps its last value."""
    return {m.group(1): m.group(2) for m in _PLANNING_PARTS_RE.finditer(line)}


def build_planning_line(parts: dict[str, str]) -> Optional[str]:
    items = [f"{key}: {parts[key]}" for key in PLANNING_ORDER if key in parts]
    return " ".join(items) if items else None


def modify_planning(
    content: str, pos: int, modify: Callable[[dict[str, str]], dict[str, str]]
) -> str:
    """Apply modify to the planning parts of the headline at pos."""
    section = split(content, pos)
    parts = parse_planning_parts(section.planning_line) if section.planning_line else {}
    section.planning_line = build_planning_line(modify(dict(parts)))
    return reassemble(section)


# --- Property drawer ---


def _property_line_re(key: str) -> re.Pattern:
    return re.compile(rf"^[ \t]*:{re.escape(key)}:(?:[ \t]+(.*?))?[ \t]*$", re.MULTILINE | re.IGNORECASE)


def get_property_value(drawer: str, key: str) -> Optional[str]:
    """Value of key in raw drawer text; None if absent or empty."""
    m = _property_line_re(key).search(drawer)
    if not m or not m.group(1):
        return None
    return m.group(1).strip()


def set_property_value(drawer: str, key: str, value: str) -> str:
    """Replace the key's line, or insert a new line before ``:END:``."""
    line = f":{key}: {value}"
    pattern = _property_line_re(key)
    if pattern.search(drawer):
        return pattern.sub(lambda _: line, drawer, count=1)

    end_idx = drawer.rfind(":END:")
    if end_idx < 0:
        return drawer
    line_start = drawer.rfind("\n", 0, end_idx) + 1
    return drawer[:line_start] + line + "\n" + drawer[line_start:]


def remove_property_value(drawer: str, key: str) -> Optional[str]:
    """Drop the key's line. Returns None when only the drawer brackets remain."""
    prefix = f":{key.upper()}:"
    lines = [ln for ln in drawer.split("\n") if not ln.lstrip().upper().startswith(prefix)]
    if len(lines) <= 2:
        return None
    return "\n".join(lines)


def ensure_drawer(section: HeadlineSection) -> HeadlineSection:
    if section.property_drawer is not None:
        return section
    return replace(section, property_drawer=":PROPERTIES:\n:END:")


# --- Logbook ---


def format_state_change(new_state: str, old_state: str, now: datetime) -> str:
    """``- State "DONE"       from "TODO"       [2026-02-03 Tue 10:00]``"""
    return '- State {:<12} from {:<12} {}'.format(
        f'"{new_state}"', f'"{old_state}"', format_inactive_now(now)
    )


def insert_entry(section: HeadlineSection, entry: str, drawer: Optional[str] = "LOGBOOK") -> HeadlineSection:
    """Insert a log entry as the newest item.

    With a drawer name the entry goes right after the drawer's opening line
    (creating the drawer when missing); with None it becomes the first line
    of the body.
    """
    if drawer is None:
        body = entry + "\n" + section.body if section.body else entry + "\n"
        return replace(section, body=body)

    if section.logbook_drawer is not None:
        opener, _, rest = section.logbook_drawer.partition("\n")
        return replace(section, logbook_drawer=f"{opener}\n{entry}\n{rest}")
    return replace(section, logbook_drawer=f":{drawer}:\n{entry}\n:END:")


# --- State extraction ---


@dataclass
class HeadlineState:
    """Snapshot of a headline as reported back to callers."""

    pos: int
    title: str
    id: Optional[str] = None
    todo: Optional[str] = None
    priority: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    scheduled: Optional[str] = None
    deadline: Optional[str] = None
    closed: Optional[str] = None


def extract_state(keywords: list[str], content: str, pos: int) -> HeadlineState:
    """Read the current state of the headline at pos.

    Raises:
        HeadlineNotFoundError: If pos does not point at a headline start
    """
    section = split(content, pos)
    m = build_headline_regex(keywords).match(section.headline_line)
    drawer_id = get_property_value(section.property_drawer, "ID") if section.property_drawer else None
    parts = parse_planning_parts(section.planning_line) if section.planning_line else {}

    if not m:
        return HeadlineState(pos=pos, title=section.headline_line, id=drawer_id)

    return HeadlineState(
        pos=pos,
        title=m.group(4).strip(),
        id=drawer_id,
        todo=m.group(2) or None,
        priority=m.group(3),
        tags=[t for t in (m.group(5) or "").split(":") if t],
        scheduled=parts.get("SCHEDULED"),
        deadline=parts.get("DEADLINE"),
        closed=parts.get("CLOSED"),
    )
