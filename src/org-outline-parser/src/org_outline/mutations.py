"""User-facing edit operations.

Every function takes the full file content and returns the full new content.
Positions must point at the first '*' of a headline; a stale position raises
``HeadlineNotFoundError`` instead of silently editing the wrong place.

Functions that interpret headline lines re-derive the keyword set from the
document's own ``#+TODO:`` lines merged onto the config they are given.
"""

import calendar
import re
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

from org_outline.config import (
    DEFAULT_CONFIG,
    LogAction,
    OrgConfig,
    all_keywords,
    find_keyword_def,
    is_done_state,
)
from org_outline.document import effective_config, parse_with_config
from org_outline.editor import (
    HeadlineSection,
    build_planning_line,
    ensure_drawer,
    format_state_change,
    get_property_value,
    get_state,
    insert_entry,
    is_headline_start,
    parse_planning_parts,
    parse_tags,
    reassemble,
    remove_property_value,
    replace_keyword,
    replace_priority,
    replace_tags,
    set_property_value,
    split,
)
from org_outline.errors import HeadlineNotFoundError, InvalidArgsError
from org_outline.file_config import TagGroup
from org_outline.inheritance import resolve_property
from org_outline.model import Planning, RepeaterType, Timestamp
from org_outline.parsers import parse_repeater, parse_timestamp, parse_timestamp_range
from org_outline.subtree import (
    adjust_levels,
    extract_subtree,
    get_subtree_range,
    insert_subtree_as_child,
    remove_subtree,
)
from org_outline.writer import format_inactive_now, format_planning, format_timestamp

_OPEN_CLOCK_RE = re.compile(r"^CLOCK:\s+(\[[^\]]+\])\s*$")

_PLANNING_LINE_RE = re.compile(r"^(SCHEDULED:|DEADLINE:|CLOSED:)\s")

DEFAULT_ARCHIVE_LOCATION = "%s_archive::"


# --- Repeaters ---


def add_units(date: datetime, n: int, unit: str) -> datetime:
    """Add n hours/days/weeks/months/years. Month and year steps clamp the day."""
    if unit == "h":
        return date + timedelta(hours=n)
    if unit == "d":
        return date + timedelta(days=n)
    if unit == "w":
        return date + timedelta(weeks=n)
    if unit in ("m", "y"):
        months = n if unit == "m" else n * 12
        total = date.year * 12 + (date.month - 1) + months
        year, month = divmod(total, 12)
        month += 1
        day = min(date.day, calendar.monthrange(year, month)[1])
        return date.replace(year=year, month=month, day=day)
    return date


def shift_timestamp(ts: Timestamp, now: datetime) -> Timestamp:
    """Advance a repeating timestamp once.

    ``+n`` adds n units to the old date, ``.+n`` adds them to now, ``++n``
    keeps adding until the date lies after now. Untimed timestamps compare
    against midnight of now. A range end moves by the same delta.

    Examples:
        >>> from datetime import datetime
        >>> ts = parse_timestamp("<2026-02-01 Sun +1w>")
        >>> format_timestamp(shift_timestamp(ts, datetime(2026, 2, 3)))
        '<2026-02-08 Sun +1w>'
    """
    parsed = parse_repeater(ts.repeater) if ts.repeater else None
    if parsed is None:
        return ts

    kind, n, unit = parsed
    reference = now if ts.has_time else datetime(now.year, now.month, now.day)

    if kind == RepeaterType.STANDARD:
        new_date = add_units(ts.date, n, unit)
    elif kind == RepeaterType.FROM_TODAY:
        new_date = add_units(reference, n, unit)
    else:
        new_date = ts.date
        if n <= 0:
            new_date = add_units(new_date, n, unit)
        while n > 0 and new_date <= reference:
            new_date = add_units(new_date, n, unit)

    delta = new_date - ts.date
    range_end = None
    if ts.range_end is not None:
        end = ts.range_end
        range_end = Timestamp(
            type=end.type,
            date=end.date + delta,
            has_time=end.has_time,
            repeater=end.repeater,
            delay=end.delay,
        )

    return Timestamp(
        type=ts.type,
        date=new_date,
        has_time=ts.has_time,
        repeater=ts.repeater,
        delay=ts.delay,
        range_end=range_end,
    )


def _repeating(raw: str) -> Optional[Timestamp]:
    ts = parse_timestamp_range(raw)
    if ts is None or not ts.repeater or parse_repeater(ts.repeater) is None:
        return None
    return ts


# --- Shared helpers ---


def _split_for(config: OrgConfig, content: str, pos: int) -> HeadlineSection:
    return split(content, pos, logbook_name=config.log_into_drawer or "LOGBOOK")


def _planning_parts(section: HeadlineSection) -> dict[str, str]:
    return parse_planning_parts(section.planning_line) if section.planning_line else {}


def _logging_property(config: OrgConfig, content: str, pos: int) -> Optional[str]:
    doc = parse_with_config(config, content)
    for h in doc.headlines:
        if h.position == pos:
            return resolve_property(config, doc, h, "LOGGING")
    return None


def _is_nil(value: Optional[str]) -> bool:
    return value is not None and value.strip().lower() == "nil"


def effective_log_action(
    config: OrgConfig,
    logging_prop: Optional[str],
    old_state: Optional[str],
    new_state: Optional[str],
    is_done: bool,
) -> LogAction:
    """Pick the logging action for a state change.

    ``LOGGING: nil`` wins outright. Otherwise the first action that is not
    NONE among: target's enter action, source's leave action, and
    ``log_done`` when entering a done state.
    """
    if _is_nil(logging_prop):
        return LogAction.NONE

    candidates = []
    if new_state and (d := find_keyword_def(config, new_state)):
        candidates.append(d.log_on_enter)
    if old_state and (d := find_keyword_def(config, old_state)):
        candidates.append(d.log_on_leave)
    if is_done:
        candidates.append(config.log_done)

    return next((a for a in candidates if a != LogAction.NONE), LogAction.NONE)


# --- TODO state ---


def set_todo_state(
    config: OrgConfig,
    content: str,
    pos: int,
    new_state: Optional[str],
    now: datetime,
) -> str:
    """Change the TODO keyword of the headline at pos.

    Entering a done state on a headline whose SCHEDULED or DEADLINE repeats
    does not mark it done: the keyword goes back to ``REPEAT_TO_STATE`` (or
    the previous state, or TODO), repeating timestamps move forward, CLOSED
    is dropped and ``LAST_REPEAT`` is stamped.

    Setting the state the headline already has returns content unchanged.

    Args:
        config: Base configuration (document directives are merged in)
        content: Full file content
        pos: Headline offset
        new_state: Target keyword, or None to clear it
        now: Current instant for CLOSED and log entries

    Raises:
        HeadlineNotFoundError: If pos does not point at a headline start
    """
    cfg = effective_config(config, content)
    keywords = all_keywords(cfg)
    section = _split_for(cfg, content, pos)
    old_state = get_state(keywords, section.headline_line)

    if old_state == new_state:
        return content

    is_done = bool(new_state) and is_done_state(cfg, new_state)
    logging_prop = _logging_property(config, content, pos)
    action = effective_log_action(cfg, logging_prop, old_state, new_state, is_done)
    parts = _planning_parts(section)

    is_repeat = is_done and any(
        key in parts and _repeating(parts[key]) is not None for key in ("SCHEDULED", "DEADLINE")
    )

    if is_repeat:
        repeat_to = None
        if section.property_drawer is not None:
            repeat_to = get_property_value(section.property_drawer, "REPEAT_TO_STATE")
        repeat_to = repeat_to or old_state or "TODO"

        new_parts = {}
        for key, raw in parts.items():
            if key == "CLOSED":
                continue
            ts = _repeating(raw)
            new_parts[key] = format_timestamp(shift_timestamp(ts, now)) if ts else raw

        section = ensure_drawer(section)
        section.headline_line = replace_keyword(keywords, section.headline_line, repeat_to)
        section.planning_line = build_planning_line(new_parts)
        section.property_drawer = set_property_value(
            section.property_drawer, "LAST_REPEAT", format_inactive_now(now)
        )

        if cfg.log_repeat != LogAction.NONE and not _is_nil(logging_prop):
            entry = format_state_change(repeat_to, new_state, now)
            section = insert_entry(section, entry, cfg.log_into_drawer)
        return reassemble(section)

    section.headline_line = replace_keyword(keywords, section.headline_line, new_state)
    if is_done and action != LogAction.NONE:
        parts["CLOSED"] = format_inactive_now(now)
    else:
        parts.pop("CLOSED", None)
    section.planning_line = build_planning_line(parts)

    if action != LogAction.NONE:
        entry = format_state_change(new_state or "", old_state or "", now)
        section = insert_entry(section, entry, cfg.log_into_drawer)
    return reassemble(section)


# --- Scheduling ---


def _set_planning_slot(
    config: OrgConfig,
    content: str,
    pos: int,
    key: str,
    ts: Optional[Timestamp],
    action: LogAction,
    label: str,
    now: datetime,
) -> str:
    cfg = effective_config(config, content)
    section = _split_for(cfg, content, pos)
    parts = _planning_parts(section)
    old = parts.get(key)

    if ts is not None:
        parts[key] = format_timestamp(ts)
    else:
        parts.pop(key, None)
    section.planning_line = build_planning_line(parts)

    if action != LogAction.NONE and old is not None and ts is not None:
        entry = f'- {label} from "{key}: {old}" on {format_inactive_now(now)}'
        section = insert_entry(section, entry, cfg.log_into_drawer)
    return reassemble(section)


def set_scheduled(
    config: OrgConfig, content: str, pos: int, ts: Optional[Timestamp], now: datetime
) -> str:
    """Set or clear SCHEDULED. Replacing an existing date may log a reschedule."""
    cfg = effective_config(config, content)
    return _set_planning_slot(config, content, pos, "SCHEDULED", ts, cfg.log_reschedule, "Rescheduled", now)


def set_deadline(
    config: OrgConfig, content: str, pos: int, ts: Optional[Timestamp], now: datetime
) -> str:
    """Set or clear DEADLINE. Replacing an existing date may log a new deadline."""
    cfg = effective_config(config, content)
    return _set_planning_slot(config, content, pos, "DEADLINE", ts, cfg.log_redeadline, "New deadline", now)


# --- Tags, priority, properties ---


def _tag_edit(config: OrgConfig, content: str, pos: int, edit) -> str:
    keywords = all_keywords(effective_config(config, content))
    section = split(content, pos)
    existing = parse_tags(keywords, section.headline_line)
    new_tags = edit(existing)
    if new_tags == existing:
        return content
    section.headline_line = replace_tags(keywords, section.headline_line, new_tags)
    return reassemble(section)


def add_tag(config: OrgConfig, content: str, pos: int, tag: str) -> str:
    """Append tag unless the headline already carries it."""
    return _tag_edit(config, content, pos, lambda tags: tags if tag in tags else tags + [tag])


def add_tag_with_exclusion(
    config: OrgConfig, content: str, pos: int, tag: str, groups: list[TagGroup]
) -> str:
    """Add tag, dropping the other members of its mutually exclusive group."""
    peers: set[str] = set()
    for group in groups:
        names = [t.name for t in group.tags]
        if group.exclusive and tag in names:
            peers = {n for n in names if n != tag}
            break

    def edit(tags: list[str]) -> list[str]:
        if tag in tags:
            return tags
        return [t for t in tags if t not in peers] + [tag]

    return _tag_edit(config, content, pos, edit)


def remove_tag(config: OrgConfig, content: str, pos: int, tag: str) -> str:
    return _tag_edit(config, content, pos, lambda tags: [t for t in tags if t != tag])


def check_priority(config: OrgConfig, priority: str) -> None:
    """Raise InvalidArgsError unless priority is one letter in the config's range."""
    low, high = sorted((config.priorities.highest, config.priorities.lowest))
    if len(priority) != 1 or not low <= priority <= high:
        raise InvalidArgsError(
            f"Invalid priority: {priority}",
            detail=f"expected {config.priorities.highest}-{config.priorities.lowest}",
        )


def set_priority(config: OrgConfig, content: str, pos: int, priority: Optional[str]) -> str:
    """Set or clear the priority cookie.

    Raises:
        InvalidArgsError: If priority lies outside the document's range
        HeadlineNotFoundError: If pos does not point at a headline start
    """
    cfg = effective_config(config, content)
    if priority is not None:
        check_priority(cfg, priority)

    section = split(content, pos)
    section.headline_line = replace_priority(all_keywords(cfg), section.headline_line, priority)
    return reassemble(section)


def set_property(content: str, pos: int, key: str, value: str) -> str:
    section = ensure_drawer(split(content, pos))
    section.property_drawer = set_property_value(section.property_drawer, key, value)
    return reassemble(section)


def remove_property(content: str, pos: int, key: str) -> str:
    section = split(content, pos)
    if section.property_drawer is None:
        return content
    section.property_drawer = remove_property_value(section.property_drawer, key)
    return reassemble(section)


# --- Clock and notes ---


def clock_in(content: str, pos: int, now: datetime) -> str:
    section = split(content, pos)
    section = insert_entry(section, f"CLOCK: {format_inactive_now(now)}")
    return reassemble(section)


def clock_out(content: str, pos: int, now: datetime) -> str:
    """Close the first open clock in the headline's logbook.

    A clock that would close with a negative duration is left open. Content
    is returned unchanged when there is nothing to close.
    """
    section = split(content, pos)
    if section.logbook_drawer is None:
        return content

    lines = section.logbook_drawer.split("\n")
    for i, line in enumerate(lines):
        m = _OPEN_CLOCK_RE.match(line.lstrip())
        if not m:
            continue
        start = parse_timestamp(m.group(1))
        if start is None:
            continue
        elapsed = now - start.date
        if elapsed.total_seconds() < 0:
            continue
        minutes = int(elapsed.total_seconds()) // 60
        hours, mins = divmod(minutes, 60)
        lines[i] = f"CLOCK: {m.group(1)}--{format_inactive_now(now)} => {hours:2d}:{mins:02d}"
        section.logbook_drawer = "\n".join(lines)
        return reassemble(section)

    return content


def add_note(config: OrgConfig, content: str, pos: int, note: str, now: datetime) -> str:
    cfg = effective_config(config, content)
    section = _split_for(cfg, content, pos)
    entry = f"- Note taken on {format_inactive_now(now)} \\\\\n  {note}"
    return reassemble(insert_entry(section, entry, cfg.log_into_drawer))


# --- Refile ---


def _require_headline(content: str, pos: int) -> None:
    if not is_headline_start(content, pos):
        raise HeadlineNotFoundError(f"No headline at position {pos}", detail=str(pos))


def _insert_child(content: str, parent_pos: int, subtree: str) -> tuple[str, int]:
    """Insert subtree under parent and return (new content, offset of the new child)."""
    offset = new_headline_position(content, parent_pos)
    return insert_subtree_as_child(content, parent_pos, subtree), offset


def _log_refile(config: OrgConfig, content: str, pos: int, now: datetime) -> str:
    cfg = effective_config(config, content)
    if cfg.log_refile == LogAction.NONE:
        return content
    section = _split_for(cfg, content, pos)
    entry = f"- Refiled on {format_inactive_now(now)}"
    return reassemble(insert_entry(section, entry, cfg.log_into_drawer))


def refile(
    config: OrgConfig,
    src_content: str,
    src_pos: int,
    tgt_content: str,
    tgt_pos: int,
    same_file: bool,
    now: datetime,
) -> tuple[str, str]:
    """Move the subtree at src_pos to become the last child of tgt_pos.

    For a same-file move both returned strings are the same new content.
    The "Refiled on" entry, when enabled, is written on the moved headline.

    Raises:
        HeadlineNotFoundError: If either position is not a headline start
        InvalidArgsError: If the target lies inside the subtree being moved
    """
    _require_headline(src_content, src_pos)
    _require_headline(tgt_content, tgt_pos)
    subtree = extract_subtree(src_content, src_pos) + "\n"

    if same_file:
        start, end = get_subtree_range(src_content, src_pos)
        if start <= tgt_pos < end:
            raise InvalidArgsError("Cannot refile a headline under itself", detail=str(tgt_pos))
        removed = remove_subtree(src_content, src_pos)
        adjusted_tgt = tgt_pos - (end - start) if start < tgt_pos else tgt_pos
        result, child_pos = _insert_child(removed, adjusted_tgt, subtree)
        result = _log_refile(config, result, child_pos, now)
        return result, result

    new_src = remove_subtree(src_content, src_pos)
    new_tgt, child_pos = _insert_child(tgt_content, tgt_pos, subtree)
    return new_src, _log_refile(config, new_tgt, child_pos, now)


# --- Archive ---


def archive_location_for(config: OrgConfig, src_file: str) -> tuple[str, Optional[str]]:
    """Resolve the archive template into (archive file, heading or None).

    ``%s`` in the file part is replaced by the source file name; an empty
    file part means the source file itself. The heading part keeps no stars.

    Examples:
        >>> archive_location_for(DEFAULT_CONFIG, "/notes/todo.org")
        ('/notes/todo.org_archive', None)
    """
    template = config.archive_location or DEFAULT_ARCHIVE_LOCATION
    file_part, _, heading = template.partition("::")
    src = Path(src_file)

    if file_part.strip():
        target = Path(file_part.strip().replace("%s", src.name)).expanduser()
        if not target.is_absolute():
            target = src.parent / target
    else:
        target = src

    heading = heading.strip().lstrip("*").strip()
    return str(target), heading or None


def _stamp_properties(subtree: str, props: list[tuple[str, str]]) -> str:
    lines = subtree.split("\n")
    idx = 1
    if idx < len(lines) and _PLANNING_LINE_RE.match(lines[idx].lstrip()):
        idx += 1

    new_lines = [f":{key}: {value}" for key, value in props]
    if idx < len(lines) and lines[idx].strip() == ":PROPERTIES:":
        for end in range(idx + 1, len(lines)):
            if lines[end].strip() == ":END:":
                return "\n".join(lines[:end] + new_lines + lines[end:])

    drawer = [":PROPERTIES:"] + new_lines + [":END:"]
    return "\n".join(lines[:idx] + drawer + lines[idx:])


def archive(
    src_content: str,
    src_pos: int,
    archive_content: str,
    src_file: str,
    outline_path: list[str],
    now: datetime,
    config: OrgConfig = DEFAULT_CONFIG,
    heading: Optional[str] = None,
) -> tuple[str, str]:
    """Move the subtree at src_pos into archive_content.

    The root is renumbered to level 1 (or one below heading, when given) and
    stamped with ARCHIVE_TIME, ARCHIVE_FILE, ARCHIVE_OLPATH,
    ARCHIVE_CATEGORY and, if it had one, ARCHIVE_TODO.

    Returns:
        (new source content, new archive content)

    Raises:
        HeadlineNotFoundError: If src_pos is not a headline start
    """
    _require_headline(src_content, src_pos)
    keywords = all_keywords(effective_config(config, src_content))
    subtree = extract_subtree(src_content, src_pos)
    first_line = subtree.split("\n", 1)[0]
    todo = get_state(keywords, first_line)

    root_level = len(first_line) - len(first_line.lstrip("*"))
    leveled = adjust_levels(subtree, 1 - root_level)

    props = [
        ("ARCHIVE_TIME", format_inactive_now(now)),
        ("ARCHIVE_FILE", src_file),
        ("ARCHIVE_OLPATH", "/".join(outline_path)),
        ("ARCHIVE_CATEGORY", Path(src_file).stem),
    ]
    if todo:
        props.append(("ARCHIVE_TODO", todo))
    stamped = _stamp_properties(leveled, props) + "\n"

    new_src = remove_subtree(src_content, src_pos)

    if heading is None:
        sep = "\n" if archive_content and not archive_content.endswith("\n") else ""
        return new_src, archive_content + sep + stamped

    doc = parse_with_config(config, archive_content)
    parent = next((h for h in doc.headlines if h.title == heading), None)
    if parent is None:
        sep = "\n" if archive_content and not archive_content.endswith("\n") else ""
        parent_pos = len(archive_content) + len(sep)
        archive_content = archive_content + sep + f"* {heading}\n"
    else:
        parent_pos = parent.position
    return new_src, insert_subtree_as_child(archive_content, parent_pos, stamped)


# --- New headlines ---


def format_new_headline(
    title: str,
    level: int = 1,
    todo_state: Optional[str] = None,
    priority: Optional[str] = None,
    tags: Optional[list[str]] = None,
    scheduled: Optional[Timestamp] = None,
    deadline: Optional[Timestamp] = None,
) -> str:
    """Render a new headline (and planning line) ending in a newline."""
    parts = ["*" * max(1, level)]
    if todo_state:
        parts.append(todo_state)
    if priority:
        parts.append(f"[#{priority}]")
    parts.append(title)
    text = " ".join(parts)
    if tags:
        text += f" :{':'.join(tags)}:"

    planning = format_planning(Planning(scheduled=scheduled, deadline=deadline))
    if planning:
        text += "\n" + planning
    return text + "\n"


def add_headline(content: str, title: str, level: int = 1, **fields) -> str:
    """Append a new headline at the end of content."""
    headline = format_new_headline(title, level, **fields)
    sep = "\n" if content and not content.endswith("\n") else ""
    return content + sep + headline


def add_headline_under(content: str, parent_pos: int, title: str, **fields) -> str:
    """Insert a new headline as the last child of the headline at parent_pos.

    Raises:
        HeadlineNotFoundError: If parent_pos is not a headline start
    """
    _require_headline(content, parent_pos)
    headline = format_new_headline(title, 1, **fields)
    return insert_subtree_as_child(content, parent_pos, headline)


def new_headline_position(content: str, parent_pos: Optional[int] = None) -> int:
    """Offset at which add_headline (or add_headline_under parent_pos) puts the new headline."""
    if parent_pos is None:
        return len(content) + (1 if content and not content.endswith("\n") else 0)
    _, parent_end = get_subtree_range(content, parent_pos)
    return parent_end + (1 if parent_end > 0 and content[parent_end - 1] != "\n" else 0)
