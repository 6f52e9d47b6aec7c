"""Per-document configuration directives.

Reads ``#+TODO:``, ``#+STARTUP:``, ``#+PRIORITIES:``, ``#+ARCHIVE:`` and
``#+TAGS:`` keywords and turns them into a config layer that sits on top of
the caller's configuration.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Optional

from org_outline.config import (
    LogAction,
    OrgConfig,
    TodoKeywordConfig,
    TodoKeywordDef,
    build_config,
)
from org_outline.model import Keyword

_TODO_KEYS = {"TODO", "SEQ_TODO", "TYP_TODO"}

_PAREN_TOKEN_RE = re.compile(r"^([A-Z_]+)\(([^)]*)\)$")

_TAG_TOKEN_RE = re.compile(r"^([^(]+)(?:\((.)\))?$")

_STARTUP_TOGGLES = ("done", "repeat", "reschedule", "redeadline", "refile")


def _indicator_action(part: str, prefer_time: bool = False) -> LogAction:
    order = ("!", "@") if prefer_time else ("@", "!")
    for ch in order:
        if ch in part:
            return LogAction.TIME if ch == "!" else LogAction.NOTE
    return LogAction.NONE


def _parse_logging(indicators: str) -> tuple[LogAction, LogAction]:
    """Logging indicators inside a keyword's parentheses, fast key already removed.

    Before ``/`` is the enter action, after it the leave action.
    ``@`` records a note, ``!`` a timestamp.
    """
    if "/" not in indicators:
        return _indicator_action(indicators), LogAction.NONE
    enter_part, leave_part = indicators.split("/", 1)
    return _indicator_action(enter_part), _indicator_action(leave_part, prefer_time=True)


def parse_keyword_token(token: str) -> TodoKeywordDef:
    """Parse one keyword token such as ``WAIT(w@/!)`` or ``DONE``."""
    m = _PAREN_TOKEN_RE.match(token)
    if not m:
        return TodoKeywordDef(keyword=token)

    inside = m.group(2)
    indicators = inside[1:] if inside and inside[0].isalpha() else inside
    enter, leave = _parse_logging(indicators)
    return TodoKeywordDef(keyword=m.group(1), log_on_enter=enter, log_on_leave=leave)


def parse_todo_line(value: str) -> TodoKeywordConfig:
    """Parse the value of a ``#+TODO:`` line.

    Examples:
        >>> cfg = parse_todo_line("OPEN NEXT | CLOSED")
        >>> [d.keyword for d in cfg.active_states], [d.keyword for d in cfg.done_states]
        (['OPEN', 'NEXT'], ['CLOSED'])
    """
    if "|" in value:
        active_part, done_part = value.split("|", 1)
        active = [parse_keyword_token(t) for t in active_part.split()]
        done = [parse_keyword_token(t) for t in done_part.split("|")[0].split()]
        return TodoKeywordConfig(active_states=active, done_states=done)

    tokens = value.split()
    if not tokens:
        return TodoKeywordConfig(active_states=[], done_states=[])
    return TodoKeywordConfig(
        active_states=[parse_keyword_token(t) for t in tokens[:-1]],
        done_states=[parse_keyword_token(tokens[-1])],
    )


def parse_startup_options(value: str) -> dict[str, LogAction]:
    """Logging toggles set by one ``#+STARTUP:`` line.

    Returns a mapping from config field name (``log_done`` etc.) to action,
    containing only the toggles the line mentions. Within a line the last
    token for a toggle wins.
    """
    options: dict[str, LogAction] = {}
    for word in value.lower().split():
        for toggle in _STARTUP_TOGGLES:
            if word == f"log{toggle}":
                options[f"log_{toggle}"] = LogAction.TIME
            elif word == f"lognote{toggle}":
                options[f"log_{toggle}"] = LogAction.NOTE
            elif word == f"nolog{toggle}":
                options[f"log_{toggle}"] = LogAction.NONE
    return options


def parse_priorities(value: str) -> Optional[dict[str, str]]:
    """Parse ``#+PRIORITIES: A C B``; anything but three single characters is ignored."""
    tokens = value.split()
    if len(tokens) != 3 or any(len(t) != 1 for t in tokens):
        return None
    return {"highest": tokens[0], "lowest": tokens[1], "default": tokens[2]}


def layer_from_keywords(keywords: list[Keyword]) -> dict[str, Any]:
    """Config layer contributed by a document's own directives.

    ``#+TODO:`` lines accumulate. For each STARTUP toggle the first line that
    mentions it wins. ``#+PRIORITIES:`` and ``#+ARCHIVE:`` use the first line.
    """
    layer: dict[str, Any] = {}

    todo_lines = [parse_todo_line(k.value) for k in keywords if k.key.upper() in _TODO_KEYS]
    if todo_lines:
        layer["todo_keywords"] = {
            "active_states": [d.model_dump() for c in todo_lines for d in c.active_states],
            "done_states": [d.model_dump() for c in todo_lines for d in c.done_states],
        }

    for kw in keywords:
        if kw.key.upper() != "STARTUP":
            continue
        for field_name, action in parse_startup_options(kw.value).items():
            layer.setdefault(field_name, action)

    for kw in keywords:
        if kw.key.upper() == "PRIORITIES":
            priorities = parse_priorities(kw.value)
            if priorities is not None:
                layer["priorities"] = priorities
            break

    for kw in keywords:
        if kw.key.upper() == "ARCHIVE":
            layer["archive_location"] = kw.value
            break

    return layer


def merge_file_config(base: OrgConfig, keywords: list[Keyword]) -> OrgConfig:
    """Overlay a document's directives onto a base configuration."""
    return build_config(layer_from_keywords(keywords), base=base)


# --- #+TAGS: ---


@dataclass
class TagDef:
    name: str
    fast_key: Optional[str] = None


@dataclass
class TagGroup:
    """A run of tags from ``#+TAGS:``; ``exclusive`` for ``{ ... }`` groups."""

    tags: list[TagDef] = field(default_factory=list)
    exclusive: bool = False


def _parse_tag_token(token: str) -> TagDef:
    m = _TAG_TOKEN_RE.match(token)
    if not m:
        return TagDef(name=token)
    return TagDef(name=m.group(1), fast_key=m.group(2))


def parse_tags_line(value: str) -> list[TagGroup]:
    """Parse the value of a ``#+TAGS:`` line into groups.

    Examples:
        >>> groups = parse_tags_line("work(w) { @home(h) @office(o) }")
        >>> [(g.exclusive, [t.name for t in g.tags]) for g in groups]
        [(False, ['work']), (True, ['@home', '@office'])]
    """
    groups: list[TagGroup] = []
    regular: list[TagDef] = []
    tokens = value.split()
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token == "{":
            if regular:
                groups.append(TagGroup(tags=regular))
                regular = []
            members = []
            i += 1
            while i < len(tokens) and tokens[i] != "}":
                members.append(_parse_tag_token(tokens[i]))
                i += 1
            groups.append(TagGroup(tags=members, exclusive=True))
        else:
            regular.append(_parse_tag_token(token))
        i += 1

    if regular:
        groups.append(TagGroup(tags=regular))
    return groups


def tag_groups_from_keywords(keywords: list[Keyword]) -> list[TagGroup]:
    """All tag groups declared by ``#+TAGS:`` lines, in document order."""
    groups = []
    for kw in keywords:
        if kw.key.upper() == "TAGS":
            groups.extend(parse_tags_line(kw.value))
    return groups
