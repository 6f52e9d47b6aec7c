"""JSON envelopes and text rendering for command output.

Every JSON response is either ``{"ok": true, "data": ...}`` or
``{"ok": false, "error": {"type": ..., "message": ..., "detail": ...}}``.
"""

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Union

from org_outline.editor import HeadlineState
from org_outline.errors import OrgError
from org_outline.headlines import HeadlineMatch
from org_outline.model import Headline, ResolvedLink
from orgmend.agenda import AgendaItem, AgendaItemType
from orgmend.clock import ClockReportRow, format_duration
from orgmend.search import SearchResult

BatchResult = Union[HeadlineState, OrgError]


def to_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def ok(data: Any) -> str:
    return to_json({"ok": True, "data": data})


def error_envelope(err: OrgError) -> dict:
    return {
        "ok": False,
        "error": {
            "type": err.error_type.value,
            "message": err.message,
            "detail": err.detail,
        },
    }


def error(err: OrgError) -> str:
    return to_json(error_envelope(err))


def headline_state(state: HeadlineState, dry_run: bool = False) -> dict:
    data = asdict(state)
    if dry_run:
        data["dry_run"] = True
    return data


def batch_results(results: list[BatchResult]) -> str:
    """One envelope wrapping a list of per-command envelopes."""
    items = []
    for r in results:
        if isinstance(r, OrgError):
            items.append(error_envelope(r))
        else:
            items.append({"ok": True, "data": headline_state(r)})
    return ok(items)


def headline_match(m: HeadlineMatch) -> dict:
    return {
        "title": m.headline.title,
        "todo": m.headline.todo_keyword,
        "priority": m.headline.priority,
        "level": m.headline.level,
        "tags": m.headline.tags,
        "file": m.file,
        "pos": m.headline.position,
        "path": m.outline_path,
    }


def agenda_item(item: AgendaItem) -> dict:
    return {
        "date": item.date.isoformat() if item.date.year > 1 else None,
        "type": item.type.value,
        "todo": item.headline.todo_keyword,
        "priority": item.headline.priority,
        "title": item.headline.title,
        "tags": item.headline.tags,
        "file": item.file,
        "level": item.headline.level,
        "pos": item.headline.position,
    }


def clock_row(row: ClockReportRow) -> dict:
    return {
        "headline": row.headline.title,
        "file": row.file,
        "pos": row.headline.position,
        "entries": len(row.entries),
        "total": format_duration(row.total),
    }


def search_result(r: SearchResult) -> dict:
    return {
        "file": r.file,
        "line": r.line_number,
        "headline": r.headline.title if r.headline else None,
        "match": r.match_line,
    }


def resolved_link(source_file: str, r: ResolvedLink) -> dict:
    return {
        "source_file": source_file,
        "source_pos": r.link.position,
        "link_type": r.link.link_type,
        "target": r.link.path,
        "description": r.link.description,
        "resolved_file": r.target_file,
        "resolved_pos": r.target_pos,
        "resolved_title": r.target_headline,
    }


# --- Text rendering ---


def _decorations(h: Headline) -> tuple[str, str]:
    priority = f" [#{h.priority}]" if h.priority else ""
    tags = f" :{':'.join(h.tags)}:" if h.tags else ""
    return priority, tags


def headline_match_text(m: HeadlineMatch) -> str:
    h = m.headline
    todo = f"{h.todo_keyword} " if h.todo_keyword else ""
    priority = f"[#{h.priority}] " if h.priority else ""
    _, tags = _decorations(h)
    path = f" [{' > '.join(m.outline_path)}]" if m.outline_path else ""
    return f"{h.position}  {'*' * h.level} {todo}{priority}{h.title}{tags}{path}  {Path(m.file).name}"


def agenda_item_text(item: AgendaItem) -> str:
    label = "Scheduled:" if item.type is AgendaItemType.SCHEDULED else "Deadline: "
    h = item.headline
    priority, tags = _decorations(h)
    return f"  {label} {h.todo_keyword or ''}{priority} {h.title}{tags}  {Path(item.file).name}"


def todo_item_text(item: AgendaItem) -> str:
    h = item.headline
    priority, tags = _decorations(h)
    return f"  {h.todo_keyword}{priority} {h.title}{tags}  {Path(item.file).name}"


def clock_row_text(row: ClockReportRow) -> str:
    return f"{format_duration(row.total)}  {row.headline.title}  {Path(row.file).name}"


def search_result_text(r: SearchResult) -> str:
    headline = r.headline.title if r.headline else "(file level)"
    return f"{Path(r.file).name}:{r.line_number}  [{headline}]  {r.match_line.strip()}"


def resolved_link_text(source_file: str, r: ResolvedLink) -> str:
    if r.target_file is None:
        target = "(unresolved)"
    elif r.target_headline is not None:
        target = f'{r.target_file}:{r.target_pos} "{r.target_headline}"'
    else:
        target = r.target_file
    return f"{source_file}:{r.link.position}  [[{r.link.link_type}:{r.link.path}]] -> {target}"
