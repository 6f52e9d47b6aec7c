"""Agenda views: dated and TODO items collected from parsed documents."""

from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Mapping, Optional

from org_outline.config import OrgConfig, is_done_state
from org_outline.model import Headline, OrgDocument, Timestamp

MAX_RANGE_DAYS = 366


class AgendaItemType(Enum):
    SCHEDULED = "scheduled"
    DEADLINE = "deadline"


@dataclass
class AgendaItem:
    """One agenda line: a headline on a given day.

    A headline with both SCHEDULED and DEADLINE yields two items; a range
    timestamp yields one item per day it spans.
    """

    type: AgendaItemType
    date: date
    headline: Headline
    file: str


def _is_done(config: OrgConfig, keyword: Optional[str]) -> bool:
    return keyword is not None and is_done_state(config, keyword)


def _expand(ts: Timestamp, item_type: AgendaItemType, headline: Headline, file: str) -> list[AgendaItem]:
    start = ts.date.date()
    if ts.range_end is None:
        return [AgendaItem(item_type, start, headline, file)]

    items = []
    day = start
    end = ts.range_end.date.date()
    while day <= end and len(items) < MAX_RANGE_DAYS:
        items.append(AgendaItem(item_type, day, headline, file))
        day += timedelta(days=1)
    return items


def collect_dated_items(docs: Mapping[str, OrgDocument]) -> list[AgendaItem]:
    """Items for every SCHEDULED and DEADLINE timestamp, in document order."""
    items = []
    for file, doc in docs.items():
        for h in doc.headlines:
            if h.planning is None:
                continue
            if h.planning.scheduled is not None:
                items.extend(_expand(h.planning.scheduled, AgendaItemType.SCHEDULED, h, file))
            if h.planning.deadline is not None:
                items.extend(_expand(h.planning.deadline, AgendaItemType.DEADLINE, h, file))
    return items


def collect_todo_items(docs: Mapping[str, OrgDocument]) -> list[AgendaItem]:
    """One item per headline carrying a TODO keyword.

    The item date is the scheduled date, else the deadline date, else
    ``date.min`` for undated TODOs.
    """
    items = []
    for file, doc in docs.items():
        for h in doc.headlines:
            if h.todo_keyword is None:
                continue
            day = date.min
            if h.planning is not None:
                ts = h.planning.scheduled or h.planning.deadline
                if ts is not None:
                    day = ts.date.date()
            items.append(AgendaItem(AgendaItemType.SCHEDULED, day, h, file))
    return items


def filter_by_date_range(items: list[AgendaItem], start: date, end: date) -> list[AgendaItem]:
    """Keep items with start <= date < end."""
    return [i for i in items if start <= i.date < end]


def filter_by_tag(items: list[AgendaItem], tag: str) -> list[AgendaItem]:
    return [i for i in items if tag in i.headline.tags]


def filter_by_state(items: list[AgendaItem], state: str) -> list[AgendaItem]:
    return [i for i in items if i.headline.todo_keyword == state]


def filter_overdue(config: OrgConfig, items: list[AgendaItem], today: date) -> list[AgendaItem]:
    """Deadlines before today whose headline is not done."""
    return [
        i for i in items
        if i.type is AgendaItemType.DEADLINE
        and i.date < today
        and not _is_done(config, i.headline.todo_keyword)
    ]


def skip_done(config: OrgConfig, items: list[AgendaItem]) -> list[AgendaItem]:
    return [i for i in items if not _is_done(config, i.headline.todo_keyword)]


def filter_deadline_warnings(config: OrgConfig, items: list[AgendaItem], today: date) -> list[AgendaItem]:
    """Deadlines falling before today + deadline_warning_days (overdue ones included)."""
    warning_end = today + timedelta(days=config.deadline_warning_days)
    return [i for i in items if i.type is AgendaItemType.DEADLINE and i.date < warning_end]


def sort_items(items: list[AgendaItem]) -> list[AgendaItem]:
    return sorted(items, key=lambda i: (i.date, i.file, i.headline.position))


def _dedupe(items: list[AgendaItem]) -> list[AgendaItem]:
    seen = set()
    result = []
    for item in items:
        key = (item.type, item.date, item.file, item.headline.position)
        if key not in seen:
            seen.add(key)
            result.append(item)
    return result


def today_view(config: OrgConfig, docs: Mapping[str, OrgDocument], today: date) -> list[AgendaItem]:
    """Items dated today plus overdue and upcoming deadlines within the warning window.

    Done headlines are skipped.
    """
    dated = collect_dated_items(docs)
    todays = filter_by_date_range(dated, today, today + timedelta(days=1))
    warnings = filter_deadline_warnings(config, dated, today)
    return sort_items(skip_done(config, _dedupe(todays + warnings)))


def week_view(config: OrgConfig, docs: Mapping[str, OrgDocument], today: date) -> list[AgendaItem]:
    """Items dated in the seven days starting today plus overdue deadlines, done items skipped."""
    dated = collect_dated_items(docs)
    week = filter_by_date_range(dated, today, today + timedelta(days=7))
    return sort_items(skip_done(config, _dedupe(filter_overdue(config, dated, today) + week)))
