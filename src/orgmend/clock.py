"""Clock report: time logged per headline."""

import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Mapping

from org_outline.model import ClockEntry, Headline, OrgDocument
from org_outline.parsers import parse_clock_line

_CLOCK_LINE_RE = re.compile(r"^\s*CLOCK:", re.MULTILINE)


@dataclass
class ClockReportRow:
    headline: Headline
    file: str
    entries: list[ClockEntry] = field(default_factory=list)

    @property
    def total(self) -> timedelta:
        return total_duration(self.entries)


def _own_body(content: str, headlines: list[Headline], index: int) -> str:
    # A headline's own body stops at the next headline of any level
    start = headlines[index].position
    end = headlines[index + 1].position if index + 1 < len(headlines) else len(content)
    return content[start:end]


def collect_clock_entries(docs: Mapping[str, tuple[OrgDocument, str]]) -> list[ClockReportRow]:
    """Collect the clock lines each headline owns directly.

    Args:
        docs: path -> (parsed document, raw content)

    Returns:
        One row per headline that has at least one parseable CLOCK line;
        child headlines' clocks are not rolled up into their parents.
    """
    rows = []
    for file, (doc, content) in docs.items():
        for i, h in enumerate(doc.headlines):
            body = _own_body(content, doc.headlines, i)
            entries = []
            for m in _CLOCK_LINE_RE.finditer(body):
                line_end = body.find("\n", m.start())
                line = body[m.start():line_end if line_end != -1 else len(body)]
                entry = parse_clock_line(line.strip())
                if entry is not None:
                    entries.append(entry)
            if entries:
                rows.append(ClockReportRow(h, file, entries))
    return rows


def total_duration(entries: list[ClockEntry]) -> timedelta:
    """Sum of the recorded durations; open clocks contribute nothing."""
    return sum((e.duration for e in entries if e.duration is not None), timedelta())


def format_duration(duration: timedelta) -> str:
    minutes = int(duration.total_seconds()) // 60
    hours, mins = divmod(minutes, 60)
    return f"{hours}:{mins:02d}"
