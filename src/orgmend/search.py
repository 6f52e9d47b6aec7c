"""Regex search across org files."""

import re
from dataclasses import dataclass
from typing import Mapping, Optional

from org_outline.errors import InvalidArgsError
from org_outline.model import Headline, OrgDocument


@dataclass
class SearchResult:
    """A matching line and the headline it sits under (None before the first headline)."""

    headline: Optional[Headline]
    file: str
    match_line: str
    line_number: int


def _containing(headlines: list[Headline], offset: int) -> Optional[Headline]:
    found = None
    for h in headlines:
        if h.position > offset:
            break
        found = h
    return found


def search_docs(pattern: str, docs: Mapping[str, tuple[OrgDocument, str]]) -> list[SearchResult]:
    """Search each document line by line.

    Args:
        pattern: Python regular expression, matched anywhere in a line
        docs: path -> (parsed document, raw content)

    Raises:
        InvalidArgsError: If pattern is not a valid regular expression
    """
    try:
        regex = re.compile(pattern)
    except re.error as e:
        raise InvalidArgsError(f"Invalid regex pattern: {e}", detail=pattern) from e

    results = []
    for file, (doc, content) in docs.items():
        offset = 0
        for line_number, line in enumerate(content.split("\n"), start=1):
            if regex.search(line):
                results.append(SearchResult(_containing(doc.headlines, offset), file, line, line_number))
            offset += len(line) + 1
    return results
