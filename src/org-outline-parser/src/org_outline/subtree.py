"""Subtree slicing and re-levelling.

These helpers are deliberately forgiving: a position that is not a headline
start yields an empty range, and the content-returning helpers hand the
content back unchanged. Callers that need a hard failure use ``editor.split``.
"""

import re

from org_outline.document import compute_block_ranges, find_headline_starts
from org_outline.editor import is_headline_start

_STARS_RE = re.compile(r"^(\*+) ", re.MULTILINE)


def _level_at(content: str, pos: int) -> int:
    return len(_STARS_RE.match(content, pos).group(1))


def get_subtree_range(content: str, pos: int) -> tuple[int, int]:
    """[start, end) of the headline at pos plus all of its descendants.

    Returns (pos, pos) when pos is not a headline start.
    """
    if not is_headline_start(content, pos):
        return pos, pos

    level = _level_at(content, pos)
    for start in find_headline_starts(content):
        if start > pos and _level_at(content, start) <= level:
            return pos, start
    return pos, len(content)


def extract_subtree(content: str, pos: int) -> str:
    """Subtree text with trailing whitespace trimmed; "" for a non-headline."""
    start, end = get_subtree_range(content, pos)
    return content[start:end].rstrip()


def remove_subtree(content: str, pos: int) -> str:
    start, end = get_subtree_range(content, pos)
    return content[:start] + content[end:]


def get_headline_body(content: str, pos: int) -> str:
    """Text under the headline up to its first child (or next headline)."""
    if not is_headline_start(content, pos):
        return ""

    line_end = content.find("\n", pos)
    if line_end < 0:
        return ""
    line_end += 1

    next_starts = [s for s in find_headline_starts(content) if s >= line_end]
    body_end = next_starts[0] if next_starts else len(content)
    return content[line_end:body_end].rstrip()


def adjust_levels(subtree: str, delta: int) -> str:
    """Shift every headline level in subtree by delta, never below 1.

    Lines inside literal blocks are left alone.
    """
    if delta == 0:
        return subtree

    ranges = compute_block_ranges(subtree)

    def shift(m: re.Match) -> str:
        if any(start < m.start() < end for start, end in ranges):
            return m.group(0)
        return "*" * max(1, len(m.group(1)) + delta) + " "

    return _STARS_RE.sub(shift, subtree)


def _root_level(subtree: str) -> int:
    m = _STARS_RE.search(subtree)
    return len(m.group(1)) if m else 0


def append_subtree(content: str, subtree: str) -> str:
    """Append subtree at the end of content with its root at level 1."""
    root_level = _root_level(subtree)
    if not root_level:
        return content

    adjusted = adjust_levels(subtree, 1 - root_level)
    prefix = "\n" if content and not content.endswith("\n") else ""
    return content + prefix + adjusted


def insert_subtree_as_child(content: str, parent_pos: int, subtree: str) -> str:
    """Insert subtree as the last child of the headline at parent_pos."""
    if not is_headline_start(content, parent_pos):
        return content
    root_level = _root_level(subtree)
    if not root_level:
        return content

    parent_level = _level_at(content, parent_pos)
    adjusted = adjust_levels(subtree, parent_level + 1 - root_level)
    _, parent_end = get_subtree_range(content, parent_pos)
    prefix = "\n" if parent_end > 0 and content[parent_end - 1] != "\n" else ""
    return content[:parent_end] + prefix + adjusted + content[parent_end:]
