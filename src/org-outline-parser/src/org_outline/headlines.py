"""Headline lookup and filtering across documents."""

from dataclasses import dataclass, field
from typing import Mapping, Optional

from org_outline.config import DEFAULT_CONFIG, OrgConfig
from org_outline.document import compute_outline_path, parse_with_config
from org_outline.errors import HeadlineNotFoundError
from org_outline.inheritance import compute_inherited_tags
from org_outline.model import Headline, OrgDocument, get_id, get_property


@dataclass
class HeadlineMatch:
    """A headline together with the file it lives in and its ancestor titles."""

    headline: Headline
    file: str
    outline_path: list[str] = field(default_factory=list)


def resolve_headline_position(content: str, identifier: str, config: Optional[OrgConfig] = None) -> int:
    """Resolve an identifier to a headline offset.

    Tried in order: an integer offset, an exact ``ID`` property, an exact
    title. No partial matching.

    Raises:
        HeadlineNotFoundError: If nothing matches
    """
    try:
        return int(identifier.strip())
    except ValueError:
        pass  # Not an offset, try ID and title

    doc = parse_with_config(config or DEFAULT_CONFIG, content)
    for h in doc.headlines:
        if get_id(h.properties) == identifier:
            return h.position
    for h in doc.headlines:
        if h.title == identifier:
            return h.position

    raise HeadlineNotFoundError(f"Headline not found: {identifier}", detail=identifier)


def collect_headlines(docs: Mapping[str, OrgDocument]) -> list[HeadlineMatch]:
    matches = []
    for file, doc in docs.items():
        for h in doc.headlines:
            matches.append(HeadlineMatch(h, file, compute_outline_path(doc.headlines, h)))
    return matches


def filter_by_todo(matches: list[HeadlineMatch], state: str) -> list[HeadlineMatch]:
    return [m for m in matches if m.headline.todo_keyword == state]


def filter_by_tag(matches: list[HeadlineMatch], tag: str) -> list[HeadlineMatch]:
    return [m for m in matches if tag in m.headline.tags]


def filter_by_level(matches: list[HeadlineMatch], level: int) -> list[HeadlineMatch]:
    return [m for m in matches if m.headline.level == level]


def filter_by_property(matches: list[HeadlineMatch], key: str, value: str) -> list[HeadlineMatch]:
    return [m for m in matches if get_property(m.headline.properties, key) == value]


def filter_by_tag_with_inheritance(
    config: OrgConfig,
    docs: Mapping[str, OrgDocument],
    matches: list[HeadlineMatch],
    tag: str,
) -> list[HeadlineMatch]:
    """Keep matches whose own or inherited tags include tag."""
    result = []
    for m in matches:
        doc = docs.get(m.file)
        tags = compute_inherited_tags(config, doc, m.headline) if doc else m.headline.tags
        if tag in tags:
            result.append(m)
    return result
