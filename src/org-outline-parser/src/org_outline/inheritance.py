"""Tag and property inheritance, plus virtual properties.

Ancestors are never stored; they are found by walking the flat headline list
backwards for strictly smaller levels.
"""

from pathlib import Path
from typing import Iterator, Optional

from org_outline.config import OrgConfig
from org_outline.model import Headline, OrgDocument, get_file_tags, get_property
from org_outline.writer import format_tags, format_timestamp

ALWAYS_INHERITED = frozenset({"CATEGORY", "ARCHIVE", "COLUMNS", "LOGGING"})

VIRTUAL_PROPERTIES = (
    "ITEM", "TODO", "PRIORITY", "LEVEL", "TAGS", "ALLTAGS",
    "FILE", "CATEGORY", "SCHEDULED", "DEADLINE", "CLOSED",
)


def _index_of(doc: OrgDocument, target: Headline) -> Optional[int]:
    for i, h in enumerate(doc.headlines):
        if h.position == target.position:
            return i
    return None


def iter_ancestors(doc: OrgDocument, target: Headline) -> Iterator[Headline]:
    """Yield target's ancestors, nearest first."""
    idx = _index_of(doc, target)
    if idx is None:
        return
    level = target.level
    for h in reversed(doc.headlines[:idx]):
        if level <= 1:
            return
        if h.level < level:
            yield h
            level = h.level


def compute_inherited_tags(config: OrgConfig, doc: OrgDocument, target: Headline) -> list[str]:
    """File tags, ancestor tags and own tags, minus excluded tags, de-duplicated.

    Only own tags are returned when tag inheritance is off.

    Examples:
        With ``#+FILETAGS: :work:`` and ``tags_exclude_from_inheritance=["work"]``
        a headline tagged ``:urgent:`` yields ``["urgent"]``.
    """
    inherited: list[str] = []
    if config.tag_inheritance:
        inherited.extend(get_file_tags(doc.keywords))
        ancestors = list(iter_ancestors(doc, target))
        for h in reversed(ancestors):
            inherited.extend(h.tags)
        if config.inherit_tags is not None:
            allowed = set(config.inherit_tags)
            inherited = [t for t in inherited if t in allowed]

    excluded = set(config.tags_exclude_from_inheritance)
    result = []
    for tag in inherited + target.tags:
        if tag not in excluded and tag not in result:
            result.append(tag)
    return result


def should_inherit_property(config: OrgConfig, key: str) -> bool:
    upper = key.upper()
    if upper in ALWAYS_INHERITED:
        return True
    if not config.property_inheritance:
        return False
    if not config.inherit_properties:
        return True
    return any(p.upper() == upper for p in config.inherit_properties)


def _from_property_keyword(doc: OrgDocument, key: str) -> Optional[str]:
    # #+PROPERTY: KEY value
    for kw in doc.keywords:
        if kw.key.upper() != "PROPERTY" or not kw.value.upper().startswith(key.upper()):
            continue
        _, _, value = kw.value.partition(" ")
        return value.strip() or None
    return None


def resolve_property(config: OrgConfig, doc: OrgDocument, target: Headline, key: str) -> Optional[str]:
    """Look up key on target, then (if inheritable) ancestors and file level.

    Resolution order: own drawer, nearest ancestor drawer, file drawer,
    a direct ``#+KEY:`` keyword, a ``#+PROPERTY: KEY value`` keyword.
    """
    own = get_property(target.properties, key)
    if own is not None:
        return own
    if not should_inherit_property(config, key):
        return None

    for ancestor in iter_ancestors(doc, target):
        value = get_property(ancestor.properties, key)
        if value is not None:
            return value

    value = get_property(doc.file_properties, key)
    if value is not None:
        return value

    upper = key.upper()
    for kw in doc.keywords:
        if kw.key.upper() == upper:
            return kw.value

    return _from_property_keyword(doc, key)


def resolve_virtual_property(
    config: OrgConfig,
    doc: OrgDocument,
    headline: Headline,
    key: str,
    file: Optional[str] = None,
) -> Optional[str]:
    """Resolve a key, computing virtual properties from the headline itself.

    Unknown keys fall through to ``resolve_property``.
    """
    upper = key.upper()
    planning = headline.planning

    if upper == "ITEM":
        return headline.title
    if upper == "TODO":
        return headline.todo_keyword
    if upper == "PRIORITY":
        return headline.priority
    if upper == "LEVEL":
        return str(headline.level)
    if upper == "TAGS":
        return format_tags(headline.tags)
    if upper == "ALLTAGS":
        return format_tags(compute_inherited_tags(config, doc, headline))
    if upper == "FILE":
        return file
    if upper == "CATEGORY":
        category = resolve_property(config, doc, headline, "CATEGORY")
        if category is None:
            category = next((kw.value for kw in doc.keywords if kw.key.upper() == "CATEGORY"), None)
        if category is None and file:
            category = Path(file).stem
        return category
    if upper in ("SCHEDULED", "DEADLINE", "CLOSED"):
        ts = getattr(planning, upper.lower()) if planning else None
        return format_timestamp(ts) if ts is not None else None

    return resolve_property(config, doc, headline, key)
