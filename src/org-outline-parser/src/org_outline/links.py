"""Resolve links against a set of parsed documents."""

import os
from typing import Mapping, Optional

from org_outline.model import Headline, OrgDocument, OrgLink, ResolvedLink, get_id, get_property


def _norm(path: str) -> str:
    return os.path.normpath(path)


def _find_doc(docs: Mapping[str, OrgDocument], path: str) -> Optional[tuple[str, OrgDocument]]:
    wanted = _norm(path)
    for file, doc in docs.items():
        if _norm(file) == wanted:
            return file, doc
    return None


def _by_title(doc: OrgDocument, title: str) -> Optional[Headline]:
    return next((h for h in doc.headlines if h.title == title), None)


def _by_custom_id(doc: OrgDocument, custom_id: str) -> Optional[Headline]:
    return next((h for h in doc.headlines if get_property(h.properties, "CUSTOM_ID") == custom_id), None)


def _containing(doc: OrgDocument, text: str) -> Optional[Headline]:
    return next((h for h in doc.headlines if text in h.title), None)


def _search(doc: OrgDocument, search: str) -> Optional[Headline]:
    """``*Title`` exact title, ``#id`` CUSTOM_ID, anything else title substring."""
    if search.startswith("*"):
        return _by_title(doc, search[1:])
    if search.startswith("#"):
        return _by_custom_id(doc, search[1:])
    return _containing(doc, search)


def _hit(link: OrgLink, file: str, headline: Optional[Headline]) -> ResolvedLink:
    if headline is None:
        return ResolvedLink(link=link, target_file=file)
    return ResolvedLink(
        link=link,
        target_file=file,
        target_headline=headline.title,
        target_pos=headline.position,
    )


def resolve_file_path(path: str, current_file: str) -> str:
    """Resolve a link path relative to the directory of the linking file."""
    path = os.path.expanduser(path)
    if os.path.isabs(path):
        return _norm(path)
    directory = os.path.dirname(current_file)
    return _norm(os.path.join(directory, path)) if directory else _norm(path)


def resolve_link(
    link: OrgLink,
    current_file: str,
    docs: Mapping[str, OrgDocument],
    abbreviations: Optional[Mapping[str, str]] = None,
) -> ResolvedLink:
    """Resolve one link.

    Args:
        link: Link to resolve
        current_file: Path of the file containing the link
        docs: Parsed documents keyed by path, in search order
        abbreviations: ``#+LINK:`` templates keyed by abbreviation

    Returns:
        ResolvedLink; unresolved parts are None. Web links are never
        resolved; abbreviation links carry the expanded URL as target_file.
    """
    link_type = link.link_type

    if link_type == "id":
        for file, doc in docs.items():
            if get_id(doc.file_properties) == link.path:
                return ResolvedLink(link=link, target_file=file)
            for h in doc.headlines:
                if get_id(h.properties) == link.path:
                    return _hit(link, file, h)
        return ResolvedLink(link=link)

    if link_type == "file":
        target_path = resolve_file_path(link.path, current_file)
        found = _find_doc(docs, target_path)
        if found is None:
            return ResolvedLink(link=link, target_file=target_path)
        file, doc = found
        if link.search_option is None:
            return ResolvedLink(link=link, target_file=file)
        return _hit(link, file, _search(doc, link.search_option))

    if link_type == "fuzzy":
        current = _find_doc(docs, current_file)
        if link.path.startswith(("*", "#")):
            if current is None:
                return ResolvedLink(link=link)
            file, doc = current
            target = _search(doc, link.path)
            return _hit(link, file, target) if target else ResolvedLink(link=link)

        if current is not None and (target := _by_title(current[1], link.path)):
            return _hit(link, current[0], target)
        for file, doc in docs.items():
            if target := _by_title(doc, link.path):
                return _hit(link, file, target)
        return ResolvedLink(link=link)

    if link_type in ("http", "https"):
        return ResolvedLink(link=link)

    template = (abbreviations or {}).get(link_type)
    if template is None:
        return ResolvedLink(link=link)
    url = template.replace("%s", link.path) if "%s" in template else template + link.path
    return ResolvedLink(link=link, target_file=url)


def link_abbreviations(doc: OrgDocument) -> dict[str, str]:
    """``#+LINK: key template`` definitions."""
    abbrevs = {}
    for kw in doc.keywords:
        if kw.key.upper() != "LINK":
            continue
        parts = kw.value.split(None, 1)
        if len(parts) == 2:
            abbrevs[parts[0]] = parts[1].strip()
    return abbrevs


def resolve_links_in_file(file: str, docs: Mapping[str, OrgDocument]) -> list[ResolvedLink]:
    found = _find_doc(docs, file)
    if found is None:
        return []
    path, doc = found
    abbrevs = link_abbreviations(doc)
    return [resolve_link(link, path, docs, abbrevs) for link, _ in doc.links]
