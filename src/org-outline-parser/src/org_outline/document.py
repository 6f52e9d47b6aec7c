"""Turn raw org text into an OrgDocument.

The assembler never re-serialises anything. It locates headline starts,
slices the content into sections and parses each slice, recording the
character offset of every headline so edits can be addressed back into the
original text.
"""

import re
from pathlib import Path
from typing import Optional, Union

from org_outline.config import DEFAULT_CONFIG, OrgConfig, all_keywords, build_headline_regex
from org_outline.errors import OrgFileNotFoundError
from org_outline.file_config import merge_file_config
from org_outline.model import (
    Headline,
    Keyword,
    OrgDocument,
    OrgLink,
    PropertyDrawer,
    get_file_tags,
    get_id,
    get_title,
)
from org_outline.parsers import (
    find_all_links,
    parse_keyword_line,
    parse_planning_line,
    parse_property_drawer,
)

_SECTION_START_RE = re.compile(r"^\*+ ", re.MULTILINE)
_BLOCK_BEGIN_RE = re.compile(r"^#\+BEGIN_\w+", re.MULTILINE | re.IGNORECASE)
_BLOCK_END_RE = re.compile(r"^#\+END_\w+", re.MULTILINE | re.IGNORECASE)
_PLANNING_PREFIXES = ("SCHEDULED:", "DEADLINE:", "CLOSED:")


def compute_block_ranges(content: str) -> list[tuple[int, int]]:
    """Ranges covered by ``#+BEGIN_x ... #+END_y`` blocks.

    Each begin is closed by the first unused end after it; the block names do
    not have to agree. Begins without an end produce no range.
    """
    ends = [m for m in _BLOCK_END_RE.finditer(content)]
    ranges = []
    end_idx = 0
    for begin in _BLOCK_BEGIN_RE.finditer(content):
        while end_idx < len(ends) and ends[end_idx].start() <= begin.start():
            end_idx += 1
        if end_idx >= len(ends):
            break
        end = ends[end_idx]
        ranges.append((begin.start(), end.end()))
        end_idx += 1
    return ranges


def _inside_block(ranges: list[tuple[int, int]], pos: int) -> bool:
    return any(start < pos < end for start, end in ranges)


def inside_block(content: str, pos: int) -> bool:
    """True if pos falls inside a literal ``#+BEGIN_x`` block."""
    return _inside_block(compute_block_ranges(content), pos)


def find_headline_starts(content: str) -> list[int]:
    """Offsets of every ``^*+ `` line that is not inside a literal block."""
    ranges = compute_block_ranges(content)
    return [
        m.start()
        for m in _SECTION_START_RE.finditer(content)
        if not _inside_block(ranges, m.start())
    ]


def split_into_sections(content: str) -> list[tuple[int, str]]:
    """Split content into (start offset, section text) pairs.

    A section runs from one headline start to the next; trailing whitespace
    is trimmed and empty sections are dropped.
    """
    starts = find_headline_starts(content)
    sections = []
    for i, start in enumerate(starts):
        end = starts[i + 1] if i + 1 < len(starts) else len(content)
        text = content[start:end].rstrip()
        if text.strip():
            sections.append((start, text))
    return sections


def file_section_text(content: str) -> str:
    starts = find_headline_starts(content)
    return content[:starts[0]] if starts else content


def parse_file_section(content: str) -> tuple[list[Keyword], Optional[PropertyDrawer], list[OrgLink]]:
    """Keywords, file-level property drawer and links before the first headline."""
    section = file_section_text(content)

    keywords = []
    for line in section.split("\n"):
        kw = parse_keyword_line(line)
        if kw is not None:
            keywords.append(kw)

    return keywords, parse_property_drawer(section), find_all_links(section)


def parse_headline_section(
    headline_regex: re.Pattern, text: str, start: int
) -> Optional[tuple[Headline, list[OrgLink]]]:
    """Parse one section.

    Args:
        headline_regex: Pattern built from the document's effective keywords
        text: Section text starting at the headline's first '*'
        start: Offset of the section in the file content

    Returns:
        (Headline, links with absolute offsets), or None if the first line is
        not a headline under this pattern
    """
    first_line, _, rest = text.partition("\n")
    m = headline_regex.match(first_line)
    if not m:
        return None

    tags = [t for t in (m.group(5) or "").strip(":").split(":") if t.strip()]

    # Planning must sit on the very next line
    planning = None
    next_line = rest.split("\n", 1)[0].strip() if rest else ""
    if next_line.startswith(_PLANNING_PREFIXES):
        planning = parse_planning_line(next_line)

    content_offset = start + len(first_line) + 1
    links = find_all_links(rest)
    for link in links:
        link.position += content_offset

    headline = Headline(
        level=len(m.group(1)),
        title=m.group(4).strip(),
        todo_keyword=m.group(2) or None,
        priority=m.group(3),
        tags=tags,
        planning=planning,
        properties=parse_property_drawer(rest),
        position=start,
    )
    return headline, links


def effective_config(base: OrgConfig, content: str) -> OrgConfig:
    """The configuration a document sees: base plus its own directives."""
    keywords, _, _ = parse_file_section(content)
    return merge_file_config(base, keywords)


def headline_regex_for(base: OrgConfig, content: str) -> re.Pattern:
    return build_headline_regex(all_keywords(effective_config(base, content)))


def parse_with_config(config: OrgConfig, content: str) -> OrgDocument:
    """Parse content using config merged with the document's own directives."""
    keywords, file_properties, file_links = parse_file_section(content)
    effective = merge_file_config(config, keywords)
    regex = build_headline_regex(all_keywords(effective))

    headlines = []
    links: list[tuple[OrgLink, Optional[str]]] = []
    file_id = get_id(file_properties)
    links.extend((link, file_id) for link in file_links)

    for start, text in split_into_sections(content):
        parsed = parse_headline_section(regex, text, start)
        if parsed is None:
            continue
        headline, section_links = parsed
        headlines.append(headline)
        node_id = get_id(headline.properties)
        links.extend((link, node_id) for link in section_links)

    return OrgDocument(
        keywords=keywords,
        file_properties=file_properties,
        headlines=headlines,
        links=links,
    )


def parse(content: str) -> OrgDocument:
    """Parse with the default configuration (document directives still apply)."""
    return parse_with_config(DEFAULT_CONFIG, content)


def parse_file(path: Union[str, Path], config: Optional[OrgConfig] = None) -> OrgDocument:
    """Read and parse an org file.

    Raises:
        OrgFileNotFoundError: If the file does not exist
    """
    path = Path(path)
    if not path.is_file():
        raise OrgFileNotFoundError(f"File not found: {path}", detail=str(path))

    doc = parse_with_config(config or DEFAULT_CONFIG, path.read_text(encoding="utf-8"))
    doc.file_path = str(path)
    return doc


def get_nodes(doc: OrgDocument) -> list[tuple[str, Optional[Headline], Optional[PropertyDrawer]]]:
    """Every node carrying an ID: the file node first, then headlines.

    The file node is a synthetic level-0 headline at offset 0 titled from
    ``#+TITLE:`` and tagged from ``#+FILETAGS:``.
    """
    nodes = []
    file_id = get_id(doc.file_properties)
    if file_id is not None:
        file_headline = Headline(
            level=0,
            title=get_title(doc.keywords) or "",
            tags=get_file_tags(doc.keywords),
            properties=doc.file_properties,
            position=0,
        )
        nodes.append((file_id, file_headline, doc.file_properties))

    for h in doc.headlines:
        node_id = get_id(h.properties)
        if node_id is not None:
            nodes.append((node_id, h, h.properties))
    return nodes


def compute_outline_path(headlines: list[Headline], target: Headline) -> list[str]:
    """Titles of target's ancestors, outermost first."""
    idx = next((i for i, h in enumerate(headlines) if h.position == target.position), None)
    if idx is None:
        return []

    path = []
    level = target.level
    for h in reversed(headlines[:idx]):
        if level <= 1:
            break
        if h.level < level:
            path.append(h.title)
            level = h.level
    path.reverse()
    return path


def compute_outline_path_at_position(headlines: list[Headline], position: int) -> list[str]:
    """Outline path of the headline containing position, including that headline."""
    containing = None
    for h in headlines:
        if h.position <= position:
            containing = h
    if containing is None:
        return []
    return compute_outline_path(headlines, containing) + [containing.title]


def reassemble_sections(content: str) -> str:
    """Rebuild content from its file section and headline sections.

    This is the no-op edit: whitespace between sections is normalised to a
    single newline, headline text is left untouched.
    """
    sections = split_into_sections(content)
    text = file_section_text(content)
    if sections:
        text += "\n".join(section for _, section in sections) + "\n"
    return text
