"""Org outline parser - Parse and surgically edit org-mode files.

This package parses org-mode text into a flat list of headlines and edits it
in place, touching only the region an operation is about.

Key features:
- Timestamp, link, drawer, planning and clock-line parsers that never raise
- Per-document TODO keywords and logging options (#+TODO:, #+STARTUP:)
- Headline detection that ignores lines inside #+BEGIN/#+END blocks
- Position-addressed mutations: TODO state with repeaters, scheduling,
  tags, priority, properties, clocking, notes, refile and archive
- Tag/property inheritance and virtual properties

Example:
    >>> from org_outline import parse, set_todo_state, DEFAULT_CONFIG
    >>> doc = parse("* TODO Write report\\n")
    >>> doc.headlines[0].todo_keyword
    'TODO'
"""

from org_outline.config import (
    DEFAULT_CONFIG,
    LogAction,
    OrgConfig,
    PriorityConfig,
    TodoKeywordConfig,
    TodoKeywordDef,
    build_config,
    layer_from_env,
    layer_from_mapping,
)
from org_outline.document import (
    compute_outline_path,
    effective_config,
    get_nodes,
    parse,
    parse_file,
    parse_with_config,
)
from org_outline.errors import (
    ErrorType,
    HeadlineNotFoundError,
    InvalidArgsError,
    OrgError,
    OrgFileNotFoundError,
    OrgInternalError,
    OrgParseError,
)
from org_outline.headlines import resolve_headline_position
from org_outline.model import (
    ClockEntry,
    Headline,
    Keyword,
    OrgDocument,
    OrgLink,
    Planning,
    Property,
    PropertyDrawer,
    ResolvedLink,
    Timestamp,
    TimestampType,
)
from org_outline.mutations import (
    add_headline,
    add_headline_under,
    add_note,
    add_tag,
    archive,
    clock_in,
    clock_out,
    refile,
    remove_property,
    remove_tag,
    set_deadline,
    set_priority,
    set_property,
    set_scheduled,
    set_todo_state,
)

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_CONFIG",
    "LogAction",
    "OrgConfig",
    "PriorityConfig",
    "TodoKeywordConfig",
    "TodoKeywordDef",
    "build_config",
    "layer_from_env",
    "layer_from_mapping",
    "compute_outline_path",
    "effective_config",
    "get_nodes",
    "parse",
    "parse_file",
    "parse_with_config",
    "ErrorType",
    "HeadlineNotFoundError",
    "InvalidArgsError",
    "OrgError",
    "OrgFileNotFoundError",
    "OrgInternalError",
    "OrgParseError",
    "resolve_headline_position",
    "ClockEntry",
    "Headline",
    "Keyword",
    "OrgDocument",
    "OrgLink",
    "Planning",
    "Property",
    "PropertyDrawer",
    "ResolvedLink",
    "Timestamp",
    "TimestampType",
    "add_headline",
    "add_headline_under",
    "add_note",
    "add_tag",
    "archive",
    "clock_in",
    "clock_out",
    "refile",
    "remove_property",
    "remove_tag",
    "set_deadline",
    "set_priority",
    "set_property",
    "set_scheduled",
    "set_todo_state",
]
