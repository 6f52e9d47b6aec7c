"""Configuration models and the layered config builder.

An effective configuration is built by folding partial layers over a base:

    defaults -> config file -> environment -> per-document directives

Each layer is a plain mapping holding only the fields it sets, keyed by the
Python field names of ``OrgConfig``. ``build_config`` applies them in order;
a field not mentioned by a layer keeps the value of the layer below.
"""

import re
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field, field_validator


class LogAction(str, Enum):
    """What to record when a logging event happens."""

    NONE = "none"
    TIME = "time"
    NOTE = "note"


class TodoKeywordDef(BaseModel):
    """One TODO keyword with its enter/leave logging actions."""

    keyword: str = Field(..., description="Keyword as written in headlines")
    log_on_enter: LogAction = Field(
        default=LogAction.NONE,
        alias="logOnEnter",
        description="Logging when a headline enters this state"
    )
    log_on_leave: LogAction = Field(
        default=LogAction.NONE,
        alias="logOnLeave",
        description="Logging when a headline leaves this state"
    )

    model_config = {"frozen": True, "populate_by_name": True}


def _defs(*names: str) -> list[TodoKeywordDef]:
    return [TodoKeywordDef(keyword=name) for name in names]


class TodoKeywordConfig(BaseModel):
    """Active and done keyword sets."""

    active_states: list[TodoKeywordDef] = Field(
        default_factory=lambda: _defs("TODO", "NEXT", "WAITING", "HOLD", "SOMEDAY", "PROJECT"),
        alias="activeStates",
    )
    done_states: list[TodoKeywordDef] = Field(
        default_factory=lambda: _defs("DONE", "CANCELLED", "CANCELED"),
        alias="doneStates",
    )

    model_config = {"frozen": True, "populate_by_name": True}


class PriorityConfig(BaseModel):
    """Priority letters: highest, lowest and the implied default."""

    highest: str = Field(default="A", min_length=1, max_length=1)
    lowest: str = Field(default="C", min_length=1, max_length=1)
    default: str = Field(default="B", min_length=1, max_length=1)

    model_config = {"frozen": True}


class OrgConfig(BaseModel):
    """Effective configuration for parsing and mutating org documents."""

    todo_keywords: TodoKeywordConfig = Field(
        default_factory=TodoKeywordConfig,
        alias="todoKeywords",
        description="Keywords recognised as TODO states"
    )
    priorities: PriorityConfig = Field(default_factory=PriorityConfig)
    log_done: LogAction = Field(default=LogAction.TIME, alias="logDone")
    log_repeat: LogAction = Field(default=LogAction.TIME, alias="logRepeat")
    log_reschedule: LogAction = Field(default=LogAction.NONE, alias="logReschedule")
    log_redeadline: LogAction = Field(default=LogAction.NONE, alias="logRedeadline")
    log_refile: LogAction = Field(default=LogAction.NONE, alias="logRefile")
    log_into_drawer: Optional[str] = Field(
        default="LOGBOOK",
        alias="logIntoDrawer",
        description="Drawer receiving log entries; None puts them at the top of the body"
    )
    tag_inheritance: bool = Field(default=True, alias="tagInheritance")
    inherit_tags: Optional[list[str]] = Field(
        default=None,
        alias="inheritTags",
        description="If set, only these tags are inherited"
    )
    tags_exclude_from_inheritance: list[str] = Field(
        default_factory=list,
        alias="tagsExcludeFromInheritance",
    )
    property_inheritance: bool = Field(default=False, alias="propertyInheritance")
    inherit_properties: list[str] = Field(
        default_factory=list,
        alias="inheritProperties",
        description="Allow-list for property inheritance; empty means all"
    )
    deadline_warning_days: int = Field(default=14, alias="deadlineWarningDays")
    archive_location: Optional[str] = Field(
        default=None,
        alias="archiveLocation",
        description="Archive template such as '%s_archive::'"
    )

    @field_validator("deadline_warning_days")
    @classmethod
    def clamp_warning_days(cls, v: int) -> int:
        return max(0, v)

    model_config = {"frozen": True, "populate_by_name": True}


DEFAULT_CONFIG = OrgConfig()


# --- Keyword helpers ---


def all_keywords(config: OrgConfig) -> list[str]:
    """Active keywords followed by done keywords."""
    kws = config.todo_keywords
    return [d.keyword for d in kws.active_states] + [d.keyword for d in kws.done_states]


def is_active_state(config: OrgConfig, keyword: str) -> bool:
    return any(d.keyword == keyword for d in config.todo_keywords.active_states)


def is_done_state(config: OrgConfig, keyword: str) -> bool:
    return any(d.keyword == keyword for d in config.todo_keywords.done_states)


def find_keyword_def(config: OrgConfig, keyword: str) -> Optional[TodoKeywordDef]:
    kws = config.todo_keywords
    for d in kws.active_states + kws.done_states:
        if d.keyword == keyword:
            return d
    return None


def build_headline_regex(keywords: list[str]) -> re.Pattern:
    """Build the headline-line pattern for a keyword set.

    Groups: 1 stars, 2 keyword, 3 priority letter, 4 title, 5 tags.
    A keyword only matches as a whole token followed by whitespace or end of
    line, so "TODOS" is never read as "TODO" + "S".

    Args:
        keywords: Effective keyword names (active and done)

    Returns:
        Compiled pattern matching a single headline line
    """
    names = [re.escape(k) for k in keywords if k]
    kw_group = rf"(?:({'|'.join(names)})(?=[ \t]|$))?" if names else "()"
    return re.compile(
        r"^(\*+)[ \t]+"
        + kw_group
        + r"[ \t]*(?:\[#([A-Z0-9])\])?[ \t]*"
        r"(.*?)"
        r"(?:[ \t]+(:[\w@#%:\-]+:))?[ \t]*$"
    )


# --- Layers ---


def parse_log_action(value: Any) -> Optional[LogAction]:
    """Parse "none" / "time" / "note" (case-insensitive). Anything else is None."""
    if not isinstance(value, str):
        return None
    try:
        return LogAction(value.strip().lower())
    except ValueError:
        return None


_LOG_FIELDS = {
    "log_done": "logDone",
    "log_repeat": "logRepeat",
    "log_reschedule": "logReschedule",
    "log_redeadline": "logRedeadline",
    "log_refile": "logRefile",
}


def _lookup(data: Mapping[str, Any], field_name: str, alias: str) -> tuple[bool, Any]:
    if alias in data:
        return True, data[alias]
    if field_name in data:
        return True, data[field_name]
    return False, None


def _keyword_def_from_value(value: Any) -> Optional[dict]:
    # Strings use #+TODO: token syntax such as "WAIT(w@/!)"
    from org_outline.file_config import parse_keyword_token

    if isinstance(value, str) and value.strip():
        return parse_keyword_token(value.strip()).model_dump()
    if isinstance(value, Mapping) and isinstance(value.get("keyword"), str):
        enter = parse_log_action(value.get("logOnEnter", value.get("log_on_enter")))
        leave = parse_log_action(value.get("logOnLeave", value.get("log_on_leave")))
        return {
            "keyword": value["keyword"],
            "log_on_enter": enter or LogAction.NONE,
            "log_on_leave": leave or LogAction.NONE,
        }
    return None


def _keyword_list(value: Any) -> Optional[list[dict]]:
    if not isinstance(value, list):
        return None
    return [d for d in (_keyword_def_from_value(v) for v in value) if d is not None]


def _string_list(value: Any) -> Optional[list[str]]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        return None
    return list(value)


def layer_from_mapping(data: Mapping[str, Any]) -> dict[str, Any]:
    """Convert a config-file mapping into a config layer.

    Both camelCase and snake_case keys are accepted. Unknown keys are
    ignored and malformed values are skipped one field at a time.

    Examples:
        >>> layer_from_mapping({"logDone": "note", "deadlineWarningDays": "x"})
        {'log_done': <LogAction.NOTE: 'note'>}
    """
    layer: dict[str, Any] = {}

    found, value = _lookup(data, "todo_keywords", "todoKeywords")
    if found and isinstance(value, Mapping):
        kw_layer = {}
        for field_name, alias in (("active_states", "activeStates"), ("done_states", "doneStates")):
            has, states = _lookup(value, field_name, alias)
            parsed = _keyword_list(states) if has else None
            if parsed is not None:
                kw_layer[field_name] = parsed
        if kw_layer:
            layer["todo_keywords"] = kw_layer

    found, value = _lookup(data, "priorities", "priorities")
    if found and isinstance(value, Mapping):
        prio_layer = {
            key: value[key]
            for key in ("highest", "lowest", "default")
            if isinstance(value.get(key), str) and len(value[key]) == 1
        }
        if prio_layer:
            layer["priorities"] = prio_layer

    for field_name, alias in _LOG_FIELDS.items():
        found, value = _lookup(data, field_name, alias)
        action = parse_log_action(value) if found else None
        if action is not None:
            layer[field_name] = action

    for field_name, alias in (("log_into_drawer", "logIntoDrawer"), ("archive_location", "archiveLocation")):
        found, value = _lookup(data, field_name, alias)
        if found and (value is None or isinstance(value, str)):
            layer[field_name] = value

    for field_name, alias in (("tag_inheritance", "tagInheritance"), ("property_inheritance", "propertyInheritance")):
        found, value = _lookup(data, field_name, alias)
        if found and isinstance(value, bool):
            layer[field_name] = value

    found, value = _lookup(data, "deadline_warning_days", "deadlineWarningDays")
    if found and isinstance(value, int) and not isinstance(value, bool):
        layer["deadline_warning_days"] = max(0, value)

    found, value = _lookup(data, "inherit_tags", "inheritTags")
    if found and (value is None or _string_list(value) is not None):
        layer["inherit_tags"] = value

    for field_name, alias in (
        ("tags_exclude_from_inheritance", "tagsExcludeFromInheritance"),
        ("inherit_properties", "inheritProperties"),
    ):
        found, value = _lookup(data, field_name, alias)
        parsed = _string_list(value) if found else None
        if parsed is not None:
            layer[field_name] = parsed

    return layer


_TRUE_WORDS = {"true", "1", "yes"}
_FALSE_WORDS = {"false", "0", "no"}


def layer_from_env(environ: Mapping[str, str], prefix: str = "ORGMEND_") -> dict[str, Any]:
    """Build a layer from environment variables.

    Only variables that are present and well-formed contribute:

    - ``{prefix}LOG_DONE``: none / time / note
    - ``{prefix}LOG_INTO_DRAWER``: drawer name; empty string means no drawer
    - ``{prefix}DEADLINE_WARNING_DAYS``: integer, clamped to >= 0
    - ``{prefix}TAG_INHERITANCE``: true/1/yes or false/0/no
    - ``{prefix}ARCHIVE_LOCATION``: archive template
    """
    layer: dict[str, Any] = {}

    if env_log_done := environ.get(f"{prefix}LOG_DONE"):
        if (action := parse_log_action(env_log_done)) is not None:
            layer["log_done"] = action

    env_drawer = environ.get(f"{prefix}LOG_INTO_DRAWER")
    if env_drawer is not None:
        layer["log_into_drawer"] = env_drawer or None

    if env_days := environ.get(f"{prefix}DEADLINE_WARNING_DAYS"):
        try:
            layer["deadline_warning_days"] = max(0, int(env_days))
        except ValueError:
            pass  # Invalid value, ignore

    if env_inherit := environ.get(f"{prefix}TAG_INHERITANCE"):
        word = env_inherit.strip().lower()
        if word in _TRUE_WORDS:
            layer["tag_inheritance"] = True
        elif word in _FALSE_WORDS:
            layer["tag_inheritance"] = False

    if env_archive := environ.get(f"{prefix}ARCHIVE_LOCATION"):
        layer["archive_location"] = env_archive

    return layer


def build_config(*layers: Mapping[str, Any], base: OrgConfig = DEFAULT_CONFIG) -> OrgConfig:
    """Fold layers over a base configuration.

    Nested mappings (``todo_keywords``, ``priorities``) are merged one level
    deep, so a layer may set a single priority letter without resetting the
    other two.

    Examples:
        >>> cfg = build_config({"log_done": "none"}, {"deadline_warning_days": 3})
        >>> cfg.log_done, cfg.deadline_warning_days
        (<LogAction.NONE: 'none'>, 3)
    """
    cfg = base
    for layer in layers:
        if not layer:
            continue
        merged = cfg.model_dump()
        for key, value in layer.items():
            if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
                merged[key] = {**merged[key], **value}
            else:
                merged[key] = value
        cfg = OrgConfig.model_validate(merged)
    return cfg
