"""Batch mode: apply a list of JSON-described edits to in-memory files.

Input shape::

    {"commands": [
        {"command": "todo", "file": "a.org", "identifier": "Write report",
         "args": {"state": "DONE"}},
        {"command": "tag-add", "file": "a.org", "identifier": "0",
         "args": {"tag": "urgent"}}
    ]}

Commands run in order against the evolving contents, so a later command
sees what earlier ones wrote. A failing command is reported in its result
slot and does not stop the batch.
"""

from datetime import datetime
from typing import Callable, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from org_outline.config import OrgConfig, all_keywords
from org_outline.document import effective_config
from org_outline.editor import HeadlineState, extract_state
from org_outline.errors import InvalidArgsError, OrgError, OrgFileNotFoundError, OrgParseError
from org_outline.headlines import resolve_headline_position
from org_outline import mutations
from orgmend.utils.dates import parse_date_argument
from orgmend.utils.logging import get_logger

logger = get_logger(__name__)


class BatchCommand(BaseModel):
    """One edit in a batch request."""

    command: str = Field(..., description="Command name, e.g. 'todo' or 'tag-add'")
    file: str = Field(..., description="Path key into the files mapping")
    identifier: str = Field("", description="Headline offset, ID or exact title")
    args: dict[str, str] = Field(default_factory=dict, description="Command arguments")

    model_config = {"frozen": True}


class BatchRequest(BaseModel):
    commands: list[BatchCommand] = Field(..., description="Commands in execution order")


Handler = Callable[[OrgConfig, str, int, dict[str, str], datetime], str]


def _optional(args: dict[str, str], key: str) -> Optional[str]:
    value = args.get(key, "")
    return value or None


def _todo(config, content, pos, args, now):
    return mutations.set_todo_state(config, content, pos, _optional(args, "state"), now)


def _priority(config, content, pos, args, now):
    return mutations.set_priority(config, content, pos, _optional(args, "priority"))


def _schedule(config, content, pos, args, now):
    value = _optional(args, "date")
    ts = parse_date_argument(value) if value else None
    return mutations.set_scheduled(config, content, pos, ts, now)


def _deadline(config, content, pos, args, now):
    value = _optional(args, "date")
    ts = parse_date_argument(value) if value else None
    return mutations.set_deadline(config, content, pos, ts, now)


COMMANDS: dict[str, Handler] = {
    "todo": _todo,
    "tag-add": lambda config, content, pos, args, now: mutations.add_tag(config, content, pos, args.get("tag", "")),
    "tag-remove": lambda config, content, pos, args, now: mutations.remove_tag(config, content, pos, args.get("tag", "")),
    "priority": _priority,
    "schedule": _schedule,
    "deadline": _deadline,
    "property-set": lambda config, content, pos, args, now: mutations.set_property(
        content, pos, args.get("key", ""), args.get("value", "")
    ),
    "property-remove": lambda config, content, pos, args, now: mutations.remove_property(
        content, pos, args.get("key", "")
    ),
    "note": lambda config, content, pos, args, now: mutations.add_note(config, content, pos, args.get("text", ""), now),
    "clock-in": lambda config, content, pos, args, now: mutations.clock_in(content, pos, now),
    "clock-out": lambda config, content, pos, args, now: mutations.clock_out(content, pos, now),
}


def parse_batch(json_text: str) -> list[BatchCommand]:
    """Validate batch JSON.

    Raises:
        OrgParseError: If the text is not JSON or does not have the expected shape
    """
    try:
        return BatchRequest.model_validate_json(json_text).commands
    except ValidationError as e:
        raise OrgParseError("Invalid batch input", detail=str(e)) from e


def apply_command(
    config: OrgConfig, content: str, cmd: BatchCommand, now: datetime
) -> tuple[str, HeadlineState]:
    """Run one command and return (new content, state of the edited headline).

    Raises:
        OrgError: If the command is unknown or the edit fails
    """
    handler = COMMANDS.get(cmd.command)
    if handler is None:
        raise InvalidArgsError(f"Unknown batch command: {cmd.command}", detail=cmd.command)

    pos = resolve_headline_position(content, cmd.identifier, config)
    new_content = handler(config, content, pos, cmd.args, now)
    keywords = all_keywords(effective_config(config, new_content))
    return new_content, extract_state(keywords, new_content, pos)


def execute_batch(
    config: OrgConfig,
    json_text: str,
    files: dict[str, str],
    now: datetime,
) -> tuple[list[Union[HeadlineState, OrgError]], dict[str, str]]:
    """Execute a batch against path -> content.

    Args:
        config: Base configuration; each file's directives are merged in
        json_text: Batch request JSON
        files: Current contents keyed by path, in caller order
        now: Instant used for every timestamp the batch writes

    Returns:
        (per-command results, final contents). A result is the edited
        headline's state, or the OrgError the command raised.

    Raises:
        OrgParseError: If json_text is malformed
    """
    commands = parse_batch(json_text)
    current = dict(files)
    results: list[Union[HeadlineState, OrgError]] = []

    for index, cmd in enumerate(commands):
        if cmd.file not in current:
            err = OrgFileNotFoundError(f"File not found: {cmd.file}", detail=cmd.file)
            logger.warning("batch_command_failed", index=index, command=cmd.command, error=err.message)
            results.append(err)
            continue
        try:
            new_content, state = apply_command(config, current[cmd.file], cmd, now)
        except OrgError as err:
            logger.warning("batch_command_failed", index=index, command=cmd.command, error=err.message)
            results.append(err)
            continue
        current[cmd.file] = new_content
        results.append(state)
        logger.debug("batch_command_applied", index=index, command=cmd.command, file=cmd.file, pos=state.pos)

    logger.info("batch_executed", commands=len(commands), failed=sum(isinstance(r, OrgError) for r in results))
    return results, current
