"""CLI entry point for orgmend."""

import functools
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Callable, Optional

import click

from org_outline import mutations
from org_outline.config import OrgConfig, all_keywords
from org_outline.document import (
    compute_outline_path,
    effective_config,
    parse_file_section,
    parse_with_config,
)
from org_outline.editor import extract_state
from org_outline.errors import InvalidArgsError, OrgError
from org_outline.file_config import tag_groups_from_keywords
from org_outline.headlines import (
    collect_headlines,
    filter_by_level,
    filter_by_property,
    filter_by_tag,
    filter_by_tag_with_inheritance,
    filter_by_todo,
    resolve_headline_position,
)
from org_outline.links import resolve_links_in_file
from org_outline.model import OrgDocument
from org_outline.subtree import extract_subtree
from org_outline.writer import day_name
from orgmend import agenda as agenda_views
from orgmend import output
from orgmend.batch import execute_batch
from orgmend.clock import collect_clock_entries, format_duration, total_duration
from orgmend.config.loader import load_config
from orgmend.search import search_docs
from orgmend.services.file_monitor import FileMonitor
from orgmend.services.file_operations import atomic_write, list_org_files, read_org_file
from orgmend.utils.dates import parse_date_argument
from orgmend.utils.logging import configure_logging, get_logger


logger = get_logger(__name__)

Transform = Callable[[OrgConfig, str, int], str]


@dataclass
class Session:
    """Global options shared by every command."""

    config_path: Optional[Path] = None
    output_format: str = "text"
    dry_run: bool = False
    quiet: bool = False
    directory: Path = Path(".")
    files: tuple[str, ...] = ()
    _config: Optional[OrgConfig] = field(default=None, repr=False)

    @property
    def as_json(self) -> bool:
        return self.output_format == "json"

    def config(self) -> OrgConfig:
        if self._config is None:
            self._config = load_config(self.config_path)
        return self._config

    def org_files(self) -> list[Path]:
        """--files when given, otherwise every .org file under --directory."""
        if self.files:
            return [Path(f) for f in self.files]
        return list_org_files(self.directory)

    def load_docs(self, extra: Optional[Path] = None) -> dict[str, tuple[OrgDocument, str]]:
        paths = self.org_files()
        if extra is not None and extra not in paths:
            paths.insert(0, extra)
        docs = {}
        for path in paths:
            content = read_org_file(path)
            doc = parse_with_config(self.config(), content)
            doc.file_path = str(path)
            docs[str(path)] = (doc, content)
        return docs

    def info(self, message: str) -> None:
        if not self.quiet:
            click.echo(f"{message} (dry run)" if self.dry_run else message)


def reports_errors(func):
    """Turn OrgError into exit status 1 with a message or a JSON error envelope."""

    @functools.wraps(func)
    @click.pass_obj
    def wrapper(session: Session, *args, **kwargs):
        try:
            return func(session, *args, **kwargs)
        except OrgError as e:
            logger.error("command_failed", error_type=e.error_type.value, message=e.message, detail=e.detail)
            if session.as_json:
                click.echo(output.error(e))
                click.get_current_context().exit(1)
            raise click.ClickException(e.message) from e

    return wrapper


def _now() -> datetime:
    return datetime.now().replace(second=0, microsecond=0)


def _write(session: Session, path: Path, old: str, new: str, monitor: Optional[FileMonitor] = None) -> None:
    if session.dry_run:
        logger.warning("dry_run_write_skipped", path=str(path))
        return
    if new == old and path.exists():
        return
    atomic_write(path, new, monitor)
    logger.info("file_written", path=str(path), size=len(new))


def _report_state(session: Session, content: str, pos: int, message: str) -> None:
    if session.as_json:
        keywords = all_keywords(effective_config(session.config(), content))
        state = extract_state(keywords, content, pos)
        click.echo(output.ok(output.headline_state(state, dry_run=session.dry_run)))
    else:
        session.info(message)


def _mutate(session: Session, file: str, identifier: str, message: str, transform: Transform) -> None:
    """Read file, resolve the headline, apply transform, write back and report."""
    path = Path(file)
    monitor = FileMonitor()
    content = read_org_file(path, monitor)
    config = session.config()
    pos = resolve_headline_position(content, identifier, config)
    logger.debug("headline_resolved", file=file, identifier=identifier, pos=pos)

    new_content = transform(config, content, pos)
    _write(session, path, content, new_content, monitor)
    logger.info("mutation_applied", action=message, file=file, pos=pos, dry_run=session.dry_run)
    _report_state(session, new_content, pos, message)


def _optional_date(value: str):
    return parse_date_argument(value) if value else None


@click.group()
@click.version_option(version="0.1.0", prog_name="orgmend")
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path),
              help="Config file (default: $XDG_CONFIG_HOME/orgmend/config.yaml)")
@click.option("--format", "-f", "output_format", type=click.Choice(["text", "json"]), default="text",
              help="Output format")
@click.option("--dry-run", is_flag=True, help="Preview a mutation without writing files")
@click.option("--quiet", "-q", is_flag=True, help="Suppress informational output")
@click.option("--directory", "-d", type=click.Path(file_okay=False, path_type=Path), default=Path("."),
              help="Directory searched for .org files (default: current directory)")
@click.option("--files", "files", multiple=True, help="Explicit org file (repeatable)")
@click.pass_context
def cli(ctx, config_path, output_format, dry_run, quiet, directory, files):
    """orgmend: query and surgically edit org-mode files."""
    # Configure logging on CLI startup
    configure_logging()
    ctx.obj = Session(
        config_path=config_path,
        output_format=output_format,
        dry_run=dry_run,
        quiet=quiet,
        directory=directory,
        files=tuple(files),
    )


# --- Queries ---


@cli.command()
@click.option("--todo", "todo_state", help="Filter by TODO state")
@click.option("--tag", help="Filter by tag (inherited tags count when tag inheritance is on)")
@click.option("--level", type=int, help="Filter by headline level")
@click.option("--property", "prop", help="Filter by property, KEY=VALUE")
@reports_errors
def headlines(session: Session, todo_state, tag, level, prop):
    """List and filter headlines."""
    docs = {file: doc for file, (doc, _) in session.load_docs().items()}
    matches = collect_headlines(docs)

    if todo_state:
        matches = filter_by_todo(matches, todo_state)
    if tag:
        config = session.config()
        if config.tag_inheritance:
            matches = filter_by_tag_with_inheritance(config, docs, matches, tag)
        else:
            matches = filter_by_tag(matches, tag)
    if level is not None:
        matches = filter_by_level(matches, level)
    if prop:
        key, sep, value = prop.partition("=")
        if not sep:
            raise InvalidArgsError(f"Invalid property filter: {prop}. Expected: KEY=VALUE", detail=prop)
        matches = filter_by_property(matches, key, value)

    if session.as_json:
        click.echo(output.ok([output.headline_match(m) for m in matches]))
        return
    for m in matches:
        click.echo(output.headline_match_text(m))


@cli.command()
@click.argument("file")
@click.argument("identifier")
@reports_errors
def read(session: Session, file, identifier):
    """Print the subtree of a headline."""
    content = read_org_file(Path(file))
    pos = resolve_headline_position(content, identifier, session.config())
    subtree = extract_subtree(content, pos)
    if session.as_json:
        click.echo(output.ok({"file": file, "pos": pos, "content": subtree}))
    else:
        click.echo(subtree)


@cli.command()
@click.argument("view", type=click.Choice(["today", "week", "todo"]), default="today")
@click.option("--tag", help="Filter by tag")
@click.option("--state", help="Filter TODO items by state")
@reports_errors
def agenda(session: Session, view, tag, state):
    """Scheduled items and deadlines (today, week) or all TODO items (todo)."""
    config = session.config()
    docs = {file: doc for file, (doc, _) in session.load_docs().items()}
    today = date.today()

    if view == "todo":
        items = agenda_views.collect_todo_items(docs)
        if state:
            items = agenda_views.filter_by_state(items, state)
    elif view == "week":
        items = agenda_views.week_view(config, docs, today)
    else:
        items = agenda_views.today_view(config, docs, today)
    if tag:
        items = agenda_views.filter_by_tag(items, tag)

    if session.as_json:
        click.echo(output.ok([output.agenda_item(i) for i in items]))
        return

    if not items:
        click.echo("No TODO items found." if view == "todo" else "No agenda items.")
        return
    if view == "todo":
        for item in items:
            click.echo(output.todo_item_text(item))
        return

    overdue = [i for i in items if i.date < today]
    if overdue:
        click.echo("Overdue:")
        for item in overdue:
            click.echo(output.agenda_item_text(item))
        click.echo()
    for day in sorted({i.date for i in items if i.date >= today}):
        click.echo(f"{day.isoformat()} {day_name(datetime.combine(day, datetime.min.time()))}")
        for item in items:
            if item.date == day:
                click.echo(output.agenda_item_text(item))


@cli.command()
@click.argument("file")
@reports_errors
def links(session: Session, file):
    """List the links in FILE and where they resolve."""
    path = Path(file)
    docs = {name: doc for name, (doc, _) in session.load_docs(extra=path).items()}
    resolved = resolve_links_in_file(str(path), docs)

    if session.as_json:
        click.echo(output.ok([output.resolved_link(file, r) for r in resolved]))
        return
    for r in resolved:
        click.echo(output.resolved_link_text(file, r))


@cli.command()
@click.argument("pattern")
@reports_errors
def search(session: Session, pattern):
    """Search org files for a regular expression."""
    results = search_docs(pattern, session.load_docs())
    if session.as_json:
        click.echo(output.ok([output.search_result(r) for r in results]))
        return
    for r in results:
        click.echo(output.search_result_text(r))


# --- Mutations ---


@cli.command()
@click.argument("file")
@click.argument("identifier")
@click.argument("state")
@reports_errors
def todo(session: Session, file, identifier, state):
    """Set the TODO state of a headline ("" clears it)."""
    now = _now()
    _mutate(session, file, identifier, "TODO state updated",
            lambda config, content, pos: mutations.set_todo_state(config, content, pos, state or None, now))


@cli.command()
@click.argument("file")
@click.argument("identifier")
@click.argument("date_arg", metavar="DATE")
@reports_errors
def schedule(session: Session, file, identifier, date_arg):
    """Set SCHEDULED to DATE (YYYY-MM-DD or an org timestamp; "" clears it)."""
    ts = _optional_date(date_arg)
    now = _now()
    _mutate(session, file, identifier, "Schedule updated",
            lambda config, content, pos: mutations.set_scheduled(config, content, pos, ts, now))


@cli.command()
@click.argument("file")
@click.argument("identifier")
@click.argument("date_arg", metavar="DATE")
@reports_errors
def deadline(session: Session, file, identifier, date_arg):
    """Set DEADLINE to DATE (YYYY-MM-DD or an org timestamp; "" clears it)."""
    ts = _optional_date(date_arg)
    now = _now()
    _mutate(session, file, identifier, "Deadline updated",
            lambda config, content, pos: mutations.set_deadline(config, content, pos, ts, now))


@cli.command()
@click.argument("file")
@click.argument("identifier")
@click.argument("value", metavar="PRIORITY")
@reports_errors
def priority(session: Session, file, identifier, value):
    """Set the priority cookie ("" clears it)."""
    _mutate(session, file, identifier, "Priority updated",
            lambda config, content, pos: mutations.set_priority(config, content, pos, value or None))


@cli.command()
@click.argument("file")
@click.argument("identifier")
@click.argument("text")
@reports_errors
def note(session: Session, file, identifier, text):
    """Add a note to a headline's logbook."""
    now = _now()
    _mutate(session, file, identifier, "Note added",
            lambda config, content, pos: mutations.add_note(config, content, pos, text, now))


@cli.group()
def tag():
    """Add or remove tags."""


@tag.command("add")
@click.argument("file")
@click.argument("identifier")
@click.argument("name", metavar="TAG")
@reports_errors
def tag_add(session: Session, file, identifier, name):
    """Add TAG, dropping tags from the same #+TAGS: exclusive group."""

    def transform(config, content, pos):
        keywords, _, _ = parse_file_section(content)
        groups = tag_groups_from_keywords(keywords)
        return mutations.add_tag_with_exclusion(config, content, pos, name, groups)

    _mutate(session, file, identifier, "Tag added", transform)


@tag.command("remove")
@click.argument("file")
@click.argument("identifier")
@click.argument("name", metavar="TAG")
@reports_errors
def tag_remove(session: Session, file, identifier, name):
    """Remove TAG."""
    _mutate(session, file, identifier, "Tag removed",
            lambda config, content, pos: mutations.remove_tag(config, content, pos, name))


@cli.group("property")
def property_group():
    """Set or remove properties."""


@property_group.command("set")
@click.argument("file")
@click.argument("identifier")
@click.argument("key")
@click.argument("value")
@reports_errors
def property_set(session: Session, file, identifier, key, value):
    """Set property KEY to VALUE."""
    _mutate(session, file, identifier, "Property set",
            lambda config, content, pos: mutations.set_property(content, pos, key, value))


@property_group.command("remove")
@click.argument("file")
@click.argument("identifier")
@click.argument("key")
@reports_errors
def property_remove(session: Session, file, identifier, key):
    """Remove property KEY."""
    _mutate(session, file, identifier, "Property removed",
            lambda config, content, pos: mutations.remove_property(content, pos, key))


@cli.group(invoke_without_command=True)
@click.pass_context
def clock(ctx):
    """Clock in, clock out, or report logged time (the default)."""
    if ctx.invoked_subcommand is None:
        ctx.invoke(clock_report)


@clock.command("in")
@click.argument("file")
@click.argument("identifier")
@reports_errors
def clock_in(session: Session, file, identifier):
    """Start a clock on a headline."""
    now = _now()
    _mutate(session, file, identifier, "Clock started",
            lambda config, content, pos: mutations.clock_in(content, pos, now))


@clock.command("out")
@click.argument("file")
@click.argument("identifier")
@reports_errors
def clock_out(session: Session, file, identifier):
    """Stop the running clock on a headline."""
    now = _now()
    _mutate(session, file, identifier, "Clock stopped",
            lambda config, content, pos: mutations.clock_out(content, pos, now))


@clock.command("report")
@reports_errors
def clock_report(session: Session):
    """Time logged per headline."""
    rows = collect_clock_entries(session.load_docs())
    if session.as_json:
        click.echo(output.ok([output.clock_row(r) for r in rows]))
        return
    for row in rows:
        click.echo(output.clock_row_text(row))
    click.echo()
    grand_total = total_duration([e for row in rows for e in row.entries])
    click.echo(f"Total: {format_duration(grand_total)}")


@cli.command()
@click.argument("file")
@click.argument("title")
@click.option("--todo", "todo_state", help="TODO state")
@click.option("--priority", "priority_value", help="Priority letter")
@click.option("--tag", "tags", multiple=True, help="Tag (repeatable)")
@click.option("--scheduled", help="SCHEDULED date (YYYY-MM-DD)")
@click.option("--deadline", "deadline_date", help="DEADLINE date (YYYY-MM-DD)")
@click.option("--under", help="Parent headline (offset, ID or title)")
@reports_errors
def add(session: Session, file, title, todo_state, priority_value, tags, scheduled, deadline_date, under):
    """Add a new headline to FILE (created if missing)."""
    path = Path(file)
    monitor = FileMonitor()
    content = read_org_file(path, monitor) if path.exists() else ""
    if priority_value:
        mutations.check_priority(effective_config(session.config(), content), priority_value)
    fields = dict(
        todo_state=todo_state,
        priority=priority_value or None,
        tags=list(tags),
        scheduled=_optional_date(scheduled or ""),
        deadline=_optional_date(deadline_date or ""),
    )

    if under:
        parent_pos = resolve_headline_position(content, under, session.config())
        pos = mutations.new_headline_position(content, parent_pos)
        new_content = mutations.add_headline_under(content, parent_pos, title, **fields)
    else:
        pos = mutations.new_headline_position(content)
        new_content = mutations.add_headline(content, title, **fields)

    _write(session, path, content, new_content, monitor)
    logger.info("headline_added", file=file, pos=pos, title=title, dry_run=session.dry_run)
    _report_state(session, new_content, pos, "Headline added")


@cli.command()
@click.argument("src_file")
@click.argument("src_identifier")
@click.argument("tgt_file")
@click.argument("tgt_identifier", required=False)
@reports_errors
def refile(session: Session, src_file, src_identifier, tgt_file, tgt_identifier):
    """Move a subtree under a target headline (default: the target file's last headline)."""
    config = session.config()
    src_path, tgt_path = Path(src_file), Path(tgt_file)
    same_file = src_path.resolve() == tgt_path.resolve()
    monitor = FileMonitor()

    src_content = read_org_file(src_path, monitor)
    tgt_content = src_content if same_file else read_org_file(tgt_path, monitor)
    src_pos = resolve_headline_position(src_content, src_identifier, config)

    if tgt_identifier:
        tgt_pos = resolve_headline_position(tgt_content, tgt_identifier, config)
    else:
        tgt_headlines = parse_with_config(config, tgt_content).headlines
        if not tgt_headlines:
            raise InvalidArgsError(f"No headline to refile under in {tgt_file}", detail=tgt_file)
        tgt_pos = tgt_headlines[-1].position

    new_src, new_tgt = mutations.refile(config, src_content, src_pos, tgt_content, tgt_pos, same_file, _now())
    _write(session, src_path, src_content, new_src, monitor)
    if not same_file:
        _write(session, tgt_path, tgt_content, new_tgt, monitor)
    logger.info("subtree_refiled", source=src_file, target=tgt_file, dry_run=session.dry_run)

    if session.as_json:
        click.echo(output.ok({"source_file": src_file, "target_file": tgt_file, "dry_run": session.dry_run}))
    else:
        session.info("Refile complete")


@cli.command()
@click.argument("file")
@click.argument("identifier")
@reports_errors
def archive(session: Session, file, identifier):
    """Move a subtree to the archive location (default FILE_archive)."""
    path = Path(file)
    monitor = FileMonitor()
    content = read_org_file(path, monitor)
    config = effective_config(session.config(), content)
    pos = resolve_headline_position(content, identifier, config)

    headlines = parse_with_config(config, content).headlines
    target = next((h for h in headlines if h.position == pos), None)
    outline_path = compute_outline_path(headlines, target) if target is not None else []
    archive_file, heading = mutations.archive_location_for(config, str(path))
    archive_path = Path(archive_file)
    now = _now()

    if archive_path.resolve() == path.resolve():
        # Archive into the source with the subtree already removed
        new_src, _ = mutations.archive(content, pos, "", str(path), outline_path, now, config, heading)
        _, result = mutations.archive(content, pos, new_src, str(path), outline_path, now, config, heading)
        _write(session, path, content, result, monitor)
    else:
        archive_content = read_org_file(archive_path, monitor) if archive_path.exists() else ""
        new_src, new_archive = mutations.archive(
            content, pos, archive_content, str(path), outline_path, now, config, heading
        )
        # Archive first so a failure never loses the subtree
        _write(session, archive_path, archive_content, new_archive, monitor)
        _write(session, path, content, new_src, monitor)
    logger.info("subtree_archived", source=file, archive=archive_file, dry_run=session.dry_run)

    if session.as_json:
        click.echo(output.ok({"source_file": file, "archive_file": archive_file, "dry_run": session.dry_run}))
    else:
        session.info(f"Archived to {archive_file}")


@cli.command()
@reports_errors
def batch(session: Session):
    """Run JSON commands from stdin against the org files, writing each changed file once."""
    json_text = click.get_text_stream("stdin").read()
    monitor = FileMonitor()
    paths = {str(p): p for p in session.org_files()}
    contents = {name: read_org_file(p, monitor) for name, p in paths.items()}

    results, new_contents = execute_batch(session.config(), json_text, contents, _now())
    for name, new in new_contents.items():
        _write(session, paths[name], contents[name], new, monitor)
    click.echo(output.batch_results(results))


def main():
    """Main entry point for setuptools console script."""
    cli()


if __name__ == "__main__":
    main()
