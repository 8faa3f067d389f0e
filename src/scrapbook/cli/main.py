"""
Command Line Interface for the digital scrapbook.

A thin consumer of :class:`~scrapbook.store.ArchiveStore`: every command opens
the configured archive, performs one operation through the store facade, and
renders the result with Rich.
"""

import functools
import logging
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from scrapbook import __version__
from scrapbook.config import AppConfig, ConfigError, load_config
from scrapbook.core.models import Album, Memory, MemoryType, MoodType
from scrapbook.errors import NotFoundError, ScrapbookError
from scrapbook.store import ArchiveStore
from scrapbook.utils.logging import setup_logging

logger = logging.getLogger(__name__)

console = Console()

DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S"]


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def print_header(text: str) -> None:
    """Print a styled header."""
    console.print()
    console.print(Panel(text, style="bold blue", expand=False))
    console.print()


def print_success(text: str) -> None:
    console.print(f"[bold green]✓[/bold green] {text}")


def print_warning(text: str) -> None:
    console.print(f"[bold yellow]⚠[/bold yellow] {escape(text)}")


def print_error(text: str) -> None:
    console.print(f"[bold red]✗[/bold red] {escape(text)}")


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Report archive errors in red and exit non-zero instead of tracing back."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except ScrapbookError as e:
            logger.debug("Command failed", exc_info=True)
            print_error(str(e))
            sys.exit(1)

    return wrapper


def open_store(ctx: click.Context) -> ArchiveStore:
    """Open the archive described by the group options."""
    config: AppConfig = ctx.obj["config"]
    return ArchiveStore.from_config(config, on_warning=print_warning).open()


def resolve_memory_id(store: ArchiveStore, ref: str) -> str:
    """Accept a full memory id or a unique prefix of one."""
    if store.find_memory(ref) is not None:
        return ref
    matches = [m.id for m in store.memories if m.id.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    raise NotFoundError("Memory", ref)


def resolve_album_id(store: ArchiveStore, ref: str) -> str:
    """Accept a full album id or a unique prefix of one."""
    if store.find_album(ref) is not None:
        return ref
    matches = [a.id for a in store.albums if a.id.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    raise NotFoundError("Album", ref)


def print_memory_table(memories: list[Memory], title: str = "Memories") -> None:
    if not memories:
        console.print("[dim]No memories found.[/dim]")
        return

    table = Table(title=title)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Date")
    table.add_column("Type")
    table.add_column("Title", style="bold")
    table.add_column("Tags")
    table.add_column("♥", justify="center")

    for memory in memories:
        table.add_row(
            memory.id[:8],
            memory.date.date().isoformat(),
            memory.type.value,
            escape(memory.title),
            escape(", ".join(memory.tags)),
            "♥" if memory.is_liked else "",
        )
    console.print(table)


def print_album_table(albums: list[Album]) -> None:
    if not albums:
        console.print("[dim]No albums yet.[/dim]")
        return

    table = Table(title="Albums")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title", style="bold")
    table.add_column("Memories", justify="right")
    table.add_column("Description")

    for album in albums:
        table.add_row(
            album.id[:8],
            escape(album.title),
            str(len(album.memories)),
            escape(album.description or ""),
        )
    console.print(table)


# =============================================================================
# MAIN CLI GROUP
# =============================================================================


@click.group()
@click.version_option(__version__, prog_name="Digital Scrapbook")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--debug", is_flag=True, help="Enable debug mode")
@click.option("--config", "config_path", type=click.Path(path_type=Path), help="Custom config file")
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Archive directory (overrides storage.data_dir)",
)
@click.pass_context
def scrapbook(
    ctx: click.Context,
    verbose: bool,
    debug: bool,
    config_path: Path | None,
    data_dir: Path | None,
) -> None:
    """
    Digital Scrapbook - Keep your memories, albums and time capsules.

    Everything is stored locally in the configured data directory.
    """
    try:
        config = load_config(config_path)
    except ConfigError as e:
        print_error(str(e))
        sys.exit(1)

    config.debug = config.debug or debug
    config.verbose = config.verbose or verbose
    if data_dir is not None:
        config.storage.data_dir = data_dir.expanduser().resolve()

    setup_logging(
        level=config.effective_log_level(),
        log_file=config.logging.log_file,
        quiet_third_party=config.logging.quiet_third_party,
    )

    ctx.ensure_object(dict)
    ctx.obj["config"] = config


# =============================================================================
# MEMORY COMMANDS
# =============================================================================


@scrapbook.command()
@click.argument("title")
@click.option("--date", "when", type=click.DateTime(DATE_FORMATS), help="When it happened (default: now)")
@click.option(
    "--type",
    "memory_type",
    type=click.Choice([t.value for t in MemoryType]),
    default=MemoryType.TEXT.value,
    show_default=True,
)
@click.option("--description", "-d", help="Longer description")
@click.option("--location", "-l", help="Where it happened")
@click.option("--tag", "-t", "tags", multiple=True, help="Tag (repeatable)")
@click.option("--mood", type=click.Choice([m.value for m in MoodType]))
@click.option("--content", help="Body text for text memories")
@click.option("--media-url", help="Location of the photo, video or audio file")
@click.option(
    "--capsule-until",
    type=click.DateTime(DATE_FORMATS),
    help="Seal as a time capsule until this date",
)
@click.pass_context
@handle_errors
def add(
    ctx: click.Context,
    title: str,
    when: datetime | None,
    memory_type: str,
    description: str | None,
    location: str | None,
    tags: tuple[str, ...],
    mood: str | None,
    content: str | None,
    media_url: str | None,
    capsule_until: datetime | None,
) -> None:
    """Record a new memory."""
    store = open_store(ctx)
    draft: dict[str, Any] = {
        "title": title,
        "date": when or datetime.now().astimezone(),
        "type": memory_type,
        "description": description,
        "location": location,
        "tags": list(tags),
        "mood": mood,
        "content": content,
        "media_url": media_url,
    }
    if capsule_until is not None:
        draft["is_time_capsule"] = True
        draft["unlock_date"] = capsule_until

    memory_id = store.create_memory(draft)
    print_success(f"Created memory {memory_id}")
    if capsule_until is not None:
        console.print(f"[magenta]Sealed until {capsule_until.date().isoformat()}[/magenta]")


@scrapbook.command(name="list")
@click.option("--liked", is_flag=True, help="Only favorites")
@click.option("--tag", "-t", help="Only memories with this tag")
@click.option("--search", "-s", "query", help="Search title, description and tags")
@click.option("--from", "start", type=click.DateTime(DATE_FORMATS), help="Earliest date")
@click.option("--to", "end", type=click.DateTime(DATE_FORMATS), help="Latest date")
@click.pass_context
@handle_errors
def list_memories(
    ctx: click.Context,
    liked: bool,
    tag: str | None,
    query: str | None,
    start: datetime | None,
    end: datetime | None,
) -> None:
    """List memories, oldest first."""
    store = open_store(ctx)
    memories = store.memories
    if liked:
        memories = [m for m in memories if m.is_liked]
    if tag:
        memories = [m for m in memories if tag in m.tags]
    if query:
        memories = [m for m in memories if m.matches(query)]
    if start or end:
        in_range = {
            m.id
            for m in store.memories_between(
                start.date() if start else date.min,
                end.date() if end else date.max,
            )
        }
        memories = [m for m in memories if m.id in in_range]
    print_memory_table(memories)


@scrapbook.command()
@click.argument("memory_ref")
@click.pass_context
@handle_errors
def show(ctx: click.Context, memory_ref: str) -> None:
    """Show every field of one memory."""
    store = open_store(ctx)
    memory = store.get_memory(resolve_memory_id(store, memory_ref))

    lines = [
        f"[bold]ID:[/bold] {memory.id}",
        f"[bold]Date:[/bold] {memory.date.isoformat()}",
        f"[bold]Type:[/bold] {memory.type.value}",
    ]
    if memory.description:
        lines.append(f"[bold]Description:[/bold] {escape(memory.description)}")
    if memory.location:
        lines.append(f"[bold]Location:[/bold] {escape(memory.location)}")
    if memory.tags:
        lines.append(f"[bold]Tags:[/bold] {escape(', '.join(memory.tags))}")
    if memory.mood:
        lines.append(f"[bold]Mood:[/bold] {memory.mood.value}")
    if memory.applied_filter:
        lines.append(f"[bold]Filter:[/bold] {escape(memory.applied_filter)}")
    if memory.is_time_capsule and memory.unlock_date:
        lines.append(f"[bold]Unlocks:[/bold] {memory.unlock_date.date().isoformat()}")
    lines.append(f"[bold]Favorite:[/bold] {'yes' if memory.is_liked else 'no'}")
    if memory.content:
        lines.append("")
        lines.append(escape(memory.content))

    console.print(Panel("\n".join(lines), title=escape(memory.title), border_style="blue"))


@scrapbook.command()
@click.argument("memory_ref")
@click.option("--title")
@click.option("--description", "-d")
@click.option("--location", "-l")
@click.option("--mood", type=click.Choice([m.value for m in MoodType]))
@click.option("--tag", "-t", "tags", multiple=True, help="Replace tags (repeatable)")
@click.pass_context
@handle_errors
def edit(
    ctx: click.Context,
    memory_ref: str,
    title: str | None,
    description: str | None,
    location: str | None,
    mood: str | None,
    tags: tuple[str, ...],
) -> None:
    """Change fields of a memory."""
    changes: dict[str, Any] = {
        key: value
        for key, value in {
            "title": title,
            "description": description,
            "location": location,
            "mood": mood,
        }.items()
        if value is not None
    }
    if tags:
        changes["tags"] = list(tags)
    if not changes:
        print_warning("Nothing to change.")
        return

    store = open_store(ctx)
    memory_id = resolve_memory_id(store, memory_ref)
    store.update_memory(memory_id, changes)
    print_success(f"Updated {', '.join(sorted(changes))}")


@scrapbook.command()
@click.argument("memory_ref")
@click.pass_context
@handle_errors
def like(ctx: click.Context, memory_ref: str) -> None:
    """Toggle a memory's favorite flag."""
    store = open_store(ctx)
    memory_id = resolve_memory_id(store, memory_ref)
    store.toggle_like(memory_id)
    if store.get_memory(memory_id).is_liked:
        print_success("Added to favorites")
    else:
        print_success("Removed from favorites")


@scrapbook.command(name="filter")
@click.argument("memory_ref")
@click.argument("name", required=False)
@click.pass_context
@handle_errors
def apply_filter(ctx: click.Context, memory_ref: str, name: str | None) -> None:
    """Set a photo filter by NAME, or clear it when NAME is omitted."""
    store = open_store(ctx)
    store.apply_filter(resolve_memory_id(store, memory_ref), name)
    print_success(f"Applied filter '{name}'" if name else "Cleared filter")


@scrapbook.command()
@click.argument("memory_ref")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
@handle_errors
def delete(ctx: click.Context, memory_ref: str, yes: bool) -> None:
    """Delete a memory (it is also removed from every album)."""
    store = open_store(ctx)
    memory = store.get_memory(resolve_memory_id(store, memory_ref))
    if not yes and not click.confirm(f"Delete '{memory.title}'?", default=False):
        console.print("[dim]Cancelled.[/dim]")
        return
    store.delete_memory(memory.id)
    print_success(f"Deleted '{escape(memory.title)}'")


# =============================================================================
# ALBUM COMMANDS
# =============================================================================


@scrapbook.group()
def album() -> None:
    """Create and organize albums."""


@album.command(name="create")
@click.argument("title")
@click.option("--description", "-d")
@click.pass_context
@handle_errors
def album_create(ctx: click.Context, title: str, description: str | None) -> None:
    """Create an empty album."""
    store = open_store(ctx)
    album_id = store.create_album({"title": title, "description": description})
    print_success(f"Created album {album_id}")


@album.command(name="list")
@click.pass_context
@handle_errors
def album_list(ctx: click.Context) -> None:
    """List albums."""
    print_album_table(open_store(ctx).albums)


@album.command(name="show")
@click.argument("album_ref")
@click.pass_context
@handle_errors
def album_show(ctx: click.Context, album_ref: str) -> None:
    """List the memories in an album."""
    store = open_store(ctx)
    album_id = resolve_album_id(store, album_ref)
    print_memory_table(store.album_memories(album_id), title=store.get_album(album_id).title)


@album.command(name="add")
@click.argument("album_ref")
@click.argument("memory_ref")
@click.pass_context
@handle_errors
def album_add(ctx: click.Context, album_ref: str, memory_ref: str) -> None:
    """Add a memory to an album."""
    store = open_store(ctx)
    album_id = resolve_album_id(store, album_ref)
    store.add_memory_to_album(album_id, resolve_memory_id(store, memory_ref))
    print_success(f"Album now holds {len(store.get_album(album_id).memories)} memories")


@album.command(name="remove")
@click.argument("album_ref")
@click.argument("memory_ref")
@click.pass_context
@handle_errors
def album_remove(ctx: click.Context, album_ref: str, memory_ref: str) -> None:
    """Remove a memory from an album (the memory itself is kept)."""
    store = open_store(ctx)
    album_id = resolve_album_id(store, album_ref)
    store.remove_memory_from_album(album_id, resolve_memory_id(store, memory_ref))
    print_success(f"Album now holds {len(store.get_album(album_id).memories)} memories")


@album.command(name="delete")
@click.argument("album_ref")
@click.pass_context
@handle_errors
def album_delete(ctx: click.Context, album_ref: str) -> None:
    """Delete an album (its memories are kept)."""
    store = open_store(ctx)
    store.delete_album(resolve_album_id(store, album_ref))
    print_success("Deleted album")


# =============================================================================
# INSIGHT COMMANDS
# =============================================================================


@scrapbook.command()
@click.pass_context
@handle_errors
def capsules(ctx: click.Context) -> None:
    """Show time capsules, soonest unlock first."""
    store = open_store(ctx)
    statuses = store.time_capsules()
    if not statuses:
        console.print("[dim]No time capsules yet.[/dim]")
        return

    table = Table(title="Time Capsules")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title", style="bold")
    table.add_column("Unlocks")
    table.add_column("Progress", justify="right")
    table.add_column("Status")

    for status in statuses:
        memory = status.memory
        table.add_row(
            memory.id[:8],
            "🔒 Sealed" if status.is_locked else escape(memory.title),
            memory.unlock_date.date().isoformat() if memory.unlock_date else "",
            f"{status.progress_percent}%",
            f"{status.days_remaining} days left" if status.is_locked else "[green]Open[/green]",
        )
    console.print(table)


@scrapbook.command()
@click.option("--all", "show_all", is_flag=True, help="Include locked achievements")
@click.pass_context
@handle_errors
def achievements(ctx: click.Context, show_all: bool) -> None:
    """Show unlocked achievements and progress toward the rest."""
    store = open_store(ctx)
    report = store.achievements()

    for entry in report.newly_unlocked:
        console.print(
            f"[bold yellow]🏆 New achievement:[/bold yellow] "
            f"{entry.definition.icon} {entry.definition.title}"
        )

    table = Table(title=f"Achievements ({len(report.unlocked)}/{len(report.achievements)})")
    table.add_column("", justify="center")
    table.add_column("Title", style="bold")
    table.add_column("Rarity")
    table.add_column("Progress", justify="right")
    table.add_column("Unlocked")

    for entry in report.achievements:
        if not (show_all or entry.is_unlocked):
            continue
        definition = entry.definition
        table.add_row(
            definition.icon,
            definition.title,
            definition.rarity.value,
            f"{entry.progress}/{definition.requirement}",
            entry.unlocked_at.date().isoformat() if entry.unlocked_at else "",
        )
    console.print(table)


@scrapbook.command()
@click.pass_context
@handle_errors
def stats(ctx: click.Context) -> None:
    """Show archive statistics."""
    store = open_store(ctx)
    summary = store.analytics().summary()
    user_stats = store.stats()

    print_header("📊 Scrapbook Statistics")
    console.print(f"Total Memories: {summary.total_memories:,}")
    console.print(f"Favorites: {summary.liked_memories:,}")
    console.print(f"Time Capsules: {summary.time_capsules:,}")
    console.print(f"Current Streak: {user_stats.current_streak} days")
    console.print(f"Longest Streak: {user_stats.longest_streak} days")
    if summary.most_active_weekday:
        console.print(f"Most Active Day: {summary.most_active_weekday}")

    table = Table(title="By Type")
    table.add_column("Type")
    table.add_column("Count", justify="right")
    for memory_type, count in summary.type_breakdown.items():
        table.add_row(memory_type, str(count))
    console.print(table)


# =============================================================================
# BACKUP COMMANDS
# =============================================================================


@scrapbook.command()
@click.option(
    "--format",
    "-f",
    "export_format",
    type=click.Choice(["json", "csv"]),
    default="json",
    show_default=True,
)
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Write to file")
@click.pass_context
@handle_errors
def export(ctx: click.Context, export_format: str, output: Path | None) -> None:
    """Export the archive as a JSON backup or a CSV listing."""
    store = open_store(ctx)
    document = store.export_backup(export_format)
    if output is None:
        click.echo(document, nl=False)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(document, encoding="utf-8")
    print_success(f"Exported {len(store.memories)} memories to {output}")


@scrapbook.command()
@click.argument("backup_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
@handle_errors
def restore(ctx: click.Context, backup_file: Path, yes: bool) -> None:
    """Replace the archive with a JSON backup."""
    store = open_store(ctx)
    if not yes and not click.confirm("This replaces the whole archive. Continue?", default=False):
        console.print("[dim]Cancelled.[/dim]")
        return
    snapshot = store.restore_backup(backup_file.read_text(encoding="utf-8"))
    print_success(
        f"Restored {len(snapshot.memories)} memories and {len(snapshot.albums)} albums"
    )


def main() -> None:
    """Console-script entry point."""
    scrapbook(obj={})


if __name__ == "__main__":
    main()
