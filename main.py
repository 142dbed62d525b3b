"""Main CLI entry point for flowread."""
import asyncio
import sys
from pathlib import Path
from typing import Optional, Tuple

import click
from rich.align import Align
from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.text import Text

from utils.logger import setup_logger
from ingestion.models import Document, FileSource, PasteSource, ReadingPlan, Source, UrlSource
from ingestion.errors import ExtractionError
from ingestion.pipeline import build_reading_plan, extract_document
from ingestion.segmenter import detect_chapters
from ingestion.sequencer import count_words
from monitoring.progress_tracker import ProgressTracker
from playback.engine import EngineStateError, RSVPEngine
from playback.models import ORP_THEMES, RenderState, SessionStats
from playback.scheduler import AsyncioScheduler
from storage.database import SessionStore
from storage.offline_queue import OfflineQueue
from storage.progress import ProgressWriter

logger = setup_logger(__name__)
console = Console()

ORP_COLUMN = 20


def resolve_source(source: Optional[str], paste: bool) -> Source:
    """Turn a CLI argument into a Source.

    Args:
        source: File path or URL
        paste: Read pasted text from stdin instead

    Returns:
        FileSource, UrlSource or PasteSource
    """
    if paste:
        return PasteSource(text=sys.stdin.read())
    if not source:
        raise click.UsageError("Give a file path or URL, or use --paste")

    path = Path(source)
    if path.is_file():
        return FileSource(data=path.read_bytes(), name=path.name)
    return UrlSource(url=source)


def load_document(source: Source) -> Document:
    """Extract a document, showing PDF progress for large files."""
    if isinstance(source, FileSource) and source.name.lower().endswith('.pdf'):
        with ProgressTracker(console) as tracker:
            tracker.start(f"Extracting {source.name}...")
            document = asyncio.run(extract_document(source, on_progress=tracker.on_progress))
            tracker.finish()
        return document

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True
    ) as progress:
        progress.add_task("Extracting text...", total=None)
        return asyncio.run(extract_document(source))


def render_word(state: RenderState, title: str) -> Panel:
    """Draw the current word with its focus letter on a fixed column."""
    word = Text(" " * max(0, ORP_COLUMN - len(state.before)))
    word.append(state.before, style="bold white")
    word.append(state.focus, style=f"bold {state.theme_color}")
    word.append(state.after, style="bold white")

    guide = Text(" " * ORP_COLUMN + "▼", style="dim")

    status = f"{state.wpm} wpm{' (ramping)' if state.ramping else ''} · {state.progress:.0f}%"
    status += f" · ~{state.minutes_left} min left"
    if state.chapter_title:
        status += f" · {state.chapter_index + 1}/{state.chapter_count} {state.chapter_title}"
    if state.state.value != "playing":
        status += f" · {state.state.value}"

    body = Group(guide, Text() if state.fading else word, Text(status, style="dim"))
    return Panel(Align.left(body), title=title, border_style="cyan", width=ORP_COLUMN * 3)


async def play_plan(
    plan: ReadingPlan,
    wpm: Optional[int],
    auto_ramp: bool,
    theme: str,
    chapter: Optional[int],
    start_index: int = 0,
    session_id: Optional[str] = None,
    writer: Optional[ProgressWriter] = None
) -> Tuple[SessionStats, bool]:
    """Run the reader until the end or Ctrl+C.

    Returns:
        Session stats and whether the document was finished
    """
    loop = asyncio.get_running_loop()
    finished = loop.create_future()

    with Live(console=console, refresh_per_second=30) as live:
        def on_tick(state: RenderState) -> None:
            live.update(render_word(state, plan.title))

        def on_done(stats: SessionStats) -> None:
            if not finished.done():
                finished.set_result(stats)

        engine = RSVPEngine(
            plan,
            AsyncioScheduler(loop),
            wpm=wpm,
            auto_ramp=auto_ramp,
            theme=theme,
            start_index=start_index,
            on_tick=on_tick,
            on_done=on_done,
            session_id=session_id,
            authenticated=writer is not None,
            persist_progress=writer.persist_progress if writer else None
        )
        if chapter:
            engine.goto_chapter(chapter - 1)
        engine.play()

        try:
            return await finished, True
        except asyncio.CancelledError:
            engine.pause()
            return engine.stats(), False


def print_stats(stats: SessionStats, complete: bool) -> None:
    label = "[green]✓ Finished![/green]" if complete else "[yellow]Paused[/yellow]"
    console.print(f"\n{label}")
    console.print(f"Words read: [cyan]{stats.words_read}[/cyan]")
    console.print(f"Time: [cyan]{stats.elapsed_seconds}s[/cyan]")
    console.print(f"Average speed: [cyan]{stats.avg_wpm} wpm[/cyan]")


def run_reader(plan: ReadingPlan, user: Optional[str], session: Optional[dict], **options) -> None:
    writer = None
    session_id = None
    if user:
        writer = ProgressWriter(SessionStore(), OfflineQueue())
        if session is None:
            session = writer.create(
                user_id=user,
                content_text=options.pop('content_text'),
                word_count=plan.word_count,
                title=plan.title,
                source_type=options.pop('source_type'),
                source_url=options.pop('source_url')
            )
        session_id = session['id']
        console.print(f"Session: [cyan]{session_id}[/cyan]")
    for key in ('content_text', 'source_type', 'source_url'):
        options.pop(key, None)

    try:
        stats, complete = asyncio.run(play_plan(plan, session_id=session_id, writer=writer, **options))
    except EngineStateError as e:
        console.print(f"[red]Error: {e}[/red]")
        return

    if writer and complete:
        writer.complete(session_id, stats)
    print_stats(stats, complete)


@click.group()
def cli():
    """flowread - speed reading in the terminal, one word at a time."""
    pass


@cli.command()
@click.argument('source', required=False)
@click.option('--paste', is_flag=True, help='Read pasted text from stdin')
def extract(source, paste):
    """Extract and clean text, then show its chapters."""
    try:
        document = load_document(resolve_source(source, paste))
        plan = build_reading_plan(document)
    except ExtractionError as e:
        console.print(f"[red]Error: {e}[/red]")
        return

    console.print(f"\n[bold cyan]{document.title}[/bold cyan]")
    console.print(plan.summary(document.metadata.get('filename')))

    if plan.has_chapters:
        table = Table(title="Chapters")
        table.add_column("#", justify="right", style="cyan")
        table.add_column("Title")
        table.add_column("Words", justify="right")
        for i, chapter in enumerate(plan.chapters, start=1):
            table.add_row(str(i), chapter.title, f"{count_words(chapter.words):,}")
        console.print(table)


@cli.command()
@click.argument('source', required=False)
@click.option('--paste', is_flag=True, help='Read pasted text from stdin')
@click.option('--wpm', type=int, default=None, help='Fixed reading speed (turns off the ramp)')
@click.option('--no-ramp', is_flag=True, help='Start at full speed instead of warming up')
@click.option('--theme', type=click.Choice(list(ORP_THEMES)), default="focus", help='Focus letter colour')
@click.option('--chapter', type=int, default=None, help='Chapter to start from (1-based)')
@click.option('--user', default=None, help='Reader id; saves the session and progress')
def read(source, paste, wpm, no_ramp, theme, chapter, user):
    """Read a file, URL or pasted text. Ctrl+C pauses and exits."""
    try:
        src = resolve_source(source, paste)
        document = load_document(src)
        plan = build_reading_plan(document)
    except ExtractionError as e:
        console.print(f"[red]Error: {e}[/red]")
        return

    if chapter and not 1 <= chapter <= len(plan.chapters):
        console.print(f"[red]Error: chapter must be between 1 and {len(plan.chapters)}[/red]")
        return

    console.print(plan.summary(document.metadata.get('filename')))
    run_reader(
        plan,
        user,
        None,
        content_text=document.text,
        source_type=document.source_type,
        source_url=src.url if isinstance(src, UrlSource) else None,
        wpm=wpm,
        auto_ramp=not (no_ramp or wpm),
        theme=theme,
        chapter=chapter
    )


@cli.command()
@click.argument('session_id')
@click.option('--user', required=True, help='Reader id')
@click.option('--wpm', type=int, default=None, help='Fixed reading speed (turns off the ramp)')
@click.option('--theme', type=click.Choice(list(ORP_THEMES)), default="focus", help='Focus letter colour')
def resume(session_id, user, wpm, theme):
    """Continue a saved session where it stopped."""
    session = SessionStore().get_session(session_id)
    if not session or session['user_id'] != user:
        console.print(f"[red]Error: No session {session_id} for {user}[/red]")
        return
    if session['completed']:
        console.print("[yellow]This session is already finished; starting over.[/yellow]")

    text = session['content_text']
    chapters = None if session['source_type'] == "url" else detect_chapters(text)
    document = Document(
        text=text,
        title=session['title'],
        source_type=session['source_type'],
        chapters=chapters
    )

    try:
        plan = build_reading_plan(document)
    except ExtractionError as e:
        console.print(f"[red]Error: {e}[/red]")
        return

    start = 0 if session['completed'] else session['current_position']
    console.print(f"Resuming [cyan]{session['title']}[/cyan] at word {start:,} of {plan.word_count:,}")
    run_reader(
        plan,
        user,
        session,
        wpm=wpm,
        auto_ramp=not wpm,
        theme=theme,
        chapter=None,
        start_index=start
    )


@cli.command()
@click.option('--user', required=True, help='Reader id')
@click.option('--all', 'show_all', is_flag=True, help='Include finished sessions')
def sessions(user, show_all):
    """List reading sessions."""
    store = SessionStore()
    rows = store.get_all_sessions(user) if show_all else store.get_incomplete_sessions(user)

    if not rows:
        console.print("[yellow]No sessions found[/yellow]")
        return

    table = Table(title="Reading Sessions")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Source")
    table.add_column("Progress", justify="right")
    table.add_column("Avg WPM", justify="right")
    table.add_column("Last Read")

    for row in rows:
        if row.get('completed'):
            progress = "[green]done[/green]"
        else:
            progress = f"{row['current_position']:,}/{row['word_count']:,}"
        table.add_row(
            row['id'],
            row['title'],
            row['source_type'],
            progress,
            str(row['average_wpm'] or '-'),
            row['last_read_at'][:16].replace('T', ' ')
        )

    console.print(table)


@cli.command()
def sync():
    """Write queued offline sessions and progress to the store."""
    queue = OfflineQueue()
    pending = len(queue)
    if not pending:
        console.print("[green]Nothing to sync[/green]")
        return

    synced = ProgressWriter(SessionStore(), queue).sync()
    console.print(f"Synced [cyan]{synced}[/cyan] of {pending} queued item(s)")
    if synced < pending:
        console.print(f"[yellow]{pending - synced} item(s) still pending[/yellow]")


if __name__ == '__main__':
    cli()
