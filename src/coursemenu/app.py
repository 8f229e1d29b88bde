"""
Interactive terminal client for the course command menu.

Each line typed in a palette session replaces the input buffer; a handful of
bracketed commands stand in for the keys of the graphical palette.
"""
import asyncio
import sys

from rich import box
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from .cache_store import SqliteCacheStore
from .catalog import EntityCatalog, load_catalog
from .config import CACHE_DB_PATH, MENTION_MARKER, SELECTION_POLICY, console
from .document_resolver import DocumentResolver, decode_payload
from .errors import CatalogError, FetchError, StorageError
from .keymap import SUBMIT, handle_key
from .menu import CommandMenu
from .metrics import ResolutionMetrics
from .submission import QuestionSubmitter, Submission

KEY_COMMANDS = {
    "[tab]": "Tab",
    "[esc]": "Escape",
    "[back]": "Backspace",
    "[enter]": "Enter",
}


def display_welcome_banner():
    console.print(Panel(
        "[bold cyan]Course Command Menu[/bold cyan]\n"
        f"Type {MENTION_MARKER} followed by a course name to attach it to your question.",
        title="Welcome",
        border_style="cyan",
    ))
    console.print(f"[green]Selection policy: {SELECTION_POLICY}[/green]")


def list_courses(catalog: EntityCatalog):
    table = Table(title="Courses", box=box.SIMPLE)
    table.add_column("ID", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Semester")
    for entity in catalog:
        table.add_row(entity.id, entity.name, entity.semester)
    console.print(table)


def render_menu(menu: CommandMenu):
    snap = menu.snapshot()
    badges = " ".join(f"[bold]{MENTION_MARKER}{escape(name)}[/bold]" for name in snap.selected)
    line = f"{badges} {escape(snap.input_value)}[dim]{escape(snap.ghost_text)}[/dim]".strip()
    hint = "  [blue]TAB[/blue]" if snap.suggestion and not snap.typing else ""
    console.print(f"> {line or '[dim]Press @ to talk to a course[/dim]'}{hint}")


def print_submission(submission: Submission):
    """Stands in for the external answering call: shows what would be sent."""
    lines = [f"**Question:** {submission.question or '(none)'}", ""]
    for context in submission.contexts:
        size_kb = len(decode_payload(context.payload)) / 1024
        lines.append(f"- {context.entity_name} ({size_kb:.1f} KB attached)")
    if not submission.contexts:
        lines.append("- no course material attached")
    console.print(Panel(Markdown("\n".join(lines)), title="Submission", border_style="blue"))


async def run_palette_session(menu: CommandMenu, submitter: QuestionSubmitter):
    """Runs one open palette until it is closed."""
    menu.dispatch("open")
    console.print(
        "\n[bold green]Palette open.[/bold green] "
        "[italic]Commands: \\[tab] accept, \\[esc] reject/close, \\[back] remove last course, \\[enter] submit[/italic]"
    )
    while menu.is_open:
        raw = await asyncio.to_thread(Prompt.ask, "[bold cyan]Input[/bold cyan]", default="")
        key = KEY_COMMANDS.get(raw.strip().lower())
        if key is None:
            menu.dispatch("edit", raw)
            await menu.scheduler.drain()
            render_menu(menu)
            continue

        if handle_key(menu, key) == SUBMIT:
            try:
                with console.status("[bold cyan]Preparing course material...[/bold cyan]", spinner="dots") as status:
                    def _show_stage(stage: str):
                        status.update(f"[bold cyan]{stage.capitalize()}...[/bold cyan]")

                    await submitter.submit(on_progress=_show_stage)
            except (FetchError, StorageError, CatalogError) as exc:
                console.print(f"[bold red]{exc}[/bold red]")
            menu.dispatch("close")
        elif menu.is_open:
            render_menu(menu)


async def _main_async(catalog: EntityCatalog):
    store = SqliteCacheStore(CACHE_DB_PATH)
    async with DocumentResolver(store, metrics=ResolutionMetrics()) as resolver:
        menu = CommandMenu(catalog.names)
        submitter = QuestionSubmitter(
            menu=menu,
            catalog=catalog,
            resolver=resolver,
            answer_handler=print_submission,
        )
        try:
            while True:
                console.print("\n[bold]Main Menu:[/bold]")
                console.print("[green]1. Open Command Menu[/green]")
                console.print("[cyan]2. List Courses[/cyan]")
                console.print("[yellow]3. Clear Document Cache[/yellow]")
                console.print("[red]4. Exit[/red]")
                choice = await asyncio.to_thread(Prompt.ask, "Choose an option", choices=["1", "2", "3", "4"])

                if choice == "1":
                    await run_palette_session(menu, submitter)
                elif choice == "2":
                    list_courses(catalog)
                elif choice == "3":
                    await resolver.clear_cache()
                    console.print("[green]Document cache cleared.[/green]")
                elif choice == "4":
                    break
        finally:
            store.close()


def main():
    """Main application loop."""
    display_welcome_banner()
    try:
        catalog = load_catalog()
    except CatalogError as exc:
        console.print(f"[bold red]{exc}[/bold red]")
        sys.exit(1)

    try:
        asyncio.run(_main_async(catalog))
    except KeyboardInterrupt:
        pass

    console.print("\n[bold magenta]Goodbye![/bold magenta]")
    sys.exit(0)


if __name__ == "__main__":
    main()
