"""Interactive CLI application."""
import logging
import mimetypes
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt, IntPrompt
from rich.table import Table

from kids_tutor.config import Settings, load_settings
from kids_tutor.content import ContentService
from kids_tutor.coordinator import Error, Loading, SessionCoordinator, Success, UiState
from kids_tutor.db import init_db
from kids_tutor.errors import ConfigurationError, TutorError
from kids_tutor.models import TutorSession
from kids_tutor.sessions import SessionStore

console = Console()


class SessionExitRequested(Exception):
    """Raised when the user leaves an open session."""


def session_prompt(prompt: str, **kwargs) -> str:
    answer = Prompt.ask(prompt, **kwargs)
    if answer.strip().lower() in ("q", "back", "menu"):
        raise SessionExitRequested()
    return answer


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def build_coordinator(settings: Settings) -> SessionCoordinator:
    """Wire the store and the content service; raises ConfigurationError without an API key."""
    init_db(settings.db_path)
    content = ContentService(settings.api_key, model=settings.model, vision_model=settings.vision_model)
    return SessionCoordinator(SessionStore(settings.db_path), content)


def render_state(state: UiState) -> bool:
    """Print errors; return True when the last operation succeeded."""
    match state:
        case Error(message=message):
            console.print(f"[red]{message}[/red]")
            return False
        case Loading():
            console.print("[dim]Working...[/dim]")
            return False
        case Success():
            return True


def show_welcome():
    console.print(Panel(
        "[bold]Kids Tutor[/bold]\n[dim]Pick a topic and learn something new![/dim]",
        title="Welcome", border_style="magenta",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("list", "Show your sessions"),
        ("new", "Start a new topic"),
        ("open", "Open a session"),
        ("search", "Find sessions by topic"),
        ("clear", "Clear the search"),
        ("delete", "Delete a session"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<10}[/cyan] {desc}")


def sessions_table(sessions: list[TutorSession], title: str = "Your Sessions") -> Table:
    table = Table(title=title)
    table.add_column("ID", justify="right")
    table.add_column("Topic", style="cyan")
    table.add_column("Language")
    table.add_column("Last accessed")
    table.add_column("Ready")
    for s in sessions:
        table.add_row(
            str(s.id),
            s.topic,
            s.language,
            s.last_accessed_at.strftime("%b %d, %Y %H:%M"),
            "[green]yes[/green]" if s.has_content else "[dim]not yet[/dim]",
        )
    return table


def show_session(session: TutorSession):
    console.print(Panel(Markdown(session.content or ""), title=session.topic, border_style="cyan"))
    if session.image_urls:
        console.print("[bold]Pictures:[/bold]")
        for url in session.image_urls:
            console.print(f"  {url}")
    if session.youtube_links:
        console.print("[bold]Videos:[/bold]")
        for url in session.youtube_links:
            console.print(f"  {url}")


def read_image(path: str) -> tuple[bytes, str]:
    mime_type = mimetypes.guess_type(path)[0] or "image/jpeg"
    return Path(path).read_bytes(), mime_type


def cmd_list(coordinator: SessionCoordinator):
    if not coordinator.sessions:
        console.print("[yellow]No sessions yet. Use 'new' to pick a topic![/yellow]")
        return
    title = f"Sessions matching '{coordinator.search_query}'" if coordinator.search_query else "Your Sessions"
    console.print(sessions_table(coordinator.sessions, title))


def cmd_new(coordinator: SessionCoordinator, default_language: str):
    topic = Prompt.ask("What do you want to learn about?")
    language = Prompt.ask("Language", default=default_language)
    session_id = coordinator.create_session(topic, language)
    if render_state(coordinator.state) and session_id is not None:
        console.print(f"[green]Created session {session_id}: {topic.strip()}[/green]")
        run_session(coordinator, session_id)


def cmd_search(coordinator: SessionCoordinator):
    query = Prompt.ask("Search topics")
    coordinator.search_sessions(query)
    if render_state(coordinator.state):
        cmd_list(coordinator)


def cmd_delete(coordinator: SessionCoordinator):
    session_id = IntPrompt.ask("Session id")
    session = coordinator.store.get_by_id(session_id)
    if session is None:
        console.print("[red]Session not found[/red]")
        return
    coordinator.delete_session(session)
    if render_state(coordinator.state):
        console.print(f"[green]Deleted {session.topic}[/green]")


def run_session(coordinator: SessionCoordinator, session_id: int):
    session = coordinator.open_session(session_id)
    if not render_state(coordinator.state) or session is None:
        return
    if not session.has_content:
        with console.status("Writing your tutorial..."):
            generated = coordinator.ensure_content(session)
        if not render_state(coordinator.state) or generated is None:
            return
        session = generated
    show_session(session)
    language = session.language

    while True:
        try:
            action = session_prompt(
                "\n[bold]ask[/bold], [bold]image[/bold], [bold]language[/bold], "
                "[bold]regenerate[/bold] or [bold]back[/bold]",
                default="ask",
            ).strip().lower()
            if action == "ask":
                question = session_prompt("Your question")
                with console.status("Thinking..."):
                    answer = coordinator.answer_question(session, question, language)
                if answer is not None:
                    console.print(Panel(answer, border_style="green"))
                else:
                    render_state(coordinator.state)
            elif action == "image":
                path = session_prompt("Image file")
                try:
                    image_bytes, mime_type = read_image(path)
                except OSError as e:
                    console.print(f"[red]Could not read {path}: {e}[/red]")
                    continue
                with console.status("Looking at your picture..."):
                    answer = coordinator.explain_image(session, image_bytes, mime_type, language)
                if answer is not None:
                    console.print(Panel(answer, border_style="green"))
                else:
                    render_state(coordinator.state)
            elif action == "language":
                language = session_prompt("Language", default=language).strip() or language
                console.print(f"[dim]Answers will now be in {language}.[/dim]")
            elif action == "regenerate":
                language = session_prompt("Language", default=language).strip() or language
                with console.status("Writing your tutorial..."):
                    generated = coordinator.generate_content(session, language)
                if render_state(coordinator.state) and generated is not None:
                    session = generated
                    show_session(session)
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except SessionExitRequested:
            return


def main():
    settings = load_settings()
    configure_logging(settings.log_level)
    try:
        coordinator = build_coordinator(settings)
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    show_welcome()
    render_state(coordinator.state)

    try:
        while True:
            show_menu()
            choice = Prompt.ask("\n[bold]>[/bold]", default="list").strip().lower()
            try:
                if choice == "list":
                    cmd_list(coordinator)
                elif choice == "new":
                    cmd_new(coordinator, settings.language)
                elif choice == "open":
                    run_session(coordinator, IntPrompt.ask("Session id"))
                elif choice == "search":
                    cmd_search(coordinator)
                elif choice == "clear":
                    coordinator.clear_search()
                    cmd_list(coordinator)
                elif choice == "delete":
                    cmd_delete(coordinator)
                elif choice in ("quit", "exit", "q"):
                    console.print("[dim]Bye! Keep learning![/dim]")
                    break
                else:
                    console.print("[red]Unknown command. Try again.[/red]")
            except KeyboardInterrupt:
                console.print("\n[dim]Use 'quit' to exit.[/dim]")
            except TutorError as e:
                console.print(f"[red]Error: {e}[/red]")
    finally:
        coordinator.close()


if __name__ == "__main__":
    main()
