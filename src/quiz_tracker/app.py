"""Interactive CLI application."""
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from quiz_tracker.api import app_from_settings, build_service
from quiz_tracker.config import Settings, get_settings
from quiz_tracker.errors import QuizTrackerError
from quiz_tracker.importer import import_file
from quiz_tracker.logging_setup import configure_logging
from quiz_tracker.models import MODES, Question
from quiz_tracker.seed import is_seeded, seed_all
from quiz_tracker.service import QuizService
from quiz_tracker.users import Identity

console = Console()

EXIT_WORDS = ("q", "quit", "menu")


class SessionExitRequested(Exception):
    """Raised when the user abandons a quiz mid-way."""


def session_prompt(prompt: str, **kwargs) -> str:
    answer = Prompt.ask(prompt, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def show_welcome():
    console.print(Panel(
        "[bold]Quiz Tracker[/bold]\n[dim]Practice topics, fix mistakes, keep what you've mastered[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("topics", "Topics and progress"),
        ("quiz", "Take a quiz"),
        ("favorites", "Show or clear favorite questions"),
        ("reset", "Reset progress"),
        ("import", "Import a question bank"),
        ("stats", "Overall stats"),
        ("serve", "Run the HTTP API"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def choose_topic(service: QuizService) -> str | None:
    topics = service.questions.list_topics()
    if not topics:
        console.print("[yellow]No topics yet. Use 'import' to add a question bank.[/yellow]")
        return None
    for i, topic in enumerate(topics, 1):
        console.print(f"  [cyan]{i}[/cyan]) {topic.name} [dim]({topic.question_count} questions)[/dim]")
    choice = Prompt.ask("Select topic", choices=[str(i) for i in range(1, len(topics) + 1)])
    return topics[int(choice) - 1].id


def ask_question(question: Question, number: int, total: int) -> bool:
    """Ask one question and return whether the user got it right.

    Multiple-choice questions are graded against the answer; open questions
    reveal the answer and let the user assess themselves.
    """
    console.print(f"[bold]Q{number}/{total}.[/bold] {question.text}\n")
    if question.options:
        for i, option in enumerate(question.options, 1):
            console.print(f"  [cyan]{i})[/cyan] {option}")
        choice = session_prompt(
            "\nYour answer", choices=[str(i) for i in range(1, len(question.options) + 1)] + list(EXIT_WORDS),
        )
        is_correct = question.options[int(choice) - 1] == question.answer
        if is_correct:
            console.print("[green]Correct![/green]")
        else:
            console.print(f"[red]Incorrect.[/red] Answer: [green]{question.answer}[/green]")
    else:
        session_prompt("[dim]Press Enter to reveal the answer[/dim]", default="")
        console.print(Panel(question.answer, border_style="green"))
        is_correct = session_prompt("Did you get it right?", choices=["y", "n"] + list(EXIT_WORDS)) == "y"
    if question.explanation:
        console.print(f"[dim]{question.explanation}[/dim]")
    console.print()
    return is_correct


def run_quiz_session(service: QuizService, user_id: str, topic_id: str, mode: str) -> tuple[int, int]:
    """Run a quiz and submit the results. Abandoned quizzes are not submitted."""
    session = service.start_quiz(user_id, topic_id, mode)
    if not session.question_ids:
        console.print(f"[yellow]No {mode} questions in this topic.[/yellow]")
        return 0, 0
    questions = service.questions.get_questions(topic_id, session.question_ids)
    console.print(
        f"\n[bold]Quiz[/bold] ({mode}) - {len(questions)} of {session.available_count} questions\n"
    )
    outcomes = []
    try:
        for i, question in enumerate(questions, 1):
            outcomes.append((question.id, ask_question(question, i, len(questions))))
            if Confirm.ask("Favorite this question?", default=False):
                state = service.toggle_favorite(user_id, topic_id, question.id)
                console.print("[yellow]Added to favorites[/yellow]" if state else "[dim]Removed from favorites[/dim]")
    except SessionExitRequested:
        console.print("[dim]Quiz abandoned; no results were recorded. Favorites you set are kept.[/dim]")
        return 0, 0
    service.submit_results(user_id, topic_id, mode, outcomes)
    correct = sum(1 for _, ok in outcomes if ok)
    console.print(f"[bold]Score: {correct}/{len(outcomes)} ({correct/len(outcomes)*100:.0f}%)[/bold]\n")
    return correct, len(outcomes)


def cmd_topics(service: QuizService, user_id: str):
    table = Table(title="Topics")
    table.add_column("Topic", style="cyan")
    table.add_column("Total", justify="right")
    table.add_column("Remaining", justify="right")
    table.add_column("Mistakes", justify="right", style="red")
    table.add_column("Mastered", justify="right", style="green")
    table.add_column("Favorites", justify="right", style="yellow")
    for s in service.topic_summaries(user_id):
        table.add_row(
            s["name"], str(s["total_questions"]), str(s["remaining"]),
            str(s["mistakes"]), str(s["mastered"]), str(s["favorite_count"]),
        )
    console.print(table)


def cmd_quiz(service: QuizService, user_id: str):
    console.print("\n[bold]Practice Quiz[/bold]")
    topic_id = choose_topic(service)
    if topic_id is None:
        return
    mode = Prompt.ask("Quiz mode", choices=list(MODES), default=MODES[0])
    run_quiz_session(service, user_id, topic_id, mode)


def cmd_favorites(service: QuizService, user_id: str):
    topic_id = choose_topic(service)
    if topic_id is None:
        return
    favorites = service.get_favorites(user_id, topic_id)
    if not favorites:
        console.print("[yellow]No favorites in this topic.[/yellow]")
        return
    for view in favorites:
        console.print(Panel(
            f"{view['text']}\n\n[green]{view['answer']}[/green]"
            + (f"\n[dim]{view['explanation']}[/dim]" if view.get("explanation") else ""),
            border_style="yellow",
        ))
    if Confirm.ask("Clear all favorites for this topic?", default=False):
        service.clear_favorites(user_id, topic_id)
        console.print("[green]Favorites cleared.[/green]")


def cmd_reset(service: QuizService, user_id: str):
    scope = Prompt.ask("Reset which progress", choices=["topic", "all"], default="topic")
    topic_id = None
    if scope == "topic":
        topic_id = choose_topic(service)
        if topic_id is None:
            return
    if Confirm.ask("Mistakes and mastered questions will be cleared. Continue?", default=False):
        service.reset_progress(user_id, topic_id)
        console.print("[green]Progress reset. Favorites were kept.[/green]")


def cmd_import(settings: Settings):
    file_path = Prompt.ask("File path")
    if not Path(file_path).exists():
        console.print(f"[red]File not found: {file_path}[/red]")
        return
    result = import_file(settings.db_path, file_path)
    console.print(
        f"[green]Imported {result['filename']}: {result['topics']} topics, "
        f"{result['questions']} questions[/green] [dim]({result['skipped']} already present)[/dim]"
    )


def cmd_stats(service: QuizService, user_id: str):
    stats = service.user_stats(user_id)
    console.print(f"\n  Mastered: [bold green]{stats['total_mastered']}[/bold green]  |  "
                  f"Mistakes: [bold red]{stats['total_mistakes']}[/bold red]  |  "
                  f"Topics started: [bold]{stats['topics_started']}[/bold]")


def cmd_serve(settings: Settings):
    import uvicorn

    console.print(f"[dim]Serving on http://{settings.api_host}:{settings.api_port} (Ctrl+C to stop)[/dim]")
    uvicorn.run(app_from_settings(), host=settings.api_host, port=settings.api_port,
                log_level=settings.log_level.lower())


def main():
    settings = get_settings()
    configure_logging(settings.log_level)
    service = build_service(settings)
    first_run = not is_seeded(settings.db_path)
    if first_run:
        console.print("[dim]Setting up for first use...[/dim]")
        seed_all(settings.db_path)
        console.print("[green]Ready![/green]\n")
    user_id = settings.local_user_id
    service.login(Identity(uid=user_id, display_name="Local user"))

    show_welcome()

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="quiz").strip().lower()
        try:
            if choice == "topics":
                cmd_topics(service, user_id)
            elif choice == "quiz":
                cmd_quiz(service, user_id)
            elif choice == "favorites":
                cmd_favorites(service, user_id)
            elif choice == "reset":
                cmd_reset(service, user_id)
            elif choice == "import":
                cmd_import(settings)
            elif choice == "stats":
                cmd_stats(service, user_id)
            elif choice == "serve":
                cmd_serve(settings)
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]Bye![/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except (QuizTrackerError, ValueError) as e:
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
