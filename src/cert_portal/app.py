"""Interactive CLI application."""
import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Callable, Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from cert_portal.activity import format_time, get_top_users, get_usage_stats, get_usage_summary, record_login
from cert_portal.certification import (
    clear_user_data, get_at_risk_users, get_certification_matrix, get_course_failures,
    get_course_status_info, list_tracks, list_users, reissue_course, reissue_track,
)
from cert_portal.config import Settings, get_settings
from cert_portal.db import PersistenceFailure, init_db
from cert_portal.importer import QuestionFormatError, import_questions
from cert_portal.models import Course, Question, User
from cert_portal.pool import QuestionPoolSubscription, list_courses
from cert_portal.results import get_user_course_records, start_tracked_session
from cert_portal.seed import is_seeded, seed_all
from cert_portal.session import PASS_RATE, QuizSession

console = Console()
logger = logging.getLogger(__name__)

EXIT_WORDS = ("q", "menu")


class SessionExitRequested(Exception):
    """The user asked to leave the running quiz."""


def setup_logging(settings: Settings) -> None:
    os.makedirs(settings.log_dir, exist_ok=True)
    log_path = os.path.join(settings.log_dir, settings.log_file)
    file_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3)
    file_handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(message)s"))
    package_logger = logging.getLogger("cert_portal")
    package_logger.setLevel(settings.log_level)
    package_logger.addHandler(file_handler)


def session_prompt(prompt: str, **kwargs) -> str:
    """Prompt.ask that raises SessionExitRequested on 'q' or 'menu'."""
    if "choices" in kwargs:
        kwargs["choices"] = list(kwargs["choices"]) + list(EXIT_WORDS)
        kwargs.setdefault("show_choices", False)
    answer = Prompt.ask(prompt, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def session_int_prompt(prompt: str, **kwargs) -> int:
    return int(session_prompt(prompt, **kwargs))


def show_welcome(user: User):
    console.print(Panel(
        f"[bold]Training & Certification Portal[/bold]\n[dim]Signed in as {user.name}[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu(user: User):
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("courses", "My courses"),
        ("quiz", "Take a course quiz"),
    ]
    if user.is_admin:
        commands += [
            ("stats", "Usage statistics"),
            ("matrix", "Certification matrix"),
            ("reissue", "Re-issue a course or path"),
            ("clear", "Clear an employee's data"),
            ("import", "Import questions into a course"),
        ]
    commands.append(("quit", "Exit"))
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<10}[/cyan] {desc}")


def show_question(session: QuizSession, question: Question) -> None:
    progress = session.get_progress()
    console.print(f"\n[bold]Question {progress['index'] + 1} of {progress['total']}[/bold]")
    console.print(f"{question.text}\n")
    for i, option in enumerate(question.options, 1):
        console.print(f"  [cyan]{i})[/cyan] {option}")


def confirm_exit(session: QuizSession) -> bool:
    if session.can_exit_without_confirmation():
        return True
    return Confirm.ask("Leave this quiz? Your progress will be lost", default=False)


def run_quiz_session(
    db_path: str,
    user: User,
    course: Course,
    pool: list[Question],
    current_pool: Optional[Callable[[], list[Question]]] = None,
    rng=None,
) -> Optional[QuizSession]:
    """Drive one quiz through the terminal. Returns the last session, or None without questions."""
    session = start_tracked_session(db_path, user.id, course, pool, rng=rng)
    if session is None:
        console.print("[yellow]This course has no questions yet.[/yellow]")
        return None
    console.print(Panel(
        f"[bold]{course.title}[/bold]\nA score of {PASS_RATE * 100:.0f}% is required to pass. "
        "[dim]Type 'q' to leave.[/dim]",
        border_style="blue",
    ))
    while True:
        while not session.is_completed:
            question = session.current_question
            show_question(session, question)
            try:
                choice = session_int_prompt(
                    "\nYour answer", choices=[str(i) for i in range(1, len(question.options) + 1)],
                )
            except SessionExitRequested:
                if confirm_exit(session):
                    console.print("[dim]Quiz abandoned.[/dim]")
                    return session
                continue
            if session.select_answer(choice - 1):
                console.print("[green]Correct![/green]")
            else:
                console.print(f"[red]Incorrect.[/red] Answer: [green]{question.correct_text}[/green]")
            session.advance()

        show_result(session)
        if not Confirm.ask("Try again?", default=False):
            return session
        if current_pool is not None:
            session.update_pool(current_pool())
        session.reset()


def show_result(session: QuizSession) -> None:
    pct = session.score / session.total * 100
    if session.passed:
        verdict = "[green]Passed![/green]"
    else:
        verdict = "[red]Not passed.[/red]"
    console.print(f"\n[bold]Score: {session.score}/{session.total} ({pct:.0f}%)[/bold] {verdict}")
    console.print(f"[dim]Time: {format_time(session.elapsed_seconds())}[/dim]")
    if session.persistence_error:
        console.print("[yellow]Your result could not be saved. Please tell an administrator.[/yellow]")


def cmd_courses(db_path: str, user: User, settings: Settings):
    records = get_user_course_records(db_path, user.id)
    table = Table(title="My Courses")
    table.add_column("Course", style="cyan")
    table.add_column("Status")
    table.add_column("Attempts", justify="right")
    table.add_column("Fails", justify="right")
    for course in list_courses(db_path):
        record = records.get(course.id)
        text, color = get_course_status_info(record, due_soon_days=settings.due_soon_days)
        table.add_row(
            course.title,
            f"[{color}]{text}[/{color}]",
            str(record.attempt_count) if record else "-",
            str(record.fail_count) if record else "-",
        )
    console.print(table)


def choose_course(db_path: str) -> Optional[Course]:
    courses = list_courses(db_path)
    if not courses:
        console.print("[yellow]No courses available.[/yellow]")
        return None
    for i, c in enumerate(courses, 1):
        console.print(f"  [cyan]{i}[/cyan]) {c.title}")
    choice = Prompt.ask("Select course", choices=[str(i) for i in range(1, len(courses) + 1)])
    return courses[int(choice) - 1]


def cmd_quiz(db_path: str, user: User, settings: Settings):
    course = choose_course(db_path)
    if course is None:
        return
    latest: dict[str, list[Question]] = {"pool": []}

    def on_change(pool: list[Question]) -> None:
        latest["pool"] = pool

    with QuestionPoolSubscription(db_path, course.id, on_change, interval=settings.poll_interval):
        run_quiz_session(db_path, user, course, latest["pool"], current_pool=lambda: latest["pool"])


def cmd_stats(db_path: str):
    summary = get_usage_summary(db_path)
    console.print(Panel(
        f"Total training time: [bold]{format_time(summary['total_training_time'])}[/bold]\n"
        f"Average per employee: [bold]{format_time(summary['avg_training_time'])}[/bold]\n"
        f"Attempts: [bold]{summary['total_attempts']}[/bold]  "
        f"Passes: [green]{summary['total_passes']}[/green]  "
        f"Fails: [red]{summary['total_fails']}[/red]",
        title="Portal Totals", border_style="blue",
    ))
    console.print("[bold]Most training time:[/bold]")
    for i, row in enumerate(get_top_users(db_path), 1):
        console.print(f"  {i}. {row['name']} [dim]{format_time(row['total_training_time'])}[/dim]")

    table = Table(title="Usage Statistics")
    for header in ("Employee", "Logins", "Last Login", "Attempts", "Passes", "Fails", "Pass Rate", "Training Time"):
        table.add_column(header, justify="left" if header in ("Employee", "Last Login") else "right")
    for row in get_usage_stats(db_path):
        table.add_row(
            row["name"],
            str(row["logins"]),
            row["last_login"][:10] if row["last_login"] else "Never",
            str(row["attempts"]),
            str(row["passes"]),
            str(row["fails"]),
            f"{row['pass_rate']}%",
            format_time(row["total_training_time"]),
        )
    console.print(table)

    failures = get_course_failures(db_path)
    if failures:
        console.print("\n[bold]Most failed courses:[/bold]")
        for f in failures[:5]:
            names = ", ".join(f"{u['name']} ({u['count']})" for u in f["users"])
            console.print(f"  [red]{f['total_fails']} fails[/red] {f['title']} [dim]{names}[/dim]")


def cmd_matrix(db_path: str, settings: Settings):
    colors = {"Overdue": "red", "Warning": "yellow", "On Track": "green", "N/A": "dim"}
    table = Table(title="Certification Matrix")
    table.add_column("Employee", style="cyan")
    table.add_column("Paths")
    table.add_column("Avg Completion", justify="right")
    table.add_column("Courses Passed", justify="right")
    table.add_column("Status")
    for row in get_certification_matrix(db_path, due_soon_days=settings.due_soon_days):
        paths = ", ".join(f"{t['name']} {t['completion']}%" for t in row["tracks"]) or "-"
        avg = f"{row['avg_completion']}%" if row["avg_completion"] is not None else "-"
        color = colors[row["status"]]
        table.add_row(row["name"], paths, avg, str(row["courses_passed"]), f"[{color}]{row['status']}[/{color}]")
    console.print(table)

    at_risk = get_at_risk_users(db_path, due_soon_days=settings.due_soon_days)
    if at_risk:
        console.print("\n[bold]At risk:[/bold]")
        for entry in at_risk:
            courses = ", ".join(f"{c['course_id']} ({c['status']})" for c in entry["courses"])
            console.print(f"  [yellow]{entry['name']}[/yellow]: {courses}")


def choose_user(db_path: str, prompt: str = "Select employee") -> Optional[User]:
    users = list_users(db_path)
    if not users:
        return None
    for u in users:
        console.print(f"  [cyan]{u.id}[/cyan] {u.name}")
    user_id = Prompt.ask(prompt, choices=[u.id for u in users])
    return next(u for u in users if u.id == user_id)


def cmd_reissue(db_path: str):
    target = choose_user(db_path)
    if target is None:
        return
    kind = Prompt.ask("Re-issue a course or a path", choices=["course", "path"], default="course")
    if kind == "course":
        course = choose_course(db_path)
        if course is None:
            return
        item_id = course.id
    else:
        tracks = list_tracks(db_path)
        if not tracks:
            console.print("[yellow]No paths available.[/yellow]")
            return
        for t in tracks:
            console.print(f"  [cyan]{t.id}[/cyan] {t.name}")
        item_id = Prompt.ask("Select path", choices=[t.id for t in tracks])
    due_date = Prompt.ask("New due date (YYYY-MM-DD)")
    try:
        if kind == "course":
            updated = reissue_course(db_path, target.id, item_id, due_date)
        else:
            updated = reissue_track(db_path, target.id, item_id, due_date)
    except ValueError:
        console.print(f"[red]Invalid date: {due_date}[/red]")
        return
    except PersistenceFailure as e:
        console.print(f"[red]Error re-issuing: {e}[/red]")
        return
    console.print(f"[green]Re-issued {len(updated)} course(s) to {target.name}, due {due_date}.[/green]")


def cmd_clear(db_path: str):
    target = choose_user(db_path)
    if target is None:
        return
    if not Confirm.ask(f"Clear all course data for {target.name}?", default=False):
        return
    try:
        clear_user_data(db_path, target.id)
    except PersistenceFailure as e:
        console.print(f"[red]Error clearing data: {e}[/red]")
        return
    console.print(f"[green]Cleared all course data for {target.name}.[/green]")


def cmd_import(db_path: str):
    course = choose_course(db_path)
    if course is None:
        return
    file_path = Prompt.ask("Question bank file")
    if not Path(file_path).exists():
        console.print(f"[red]File not found: {file_path}[/red]")
        return
    try:
        result = import_questions(db_path, course.id, file_path)
    except QuestionFormatError as e:
        console.print(f"[red]Import failed: {e}[/red]")
        return
    console.print(f"[green]Imported {result['count']} questions from {result['filename']} → {course.title}[/green]")


def main():
    settings = get_settings()
    setup_logging(settings)
    db_path = settings.db_path
    init_db(db_path)
    first_run = not is_seeded(db_path)
    if first_run:
        console.print("[dim]Setting up for first use...[/dim]")
    seed_all(db_path)
    if first_run:
        console.print("[green]Ready![/green]\n")

    user = choose_user(db_path, prompt="Sign in as")
    if user is None:
        console.print("[red]No employees found.[/red]")
        return
    record_login(db_path, user.id)
    show_welcome(user)

    while True:
        show_menu(user)
        choice = Prompt.ask("\n[bold]>[/bold]", default="courses").strip().lower()
        try:
            if choice == "courses":
                cmd_courses(db_path, user, settings)
            elif choice == "quiz":
                cmd_quiz(db_path, user, settings)
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]Goodbye![/dim]")
                break
            elif not user.is_admin:
                console.print("[red]Unknown command. Try again.[/red]")
            elif choice == "stats":
                cmd_stats(db_path)
            elif choice == "matrix":
                cmd_matrix(db_path, settings)
            elif choice == "reissue":
                cmd_reissue(db_path)
            elif choice == "clear":
                cmd_clear(db_path)
            elif choice == "import":
                cmd_import(db_path)
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except Exception as e:
            logger.exception("Command %s failed", choice)
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
