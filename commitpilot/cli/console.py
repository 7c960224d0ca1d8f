"""Console output formatting and user interaction."""

import json
import logging
from collections.abc import Iterator
from contextlib import closing
from enum import Enum

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Prompt
from rich.status import Status
from rich.text import Text

from ..core.diff import DiffStats
from ..errors import ConfigurationError, UserCancelled
from ..services.ai_service import IssueSeverity, ReviewResult

MAX_FEEDBACK_LENGTH = 200

console = Console()

SEVERITY_STYLES = {
    IssueSeverity.CRITICAL: ("🔴", "bold red"),
    IssueSeverity.WARNING: ("🟡", "yellow"),
    IssueSeverity.INFO: ("🔵", "blue"),
}


class CommitAction(Enum):
    """Choices offered by the commit menu, keyed by their shortcut letter."""

    ACCEPT = "a"
    EDIT = "e"
    RETRY = "r"
    RETRY_WITH_FEEDBACK = "f"
    QUIT = "q"


MENU_LABELS = {
    CommitAction.ACCEPT: "[green]✓ Accept[/green] - use this commit message",
    CommitAction.EDIT: "[yellow]✎ Edit[/yellow] - edit the message in your editor",
    CommitAction.RETRY: "[blue]↻ Retry[/blue] - regenerate",
    CommitAction.RETRY_WITH_FEEDBACK: "[blue]↻+ Retry with feedback[/blue] - add instructions",
    CommitAction.QUIT: "[red]✕ Quit[/red] - cancel the commit",
}


def set_colored(enabled: bool) -> None:
    """Turn colored output on or off."""
    console.no_color = not enabled


def setup_logging(debug: bool = False) -> None:
    """Route log records through rich on the shared console."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=debug)],
        force=True,
    )
    # urllib3 logs every connection at debug level
    logging.getLogger("urllib3").setLevel(logging.INFO if debug else logging.WARNING)


def print_success(message: str) -> None:
    """Print success message."""
    console.print(f"\n[bold green]✅ {escape(message)}[/bold green]")


def print_error(message: str) -> None:
    """Print error message."""
    console.print(f"\n[bold red]❌ Error: {escape(message)}[/bold red]")


def print_info(message: str) -> None:
    """Print info message."""
    console.print(f"\n[bold blue]ℹ️ {escape(message)}[/bold blue]")


def print_warning(message: str) -> None:
    """Print warning message."""
    console.print(f"\n[bold yellow]⚠️ {escape(message)}[/bold yellow]")


def print_tip(message: str) -> None:
    """Print a remediation hint below an error."""
    console.print(f"[cyan]💡 Tip: {escape(message)}[/cyan]")


def print_traceback() -> None:
    """Print the exception currently being handled."""
    console.print_exception()


def print_diff_stats(stats: DiffStats) -> None:
    """Print a short summary of the staged changes."""
    console.print("\n[bold blue]📜 Staged changes:[/bold blue]")
    for path in stats.files_changed:
        console.print(f"  - [cyan]{escape(path)}[/cyan]")
    console.print(
        f"  [green]+{stats.insertions}[/green] [red]-{stats.deletions}[/red] "
        f"in {len(stats.files_changed)} file(s)"
    )


def print_commit_message(message: str, title: str | None = None) -> None:
    """Print formatted commit message."""
    console.print(Panel(Text(message), title=title, expand=False, border_style="green"))


def commit_action_menu(message: str, allow_edit: bool, attempt: int) -> CommitAction:
    """Show the generated message and ask what to do with it."""
    title = "Generated commit message"
    if attempt:
        title += f" (attempt {attempt + 1})"
    console.print()
    print_commit_message(message, title=title)

    actions = [a for a in CommitAction if allow_edit or a is not CommitAction.EDIT]
    for action in actions:
        console.print(f"  [bold]{action.value}[/bold]  {MENU_LABELS[action]}")

    try:
        choice = Prompt.ask(
            "Choose an action",
            choices=[a.value for a in actions],
            default=CommitAction.ACCEPT.value,
            console=console,
        )
    except (KeyboardInterrupt, EOFError):
        raise UserCancelled() from None
    return CommitAction(choice)


def edit_text(text: str) -> str:
    """Open the user's editor on ``text`` and return the saved result."""
    try:
        edited = click.edit(text, extension=".txt", require_save=True)
    except click.ClickException as e:
        raise ConfigurationError(
            f"Could not open an editor: {e.format_message()}",
            "Set the EDITOR environment variable to your preferred editor.",
        ) from e
    if edited is None:
        raise UserCancelled("Edit cancelled.")
    return edited


def get_retry_feedback() -> str | None:
    """Ask for extra instructions for the next generation. Empty means none."""
    try:
        feedback = Prompt.ask(
            "[cyan]What should change? (leave empty to just retry)[/cyan]",
            default="",
            show_default=False,
            console=console,
        )
    except (KeyboardInterrupt, EOFError):
        raise UserCancelled() from None

    feedback = feedback.strip()
    if not feedback:
        return None
    if len(feedback) > MAX_FEEDBACK_LENGTH:
        print_warning(f"Feedback truncated to {MAX_FEEDBACK_LENGTH} characters.")
        feedback = feedback[:MAX_FEEDBACK_LENGTH]
    return feedback


def spinner(message: str) -> Status:
    """Spinner shown while waiting on the provider."""
    return console.status(f"[bold blue]{escape(message)}[/bold blue]", spinner="dots")


def stream_message(chunks: Iterator[str]) -> str:
    """Echo chunks as they arrive and return the full text.

    The chunk generator is always closed, including when the user interrupts
    or the stream fails part way.
    """
    parts = []
    console.print("\n[bold blue]🤖 Generating commit message...[/bold blue]")
    with closing(chunks):
        for chunk in chunks:
            console.print(chunk, end="", markup=False, highlight=False, soft_wrap=True)
            parts.append(chunk)
    console.print()
    return "".join(parts)


def _location(file: str | None, line: int | None) -> str:
    if file and line is not None:
        return f"{file}:{line}"
    return file or ""


def filter_issues(result: ReviewResult, min_severity: IssueSeverity):
    return [issue for issue in result.issues if issue.severity.rank <= min_severity.rank]


def print_review(result: ReviewResult, title: str, min_severity: IssueSeverity) -> None:
    """Render a review result for the terminal."""
    console.print(f"\n[bold blue]🔍 Review: {escape(title)}[/bold blue]")
    console.print(Panel(Text(result.summary), title="Summary", expand=False, border_style="blue"))

    issues = filter_issues(result, min_severity)
    if issues:
        console.print(f"\n[bold]Issues ({len(issues)}):[/bold]")
        for issue in issues:
            icon, style = SEVERITY_STYLES[issue.severity]
            location = _location(issue.file, issue.line)
            where = f" [dim]{escape(location)}[/dim]" if location else ""
            console.print(
                f"  {icon} [{style}]{issue.severity.value.upper()}[/{style}]{where}: "
                f"{escape(issue.description)}"
            )
    else:
        console.print("\n[green]No issues found.[/green]")

    if result.suggestions:
        console.print("\n[bold]Suggestions:[/bold]")
        for suggestion in result.suggestions:
            console.print(f"  • {escape(suggestion)}")


def format_review_markdown(result: ReviewResult, title: str) -> str:
    """Render a review result as a markdown document."""
    lines = [f"# Code Review: {title}", "", "## Summary", "", result.summary, ""]

    lines += ["## Issues", ""]
    if result.issues:
        for issue in result.issues:
            location = _location(issue.file, issue.line)
            where = f" `{location}`" if location else ""
            lines.append(f"- **{issue.severity.value.upper()}**{where}: {issue.description}")
    else:
        lines.append("No issues found.")
    lines.append("")

    if result.suggestions:
        lines += ["## Suggestions", ""]
        lines += [f"- {suggestion}" for suggestion in result.suggestions]
        lines.append("")

    return "\n".join(lines)


def format_review_json(result: ReviewResult) -> str:
    return json.dumps(result.to_dict(), indent=2, ensure_ascii=False)


def print_plain(text: str) -> None:
    """Print machine readable output without rich markup or wrapping."""
    click.echo(text)
