"""Application class driving the commit, review and validate commands."""

import logging

from ..config.settings import Config
from ..core.diff import extract_diff_stats
from ..core.git import GitOperations
from ..core.prompt import CommitContext, ReviewKind
from ..core.workflow import (
    Accept,
    Accepted,
    Cancelled,
    CommitState,
    Edit,
    EditCancelled,
    Generating,
    Quit,
    Retry,
    RetryWithFeedback,
    UserAction,
    WaitingForAction,
    check_retry_limit,
    handle_action,
    handle_generation,
)
from ..errors import InvalidInputError, NoStagedChangesError, UserCancelled
from ..services.ai_service import AIService, IssueSeverity, create_provider
from . import console

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("text", "json", "markdown")


class CommitPilot:
    """Main application class."""

    def __init__(
        self,
        config: Config,
        provider_name: str | None = None,
        git: GitOperations | None = None,
        ai_service: AIService | None = None,
    ):
        self.config = config
        self.provider_name = provider_name
        self.git = git or GitOperations()
        self._ai_service = ai_service

    @property
    def ai_service(self) -> AIService:
        """Provider, built on first use so git problems surface before config ones."""
        if self._ai_service is None:
            self._ai_service = create_provider(self.config, self.provider_name)
        return self._ai_service

    def commit(self, no_edit: bool = False, yes: bool = False, dry_run: bool = False) -> str:
        """Generate a message for the staged changes, let the user refine it, and commit.

        Returns the final message. In dry-run mode the first generated
        message is printed and returned without committing.
        """
        if not self.git.has_staged_changes():
            raise NoStagedChangesError()

        diff = self.git.get_staged_diff()
        stats = extract_diff_stats(diff)
        if stats.is_empty:
            raise NoStagedChangesError()
        if self.config.commit.show_diff_preview:
            console.print_diff_stats(stats)

        branch_name = self.git.get_current_branch()
        allow_edit = self.config.commit.allow_edit and not no_edit
        max_retries = self.config.commit.max_retries

        state: CommitState = Generating()
        while True:
            if isinstance(state, Generating):
                check_retry_limit(state, max_retries)
                context = CommitContext(
                    files_changed=list(stats.files_changed),
                    insertions=stats.insertions,
                    deletions=stats.deletions,
                    branch_name=branch_name,
                    custom_prompt=self.config.commit.custom_prompt,
                    feedback=list(state.feedback),
                )
                message = self._generate(diff, context)
                if dry_run:
                    console.print_commit_message(message, title="Generated commit message")
                    console.print_info("Dry run, nothing committed.")
                    return message
                state = handle_generation(state, message, auto_accept=yes)

            elif isinstance(state, WaitingForAction):
                action = self._ask_action(state, allow_edit)
                state = handle_action(state, action)

            elif isinstance(state, Accepted):
                self.git.commit(state.message)
                console.print_success("Commit created successfully!")
                return state.message

            elif isinstance(state, Cancelled):
                raise UserCancelled("Commit cancelled by user.")

            else:
                raise ValueError(f"Unknown commit state: {state!r}")

    def _generate(self, diff: str, context: CommitContext) -> str:
        service = self.ai_service
        if self.config.ui.streaming and service.supports_streaming():
            message = console.stream_message(
                service.generate_commit_message_streaming(diff, context)
            )
            return message.strip()

        with console.spinner(f"Generating commit message with {service.display_name}..."):
            return service.generate_commit_message(diff, context)

    def _ask_action(self, state: WaitingForAction, allow_edit: bool) -> UserAction:
        choice = console.commit_action_menu(state.message, allow_edit, state.attempt)
        logger.debug("User chose %s on attempt %d", choice.name, state.attempt)

        if choice is console.CommitAction.ACCEPT:
            return Accept()
        if choice is console.CommitAction.EDIT:
            try:
                return Edit(console.edit_text(state.message))
            except UserCancelled:
                console.print_warning("Edit cancelled.")
                return EditCancelled()
        if choice is console.CommitAction.RETRY:
            return Retry()
        if choice is console.CommitAction.RETRY_WITH_FEEDBACK:
            return RetryWithFeedback(console.get_retry_feedback())
        return Quit()

    def _review_diff(self, kind: ReviewKind, target: str | None) -> str:
        if kind is ReviewKind.CHANGES:
            return self.git.get_uncommitted_diff()
        if not target:
            raise InvalidInputError(f"'review {kind.value}' needs a target.")
        if kind is ReviewKind.COMMIT:
            return self.git.get_commit_diff(target)
        if kind is ReviewKind.RANGE:
            return self.git.get_range_diff(target)

        content = self.git.get_file_content(target, self.config.file.max_size)
        return f"--- {target}\n+++ {target}\n{content}"

    def review(
        self, kind: ReviewKind, target: str | None = None, output_format: str = "text"
    ) -> None:
        """Review a diff source and print the result in the requested format."""
        if output_format not in OUTPUT_FORMATS:
            raise InvalidInputError(
                f"Unknown output format '{output_format}'. Use one of: {', '.join(OUTPUT_FORMATS)}."
            )

        diff = self._review_diff(kind, target)
        if not diff.strip():
            raise InvalidInputError("Nothing to review.")

        title = kind.describe(target)
        service = self.ai_service
        with console.spinner(f"Reviewing {title.lower()} with {service.display_name}..."):
            result = service.review_code(diff, kind, self.config.review.custom_prompt)

        if output_format == "json":
            console.print_plain(console.format_review_json(result))
        elif output_format == "markdown":
            console.print_plain(console.format_review_markdown(result, title))
        else:
            min_severity = IssueSeverity(self.config.review.min_severity)
            console.print_review(result, title, min_severity)

    def validate(self) -> None:
        """Check that the selected provider is configured and reachable."""
        service = self.ai_service
        with console.spinner(f"Validating {service.display_name}..."):
            service.validate()
        console.print_success(f"Provider '{service.name}' is ready.")
        console.console.print(f"  • Model: [cyan]{service.model}[/cyan]")
        console.console.print(f"  • API style: [cyan]{service.style.value}[/cyan]")
        console.console.print(f"  • Endpoint: [cyan]{service.endpoint}[/cyan]")
