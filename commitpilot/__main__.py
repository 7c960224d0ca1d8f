#!/usr/bin/env python3
"""Entry point for running commitpilot as a module."""

import sys
from typing import NoReturn

import click

from . import __version__
from .cli import console
from .cli.cli_handler import OUTPUT_FORMATS, CommitPilot
from .config.settings import load_config
from .core.prompt import ReviewKind
from .errors import CommitPilotError, UserCancelled


def handle_error(error: BaseException, verbose: bool = False) -> NoReturn:
    """Handle errors in a consistent way."""
    if isinstance(error, KeyboardInterrupt):
        console.print_warning("Operation cancelled by user.")
        sys.exit(0)
    if isinstance(error, UserCancelled):
        console.print_warning(str(error))
        sys.exit(0)
    if isinstance(error, CommitPilotError):
        console.print_error(str(error))
        if error.suggestion:
            console.print_tip(error.suggestion)
        sys.exit(1)

    console.print_error(f"An unexpected error occurred: {error}")
    if verbose:
        console.print_traceback()
    sys.exit(1)


def _create_app(ctx: click.Context) -> CommitPilot:
    config = load_config()
    verbose = ctx.obj["verbose"] or config.ui.verbose
    ctx.obj["verbose"] = verbose
    console.set_colored(config.ui.colored)
    console.setup_logging(verbose)
    return CommitPilot(config, provider_name=ctx.obj["provider"])


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("-p", "--provider", help="Provider to use instead of llm.default_provider")
@click.version_option(__version__, prog_name="commitpilot")
@click.pass_context
def main(ctx: click.Context, verbose: bool, provider: str | None) -> None:
    """Generate git commit messages and code reviews with an LLM."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["provider"] = provider


@main.command()
@click.option("-n", "--no-edit", is_flag=True, help="Do not offer to edit the message")
@click.option("-y", "--yes", is_flag=True, help="Commit the first generated message")
@click.option("--dry-run", is_flag=True, help="Only print the generated message")
@click.pass_context
def commit(ctx: click.Context, no_edit: bool, yes: bool, dry_run: bool) -> None:
    """Generate a commit message for the staged changes and commit."""
    try:
        app = _create_app(ctx)
        app.commit(no_edit=no_edit, yes=yes, dry_run=dry_run)
    except (KeyboardInterrupt, Exception) as e:
        handle_error(e, ctx.obj["verbose"])


@main.command()
@click.argument("target", type=click.Choice([kind.value for kind in ReviewKind]))
@click.argument("ref", required=False)
@click.option(
    "-f",
    "--format",
    "output_format",
    type=click.Choice(OUTPUT_FORMATS),
    default="text",
    show_default=True,
    help="Output format",
)
@click.pass_context
def review(ctx: click.Context, target: str, ref: str | None, output_format: str) -> None:
    """Review changes, a commit (REF=hash), a range (REF=a..b) or a file (REF=path)."""
    try:
        app = _create_app(ctx)
        app.review(ReviewKind(target), ref, output_format)
    except (KeyboardInterrupt, Exception) as e:
        handle_error(e, ctx.obj["verbose"])


@main.command()
@click.pass_context
def validate(ctx: click.Context) -> None:
    """Check that the selected provider is configured and reachable."""
    try:
        app = _create_app(ctx)
        app.validate()
    except (KeyboardInterrupt, Exception) as e:
        handle_error(e, ctx.obj["verbose"])


if __name__ == "__main__":
    main()
