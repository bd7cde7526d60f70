"""Click-based CLI entry point for mailpurge."""

import sys
from pathlib import Path

import click

from ..core.exceptions import MailPurgeError
from ..utils.logging_utils import init_default_logging
from ..utils.rich_utils import install_rich_tracebacks
from .commands import OperationHandler, handle_operation_error


@click.group(invoke_without_command=True)
@click.pass_context
def cli(ctx: click.Context) -> None:
    """mailpurge - bulk delete Gmail messages by sender."""
    init_default_logging()
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.option("--test-api", is_flag=True, help="Test Gmail API access")
def doctor(test_api: bool) -> None:
    """Test Gmail credentials and API access."""
    handler = OperationHandler()
    try:
        success = handler.handle_doctor(test_api)
    except MailPurgeError as e:
        handle_operation_error(e, "Doctor")
        return
    if not success:
        sys.exit(1)


@cli.command()
@click.argument(
    "senders_file",
    type=click.Path(exists=True, file_okay=True, dir_okay=False, readable=True),
)
@click.option(
    "--rule",
    "rules",
    multiple=True,
    help="Extra Gmail search clause, e.g. 'older_than:1y' (repeatable)",
)
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Skip confirmation")
def delete(senders_file: str, rules: tuple[str, ...], assume_yes: bool) -> None:
    """Delete every email from the senders listed in SENDERS_FILE."""
    handler = OperationHandler()
    try:
        success = handler.handle_delete(Path(senders_file), rules, assume_yes)
    except MailPurgeError as e:
        handle_operation_error(e, "Deletion")
        return
    if not success:
        sys.exit(1)


def main() -> None:
    """Main entry point for the CLI application."""
    try:
        install_rich_tracebacks()
        cli()
    except KeyboardInterrupt:
        click.echo("\nOperation interrupted by user.")
        sys.exit(0)


if __name__ == "__main__":
    main()
