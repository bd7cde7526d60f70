"""Command handlers for CLI operations."""

import asyncio
import signal
import sys
from pathlib import Path
from typing import Any

import click

from ..core.auth import doctor
from ..core.config import get_env_config
from ..core.exceptions import AuthError, MailPurgeError
from ..core.gmail_client import GmailMessageStore, GmailTokenProvider
from ..models.run import DeleteOptions, ReauthRequest, RunState, RunStatus, Target
from ..operations.controller import DeleteController
from ..storage.action_log import JsonActionLogStore, LocalActionLog
from ..storage.sender_registry import JsonSenderRegistry
from ..utils.csv_utils import read_targets
from ..utils.estimate import estimate_runtime_seconds, format_duration
from ..utils.notify import ConsoleNotifier
from ..utils.rich_utils import create_delete_progress, get_console


def build_controller(config: dict[str, Any], notifier: Any = None) -> DeleteController:
    """Wire a :class:`DeleteController` to Gmail and the on-disk logs."""
    data_dir = Path(config["data_dir"])
    console = get_console()

    def on_reauth(request: ReauthRequest) -> None:
        console.print(
            "[warning]Gmail access has expired. Run `mailpurge doctor` after "
            "refreshing GMAIL_REFRESH_TOKEN.[/warning]"
        )

    return DeleteController(
        GmailMessageStore(base_url=config["api_base_url"]),
        GmailTokenProvider.from_config(config),
        JsonActionLogStore(data_dir / "actions"),
        LocalActionLog(data_dir / "current_action.json"),
        user_id=config.get("user_id") or "me",
        action_registry=JsonSenderRegistry(data_dir / "senders.json"),
        notifier=notifier or ConsoleNotifier(console),
        on_reauth_required=on_reauth,
    )


class OperationHandler:
    """Handles CLI operations for bulk Gmail deletion."""

    def __init__(self):
        self.console = get_console()

    def handle_doctor(self, test_api: bool) -> bool:
        """Check credentials and print the outcome.

        Returns:
            bool: True when the credentials work
        """
        result = asyncio.run(doctor(test_api))
        if result["success"]:
            self.console.print(f"[success]✅ {result['details']}[/success]")
            if result.get("api_status") == "failed":
                return False
            return True
        self.console.print(f"[error]❌ {result['details']}[/error]")
        if result.get("error"):
            self.console.print(f"  [muted]{result['error']}[/muted]")
        return False

    def handle_delete(
        self, senders_file: Path, filter_rules: tuple[str, ...], assume_yes: bool
    ) -> bool:
        """Delete every message from the senders listed in ``senders_file``.

        Returns:
            bool: True when the run completed
        """
        targets = read_targets(senders_file)
        if not targets:
            self.console.print("[warning]No senders found in input file[/warning]")
            return False

        total = sum(t.estimated_count for t in targets)
        eta = format_duration(estimate_runtime_seconds("delete", total))
        self.console.print(
            f"[info]About to delete ~{total:,} emails from {len(targets)} sender(s) "
            f"(estimated {eta}).[/info]"
        )
        for rule in filter_rules:
            self.console.print(f"  [muted]filter: {rule}[/muted]")
        if not assume_yes:
            click.confirm(
                "Deleted emails cannot be recovered. Continue?", abort=True
            )

        config = get_env_config()
        controller = build_controller(config)
        state = asyncio.run(
            self._run_delete(controller, targets, DeleteOptions(tuple(filter_rules)))
        )

        if state.status is RunStatus.COMPLETED:
            return True
        if state.status is RunStatus.ERROR and state.error:
            click.echo(f"Deletion failed: {state.error}", err=True)
        return False

    async def _run_delete(
        self,
        controller: DeleteController,
        targets: list[Target],
        options: DeleteOptions,
    ) -> RunState:
        loop = asyncio.get_running_loop()
        cancel_tasks: list[asyncio.Task[None]] = []

        def request_cancel() -> None:
            self.console.print("\n[warning]Stopping after the current batch...[/warning]")
            cancel_tasks.append(loop.create_task(controller.cancel()))

        try:
            loop.add_signal_handler(signal.SIGINT, request_cancel)
            signal_installed = True
        except (NotImplementedError, RuntimeError):
            signal_installed = False

        progress = create_delete_progress(self.console)
        task_id = progress.add_task("Deleting", total=None, eta="")

        def on_state(state: RunState) -> None:
            description = (
                f"Deleting {state.current_target}" if state.current_target else "Deleting"
            )
            progress.update(
                task_id,
                description=description,
                completed=state.processed_count,
                total=state.total_estimate or None,
                eta=state.eta or "",
            )

        unsubscribe = controller.subscribe(on_state)
        try:
            with progress:
                start = await controller.start(targets, options=options)
                if start.accepted and start.handle is not None:
                    await start.handle.wait()
                if cancel_tasks:
                    await asyncio.gather(*cancel_tasks)
        finally:
            unsubscribe()
            if signal_installed:
                loop.remove_signal_handler(signal.SIGINT)

        return controller.state


def handle_operation_error(error: Exception, operation_name: str) -> None:
    """Print an operation error and exit."""
    if isinstance(error, AuthError):
        click.echo(f"Authentication configuration error: {error}", err=True)
    elif isinstance(error, MailPurgeError):
        click.echo(f"{operation_name} failed: {error}", err=True)
    else:
        click.echo(f"{operation_name} failed unexpectedly: {error}", err=True)
    sys.exit(1)
