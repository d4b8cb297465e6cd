import logging
from typing import Callable, List, Optional

import click

from ollama_commit.clipboard import Clipboard
from ollama_commit.config import COMMIT_FAILURE_GUIDANCE, PUSH_FAILURE_GUIDANCE
from ollama_commit.errors import CommandExecutionError, InteractionError
from ollama_commit.schemas import InteractionOutcome
from ollama_commit.settings import ollama_commit_logger
from ollama_commit.terminal import Choice, TerminalPrompt
from ollama_commit.utils import format_commit_command

from .git import GitService


ACCEPT_AND_COMMIT = "Use this message and commit changes"
ACCEPT_AND_PRINT = "Use this message and copy commit command"


def build_choices(auto_commit: bool, interactive: bool, clipboard_available: bool) -> List[Choice]:
    choices = [Choice("y", ACCEPT_AND_COMMIT if auto_commit else ACCEPT_AND_PRINT)]
    if interactive and clipboard_available and not auto_commit:
        choices.append(Choice("c", "Copy message to clipboard"))
    if interactive:
        choices.append(Choice("r", "Regenerate message"))
    choices.append(Choice("n", "Cancel"))
    return choices


class InteractionController:
    """Turns a generated message into a terminal action.

    Outside interactive mode, or when the prompt cannot be shown, the message
    is accepted.
    """

    def __init__(
        self,
        git: GitService,
        prompt: Optional[TerminalPrompt] = None,
        clipboard: Optional[Clipboard] = None,
        auto_commit: bool = False,
        interactive: bool = True,
        debug: bool = False,
        logger: Optional[logging.Logger] = None,
        echo: Callable[..., None] = click.echo,
        echo_err: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._logger = logger or ollama_commit_logger(__name__)
        self._git = git
        self._prompt = prompt
        self._clipboard = clipboard
        self._auto_commit = auto_commit
        self._interactive = interactive
        self._debug = debug
        self._echo = echo
        self._echo_err = echo_err or (lambda message: self._echo(message, err=True))

    # --- Public API ---
    def choices(self) -> List[Choice]:
        clipboard_available = self._clipboard is not None and self._clipboard.available()
        return build_choices(self._auto_commit, self._interactive, clipboard_available)

    def handle(self, message: str) -> InteractionOutcome:
        self._echo("\n📝 Generated commit message:\n")
        self._echo(message)
        self._echo("")

        if not self._interactive or self._prompt is None:
            return self._accept(message)

        try:
            choice = self._prompt.ask("Use this commit message?", self.choices(), default="y")
        except InteractionError as error:
            self._logger.warning("Interactive prompt unavailable (%s), accepting message", error)
            return self._accept(message)

        self._logger.debug("Selected choice: %s", choice)
        if choice == "y":
            return self._accept(message)
        if choice == "c":
            return self._copy(message)
        if choice == "r":
            self._echo("🔄 Regenerating commit message...")
            return InteractionOutcome.REGENERATE

        self._echo("❌ Commit cancelled")
        return InteractionOutcome.CANCELLED

    # --- Private helpers ---
    def _accept(self, message: str) -> InteractionOutcome:
        if self._auto_commit:
            return self._commit_and_push(message)
        return self._print_command(message)

    def _print_command(self, message: str) -> InteractionOutcome:
        self._echo("📋 Run this command to commit:")
        self._echo(format_commit_command(message))
        return InteractionOutcome.COMMAND_PRINTED

    def _copy(self, message: str) -> InteractionOutcome:
        try:
            self._clipboard.copy(message)
        except InteractionError as error:
            self._logger.warning("Could not copy to clipboard: %s", error)
            self._echo_err("⚠️ Could not copy to clipboard")
            return self._print_command(message)

        self._echo("✅ Commit message copied to clipboard")
        return InteractionOutcome.COPIED

    def _commit_and_push(self, message: str) -> InteractionOutcome:
        try:
            self._git.commit(message)
        except CommandExecutionError as error:
            self._report_failure("❌ Commit failed", error, COMMIT_FAILURE_GUIDANCE)
            return InteractionOutcome.COMMIT_FAILED
        self._echo("✅ Changes committed")

        try:
            self._git.push()
        except CommandExecutionError as error:
            self._report_failure("❌ Push failed", error, PUSH_FAILURE_GUIDANCE)
            return InteractionOutcome.PUSH_FAILED
        self._echo("🚀 Changes pushed")

        return InteractionOutcome.COMMITTED

    def _report_failure(self, title: str, error: CommandExecutionError, guidance: str) -> None:
        self._logger.debug("%s: %s", title, error)
        self._echo_err(title)
        if self._debug and error.stderr:
            self._echo_err(error.stderr)
        self._echo_err(guidance)
