import logging
from typing import Callable, Optional

import click

from ollama_commit.config import CONNECTION_TROUBLESHOOTING
from ollama_commit.core.interaction import InteractionController
from ollama_commit.core.ollama import OllamaService
from ollama_commit.errors import (
    ConfigurationError,
    GenerationServiceError,
    NoChangesError,
    OllamaCommitError,
)
from ollama_commit.schemas import Configuration, InteractionOutcome
from ollama_commit.settings import ollama_commit_logger

from .service import CommitService


class CommitController:
    """Main controller orchestrating the commit workflow."""

    def __init__(
        self,
        config: Configuration,
        commit_service: CommitService,
        interaction: InteractionController,
        ollama: OllamaService,
        logger: Optional[logging.Logger] = None,
        echo: Callable[..., None] = click.echo,
        echo_err: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._logger = logger or ollama_commit_logger(__name__)
        self._config = config
        self._echo = echo
        self._echo_err = echo_err or (lambda message: self._echo(message, err=True))
        self.commit_service = commit_service
        self.interaction = interaction
        self.ollama = ollama

    # --- Public API ---
    def run(self) -> int:
        """Run the commit workflow and return the process exit code."""
        self._logger.debug("Starting commit controller run")

        try:
            change_set = self.commit_service.analyze()
            self._info(
                f"📊 {change_set.stats.files} files changed, "
                f"+{change_set.stats.insertions} -{change_set.stats.deletions}"
            )

            if not self._check_connection():
                return 1
            self._select_model()

            while True:
                self._info("🤖 Generating commit message...")
                message = self.commit_service.generate_commit()
                outcome = self.interaction.handle(message)
                self._logger.debug("Interaction outcome: %s", outcome.value)

                if outcome is InteractionOutcome.REGENERATE:
                    continue
                return 1 if outcome.is_failure else 0

        except NoChangesError as error:
            self._logger.info("Nothing to commit: %s", error)
            self._echo(f"ℹ️ {error}")
            return 0
        except ConfigurationError as error:
            self._echo_err(f"❌ Configuration error: {error}")
            if error.suggestions:
                self._echo_err(f"Did you mean: {', '.join(error.suggestions)}?")
            return 1
        except GenerationServiceError as error:
            self._echo_err(f"❌ {error}")
            if error.retryable:
                self._echo_err(CONNECTION_TROUBLESHOOTING)
            return 1
        except OllamaCommitError as error:
            self._echo_err(f"❌ {error}")
            return 1

    # --- Private helpers ---
    def _check_connection(self) -> bool:
        try:
            self.ollama.test_connection()
        except GenerationServiceError as error:
            self._logger.debug("Connection test failed: %s", error)
            self._echo_err(f"❌ Cannot reach Ollama at {self.ollama.host}: {error}")
            self._echo_err(CONNECTION_TROUBLESHOOTING)
            return False
        return True

    def _select_model(self) -> None:
        if not self._config.auto_model:
            return
        model = self.ollama.auto_select_model()
        self.commit_service.engine.model = model
        self._info(f"🧠 Using model {model}")

    def _info(self, message: str) -> None:
        if not self._config.quiet:
            self._echo(message)
