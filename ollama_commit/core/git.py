import logging
import subprocess
from pathlib import Path
from typing import Callable, Optional, Sequence

from ollama_commit.errors import CommandExecutionError
from ollama_commit.settings import ollama_commit_logger


RunProcess = Callable[..., "subprocess.CompletedProcess[str]"]


class GitService:
    """Thin wrapper around the git executable scoped to one working directory.

    Every invocation goes through ``run_process`` so tests can substitute
    canned results. A non-zero exit status or a missing executable raises
    :class:`CommandExecutionError`.
    """

    def __init__(
        self,
        cwd: Optional[Path] = None,
        logger: Optional[logging.Logger] = None,
        run_process: Optional[RunProcess] = None,
    ) -> None:
        self._logger = logger or ollama_commit_logger(__name__)
        self._cwd = Path(cwd) if cwd else Path.cwd()
        self._run_process = run_process or self._default_run_process

    # --- Public API ---
    @property
    def cwd(self) -> Path:
        return self._cwd

    def run(self, *args: str) -> str:
        command = ["git", *args]
        self._logger.debug("Running git command: %s", " ".join(command))

        try:
            result = self._run_process(command, cwd=self._cwd)
        except OSError as error:
            raise CommandExecutionError(
                f"Failed to execute git command: {error}", command=command
            ) from error

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise CommandExecutionError(
                f"git {' '.join(args)} exited with status {result.returncode}",
                command=command,
                stderr=stderr,
            )

        stdout = (result.stdout or "").strip()
        self._logger.debug("Git output length: %d", len(stdout))
        return stdout

    def is_repository(self) -> bool:
        try:
            self.run("rev-parse", "--git-dir")
        except CommandExecutionError as error:
            # A missing git executable is not a "not a repository" answer.
            if isinstance(error.__cause__, OSError):
                raise
            self._logger.debug("Repository check for %s failed: %s", self._cwd, error)
            return False
        return True

    def diff(self, staged: bool, *extra: str) -> str:
        args = ["diff"]
        if staged:
            args.append("--cached")
        args.extend(extra)
        return self.run(*args)

    def file_diff(self, staged: bool, path: str) -> str:
        return self.diff(staged, "--", path)

    def stage_all(self) -> None:
        self.run("add", "-A")

    def commit(self, message: str) -> str:
        return self.run("commit", "-m", message)

    def push(self) -> str:
        return self.run("push")

    def repository_root(self) -> Path:
        return Path(self.run("rev-parse", "--show-toplevel"))

    def branch_name(self) -> str:
        return self.run("branch", "--show-current")

    def head(self) -> str:
        return self.run("rev-parse", "HEAD")

    # --- Static helpers ---
    @staticmethod
    def _default_run_process(
        args: Sequence[str], cwd: Optional[Path] = None
    ) -> "subprocess.CompletedProcess[str]":
        return subprocess.run(args, cwd=cwd, capture_output=True, text=True, check=False)
