"""Single-key terminal prompt."""

import logging
import select
import signal
import sys
import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterator, NamedTuple, Optional, Sequence, TextIO

import click

from ollama_commit.config import PROMPT_TIMEOUT_SECONDS
from ollama_commit.errors import InteractionError
from ollama_commit.settings import ollama_commit_logger


_RAW_MODE_LOCK = threading.Lock()


class TerminalCapabilities(NamedTuple):
    is_terminal: bool
    supports_raw_mode: bool

    @classmethod
    def detect(cls, stream: TextIO = sys.stdin) -> "TerminalCapabilities":
        try:
            is_terminal = stream.isatty()
        except (AttributeError, ValueError):
            is_terminal = False
        return cls(is_terminal=is_terminal, supports_raw_mode=is_terminal and sys.platform != "win32")


class Choice(NamedTuple):
    key: str
    description: str


def _exit_on_sigterm(signum, frame) -> None:
    raise SystemExit(128 + signum)


@contextmanager
def raw_mode(stream: TextIO) -> Iterator[None]:
    """Put *stream* in cbreak mode for the duration of the block.

    Only one block may hold the terminal at a time. The previous terminal
    attributes are restored on every exit path, SIGTERM included.
    """

    if not _RAW_MODE_LOCK.acquire(blocking=False):
        raise InteractionError("Terminal raw mode is already in use")

    try:
        import termios
        import tty
    except ImportError as error:
        _RAW_MODE_LOCK.release()
        raise InteractionError(f"Raw mode unavailable: {error}") from error

    try:
        fd = stream.fileno()
        saved = termios.tcgetattr(fd)
    except (termios.error, OSError, ValueError) as error:
        _RAW_MODE_LOCK.release()
        raise InteractionError(f"Raw mode unavailable: {error}") from error

    previous_handler = None
    in_main_thread = threading.current_thread() is threading.main_thread()
    if in_main_thread:
        previous_handler = signal.signal(signal.SIGTERM, _exit_on_sigterm)

    try:
        tty.setcbreak(fd)
        yield
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, saved)
        if in_main_thread:
            signal.signal(signal.SIGTERM, previous_handler)
        _RAW_MODE_LOCK.release()


class TerminalPrompt:
    """Asks the operator to pick one of a few single-key choices."""

    def __init__(
        self,
        capabilities: TerminalCapabilities,
        stdin: TextIO = sys.stdin,
        logger: Optional[logging.Logger] = None,
        echo: Callable[..., None] = click.echo,
        read_key: Optional[Callable[[float], Optional[str]]] = None,
        clock: Callable[[], float] = time.monotonic,
        timeout: float = PROMPT_TIMEOUT_SECONDS,
    ) -> None:
        self._logger = logger or ollama_commit_logger(__name__)
        self.capabilities = capabilities
        self._stdin = stdin
        self._echo = echo
        self._read_key = read_key or self._default_read_key
        self._clock = clock
        self._timeout = timeout

    # --- Public API ---
    def ask(self, message: str, choices: Sequence[Choice], default: str) -> str:
        """Return the key of the chosen option.

        Enter picks *default*; so does reaching the deadline.

        Raises:
            InteractionError: If there is no terminal or input fails.
        """
        if not self.capabilities.is_terminal:
            raise InteractionError("No interactive terminal available")

        keys = {choice.key for choice in choices}
        self._echo(message)
        for choice in choices:
            marker = " (default)" if choice.key == default else ""
            self._echo(f"   [{choice.key}] {choice.description}{marker}")
        self._echo("")

        deadline = self._clock() + self._timeout
        while True:
            remaining = deadline - self._clock()
            if remaining <= 0:
                return self._timed_out(default)

            self._echo(f"What would you like to do? [{default}]: ", nl=False)
            key = self._read_key(remaining)
            if key is None:
                return self._timed_out(default)

            selected = key.strip().lower() or default
            self._echo(selected)
            if selected in keys:
                return selected

            self._echo(f"Invalid choice '{selected}'. Choose one of: {', '.join(sorted(keys))}")

    # --- Private helpers ---
    def _timed_out(self, default: str) -> str:
        self._echo("")
        self._logger.warning("Prompt timed out, using default choice '%s'", default)
        return default

    def _default_read_key(self, timeout: float) -> Optional[str]:
        try:
            if self.capabilities.supports_raw_mode:
                with raw_mode(self._stdin):
                    return self._wait_and_read(timeout, lambda: self._stdin.read(1))
            return self._wait_and_read(timeout, self._stdin.readline)
        except (OSError, ValueError) as error:
            raise InteractionError(f"Failed to read input: {error}") from error

    def _wait_and_read(self, timeout: float, read: Callable[[], str]) -> Optional[str]:
        ready, _, _ = select.select([self._stdin], [], [], timeout)
        if not ready:
            return None
        return read()
