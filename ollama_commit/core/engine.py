import logging
import re
import time
from pathlib import PurePosixPath
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

import httpx

from ollama_commit.config import BASE_RETRY_DELAY_MS, MAX_ATTEMPTS, MAX_RETRY_DELAY_MS
from ollama_commit.errors import GenerationServiceError, OllamaCommitError
from ollama_commit.schemas import ChangeSet, GenerationAttempt, VersionBump
from ollama_commit.settings import ollama_commit_logger


Prepare = Callable[[], Tuple[ChangeSet, str]]

_THINK_BLOCK = re.compile(r"<think>.*?</think>", re.IGNORECASE | re.DOTALL)
_FROM_TO = re.compile(r"\bfrom\s+\S+\s+to\s+\S+", re.IGNORECASE)
_BULLET = re.compile(r"^(\s*(?:[-*+•]|\d+[.)])\s+)")
_EMOJI = re.compile(
    "[\U0001F000-\U0001FAFF\u2600-\u27BF\u2B00-\u2BFF\u231A\u231B\u23E9-\u23FA"
    "\u200D\u20E3\uFE0F\U000E0020-\U000E007F]"
)
_BLANK_RUN = re.compile(r"\n{3,}")


class TextGenerator(Protocol):
    def generate(self, model: str, prompt: str) -> str:
        ...


# --- Pure helpers ---
def is_retryable(error: BaseException) -> bool:
    if isinstance(error, OllamaCommitError):
        return bool(error.retryable)
    return isinstance(error, httpx.TransportError)


def backoff_delay_ms(attempt: int) -> int:
    """Delay to wait after failed attempt number *attempt* (1-based)."""

    return min(BASE_RETRY_DELAY_MS * 2 ** (attempt - 1), MAX_RETRY_DELAY_MS)


def strip_think_blocks(text: str) -> str:
    return _THINK_BLOCK.sub("", text).strip()


def apply_version_bumps(message: str, bumps: Sequence[VersionBump]) -> str:
    """Replace "from X to Y" lines with the detected version bump line.

    A line matches a bump when it names the bump's path or file name, or, with
    a single bump, when it mentions a version at all. Bullet prefixes survive.
    """

    if not bumps:
        return message

    lines: List[str] = []
    for line in message.split("\n"):
        if _FROM_TO.search(line):
            bump = _matching_bump(line, bumps)
            if bump is not None:
                bullet = _BULLET.match(line)
                line = (bullet.group(1) if bullet else "") + bump.describe()
        lines.append(line)
    return "\n".join(lines)


def _matching_bump(line: str, bumps: Sequence[VersionBump]) -> Optional[VersionBump]:
    lowered = line.lower()
    for bump in bumps:
        if bump.path.lower() in lowered or PurePosixPath(bump.path).name.lower() in lowered:
            return bump
    if len(bumps) == 1 and "version" in lowered:
        return bumps[0]
    return None


def strip_emoji(text: str) -> str:
    return _EMOJI.sub("", text)


def normalize_lines(text: str) -> str:
    """Trim trailing whitespace per line and keep at most one blank line in a row."""

    lines = "\n".join(line.rstrip() for line in text.split("\n"))
    return _BLANK_RUN.sub("\n\n", lines).strip()


def clean_message(raw: str, bumps: Sequence[VersionBump] = ()) -> str:
    message = normalize_lines(strip_emoji(strip_think_blocks(raw)))
    return apply_version_bumps(message, bumps).strip()


class GenerationEngine:
    """Runs generation attempts with classified retries and capped backoff.

    Each attempt calls ``prepare`` again, so the change set and prompt always
    reflect the current working tree.
    """

    def __init__(
        self,
        service: TextGenerator,
        model: str,
        logger: Optional[logging.Logger] = None,
        sleep: Callable[[float], None] = time.sleep,
        max_attempts: int = MAX_ATTEMPTS,
    ) -> None:
        self._logger = logger or ollama_commit_logger(__name__)
        self._service = service
        self._sleep = sleep
        self._max_attempts = max_attempts
        self.model = model
        self.attempts: List[GenerationAttempt] = []

    # --- Public API ---
    def generate(self, prepare: Prepare) -> str:
        """Return a cleaned commit message.

        Raises:
            OllamaCommitError: The first terminal error, or the last retryable
                one once attempts run out. Unknown exceptions are terminal.
        """
        self.attempts = []

        for number in range(1, self._max_attempts + 1):
            try:
                message = self._attempt(prepare)
            except Exception as error:
                retryable = is_retryable(error)
                if not retryable or number >= self._max_attempts:
                    self._record(number, "terminal-failure" if not retryable else "retryable-failure", error=error)
                    self._logger.debug("Giving up after attempt %d: %s", number, error)
                    raise

                delay = backoff_delay_ms(number)
                self._record(number, "retryable-failure", delay_ms=delay, error=error)
                self._logger.warning(
                    "Attempt %d/%d failed: %s. Retrying in %dms",
                    number,
                    self._max_attempts,
                    error,
                    delay,
                )
                self._sleep(delay / 1000)
                continue

            self._record(number, "success")
            return message

        raise GenerationServiceError("No generation attempts were made", retryable=False)

    # --- Private helpers ---
    def _attempt(self, prepare: Prepare) -> str:
        change_set, prompt = prepare()
        raw = self._service.generate(self.model, prompt)
        message = clean_message(raw, change_set.version_bumps)
        if not message:
            raise GenerationServiceError("Empty response from model after cleaning", retryable=False)
        return message

    def _record(
        self,
        number: int,
        outcome: str,
        delay_ms: Optional[int] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        self.attempts.append(
            GenerationAttempt(
                number=number,
                outcome=outcome,
                delay_ms=delay_ms,
                error=str(error) if error is not None else None,
            )
        )
