import logging
import os
import shutil
import sys
from typing import Callable, Mapping, Optional

import pyperclip

from ollama_commit.errors import InteractionError
from ollama_commit.settings import ollama_commit_logger


class Clipboard:
    """System clipboard access through ``pyperclip``.

    Availability is decided by the presence of a platform clipboard tool; a
    missing tool only hides the copy option.
    """

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        clipboard_copy: Callable[[str], None] = pyperclip.copy,
        which: Callable[[str], Optional[str]] = shutil.which,
        environ: Optional[Mapping[str, str]] = None,
        platform: str = sys.platform,
    ) -> None:
        self._logger = logger or ollama_commit_logger(__name__)
        self._clipboard_copy = clipboard_copy
        self._which = which
        self._environ = environ if environ is not None else os.environ
        self._platform = platform

    def tool(self) -> Optional[str]:
        for candidate in self._candidates():
            if self._which(candidate):
                return candidate
        return None

    def available(self) -> bool:
        tool = self.tool()
        self._logger.debug("Clipboard tool: %s", tool or "none")
        return tool is not None

    def copy(self, text: str) -> None:
        if not text or not text.strip():
            raise InteractionError("No text to copy to clipboard")

        try:
            self._clipboard_copy(text)
        except pyperclip.PyperclipException as error:
            raise InteractionError(f"Clipboard copy failed: {error}") from error

        self._logger.debug("Copied %d characters to clipboard", len(text))

    def _candidates(self):
        if self._platform == "darwin":
            return ["pbcopy"]
        if self._platform == "win32":
            return ["clip"]

        candidates = []
        if self._environ.get("WAYLAND_DISPLAY"):
            candidates.append("wl-copy")
        if self._environ.get("DISPLAY"):
            candidates.extend(["xclip", "xsel"])
        return candidates
