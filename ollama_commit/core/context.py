import getpass
import logging
import os
from pathlib import Path
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence

from ollama_commit.schemas import ChangeSet
from ollama_commit.settings import ollama_commit_logger

from .changes import hunk_lines
from .git import GitService


DOC_FILES = ("README.md", "README.rst", "README.txt", "CHANGELOG.md", "CONTRIBUTING.md", "LICENSE")
SOURCE_EXTENSIONS = frozenset({".py", ".js", ".ts", ".java", ".go", ".rs"})
SKIPPED_DIRS = frozenset({"node_modules", "__pycache__", "venv"})

MAX_FOLDER_DEPTH = 3
MAX_FOLDER_ENTRIES = 20
MAX_DOC_FILES = 10


class ContextBlock(NamedTuple):
    provider: str
    title: str
    content: str

    def render(self) -> str:
        return f"{self.title}:\n{self.content}"


class ContextService:
    """Gathers optional context blocks about the repository."""

    def __init__(
        self,
        git: GitService,
        logger: Optional[logging.Logger] = None,
        get_user: Callable[[], str] = getpass.getuser,
    ) -> None:
        self._logger = logger or ollama_commit_logger(__name__)
        self._git = git
        self._get_user = get_user
        self._providers: Dict[str, Callable[[ChangeSet], ContextBlock]] = {
            "code": self._code_context,
            "docs": self._docs_context,
            "diff": self._diff_context,
            "terminal": self._terminal_context,
            "folder": self._folder_context,
            "codebase": self._codebase_context,
        }

    @property
    def available(self) -> List[str]:
        return list(self._providers)

    def gather(self, providers: Sequence[str], change_set: ChangeSet) -> List[ContextBlock]:
        """Collect one block per known provider.

        Unknown providers are skipped with a warning; a provider that raises
        is logged and skipped.
        """
        blocks: List[ContextBlock] = []
        for name in providers:
            provider = self._providers.get(name)
            if provider is None:
                self._logger.warning("Unknown context provider: %s", name)
                continue

            try:
                blocks.append(provider(change_set))
            except Exception as error:
                self._logger.warning("Failed to gather context from %s: %s", name, error)
                continue

            self._logger.debug("Gathered %s context", name)
        return blocks

    # --- Providers ---
    def _code_context(self, change_set: ChangeSet) -> ContextBlock:
        output = self._git.diff(change_set.staged, "--name-only")
        files = [line for line in output.splitlines() if line.strip()]
        return ContextBlock("code", "Changed Files", "\n".join(f"File: {name}" for name in files))

    def _docs_context(self, change_set: ChangeSet) -> ContextBlock:
        root = self._git.cwd
        docs = [name for name in DOC_FILES if (root / name).is_file()][:MAX_DOC_FILES]
        return ContextBlock("docs", "Documentation Files", "\n".join(f"Doc: {name}" for name in docs))

    def _diff_context(self, change_set: ChangeSet) -> ContextBlock:
        changed = hunk_lines(change_set.diff)
        additions = sum(1 for line in changed if line.startswith("+"))
        deletions = len(changed) - additions
        files = sum(1 for line in change_set.diff.splitlines() if line.startswith("diff --git"))
        content = f"Files changed: {files}\nLines added: {additions}\nLines removed: {deletions}"
        return ContextBlock("diff", "Diff Analysis", content)

    def _terminal_context(self, change_set: ChangeSet) -> ContextBlock:
        content = f"Current directory: {self._git.cwd.resolve()}\nUser: {self._get_user()}"
        return ContextBlock("terminal", "Shell Context", content)

    def _folder_context(self, change_set: ChangeSet) -> ContextBlock:
        root = self._git.cwd
        entries: List[str] = []
        for directory in self._walk_directories(root, depth=0):
            entries.append(str(directory.relative_to(root)))
            if len(entries) >= MAX_FOLDER_ENTRIES:
                break
        return ContextBlock("folder", "Project Structure", "\n".join(entries))

    def _codebase_context(self, change_set: ChangeSet) -> ContextBlock:
        file_count = 0
        line_count = 0
        for dirpath, dirnames, filenames in os.walk(self._git.cwd):
            dirnames[:] = [name for name in dirnames if not _is_skipped(name)]
            for filename in filenames:
                path = Path(dirpath) / filename
                if path.suffix not in SOURCE_EXTENSIONS:
                    continue
                file_count += 1
                try:
                    with path.open(encoding="utf-8", errors="ignore") as handle:
                        line_count += sum(1 for _ in handle)
                except OSError:
                    self._logger.debug("Skipping unreadable file %s", path)
        return ContextBlock("codebase", "Codebase Overview", f"Files: {file_count}\nLines of code: {line_count}")

    # --- Private helpers ---
    def _walk_directories(self, directory: Path, depth: int):
        if depth >= MAX_FOLDER_DEPTH:
            return
        for child in sorted(directory.iterdir()):
            if child.is_dir() and not _is_skipped(child.name):
                yield child
                yield from self._walk_directories(child, depth + 1)


def _is_skipped(name: str) -> bool:
    return name.startswith(".") or name in SKIPPED_DIRS
