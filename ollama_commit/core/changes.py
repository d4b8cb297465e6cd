"""Extraction and normalization of pending repository changes."""

import logging
import re
from pathlib import PurePosixPath
from typing import List, Optional, Tuple

from ollama_commit.config import MAX_DIFF_CHARS, TRUNCATED_DIFF_LINES
from ollama_commit.errors import CommandExecutionError, NoChangesError, RepositoryError
from ollama_commit.schemas import ChangeSet, DiffStats, VersionBump
from ollama_commit.settings import ollama_commit_logger

from .git import GitService


VERSION_FILES = frozenset(
    {
        "package.json",
        "package-lock.json",
        "composer.json",
        "pyproject.toml",
        "Cargo.toml",
        "setup.cfg",
        "VERSION",
        "version.txt",
    }
)

# Values that sometimes show up as a captured "version" but never are one.
DEGENERATE_VERSIONS = frozenset({"", ".", ".."})

FILE_ANALYSIS_FAILED = "📁 Error analyzing file changes"

STATUS_ACTIONS = {
    "A": "added",
    "D": "deleted",
    "M": "modified",
    "R": "renamed",
    "C": "copied",
}

MAX_KEY_ADDITIONS = 3

_FILE_SECTION = re.compile(r"^diff --git", re.MULTILINE)
_DECLARATION = re.compile(r"\b(def|class|function|const|let|var|interface|fn|func)\b")
_FILES_CHANGED = re.compile(r"(\d+) files? changed")
_INSERTIONS = re.compile(r"(\d+) insertions?\(\+\)")
_DELETIONS = re.compile(r"(\d+) deletions?\(-\)")

_JSON_VERSION = re.compile(r'^\s*"version"\s*:\s*"([^"]*)"')
_TOML_VERSION = re.compile(r"""^\s*version\s*=\s*["']([^"']*)["']""")
_CFG_VERSION = re.compile(r"^\s*version\s*=\s*(\S*)")
_PLAIN_VERSION = re.compile(r"^\s*(\S*)\s*$")

_VERSION_PATTERNS = {
    "package.json": _JSON_VERSION,
    "package-lock.json": _JSON_VERSION,
    "composer.json": _JSON_VERSION,
    "pyproject.toml": _TOML_VERSION,
    "Cargo.toml": _TOML_VERSION,
    "setup.cfg": _CFG_VERSION,
    "VERSION": _PLAIN_VERSION,
    "version.txt": _PLAIN_VERSION,
}


# --- Pure helpers ---
def truncate_diff(diff: str) -> Tuple[str, int, bool]:
    """Strip carriage returns and bound the diff size.

    The size limit applies to the diff as git produced it, carriage returns
    included.

    Returns:
        The normalized diff, its total line count and whether it was cut.
    """

    text = diff.replace("\r", "")
    lines = text.split("\n")
    total_lines = len(lines)

    if len(diff) <= MAX_DIFF_CHARS:
        return text, total_lines, False

    file_count = len(_FILE_SECTION.findall(text))
    kept = "\n".join(lines[:TRUNCATED_DIFF_LINES])
    marker = (
        f"\n\n[... diff truncated - showing first {TRUNCATED_DIFF_LINES} lines "
        f"of {total_lines} total lines ...]"
        f"\n[Total files changed: {file_count}]"
    )
    return kept + marker, total_lines, True


def parse_stat_summary(output: str) -> DiffStats:
    lines = [line for line in output.splitlines() if line.strip()]
    if not lines:
        return DiffStats()

    summary = lines[-1]

    def _number(pattern: "re.Pattern[str]") -> int:
        match = pattern.search(summary)
        return int(match.group(1)) if match else 0

    return DiffStats(
        files=_number(_FILES_CHANGED),
        insertions=_number(_INSERTIONS),
        deletions=_number(_DELETIONS),
    )


def parse_name_status(output: str) -> List[Tuple[str, str]]:
    """Return ``(action, path)`` pairs, skipping paths inside ``.git``."""

    entries: List[Tuple[str, str]] = []
    for line in output.splitlines():
        if not line.strip():
            continue

        status, _, rest = line.partition("\t")
        # Renames and copies list "old<TAB>new"; describe the new path.
        path = rest.split("\t")[-1] if rest else ""
        if not path or path == ".git" or path.startswith((".git/", ".git\\")):
            continue

        action = STATUS_ACTIONS.get(status[:1].upper(), "modified")
        entries.append((action, path))
    return entries


def hunk_lines(file_diff: str) -> List[str]:
    """Return the ``+``/``-`` lines of every hunk, without file headers."""

    changed: List[str] = []
    in_hunk = False
    for line in file_diff.splitlines():
        if line.startswith("diff --git"):
            in_hunk = False
        elif line.startswith("@@"):
            in_hunk = True
        elif in_hunk and line[:1] in ("+", "-"):
            changed.append(line)
    return changed


def count_line_changes(file_diff: str) -> Tuple[int, int, int]:
    """Count added lines, removed lines and added declarations."""

    additions = deletions = declarations = 0
    for line in hunk_lines(file_diff):
        if line.startswith("+"):
            additions += 1
            if _DECLARATION.search(line[1:]):
                declarations += 1
        else:
            deletions += 1
    return additions, deletions, declarations


def extract_version_bump(path: str, file_diff: str) -> Optional[VersionBump]:
    """Detect a version change in a well-known manifest or version file."""

    name = PurePosixPath(path).name
    pattern = _VERSION_PATTERNS.get(name)
    if pattern is None:
        return None

    old: Optional[str] = None
    new: Optional[str] = None
    for line in hunk_lines(file_diff):
        match = pattern.match(line[1:])
        if not match:
            continue
        if line.startswith("-") and old is None:
            old = match.group(1).strip()
        elif line.startswith("+") and new is None:
            new = match.group(1).strip()

    if old is None or new is None:
        return None
    if old == new or new in DEGENERATE_VERSIONS:
        return None
    return VersionBump(path=path, old=old, new=new)


class ChangeAnalyzer:
    """Builds a :class:`ChangeSet` describing the pending changes.

    Staged changes win over unstaged ones. With ``auto_stage`` the working
    tree is staged when nothing else is.
    """

    def __init__(
        self,
        git: GitService,
        auto_stage: bool = False,
        verbose: bool = False,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._logger = logger or ollama_commit_logger(__name__)
        self._git = git
        self._auto_stage = auto_stage
        self._verbose = verbose

    # --- Public API ---
    def analyze(self) -> ChangeSet:
        if not self._git.is_repository():
            raise RepositoryError(f"Not a git repository: {self._git.cwd}")

        diff, staged = self._read_diff()
        text, total_lines, truncated = truncate_diff(diff)
        if truncated:
            self._logger.info("Diff truncated to %d of %d lines", TRUNCATED_DIFF_LINES, total_lines)

        stats = self._read_stats(staged)
        try:
            files_info, bumps = self.describe_files(staged)
        except CommandExecutionError as error:
            self._logger.warning("Could not analyze changed files: %s", error)
            files_info, bumps = FILE_ANALYSIS_FAILED, []

        self._logger.debug(
            "Change set: %d files, +%d -%d, staged=%s",
            stats.files,
            stats.insertions,
            stats.deletions,
            staged,
        )
        return ChangeSet(
            diff=text,
            staged=staged,
            stats=stats,
            files_info=files_info,
            version_bumps=tuple(bumps),
            total_lines=total_lines,
            truncated=truncated,
        )

    def describe_files(self, staged: bool) -> Tuple[str, List[VersionBump]]:
        entries = parse_name_status(self._git.diff(staged, "--name-status"))
        if not entries:
            return "📁 0 files changed", []

        details: List[str] = []
        bumps: List[VersionBump] = []
        for action, path in entries:
            summary = ""
            key_additions: List[str] = []
            if action != "deleted":
                file_diff = self._git.file_diff(staged, path)
                summary = self._summarize(file_diff)
                bump = extract_version_bump(path, file_diff)
                if bump is not None:
                    bumps.append(bump)
                if self._verbose:
                    key_additions = [
                        line for line in hunk_lines(file_diff) if line.startswith("+")
                    ][:MAX_KEY_ADDITIONS]

            details.append(f"📄 {path} ({action}) {summary}".rstrip())
            if key_additions:
                details.append("   Key additions:")
                details.extend(f"   {line}" for line in key_additions)

        description = f"📁 {len(entries)} files changed:\n" + "\n".join(details)
        if bumps:
            description += "\n\n📦 Version Changes:\n" + "\n".join(
                f"📦 {bump.describe()}" for bump in bumps
            )
        return description, bumps

    # --- Private helpers ---
    def _read_stats(self, staged: bool) -> DiffStats:
        try:
            return parse_stat_summary(self._git.diff(staged, "--stat"))
        except CommandExecutionError as error:
            self._logger.warning("Could not read diff stats: %s", error)
            return DiffStats()

    def _read_diff(self) -> Tuple[str, bool]:
        staged_diff = self._git.diff(True)
        if staged_diff.strip():
            self._logger.info("Using staged changes for commit message generation")
            return staged_diff, True

        unstaged_diff = self._git.diff(False)
        if not unstaged_diff.strip():
            raise NoChangesError("No changes found (staged or unstaged).")

        if self._auto_stage:
            self._logger.info("Staging all changes")
            self._git.stage_all()
            staged_diff = self._git.diff(True)
            if not staged_diff.strip():
                raise NoChangesError("No changes to commit after staging.")
            return staged_diff, True

        self._logger.warning(
            "Using unstaged changes; you'll need to stage them before committing"
        )
        return unstaged_diff, False

    @staticmethod
    def _summarize(file_diff: str) -> str:
        if not file_diff:
            return ""

        additions, deletions, declarations = count_line_changes(file_diff)
        summary = f"(+{additions} -{deletions}"
        if declarations:
            summary += f", {declarations} new functions/vars"
        return summary + ")"
