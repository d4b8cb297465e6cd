import logging
from typing import Optional, Tuple

from ollama_commit.core.changes import ChangeAnalyzer
from ollama_commit.core.engine import GenerationEngine
from ollama_commit.core.prompt import PromptAssembler
from ollama_commit.schemas import ChangeSet
from ollama_commit.settings import ollama_commit_logger


class CommitService:
    """Runs one analyze, assemble and generate cycle."""

    def __init__(
        self,
        analyzer: ChangeAnalyzer,
        assembler: PromptAssembler,
        engine: GenerationEngine,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._logger = logger or ollama_commit_logger(__name__)
        self.analyzer = analyzer
        self.assembler = assembler
        self.engine = engine
        self.last_change_set: Optional[ChangeSet] = None

    # --- Public API ---
    def analyze(self) -> ChangeSet:
        self._logger.debug("Collecting changes...")
        change_set = self.analyzer.analyze()
        self.last_change_set = change_set
        return change_set

    def prepare(self) -> Tuple[ChangeSet, str]:
        change_set = self.analyze()
        prompt = self.assembler.assemble(change_set)
        return change_set, prompt

    def generate_commit(self) -> str:
        self._logger.debug("⛓️ Generating commit message with %s", self.engine.model)
        message = self.engine.generate(self.prepare)
        self._logger.debug("⛓️ Generation finished after %d attempt(s)", len(self.engine.attempts))
        return message
