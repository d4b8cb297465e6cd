import logging
from pathlib import Path
from typing import Optional, Protocol, Sequence

from ollama_commit.config import CLOSING_INSTRUCTION, PROMPT_TEMPLATES
from ollama_commit.errors import ConfigurationError
from ollama_commit.schemas import ChangeSet, Configuration
from ollama_commit.settings import ollama_commit_logger

from .context import ContextService


class Embedder(Protocol):
    def embed(self, model: str, text: str) -> Sequence[float]:
        ...


def build_prompt(system_prompt: str, files_info: str, diff: str, augmentation: str = "") -> str:
    """Lay out the final prompt. ``files_info`` and ``diff`` are inserted verbatim."""

    sections = [
        system_prompt,
        f"CONTEXT:\n{files_info}",
        f"GIT DIFF:\n{diff}",
    ]
    if augmentation:
        sections.append(augmentation)
    sections.append(CLOSING_INSTRUCTION)
    return "\n\n".join(sections)


class PromptAssembler:
    """Builds the prompt sent to the model.

    At most one augmentation is applied: enabled context providers first,
    then an embedding of the diff, otherwise none.
    """

    def __init__(
        self,
        config: Configuration,
        context_service: Optional[ContextService] = None,
        embedder: Optional[Embedder] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._logger = logger or ollama_commit_logger(__name__)
        self._config = config
        self._context_service = context_service
        self._embedder = embedder

    # --- Public API ---
    def system_prompt(self) -> str:
        prompt_file = Path(self._config.prompt_file).expanduser()
        if prompt_file.is_file():
            self._logger.debug("Using prompt file %s", prompt_file)
            return prompt_file.read_text(encoding="utf-8").strip()

        name = self._config.prompt_template
        template = PROMPT_TEMPLATES.get(name)
        if template is None:
            raise ConfigurationError(
                f"Unknown prompt template: {name}", suggestions=sorted(PROMPT_TEMPLATES)
            )
        self._logger.debug("Using built-in %s prompt template", name)
        return template

    def assemble(self, change_set: ChangeSet) -> str:
        augmentation = self._augmentation(change_set)
        prompt = build_prompt(self.system_prompt(), change_set.files_info, change_set.diff, augmentation)
        self._logger.debug("Prompt length: %d characters", len(prompt))
        return prompt

    # --- Private helpers ---
    def _augmentation(self, change_set: ChangeSet) -> str:
        providers = self._config.enabled_context()
        if providers and self._context_service is not None:
            blocks = self._context_service.gather(providers, change_set)
            if blocks:
                return "ADDITIONAL CONTEXT:\n" + "\n\n".join(block.render() for block in blocks)

        model = self._config.embeddings_model_name()
        if model and self._embedder is not None:
            return self._embedding_note(model, change_set)

        return ""

    def _embedding_note(self, model: str, change_set: ChangeSet) -> str:
        try:
            vector = self._embedder.embed(model, change_set.diff)
        except Exception as error:
            self._logger.debug("Embeddings with %s unavailable, continuing without: %s", model, error)
            return ""

        return (
            "EMBEDDINGS:\n"
            f"The diff was embedded with {model} ({len(vector)} dimensions) "
            "to give semantic context for these changes."
        )
