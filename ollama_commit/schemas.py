from enum import Enum
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ollama_commit.config import DEFAULT_HOST, DEFAULT_MODEL, DEFAULT_PROMPT_FILE
from ollama_commit.utils import normalize_host


Role = Literal["chat", "embeddings"]
PromptTemplateName = Literal["default", "conventional", "simple", "detailed"]


class Timeouts(BaseModel):
    """Service timeouts in milliseconds."""

    model_config = ConfigDict(protected_namespaces=())

    connection: int = Field(default=10000, gt=0)
    generation: int = Field(default=120000, gt=0)
    model_pull: int = Field(default=300000, gt=0)


class ContextProvider(BaseModel):
    provider: str
    enabled: bool = True


class ModelEntry(BaseModel):
    name: str
    provider: str = "ollama"
    model: str
    roles: List[Role] = Field(default_factory=lambda: ["chat"])

    @field_validator("model")
    @classmethod
    def reject_empty_model(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("model entries must name a model")
        return value.strip()


class Configuration(BaseModel):
    """The effective configuration after all sources are merged."""

    model_config = ConfigDict(extra="ignore")

    model: str = DEFAULT_MODEL
    embeddings_model: Optional[str] = None
    host: str = DEFAULT_HOST
    timeouts: Timeouts = Field(default_factory=Timeouts)
    verbose: bool = False
    debug: bool = False
    interactive: bool = True
    quiet: bool = False
    auto_stage: bool = False
    auto_model: bool = False
    auto_commit: bool = False
    prompt_file: str = str(DEFAULT_PROMPT_FILE)
    prompt_template: PromptTemplateName = "default"
    context: List[ContextProvider] = Field(default_factory=list)
    models: List[ModelEntry] = Field(default_factory=list)

    @field_validator("model")
    @classmethod
    def reject_empty_chat_model(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("model must not be empty")
        return value.strip()

    @field_validator("host")
    @classmethod
    def normalize_host_url(cls, value: str) -> str:
        return normalize_host(value)

    @field_validator("context", mode="before")
    @classmethod
    def normalize_context(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        return [
            {"provider": item, "enabled": True} if isinstance(item, str) else item
            for item in value
        ]

    @model_validator(mode="after")
    def check_chat_entry(self) -> "Configuration":
        chat_entries = [entry for entry in self.models if "chat" in entry.roles]
        if len(chat_entries) > 1:
            names = ", ".join(entry.name for entry in chat_entries)
            raise ValueError(f"only one model entry may have the chat role, found: {names}")
        if chat_entries and chat_entries[0].model != self.model:
            raise ValueError(
                f"chat model entry '{chat_entries[0].name}' uses "
                f"'{chat_entries[0].model}' but model is '{self.model}'"
            )
        return self

    def chat_entry(self) -> Optional[ModelEntry]:
        return next((entry for entry in self.models if "chat" in entry.roles), None)

    def embeddings_model_name(self) -> Optional[str]:
        if self.embeddings_model:
            return self.embeddings_model
        entry = next((entry for entry in self.models if "embeddings" in entry.roles), None)
        return entry.model if entry else None

    def enabled_context(self) -> List[str]:
        return [item.provider for item in self.context if item.enabled]


class DiffStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    files: int = 0
    insertions: int = 0
    deletions: int = 0


class VersionBump(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    old: str
    new: str

    def describe(self) -> str:
        return f"{self.path}: Bumped version from {self.old} to {self.new}"


class ChangeSet(BaseModel):
    """Normalized view of the pending changes of a repository."""

    model_config = ConfigDict(frozen=True)

    diff: str
    staged: bool
    stats: DiffStats = Field(default_factory=DiffStats)
    files_info: str = ""
    version_bumps: Tuple[VersionBump, ...] = ()
    total_lines: int = 0
    truncated: bool = False


class GenerationAttempt(BaseModel):
    number: int
    outcome: Literal["success", "retryable-failure", "terminal-failure"]
    delay_ms: Optional[int] = None
    error: Optional[str] = None


class InteractionOutcome(str, Enum):
    COMMITTED = "committed"
    COMMAND_PRINTED = "command-printed"
    COPIED = "copied"
    REGENERATE = "regenerate"
    CANCELLED = "cancelled"
    COMMIT_FAILED = "commit-failed"
    PUSH_FAILED = "push-failed"

    @property
    def is_terminal(self) -> bool:
        return self is not InteractionOutcome.REGENERATE

    @property
    def is_failure(self) -> bool:
        return self in (InteractionOutcome.COMMIT_FAILED, InteractionOutcome.PUSH_FAILED)
