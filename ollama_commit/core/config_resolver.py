"""Layered configuration resolution.

Sources are merged in ascending precedence: built-in defaults, environment
variables, the user file, the project file and explicit overrides. The
merged mapping is validated as a :class:`Configuration`.
"""

import copy
import logging
import math
import os
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import yaml
from pydantic import ValidationError

from ollama_commit.config import CONFIG_DIR, PROJECT_CONFIG_FILENAME, USER_CONFIG_FILENAME
from ollama_commit.errors import ConfigurationError
from ollama_commit.schemas import Configuration
from ollama_commit.settings import ollama_commit_logger


CONFIG_KEYS: Tuple[str, ...] = (
    "model",
    "embeddings_model",
    "host",
    "timeouts.connection",
    "timeouts.generation",
    "timeouts.model_pull",
    "verbose",
    "debug",
    "interactive",
    "quiet",
    "auto_stage",
    "auto_model",
    "auto_commit",
    "prompt_file",
    "prompt_template",
    "context",
    "models",
)

# Keys whose values are taken verbatim from the command line.
STRING_KEYS = frozenset({"model", "embeddings_model", "host", "prompt_file", "prompt_template"})

# Keys that cannot be expressed as a single environment variable.
STRUCTURED_KEYS = frozenset({"models"})

ENV_PREFIX = "OLLAMA_COMMIT_"
HOST_ENV_VAR = "OLLAMA_HOST"

SOURCE_ORDER: Tuple[str, ...] = ("default", "environment", "user", "project", "override")
FILE_TARGETS: Tuple[str, ...] = ("user", "project")

MAX_SUGGESTIONS = 5
SIMILARITY_THRESHOLD = 0.6
LENGTH_TOLERANCE = 2

_QUOTE_CHARS = ("'", '"', "`")


# --- Pure helpers ---
def parse_value(raw: Any) -> Any:
    """Coerce a raw command-line value.

    ``true``/``false`` become booleans, numbers that survive a round trip
    become ints or floats, comma separated text without quotes becomes a list
    of trimmed non-empty items. Everything else is returned unchanged.
    """

    if not isinstance(raw, str):
        return raw

    lowered = raw.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False

    number = _parse_number(raw)
    if number is not None:
        return number

    if "," in raw and not any(quote in raw for quote in _QUOTE_CHARS):
        return [item.strip() for item in raw.split(",") if item.strip()]

    return raw


def _parse_number(raw: str) -> Optional[Any]:
    try:
        integer = int(raw)
    except ValueError:
        pass
    else:
        if str(integer) == raw:
            return integer

    try:
        number = float(raw)
    except ValueError:
        return None

    if math.isfinite(number) and str(number) == raw:
        return number
    return None


def create_config_update(key: str, value: Any) -> Dict[str, Any]:
    """Build a nested mapping from a dotted key. Empty segments are kept."""

    if not key:
        raise ConfigurationError("Configuration key must not be empty")

    update: Any = value
    for part in reversed(key.split(".")):
        update = {part: update}
    return update


def find_similar_keys(
    key: str, keys: Sequence[str] = CONFIG_KEYS, limit: int = MAX_SUGGESTIONS
) -> List[str]:
    lowered = key.lower()
    matches: List[str] = []

    for candidate in keys:
        if lowered in candidate or candidate in lowered:
            matches.append(candidate)
            continue

        if abs(len(candidate) - len(lowered)) > LENGTH_TOLERANCE:
            continue

        if _overlap_ratio(lowered, candidate) >= SIMILARITY_THRESHOLD:
            matches.append(candidate)

    return matches[:limit]


def _overlap_ratio(left: str, right: str) -> float:
    longest = max(len(left), len(right))
    if not longest:
        return 0.0
    common = sum((Counter(left) & Counter(right)).values())
    return common / longest


def deep_merge(base: Mapping[str, Any], update: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a new mapping with *update* merged over *base*.

    Nested mappings are merged recursively; scalars and lists replace.
    """

    merged = copy.deepcopy(dict(base))
    for key, value in update.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def sync_chat_model(models: Sequence[Any], model: str) -> List[Any]:
    """Point the chat entry at *model*, creating it when missing.

    Entries without the chat role are returned untouched. A missing ``roles``
    key means chat; an explicit empty list means no role.
    """

    updated = [dict(entry) if isinstance(entry, Mapping) else entry for entry in models]

    for entry in updated:
        if isinstance(entry, dict) and "chat" in (entry.get("roles", ["chat"]) or ()):
            entry["model"] = model
            return updated

    updated.append({"name": model, "provider": "ollama", "model": model, "roles": ["chat"]})
    return updated


def flatten_config(data: Mapping[str, Any], prefix: str = "") -> List[Tuple[str, Any]]:
    """Return ``(dotted_key, value)`` pairs for every leaf of *data*."""

    items: List[Tuple[str, Any]] = []
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, Mapping):
            items.extend(flatten_config(value, prefix=f"{dotted}."))
        else:
            items.append((dotted, value))
    return items


def _drop_none(data: Mapping[str, Any]) -> Dict[str, Any]:
    cleaned: Dict[str, Any] = {}
    for key, value in data.items():
        if value is None:
            continue
        if isinstance(value, Mapping):
            nested = _drop_none(value)
            if nested:
                cleaned[key] = nested
            continue
        cleaned[key] = value
    return cleaned


def _mark_sources(layer: Mapping[str, Any], source: str, sources: Dict[str, Any]) -> None:
    for key, value in layer.items():
        if isinstance(value, Mapping):
            node = sources.get(key)
            if not isinstance(node, dict):
                node = sources[key] = {}
            _mark_sources(value, source, node)
        else:
            sources[key] = source


def _format_validation_error(error: ValidationError) -> str:
    problems = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail.get("loc", ())) or "configuration"
        problems.append(f"{location}: {detail.get('msg')}")
    return "; ".join(problems)


@dataclass
class ResolvedConfiguration:
    config: Configuration
    sources: Dict[str, Any]
    files: Dict[str, Path] = field(default_factory=dict)


@dataclass
class SetKeyResult:
    written: List[Path] = field(default_factory=list)
    failures: Dict[Path, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return bool(self.written) and not self.failures


class ConfigResolver:
    """Merge configuration sources and update configuration files."""

    def __init__(
        self,
        project_dir: Optional[Path] = None,
        user_config_path: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._logger = logger or ollama_commit_logger(__name__)
        self._project_dir = Path(project_dir) if project_dir else Path.cwd()
        self._user_config_path = (
            Path(user_config_path) if user_config_path else CONFIG_DIR / USER_CONFIG_FILENAME
        )
        self._environ = environ if environ is not None else os.environ

    # --- Public API ---
    @property
    def user_config_path(self) -> Path:
        return self._user_config_path

    @property
    def project_config_path(self) -> Path:
        return self._project_dir / PROJECT_CONFIG_FILENAME

    def config_path(self, target: str) -> Path:
        if target == "user":
            return self.user_config_path
        if target == "project":
            return self.project_config_path
        raise ConfigurationError(
            f"Unknown configuration target: {target}", suggestions=FILE_TARGETS
        )

    def existing_files(self) -> Dict[str, Path]:
        return {
            target: self.config_path(target)
            for target in FILE_TARGETS
            if self.config_path(target).is_file()
        }

    def resolve(self, overrides: Optional[Mapping[str, Any]] = None) -> ResolvedConfiguration:
        """Merge every source and validate the result.

        Args:
            overrides: Explicit values, usually command-line options. ``None``
                values are ignored.

        Returns:
            The effective configuration, a provenance mapping of the same shape
            and the configuration files that were read.

        Raises:
            ConfigurationError: If a file cannot be parsed or the merged
                configuration is invalid.
        """
        layers = self._layers(overrides)
        return self._merge(layers)

    def load(self, overrides: Optional[Mapping[str, Any]] = None) -> Configuration:
        return self.resolve(overrides).config

    def validate_key(self, key: str) -> None:
        if not key:
            raise ConfigurationError("Configuration key must not be empty")

        if key not in CONFIG_KEYS:
            suggestions = find_similar_keys(key)
            self._logger.debug("Unknown key %s, suggestions: %s", key, suggestions)
            raise ConfigurationError(f"Unknown configuration key: {key}", suggestions)

    def set_key(
        self,
        key: str,
        raw_value: str,
        target: str = "user",
        apply_all: bool = False,
    ) -> SetKeyResult:
        """Persist a single key to one or every existing configuration file.

        With ``apply_all`` each existing file is updated independently; a
        failure is recorded in the result and the remaining files are still
        written. Without it, errors propagate.
        """
        self.validate_key(key)
        value = raw_value if key in STRING_KEYS else parse_value(raw_value)

        if key == "model" and (not isinstance(value, str) or not value.strip()):
            raise ConfigurationError("model must not be empty")

        targets = [target]
        if apply_all:
            targets = list(self.existing_files()) or [target]

        result = SetKeyResult()
        for name in targets:
            path = self.config_path(name)
            try:
                self._write_key(name, key, value)
            except ConfigurationError as error:
                if not apply_all:
                    raise
                self._logger.error("Failed to update %s: %s", path, error)
                result.failures[path] = str(error)
                continue

            self._logger.info("Set %s in %s", key, path)
            result.written.append(path)

        return result

    # --- Private helpers ---
    def _layers(self, overrides: Optional[Mapping[str, Any]] = None) -> List[Tuple[str, Dict[str, Any]]]:
        return [
            ("default", Configuration().model_dump(mode="json")),
            ("environment", self._environment_layer()),
            ("user", self._read_file(self.user_config_path)),
            ("project", self._read_file(self.project_config_path)),
            ("override", _drop_none(overrides or {})),
        ]

    def _merge(self, layers: Sequence[Tuple[str, Dict[str, Any]]]) -> ResolvedConfiguration:
        merged: Dict[str, Any] = {}
        sources: Dict[str, Any] = {}

        for source, layer in layers:
            merged = deep_merge(merged, layer)
            _mark_sources(layer, source, sources)

        config = self._validate(merged)
        self._logger.debug("Resolved configuration with model %s at %s", config.model, config.host)
        return ResolvedConfiguration(config=config, sources=sources, files=self.existing_files())

    def _validate(self, data: Mapping[str, Any]) -> Configuration:
        candidate = dict(data)
        models = candidate.get("models")
        candidate["models"] = sync_chat_model(
            models if isinstance(models, list) else [], candidate.get("model", "")
        )

        try:
            return Configuration.model_validate(candidate)
        except ValidationError as error:
            raise ConfigurationError(
                f"Invalid configuration: {_format_validation_error(error)}"
            ) from error

    def _environment_layer(self) -> Dict[str, Any]:
        layer: Dict[str, Any] = {}

        host = self._environ.get(HOST_ENV_VAR)
        if host:
            layer["host"] = host

        for key in CONFIG_KEYS:
            if key in STRUCTURED_KEYS:
                continue
            name = ENV_PREFIX + key.upper().replace(".", "_")
            raw = self._environ.get(name)
            if raw is None or raw == "":
                continue
            value = raw if key in STRING_KEYS else parse_value(raw)
            layer = deep_merge(layer, create_config_update(key, value))

        return layer

    def _write_key(self, target: str, key: str, value: Any) -> None:
        path = self.config_path(target)
        data = self._read_file(path)
        updated = deep_merge(data, create_config_update(key, value))

        if key == "model":
            models = data.get("models")
            if not isinstance(models, list):
                models = [entry.model_dump() for entry in self.load().models]
            updated["models"] = sync_chat_model(models, value)

        # The file content on its own, over the defaults, must be valid.
        self._validate(deep_merge(Configuration().model_dump(mode="json"), updated))
        self._write_file(path, updated)

    def _read_file(self, path: Path) -> Dict[str, Any]:
        if not path.is_file():
            return {}

        try:
            content = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as error:
            raise ConfigurationError(f"Invalid YAML in {path}: {error}") from error
        except OSError as error:
            raise ConfigurationError(f"Could not read {path}: {error}") from error

        if content is None:
            return {}
        if not isinstance(content, dict):
            raise ConfigurationError(f"Configuration file {path} must contain a mapping")

        self._logger.debug("Loaded configuration file %s", path)
        return content

    def _write_file(self, path: Path, data: Mapping[str, Any]) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(
                yaml.safe_dump(dict(data), sort_keys=False, default_flow_style=False),
                encoding="utf-8",
            )
        except OSError as error:
            raise ConfigurationError(f"Could not write {path}: {error}") from error
