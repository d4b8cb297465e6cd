"""Unit tests for layered configuration resolution."""

import logging
from pathlib import Path

import pytest
import yaml

from ollama_commit.core.config_resolver import (
    CONFIG_KEYS,
    ConfigResolver,
    create_config_update,
    deep_merge,
    find_similar_keys,
    flatten_config,
    parse_value,
    sync_chat_model,
)
from ollama_commit.errors import ConfigurationError


def _write_yaml(path: Path, data) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


@pytest.fixture
def user_path(tmp_path: Path) -> Path:
    return tmp_path / "home" / ".config" / "ollama-commit" / "config.yaml"


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "repo"
    directory.mkdir()
    return directory


def _resolver(project_dir: Path, user_path: Path, environ=None) -> ConfigResolver:
    return ConfigResolver(project_dir=project_dir, user_config_path=user_path, environ=environ or {})


# === parse_value ==========================================================


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("true", True),
        ("FALSE", False),
        ("True", True),
        ("42", 42),
        ("-3", -3),
        ("1.5", 1.5),
        ("007", "007"),
        ("1.50", "1.50"),
        ("a, b,,c ", ["a", "b", "c"]),
        ('say "hi", there', 'say "hi", there'),
        ("it's, fine", "it's, fine"),
        ("hello", "hello"),
        ("", ""),
    ],
)
def test_parse_value(raw, expected):
    assert parse_value(raw) == expected
    assert type(parse_value(raw)) is type(expected)


def test_parse_value_passes_non_strings_through():
    assert parse_value(5) == 5


# === create_config_update ================================================


def test_create_config_update_nests_dotted_keys():
    assert create_config_update("timeouts.connection", 5000) == {"timeouts": {"connection": 5000}}


def test_create_config_update_keeps_empty_segments():
    assert create_config_update("a..b", 1) == {"a": {"": {"b": 1}}}
    assert create_config_update("a.", 1) == {"a": {"": 1}}


def test_create_config_update_rejects_empty_key():
    with pytest.raises(ConfigurationError):
        create_config_update("", 1)


# === find_similar_keys ====================================================


def test_find_similar_keys_by_character_overlap():
    assert "model" in find_similar_keys("modle")


def test_find_similar_keys_by_substring():
    assert find_similar_keys("timeouts")[:3] == [
        "timeouts.connection",
        "timeouts.generation",
        "timeouts.model_pull",
    ]
    assert set(find_similar_keys("auto")) == {"auto_stage", "auto_model", "auto_commit"}


def test_find_similar_keys_returns_at_most_five():
    assert len(find_similar_keys("o")) == 5


def test_find_similar_keys_ignores_unrelated_text():
    assert find_similar_keys("zzzzzzzzzzzz") == []


# === deep_merge / sync_chat_model ========================================


def test_deep_merge_recurses_into_mappings_and_replaces_lists():
    base = {"timeouts": {"connection": 1, "generation": 2}, "context": ["code", "docs"]}
    update = {"timeouts": {"generation": 3}, "context": ["diff"]}

    merged = deep_merge(base, update)

    assert merged == {"timeouts": {"connection": 1, "generation": 3}, "context": ["diff"]}
    assert base["timeouts"]["generation"] == 2


def test_sync_chat_model_updates_only_the_chat_entry():
    models = [
        {"name": "main", "model": "llama3", "roles": ["chat"]},
        {"name": "emb", "model": "nomic-embed-text", "roles": ["embeddings"]},
    ]

    synced = sync_chat_model(models, "mistral")

    assert synced[0] == {"name": "main", "model": "mistral", "roles": ["chat"]}
    assert synced[1] == models[1]
    assert models[0]["model"] == "llama3"


def test_sync_chat_model_creates_missing_chat_entry():
    synced = sync_chat_model([{"name": "emb", "model": "nomic", "roles": ["embeddings"]}], "mistral")

    assert len(synced) == 2
    assert synced[1]["model"] == "mistral"
    assert synced[1]["roles"] == ["chat"]


def test_sync_chat_model_treats_empty_roles_as_no_role():
    roleless = {"name": "emb", "model": "nomic", "roles": []}

    synced = sync_chat_model([roleless], "mistral")

    assert synced[0] == {"name": "emb", "model": "nomic", "roles": []}
    assert [entry["model"] for entry in synced if "chat" in entry["roles"]] == ["mistral"]


def test_sync_chat_model_missing_roles_means_chat():
    synced = sync_chat_model([{"name": "main", "model": "llama3"}], "mistral")

    assert synced == [{"name": "main", "model": "mistral"}]


def test_flatten_config():
    assert flatten_config({"a": 1, "b": {"c": 2}}) == [("a", 1), ("b.c", 2)]


# === resolve ==============================================================


def test_resolve_uses_defaults_without_sources(project_dir, user_path):
    resolved = _resolver(project_dir, user_path).resolve()

    assert resolved.config.model == "mistral:7b-instruct"
    assert resolved.sources["model"] == "default"
    assert resolved.sources["timeouts"]["connection"] == "default"
    assert resolved.files == {}


def test_resolve_precedence_override_project_user_environment(project_dir, user_path):
    _write_yaml(user_path, {"model": "user-model", "verbose": True})
    _write_yaml(project_dir / ".ollama-commit.yaml", {"model": "project-model"})
    environ = {"OLLAMA_COMMIT_MODEL": "env-model", "OLLAMA_COMMIT_QUIET": "true"}
    resolver = _resolver(project_dir, user_path, environ)

    resolved = resolver.resolve({"model": "cli-model", "debug": None})
    assert resolved.config.model == "cli-model"
    assert resolved.sources["model"] == "override"

    resolved = resolver.resolve()
    assert resolved.config.model == "project-model"
    assert resolved.sources["model"] == "project"
    assert resolved.config.verbose is True
    assert resolved.sources["verbose"] == "user"
    assert resolved.config.quiet is True
    assert resolved.sources["quiet"] == "environment"
    assert resolved.sources["debug"] == "default"
    assert set(resolved.files) == {"user", "project"}


def test_resolve_environment_variables(project_dir, user_path):
    environ = {
        "OLLAMA_HOST": "gpu-box:11434",
        "OLLAMA_COMMIT_TIMEOUTS_CONNECTION": "5000",
        "OLLAMA_COMMIT_CONTEXT": "code,docs",
    }

    config = _resolver(project_dir, user_path, environ).load()

    assert config.host == "http://gpu-box:11434"
    assert config.timeouts.connection == 5000
    assert config.enabled_context() == ["code", "docs"]


def test_resolve_deep_merges_nested_sections(project_dir, user_path):
    _write_yaml(user_path, {"timeouts": {"connection": 1000}})
    _write_yaml(project_dir / ".ollama-commit.yaml", {"timeouts": {"generation": 2000}})

    resolved = _resolver(project_dir, user_path).resolve()

    assert resolved.config.timeouts.connection == 1000
    assert resolved.config.timeouts.generation == 2000
    assert resolved.config.timeouts.model_pull == 300000
    assert resolved.sources["timeouts"] == {
        "connection": "user",
        "generation": "project",
        "model_pull": "default",
    }


def test_resolve_replaces_lists_wholesale(project_dir, user_path):
    _write_yaml(user_path, {"context": ["code", "docs"]})
    _write_yaml(project_dir / ".ollama-commit.yaml", {"context": ["diff"]})

    assert _resolver(project_dir, user_path).load().enabled_context() == ["diff"]


def test_resolve_keeps_chat_entry_in_sync_with_model(project_dir, user_path):
    _write_yaml(
        user_path,
        {
            "model": "llama3",
            "models": [
                {"name": "main", "model": "llama3", "roles": ["chat"]},
                {"name": "emb", "model": "nomic-embed-text", "roles": ["embeddings"]},
            ],
        },
    )

    config = _resolver(project_dir, user_path).load({"model": "qwen2.5:7b"})

    assert config.chat_entry().model == "qwen2.5:7b"
    assert config.chat_entry().name == "main"
    assert config.models[1].model == "nomic-embed-text"


def test_resolve_rejects_empty_model_entry(project_dir, user_path):
    _write_yaml(user_path, {"models": [{"name": "emb", "model": "", "roles": ["embeddings"]}]})

    with pytest.raises(ConfigurationError):
        _resolver(project_dir, user_path).load()


def test_resolve_rejects_malformed_yaml(project_dir, user_path):
    user_path.parent.mkdir(parents=True)
    user_path.write_text("model: [unclosed", encoding="utf-8")

    with pytest.raises(ConfigurationError) as excinfo:
        _resolver(project_dir, user_path).load()

    assert str(user_path) in str(excinfo.value)


def test_resolve_rejects_non_mapping_file(project_dir, user_path):
    _write_yaml(project_dir / ".ollama-commit.yaml", ["model", "host"])

    with pytest.raises(ConfigurationError):
        _resolver(project_dir, user_path).load()


def test_resolve_rejects_invalid_values(project_dir, user_path):
    with pytest.raises(ConfigurationError) as excinfo:
        _resolver(project_dir, user_path, {"OLLAMA_COMMIT_TIMEOUTS_CONNECTION": "soon"}).load()

    assert "timeouts.connection" in str(excinfo.value)


# === set_key ==============================================================


def test_set_key_rejects_unknown_key_with_suggestions(project_dir, user_path):
    with pytest.raises(ConfigurationError) as excinfo:
        _resolver(project_dir, user_path).set_key("modle", "llama3")

    assert "model" in excinfo.value.suggestions
    assert not user_path.exists()


def test_set_key_rejects_empty_key(project_dir, user_path):
    with pytest.raises(ConfigurationError):
        _resolver(project_dir, user_path).set_key("", "x")


def test_set_key_writes_coerced_value_to_user_file(project_dir, user_path):
    result = _resolver(project_dir, user_path).set_key("timeouts.connection", "5000")

    assert result.written == [user_path]
    assert result.ok
    assert yaml.safe_load(user_path.read_text()) == {"timeouts": {"connection": 5000}}


def test_set_key_preserves_existing_file_content(project_dir, user_path):
    _write_yaml(user_path, {"verbose": True, "timeouts": {"generation": 1000}})

    _resolver(project_dir, user_path).set_key("timeouts.connection", "5000")

    assert yaml.safe_load(user_path.read_text()) == {
        "verbose": True,
        "timeouts": {"generation": 1000, "connection": 5000},
    }


def test_set_key_writes_project_file(project_dir, user_path):
    _resolver(project_dir, user_path).set_key("auto_stage", "true", target="project")

    assert yaml.safe_load((project_dir / ".ollama-commit.yaml").read_text()) == {"auto_stage": True}
    assert not user_path.exists()


def test_set_key_keeps_string_keys_verbatim(project_dir, user_path):
    _resolver(project_dir, user_path).set_key("prompt_file", "/tmp/a,b.txt")

    assert yaml.safe_load(user_path.read_text()) == {"prompt_file": "/tmp/a,b.txt"}


def test_set_key_rejects_invalid_value_without_writing(project_dir, user_path):
    with pytest.raises(ConfigurationError):
        _resolver(project_dir, user_path).set_key("timeouts.connection", "soon")

    assert not user_path.exists()


def test_set_key_rejects_empty_model(project_dir, user_path):
    with pytest.raises(ConfigurationError):
        _resolver(project_dir, user_path).set_key("model", "")


def test_set_model_updates_chat_entry_in_file(project_dir, user_path):
    _write_yaml(
        user_path,
        {
            "model": "llama3",
            "models": [
                {"name": "main", "model": "llama3", "roles": ["chat"]},
                {"name": "emb", "model": "nomic-embed-text", "roles": ["embeddings"]},
            ],
        },
    )

    _resolver(project_dir, user_path).set_key("model", "qwen2.5:7b")

    data = yaml.safe_load(user_path.read_text())
    assert data["model"] == "qwen2.5:7b"
    assert data["models"][0] == {"name": "main", "model": "qwen2.5:7b", "roles": ["chat"]}
    assert data["models"][1] == {"name": "emb", "model": "nomic-embed-text", "roles": ["embeddings"]}


def test_set_model_creates_chat_entry_from_effective_models(project_dir, user_path):
    _resolver(project_dir, user_path).set_key("model", "llama3.2:latest")

    data = yaml.safe_load(user_path.read_text())
    chat_entries = [entry for entry in data["models"] if "chat" in entry["roles"]]
    assert len(chat_entries) == 1
    assert chat_entries[0]["model"] == "llama3.2:latest"


def test_set_model_leaves_roleless_entry_alone(project_dir, user_path):
    roleless = {"name": "emb", "model": "nomic-embed-text", "roles": []}
    _write_yaml(user_path, {"models": [roleless]})
    resolver = _resolver(project_dir, user_path)

    resolver.set_key("model", "mistral")

    data = yaml.safe_load(user_path.read_text())
    assert data["models"][0] == roleless
    config = resolver.load()
    assert [entry.model for entry in config.models if "chat" in entry.roles] == ["mistral"]
    assert config.chat_entry().model == "mistral"


def test_set_key_apply_all_isolates_failures(project_dir, user_path, caplog):
    _write_yaml(user_path, {"verbose": True})
    project_file = project_dir / ".ollama-commit.yaml"
    project_file.write_text("model: [unclosed", encoding="utf-8")
    caplog.set_level(logging.ERROR)

    result = _resolver(project_dir, user_path).set_key("debug", "true", apply_all=True)

    assert result.written == [user_path]
    assert list(result.failures) == [project_file]
    assert not result.ok
    assert yaml.safe_load(user_path.read_text()) == {"verbose": True, "debug": True}
    assert project_file.read_text() == "model: [unclosed"
    assert "Failed to update" in caplog.text


def test_set_key_apply_all_without_files_uses_target(project_dir, user_path):
    result = _resolver(project_dir, user_path).set_key("debug", "true", apply_all=True)

    assert result.written == [user_path]


def test_config_keys_cover_timeouts():
    assert {"timeouts.connection", "timeouts.generation", "timeouts.model_pull"} <= set(CONFIG_KEYS)
