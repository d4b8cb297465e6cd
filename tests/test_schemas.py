import pytest
from pydantic import ValidationError

from ollama_commit.schemas import (
    ChangeSet,
    Configuration,
    InteractionOutcome,
    ModelEntry,
    VersionBump,
)


def test_configuration_defaults():
    config = Configuration()

    assert config.model == "mistral:7b-instruct"
    assert config.host == "http://localhost:11434"
    assert config.timeouts.connection == 10000
    assert config.timeouts.generation == 120000
    assert config.timeouts.model_pull == 300000
    assert config.interactive is True
    assert config.auto_commit is False
    assert config.prompt_template == "default"
    assert config.context == []
    assert config.models == []


def test_configuration_normalizes_host():
    assert Configuration(host="ollama.local:11434/").host == "http://ollama.local:11434"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("code", [("code", True)]),
        (["code", "docs"], [("code", True), ("docs", True)]),
        ([{"provider": "diff", "enabled": False}], [("diff", False)]),
        (None, []),
    ],
)
def test_configuration_normalizes_context(raw, expected):
    config = Configuration(context=raw)

    assert [(item.provider, item.enabled) for item in config.context] == expected


def test_enabled_context_skips_disabled_providers():
    config = Configuration(context=[{"provider": "code"}, {"provider": "docs", "enabled": False}])

    assert config.enabled_context() == ["code"]


def test_configuration_rejects_two_chat_entries():
    with pytest.raises(ValidationError):
        Configuration(
            model="a",
            models=[
                {"name": "one", "model": "a", "roles": ["chat"]},
                {"name": "two", "model": "b", "roles": ["chat"]},
            ],
        )


def test_configuration_rejects_chat_entry_that_disagrees_with_model():
    with pytest.raises(ValidationError):
        Configuration(model="a", models=[{"name": "one", "model": "b", "roles": ["chat"]}])


def test_model_entry_rejects_empty_model():
    with pytest.raises(ValidationError):
        ModelEntry(name="broken", model="  ")


def test_model_entry_rejects_unknown_role():
    with pytest.raises(ValidationError):
        ModelEntry(name="x", model="y", roles=["autocomplete"])


def test_embeddings_model_name_prefers_explicit_setting():
    config = Configuration(
        embeddings_model="nomic-embed-text",
        models=[
            {"name": "chat", "model": "mistral:7b-instruct", "roles": ["chat"]},
            {"name": "emb", "model": "mxbai-embed-large", "roles": ["embeddings"]},
        ],
    )

    assert config.embeddings_model_name() == "nomic-embed-text"
    assert config.model_copy(update={"embeddings_model": None}).embeddings_model_name() == "mxbai-embed-large"


def test_change_set_is_frozen():
    change_set = ChangeSet(diff="x", staged=True)

    with pytest.raises(ValidationError):
        change_set.diff = "y"


def test_version_bump_describe():
    bump = VersionBump(path="package.json", old="1.0.0", new="1.0.1")

    assert bump.describe() == "package.json: Bumped version from 1.0.0 to 1.0.1"


def test_interaction_outcome_flags():
    assert InteractionOutcome("command-printed") is InteractionOutcome.COMMAND_PRINTED
    assert not InteractionOutcome.REGENERATE.is_terminal
    assert all(outcome.is_terminal for outcome in InteractionOutcome if outcome is not InteractionOutcome.REGENERATE)
    assert InteractionOutcome.COMMIT_FAILED.is_failure
    assert InteractionOutcome.PUSH_FAILED.is_failure
    assert not InteractionOutcome.CANCELLED.is_failure
