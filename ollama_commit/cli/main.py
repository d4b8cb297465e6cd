import sys
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click
from dotenv import load_dotenv

from ollama_commit.config import CONNECTION_TROUBLESHOOTING
from ollama_commit.core.config_resolver import (
    CONFIG_KEYS,
    ConfigResolver,
    flatten_config,
)
from ollama_commit.core.factory import build_components
from ollama_commit.core.git import GitService
from ollama_commit.core.ollama import OllamaService
from ollama_commit.errors import CommandExecutionError, ConfigurationError, GenerationServiceError
from ollama_commit.settings import configure_verbosity

from .controller import CommitController
from .service import CommitService


CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


def _project_dir(directory: Path) -> Path:
    try:
        return GitService(cwd=directory).repository_root()
    except CommandExecutionError:
        return directory


def _resolver(directory: Optional[Path] = None) -> ConfigResolver:
    return ConfigResolver(project_dir=_project_dir(directory or Path.cwd()))


def _fail_with_configuration_error(error: ConfigurationError) -> None:
    click.echo(f"❌ {error}", err=True)
    if error.suggestions:
        click.echo(f"Did you mean: {', '.join(error.suggestions)}?", err=True)
    sys.exit(1)


@click.group(context_settings=CONTEXT_SETTINGS)
def cli() -> None:
    """Generate commit messages from your changes with a local Ollama model."""
    load_dotenv()


@cli.command(context_settings=CONTEXT_SETTINGS)
@click.option(
    "-d",
    "--directory",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=Path("."),
    help="Repository directory",
)
@click.option("-m", "--model", default=None, help="Model to generate with")
@click.option("--host", default=None, help="Ollama server URL")
@click.option("-v", "--verbose", is_flag=True, default=None, help="Show detailed progress")
@click.option("--debug", is_flag=True, default=None, help="Enable debug logging")
@click.option("-q", "--quiet", is_flag=True, default=None, help="Only print the result")
@click.option("--interactive/--no-interactive", default=None, help="Ask before acting on the message")
@click.option("--auto-stage", is_flag=True, default=None, help="Stage all changes when nothing is staged")
@click.option("--auto-model", is_flag=True, default=None, help="Pick an installed model automatically")
@click.option("--auto-commit", is_flag=True, default=None, help="Commit and push the accepted message")
@click.option("--prompt-file", default=None, help="File with a custom system prompt")
@click.option(
    "--prompt-template",
    type=click.Choice(["default", "conventional", "simple", "detailed"]),
    default=None,
    help="Built-in system prompt to use",
)
@click.option("--context", "context", multiple=True, help="Context provider to enable (repeatable)")
def commit(directory: Path, context: Tuple[str, ...], **options: Any) -> None:
    """Generate a commit message for the pending changes."""
    overrides: Dict[str, Any] = dict(options)
    if context:
        overrides["context"] = list(context)

    configure_verbosity(bool(options.get("debug")), bool(options.get("verbose")))

    try:
        config = _resolver(directory).load(overrides)
    except ConfigurationError as error:
        _fail_with_configuration_error(error)
        return

    configure_verbosity(config.debug, config.verbose)

    components = build_components(config, cwd=directory)
    service = CommitService(components.analyzer, components.assembler, components.engine)
    controller = CommitController(config, service, components.interaction, components.ollama)

    sys.exit(controller.run())


# --- config ---
@cli.group(context_settings=CONTEXT_SETTINGS)
def config() -> None:
    """Inspect and change configuration."""


@config.command("set", context_settings=CONTEXT_SETTINGS)
@click.argument("key")
@click.argument("value")
@click.option("--project", "target", flag_value="project", help="Write the project file")
@click.option("--user", "target", flag_value="user", default=True, help="Write the user file (default)")
@click.option("--all", "apply_all", is_flag=True, help="Write every existing configuration file")
def config_set(key: str, value: str, target: str, apply_all: bool) -> None:
    """Set KEY to VALUE, e.g. `config set timeouts.connection 5000`."""
    resolver = _resolver()
    try:
        result = resolver.set_key(key, value, target=target, apply_all=apply_all)
    except ConfigurationError as error:
        _fail_with_configuration_error(error)
        return

    for path in result.written:
        click.echo(f"✅ Set {key} = {value} in {path}")
    for path, reason in result.failures.items():
        click.echo(f"❌ Could not update {path}: {reason}", err=True)

    if result.failures:
        sys.exit(1)


@config.command("show", context_settings=CONTEXT_SETTINGS)
@click.option("--sources", is_flag=True, help="Show where each value comes from")
def config_show(sources: bool) -> None:
    """Show the effective configuration."""
    try:
        resolved = _resolver().resolve()
    except ConfigurationError as error:
        _fail_with_configuration_error(error)
        return

    source_map = dict(flatten_config(resolved.sources))
    for key, value in flatten_config(resolved.config.model_dump(mode="json")):
        line = f"{key}: {value}"
        if sources:
            line += f"  ({source_map.get(key, 'default')})"
        click.echo(line)

    if resolved.files:
        click.echo("")
        for name, path in resolved.files.items():
            click.echo(f"{name} file: {path}")


@config.command("keys", context_settings=CONTEXT_SETTINGS)
def config_keys() -> None:
    """List the configuration keys that can be set."""
    for key in CONFIG_KEYS:
        click.echo(key)


# --- models ---
@cli.group(context_settings=CONTEXT_SETTINGS)
def models() -> None:
    """Manage models on the Ollama server."""


def _ollama() -> OllamaService:
    config = _resolver().load()
    return OllamaService(config.host, config.timeouts)


@models.command("list", context_settings=CONTEXT_SETTINGS)
def models_list() -> None:
    """List installed models."""
    try:
        names = _ollama().list_models()
    except ConfigurationError as error:
        _fail_with_configuration_error(error)
        return
    except GenerationServiceError as error:
        click.echo(f"❌ {error}", err=True)
        sys.exit(1)

    if not names:
        click.echo("No models installed. Pull one with `ollama-commit models pull <name>`.")
    for name in names:
        click.echo(name)


@models.command("pull", context_settings=CONTEXT_SETTINGS)
@click.argument("name")
def models_pull(name: str) -> None:
    """Pull model NAME onto the Ollama server."""
    click.echo(f"⬇️ Pulling {name}...")
    try:
        status = _ollama().pull_model(name)
    except ConfigurationError as error:
        _fail_with_configuration_error(error)
        return
    except GenerationServiceError as error:
        click.echo(f"❌ {error}", err=True)
        sys.exit(1)
    click.echo(f"✅ {name}: {status}")


# --- test ---
@cli.group("test", context_settings=CONTEXT_SETTINGS)
def test_group() -> None:
    """Diagnostics."""


@test_group.command("connection", context_settings=CONTEXT_SETTINGS)
@click.option("--host", default=None, help="Ollama server URL to test")
def test_connection(host: Optional[str]) -> None:
    """Check that the Ollama server answers."""
    try:
        config = _resolver().load({"host": host})
    except ConfigurationError as error:
        _fail_with_configuration_error(error)
        return

    service = OllamaService(config.host, config.timeouts)
    try:
        service.test_connection()
    except GenerationServiceError as error:
        click.echo(f"❌ Cannot reach Ollama at {service.host}: {error}", err=True)
        click.echo(CONNECTION_TROUBLESHOOTING, err=True)
        sys.exit(1)
    click.echo(f"✅ Connected to Ollama at {service.host}")
