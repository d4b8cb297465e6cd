import logging
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, TextIO

import click

from ollama_commit.clipboard import Clipboard
from ollama_commit.schemas import Configuration
from ollama_commit.settings import ollama_commit_logger
from ollama_commit.terminal import TerminalCapabilities, TerminalPrompt

from .changes import ChangeAnalyzer
from .context import ContextService
from .engine import GenerationEngine
from .git import GitService, RunProcess
from .interaction import InteractionController
from .ollama import OllamaService
from .prompt import PromptAssembler


@dataclass
class Components:
    config: Configuration
    git: GitService
    ollama: OllamaService
    analyzer: ChangeAnalyzer
    assembler: PromptAssembler
    engine: GenerationEngine
    interaction: InteractionController


def build_components(
    config: Configuration,
    cwd: Optional[Path] = None,
    logger: Optional[logging.Logger] = None,
    run_process: Optional[RunProcess] = None,
    ollama: Optional[OllamaService] = None,
    clipboard: Optional[Clipboard] = None,
    prompt: Optional[TerminalPrompt] = None,
    stdin: TextIO = sys.stdin,
    echo: Callable[..., None] = click.echo,
    sleep: Callable[[float], None] = time.sleep,
) -> Components:
    """Build every component of a commit run from one configuration."""

    logger = logger or ollama_commit_logger(__name__)
    logger.debug("Building components for model %s", config.model)

    git = GitService(cwd=cwd, run_process=run_process)
    ollama = ollama or OllamaService(config.host, config.timeouts)
    analyzer = ChangeAnalyzer(git, auto_stage=config.auto_stage, verbose=config.verbose)
    assembler = PromptAssembler(config, context_service=ContextService(git), embedder=ollama)
    engine = GenerationEngine(ollama, config.model, sleep=sleep)

    if config.interactive and prompt is None:
        prompt = TerminalPrompt(TerminalCapabilities.detect(stdin), stdin=stdin, echo=echo)

    interaction = InteractionController(
        git,
        prompt=prompt,
        clipboard=clipboard or Clipboard(),
        auto_commit=config.auto_commit,
        interactive=config.interactive,
        debug=config.debug,
        echo=echo,
    )

    return Components(
        config=config,
        git=git,
        ollama=ollama,
        analyzer=analyzer,
        assembler=assembler,
        engine=engine,
        interaction=interaction,
    )
