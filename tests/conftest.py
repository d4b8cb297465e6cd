import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest


class FakeRunProcess:
    """Stand-in for ``subprocess.run`` keyed by the git arguments.

    A response is either stdout text, a ``(returncode, stdout, stderr)``
    tuple, an exception to raise, or a list of those consumed one per call
    (the last one repeats).
    """

    def __init__(self, responses: Optional[Dict[Tuple[str, ...], Any]] = None) -> None:
        self.responses: Dict[Tuple[str, ...], Any] = dict(responses or {})
        self.calls: List[List[str]] = []
        self.cwds: List[Optional[Path]] = []

    def __call__(self, args: Sequence[str], cwd: Optional[Path] = None) -> "subprocess.CompletedProcess[str]":
        self.calls.append(list(args))
        self.cwds.append(cwd)

        response = self.responses.get(tuple(args[1:]), "")
        if isinstance(response, list):
            response = response.pop(0) if len(response) > 1 else response[0]
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, tuple):
            returncode, stdout, stderr = response
        else:
            returncode, stdout, stderr = 0, response, ""

        return subprocess.CompletedProcess(args=list(args), returncode=returncode, stdout=stdout, stderr=stderr)

    def git_calls(self) -> List[Tuple[str, ...]]:
        return [tuple(call[1:]) for call in self.calls]


@pytest.fixture
def run_process() -> FakeRunProcess:
    return FakeRunProcess()
