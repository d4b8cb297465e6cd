"""Client for the Ollama model server.

Text generation and embeddings go through ``langchain-ollama``; the model
management endpoints (``/api/tags``, ``/api/pull``) are called with ``httpx``.
Every failure is raised as :class:`GenerationServiceError` tagged with
whether a retry may help.
"""

import logging
from typing import Any, Callable, List, Optional, Sequence

import httpx
from langchain_core.runnables import Runnable
from langchain_ollama import OllamaEmbeddings, OllamaLLM
from ollama import ResponseError

from ollama_commit.config import PREFERRED_MODELS
from ollama_commit.errors import GenerationServiceError
from ollama_commit.schemas import Timeouts
from ollama_commit.settings import ollama_commit_logger
from ollama_commit.utils import normalize_host


def choose_model(installed: Sequence[str], preferred: Sequence[str] = PREFERRED_MODELS) -> str:
    """Pick the first preferred model that is installed, else the first installed one."""

    if not installed:
        raise GenerationServiceError(
            "No models installed on the Ollama server; pull one with 'ollama pull <model>'",
            retryable=False,
        )
    for name in preferred:
        if name in installed:
            return name
    return installed[0]


class OllamaService:
    def __init__(
        self,
        host: str,
        timeouts: Optional[Timeouts] = None,
        logger: Optional[logging.Logger] = None,
        llm_factory: Callable[..., Runnable] = OllamaLLM,
        embeddings_factory: Callable[..., Any] = OllamaEmbeddings,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self._logger = logger or ollama_commit_logger(__name__)
        self.host = normalize_host(host)
        self.timeouts = timeouts or Timeouts()
        self._llm_factory = llm_factory
        self._embeddings_factory = embeddings_factory
        self._http_client = http_client

    # --- Public API ---
    def generate(self, model: str, prompt: str) -> str:
        """Generate a completion for *prompt* with *model*.

        Raises:
            GenerationServiceError: On connection problems, timeouts, unknown
                models or an empty response.
        """
        self._logger.info("Generating commit message with %s at %s", model, self.host)
        self._logger.debug("Prompt length: %d characters", len(prompt))

        llm = self._llm_factory(
            model=model,
            base_url=self.host,
            client_kwargs={"timeout": _seconds(self.timeouts.generation)},
        )
        try:
            response = llm.invoke(prompt)
        except Exception as error:
            raise self._service_error(error, "Generation", self.timeouts.generation) from error

        text = response if isinstance(response, str) else getattr(response, "content", "")
        if not text or not text.strip():
            raise GenerationServiceError("Empty response from model", retryable=False)

        self._logger.debug("Response received (%d characters)", len(text))
        return text

    def embed(self, model: str, text: str) -> List[float]:
        embeddings = self._embeddings_factory(
            model=model,
            base_url=self.host,
            client_kwargs={"timeout": _seconds(self.timeouts.generation)},
        )
        try:
            return embeddings.embed_query(text)
        except Exception as error:
            raise self._service_error(error, "Embedding", self.timeouts.generation) from error

    def test_connection(self) -> bool:
        self._logger.debug("Testing connection to %s", self.host)
        self._request("GET", "/api/tags", self.timeouts.connection)
        return True

    def list_models(self) -> List[str]:
        payload = self._request("GET", "/api/tags", self.timeouts.connection)
        models = payload.get("models") or []
        return [entry.get("name") or entry.get("model") for entry in models if isinstance(entry, dict)]

    def pull_model(self, model: str) -> str:
        self._logger.info("Pulling model %s", model)
        payload = self._request(
            "POST",
            "/api/pull",
            self.timeouts.model_pull,
            json={"model": model, "stream": False},
        )
        return str(payload.get("status", "success"))

    def auto_select_model(self) -> str:
        model = choose_model(self.list_models())
        self._logger.info("Auto-selected model %s", model)
        return model

    # --- Private helpers ---
    def _request(self, method: str, path: str, timeout_ms: int, **kwargs: Any) -> dict:
        url = f"{self.host}{path}"
        try:
            if self._http_client is not None:
                response = self._http_client.request(method, url, timeout=_seconds(timeout_ms), **kwargs)
            else:
                response = httpx.request(method, url, timeout=_seconds(timeout_ms), **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as error:
            raise self._service_error(error, f"{method} {path}", timeout_ms) from error

        try:
            return response.json()
        except ValueError as error:
            raise GenerationServiceError(
                f"Invalid JSON from {url}: {error}", retryable=False
            ) from error

    def _service_error(self, error: Exception, action: str, timeout_ms: int) -> GenerationServiceError:
        if isinstance(error, GenerationServiceError):
            return error

        if isinstance(error, httpx.TimeoutException):
            message = f"{action} timed out after {_seconds(timeout_ms):g}s"
            retryable: Optional[bool] = True
        elif isinstance(error, httpx.HTTPStatusError):
            status = error.response.status_code
            message = f"HTTP {status} from Ollama at {self.host}"
            if status == 404:
                message = f"Model not found or endpoint missing (HTTP 404) at {self.host}"
            retryable = status >= 500 or status == 429
        elif isinstance(error, (httpx.TransportError, ConnectionError)):
            message = f"Failed to connect to Ollama at {self.host}: {error}"
            retryable = True
        elif isinstance(error, ResponseError):
            if error.status_code == 404:
                message = f"Model not found: {error.error}"
                retryable = False
            else:
                message = f"Ollama error (HTTP {error.status_code}): {error.error}"
                retryable = error.status_code >= 500
        else:
            message = f"{action} failed: {error}"
            retryable = None

        self._logger.debug("%s failed: %r", action, error)
        return GenerationServiceError(message, retryable=retryable)


def _seconds(milliseconds: int) -> float:
    return milliseconds / 1000
