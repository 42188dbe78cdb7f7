"""
Language-model backends for grammar correction and translation.

The orchestrator treats a transformer as one opaque call that returns text or a
tagged failure. This module also builds the prompts for both operations and
holds the two HTTP adapters: an OpenAI-compatible chat completions client and
an Ollama-style local generate endpoint.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Protocol, Tuple

import requests

logger = logging.getLogger(__name__)

OPENAI_BASE_URL = "https://api.openai.com/v1"


class TransformKind(Enum):
    """The two operations a transformer performs."""

    CORRECT = "grammar"
    TRANSLATE = "translate"


class TransformError(Enum):
    """Why a transformation produced no text."""

    NO_CREDENTIALS = "no_credentials"
    CONSENT_REQUIRED = "consent_required"
    TEXT_TOO_LONG = "text_too_long"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    SERVER_ERROR = "server_error"
    CONNECTION_FAILED = "connection_failed"
    INVALID_RESPONSE = "invalid_response"


@dataclass(frozen=True)
class TransformResult:
    """Either ``text`` or ``error`` is set."""

    text: str = ""
    error: Optional[TransformError] = None
    message: str = ""
    latency_ms: int = 0

    @property
    def ok(self) -> bool:
        """True when the model returned text."""
        return self.error is None

    @classmethod
    def failure(cls, error: TransformError, message: str = "", latency_ms: int = 0) -> "TransformResult":
        """Build a failed result."""
        return cls(error=error, message=message or error.value.replace("_", " "), latency_ms=latency_ms)


class GrammarMode(Enum):
    """Correction styles, each with its own system and user prompt."""

    MINIMAL = "Minimal"
    FRIENDLY = "Friendly"
    WORK = "Work"
    CUSTOM = "Custom"


GRAMMAR_PROMPTS: Dict[GrammarMode, Tuple[str, str]] = {
    GrammarMode.MINIMAL: (
        "You are a careful grammar assistant.",
        "Correct only the grammar of the following text. Make the minimal necessary edits, "
        "preserve meaning and tone, and return only the corrected text with no extra commentary.",
    ),
    GrammarMode.FRIENDLY: (
        "You are a helpful friendly-writing assistant.",
        "Correct grammar and adjust tone to be friendly while preserving meaning. "
        "Return only the corrected text, no commentary.",
    ),
    GrammarMode.WORK: (
        "You are a professional business writing assistant.",
        "Correct grammar and adjust tone to be professional and suitable for business communication. "
        "Return only the corrected text, no commentary.",
    ),
}

TOKEN_NOTICE = "Keep tokens like __CWORD_n__ exactly as they are."


@dataclass
class PromptConfig:
    """Everything the prompts depend on."""

    grammar_mode: GrammarMode = GrammarMode.MINIMAL
    custom_system_prompt: str = ""
    custom_user_prompt: str = ""
    target_language: str = "Vietnamese"

    def build(self, kind: TransformKind, text: str) -> Tuple[str, str]:
        """Return (system prompt, user prompt) for ``text``."""
        if kind is TransformKind.TRANSLATE:
            system = "You are a translation assistant."
            user = (
                f"Translate the following text into {self.target_language}. "
                "Preserve named entities and tokens like __CWORD_n__ unchanged. "
                "Return only the translated text, no quotes, no commentary."
            )
        elif self.grammar_mode is GrammarMode.CUSTOM:
            system = self.custom_system_prompt
            user = self.custom_user_prompt
        else:
            system, user = GRAMMAR_PROMPTS[self.grammar_mode]
            user = f"{user} {TOKEN_NOTICE}"
        return system, f"{user}\n\n{text}"


def clean_completion(text: str) -> str:
    """Trim whitespace and the quotes models like to wrap answers in."""
    result = text.strip()
    if len(result) >= 2 and result.startswith('"') and result.endswith('"'):
        result = result[1:-1]
    return result


class Transformer(Protocol):
    """A language model that corrects or translates text."""

    backend_name: str

    def is_configured(self) -> bool:
        """Whether credentials and endpoint are present."""

    def requires_consent(self) -> bool:
        """Whether text leaves the machine, so the user must have agreed to that."""

    def transform(self, kind: TransformKind, text: str) -> TransformResult:
        """Correct or translate ``text``."""


class HTTPTransformer:
    """Shared request handling for the HTTP backends."""

    backend_name = "HTTP"

    def __init__(
        self,
        prompts: PromptConfig,
        timeout: float = 30.0,
        max_characters: int = 2000,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.prompts = prompts
        self.timeout = timeout
        self.max_characters = max_characters
        self.session = session or requests.Session()

    def is_configured(self) -> bool:
        """Whether credentials and endpoint are present."""
        return True

    def requires_consent(self) -> bool:
        """Local backends keep text on this machine."""
        return False

    def transform(self, kind: TransformKind, text: str) -> TransformResult:
        """Correct or translate ``text``."""
        if not self.is_configured():
            return TransformResult.failure(TransformError.NO_CREDENTIALS, f"{self.backend_name} is not configured")
        if len(text) > self.max_characters:
            return TransformResult.failure(
                TransformError.TEXT_TOO_LONG,
                f"Text too long ({len(text)} chars). Maximum is {self.max_characters} chars.",
            )

        system, user = self.prompts.build(kind, text)
        url, payload, headers = self._request(system, user)

        logger.debug("Sending %s request to %s", kind.value, self.backend_name)
        started = time.monotonic()
        try:
            response = self.session.post(url, json=payload, headers=headers, timeout=self.timeout)
        except requests.exceptions.Timeout:
            logger.error("%s request timed out", self.backend_name)
            return TransformResult.failure(TransformError.TIMEOUT, "Request timed out")
        except requests.exceptions.RequestException as e:
            logger.error("%s connection error: %s", self.backend_name, e)
            return TransformResult.failure(TransformError.CONNECTION_FAILED, f"Network error: {e}")
        latency_ms = int((time.monotonic() - started) * 1000)

        failure = self._check_status(response, latency_ms)
        if failure is not None:
            logger.error("%s error: %s", self.backend_name, failure.message)
            return failure

        try:
            content = self._extract(response.json())
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error("Invalid response from %s: %s", self.backend_name, e)
            return TransformResult.failure(TransformError.INVALID_RESPONSE, "Invalid response from the model")

        logger.info("%s responded in %dms", self.backend_name, latency_ms)
        return TransformResult(text=clean_completion(content), latency_ms=latency_ms)

    def _check_status(self, response: requests.Response, latency_ms: int) -> Optional[TransformResult]:
        status = response.status_code
        if status == 200:
            return None
        if status == 401:
            return TransformResult.failure(TransformError.NO_CREDENTIALS, "Invalid API key", latency_ms)
        if status == 429:
            return TransformResult.failure(
                TransformError.RATE_LIMITED, "Rate limited. Please try again later.", latency_ms
            )
        if 500 <= status < 600:
            return TransformResult.failure(TransformError.SERVER_ERROR, "Server error", latency_ms)
        return TransformResult.failure(
            TransformError.SERVER_ERROR, self._error_message(response) or f"HTTP {status}", latency_ms
        )

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return ""
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict):
                return str(error.get("message", ""))
            if isinstance(error, str):
                return error
        return ""

    def _request(self, system: str, user: str) -> Tuple[str, Dict[str, Any], Dict[str, str]]:
        raise NotImplementedError

    def _extract(self, body: Any) -> str:
        raise NotImplementedError


class OpenAITransformer(HTTPTransformer):
    """OpenAI-compatible chat completions backend."""

    backend_name = "OpenAI"

    def __init__(
        self,
        prompts: PromptConfig,
        api_key: str = "",
        model: str = "gpt-4o-mini",
        base_url: str = OPENAI_BASE_URL,
        temperature: float = 0.0,
        max_tokens: int = 300,
        **kwargs: Any,
    ) -> None:
        super().__init__(prompts, **kwargs)
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.max_tokens = max_tokens

    def is_configured(self) -> bool:
        """An API key is required."""
        return bool(self.api_key)

    def requires_consent(self) -> bool:
        """Text is sent to a remote service."""
        return True

    def _request(self, system: str, user: str) -> Tuple[str, Dict[str, Any], Dict[str, str]]:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        return f"{self.base_url}/chat/completions", payload, headers

    def _extract(self, body: Any) -> str:
        return str(body["choices"][0]["message"]["content"])


class OllamaTransformer(HTTPTransformer):
    """Local model served through an Ollama-style ``/api/generate`` endpoint."""

    backend_name = "Local LLM"

    def __init__(
        self,
        prompts: PromptConfig,
        endpoint: str = "http://localhost:11434",
        model: str = "llama3",
        temperature: float = 0.0,
        max_tokens: int = 300,
        **kwargs: Any,
    ) -> None:
        super().__init__(prompts, **kwargs)
        self.endpoint = endpoint.rstrip("/")
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    def is_configured(self) -> bool:
        """An endpoint and a model name are required."""
        return bool(self.endpoint and self.model)

    def _request(self, system: str, user: str) -> Tuple[str, Dict[str, Any], Dict[str, str]]:
        payload = {
            "model": self.model,
            "prompt": f"{system}\n\n{user}",
            "stream": False,
            "options": {"temperature": self.temperature, "num_predict": self.max_tokens},
        }
        return f"{self.endpoint}/api/generate", payload, {"Content-Type": "application/json"}

    def _extract(self, body: Any) -> str:
        return str(body["response"])
