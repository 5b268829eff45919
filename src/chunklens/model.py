"""Ollama client used by the optional module summarizer.

The engine never talks to a model. This is the rate-limited downstream
consumer that ``pacing_delay`` exists for.
"""

from __future__ import annotations

from typing import Any

import httpx

DEFAULT_MODEL = "qwen2.5-coder:7b"
OLLAMA_BASE_URL = "http://localhost:11434"
GENERATE_TIMEOUT = 120  # seconds per module summary


class ModelError(Exception):
    """Error communicating with the model."""


class OllamaClient:
    """Minimal client for the Ollama REST API."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        base_url: str = OLLAMA_BASE_URL,
        timeout: float = GENERATE_TIMEOUT,
    ):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> OllamaClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def is_running(self) -> bool:
        """Check if the Ollama server is reachable."""
        try:
            resp = self._client.get(f"{self.base_url}/api/tags", timeout=5)
            return resp.status_code == 200
        except (httpx.ConnectError, httpx.TimeoutException):
            return False

    def available_models(self) -> list[str]:
        try:
            resp = self._client.get(f"{self.base_url}/api/tags", timeout=10)
        except httpx.HTTPError as exc:
            raise ModelError(f"Cannot list models: {exc}") from exc
        if resp.status_code != 200:
            raise ModelError(f"Ollama returned {resp.status_code}: {resp.text[:200]}")
        return [m.get("name", "") for m in resp.json().get("models", [])]

    def is_model_available(self) -> bool:
        """Check if the configured model is downloaded (``name`` or ``name:latest``)."""
        try:
            models = self.available_models()
        except ModelError:
            return False
        return any(
            self.model == name or self.model == name.split(":")[0] or f"{self.model}:latest" == name
            for name in models
        )

    def ensure_ready(self) -> None:
        if not self.is_running():
            raise ModelError("Cannot connect to Ollama. Is it running? Try: ollama serve")
        if not self.is_model_available():
            raise ModelError(f"Model {self.model} is not available. Try: ollama pull {self.model}")

    def generate(
        self,
        prompt: str,
        system: str = "",
        temperature: float = 0.2,
        max_tokens: int = 512,
    ) -> str:
        """Generate text from prompt. Returns the raw response text."""
        payload: dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
            },
        }
        if system:
            payload["system"] = system

        try:
            resp = self._client.post(f"{self.base_url}/api/generate", json=payload, timeout=self.timeout)
        except httpx.TimeoutException as exc:
            raise ModelError(f"Model generation timed out after {self.timeout}s") from exc
        except httpx.ConnectError as exc:
            raise ModelError("Cannot connect to Ollama. Is it running? Try: ollama serve") from exc
        if resp.status_code != 200:
            raise ModelError(f"Ollama returned {resp.status_code}: {resp.text[:200]}")
        return resp.json().get("response", "").strip()
