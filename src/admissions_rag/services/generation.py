"""Generation backends and the ordered provider chain."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Protocol, Sequence

import httpx

from admissions_rag.errors import GenerationError

LOGGER = logging.getLogger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
OPENAI_BASE_URL = "https://api.openai.com/v1"
ANTHROPIC_BASE_URL = "https://api.anthropic.com/v1"
ANTHROPIC_VERSION = "2023-06-01"


@dataclass(frozen=True)
class GenerationConfig:
    """Sampling parameters shared by every backend."""

    max_tokens: int = 500
    temperature: float = 0.7
    timeout_seconds: float = 30.0


class GenerationBackend(Protocol):
    """Protocol describing generation behaviour."""

    name: str

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        """Return the model's completion; raise on any failure."""


class OpenAICompatibleBackend:
    """Chat-completions client for Groq, OpenAI and compatible servers."""

    def __init__(
        self,
        name: str,
        *,
        api_key: str,
        model: str,
        base_url: str,
        config: GenerationConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.name = name
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._config = config or GenerationConfig()
        self._client = client

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        payload = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": self._config.max_tokens,
            "temperature": self._config.temperature,
        }
        headers = {"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"}
        data = await _post_json(
            self._client,
            f"{self._base_url}/chat/completions",
            payload,
            headers,
            timeout=self._config.timeout_seconds,
        )
        try:
            return str(data["choices"][0]["message"]["content"] or "")
        except (KeyError, IndexError, TypeError) as exc:
            raise GenerationError(f"{self.name}: unexpected response shape") from exc


class AnthropicBackend:
    """Messages API client; the system prompt travels as a top-level field."""

    name = "anthropic"

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "claude-3-haiku-20240307",
        base_url: str = ANTHROPIC_BASE_URL,
        config: GenerationConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._config = config or GenerationConfig()
        self._client = client

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        payload = {
            "model": self._model,
            "max_tokens": self._config.max_tokens,
            "temperature": self._config.temperature,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_prompt}],
        }
        headers = {
            "x-api-key": self._api_key,
            "content-type": "application/json",
            "anthropic-version": ANTHROPIC_VERSION,
        }
        data = await _post_json(
            self._client,
            f"{self._base_url}/messages",
            payload,
            headers,
            timeout=self._config.timeout_seconds,
        )
        try:
            return "".join(
                block.get("text", "") for block in data["content"] if block.get("type", "text") == "text"
            )
        except (KeyError, TypeError, AttributeError) as exc:
            raise GenerationError("anthropic: unexpected response shape") from exc


class TransformersBackend:
    """Local chat model loaded through Hugging Face Transformers."""

    name = "local"

    def __init__(
        self,
        model: str = "Qwen/Qwen2.5-1.5B-Instruct",
        *,
        device: str | None = None,
        config: GenerationConfig | None = None,
    ) -> None:
        from transformers import AutoModelForCausalLM, AutoTokenizer

        self._config = config or GenerationConfig()
        self._device = device
        self._tokenizer = AutoTokenizer.from_pretrained(model, trust_remote_code=True)
        self._model = AutoModelForCausalLM.from_pretrained(model, trust_remote_code=True)
        if self._tokenizer.pad_token is None and self._tokenizer.eos_token is not None:
            self._tokenizer.pad_token = self._tokenizer.eos_token
        if device:
            self._model.to(device)
        LOGGER.info("Loaded generation model %s", model)

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        return await asyncio.to_thread(self._generate, system_prompt, user_prompt)

    def _generate(self, system_prompt: str, user_prompt: str) -> str:
        import torch

        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        prompt = self._tokenizer.apply_chat_template(messages, tokenize=False, add_generation_prompt=True)
        tokenized = self._tokenizer(prompt, return_tensors="pt", padding=True)
        input_ids = tokenized.input_ids
        attention_mask = tokenized.attention_mask
        prompt_length = input_ids.shape[1]
        if self._device:
            input_ids = input_ids.to(self._device)
            attention_mask = attention_mask.to(self._device)
        with torch.no_grad():
            output = self._model.generate(
                input_ids,
                attention_mask=attention_mask,
                max_new_tokens=self._config.max_tokens,
                temperature=self._config.temperature,
                do_sample=self._config.temperature > 0,
            )
        return self._tokenizer.decode(output[0][prompt_length:], skip_special_tokens=True).strip()


async def _post_json(
    client: httpx.AsyncClient | None,
    url: str,
    payload: dict,
    headers: dict[str, str],
    *,
    timeout: float,
) -> dict:
    if client is not None:
        response = await client.post(url, json=payload, headers=headers, timeout=timeout)
    else:
        async with httpx.AsyncClient(timeout=timeout) as session:
            response = await session.post(url, json=payload, headers=headers)
    response.raise_for_status()
    return response.json()


@dataclass(frozen=True)
class GenerationAttempt:
    """Outcome of running the provider chain once."""

    text: str | None
    provider: str | None
    errors: tuple[str, ...] = field(default_factory=tuple)
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.text is not None


class ProviderChain:
    """Tries each backend in order until one returns a non-empty completion."""

    def __init__(self, backends: Sequence[GenerationBackend], *, timeout_seconds: float = 30.0) -> None:
        self._backends = tuple(backends)
        self._timeout = timeout_seconds

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(backend.name for backend in self._backends)

    def __len__(self) -> int:
        return len(self._backends)

    async def attempt(self, system_prompt: str, user_prompt: str) -> GenerationAttempt:
        start = time.perf_counter()
        errors: list[str] = []
        for backend in self._backends:
            try:
                text = await asyncio.wait_for(backend.complete(system_prompt, user_prompt), self._timeout)
            except asyncio.TimeoutError:
                errors.append(f"{backend.name}: timed out after {self._timeout}s")
                LOGGER.warning("Generation backend %s timed out", backend.name)
                continue
            except Exception as exc:
                errors.append(f"{backend.name}: {exc}")
                LOGGER.warning("Generation backend %s failed: %s", backend.name, exc)
                continue
            if text and text.strip():
                return GenerationAttempt(
                    text=text.strip(),
                    provider=backend.name,
                    errors=tuple(errors),
                    duration_seconds=time.perf_counter() - start,
                )
            errors.append(f"{backend.name}: empty completion")
        return GenerationAttempt(
            text=None,
            provider=None,
            errors=tuple(errors),
            duration_seconds=time.perf_counter() - start,
        )


__all__ = [
    "AnthropicBackend",
    "GenerationAttempt",
    "GenerationBackend",
    "GenerationConfig",
    "OpenAICompatibleBackend",
    "ProviderChain",
    "TransformersBackend",
]
