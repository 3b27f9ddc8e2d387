from __future__ import annotations
from typing import Dict, Optional
import time

from openai import OpenAI
from openai import APIError, APITimeoutError

from .base import ModelProvider, ChatRequest, ModelResponse, ProviderError, ProviderTimeout

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
OPENROUTER_HEADERS = {
    "HTTP-Referer": "https://github.com/andreibesleaga/NaturalLanguageAPIBackends",
    "X-Title": "NaturalLanguageAPIBackends",
}


class OpenAIProvider(ModelProvider):
    """Chat-completion backend: system + user messages in, first choice out."""

    provider_name = "openai"

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None, default_headers: Optional[Dict[str, str]] = None, timeout: float = 60.0, **kwargs):
        self.client = OpenAI(
            base_url=base_url,
            api_key=api_key,
            default_headers=default_headers or {},
            timeout=timeout,
            max_retries=0,
            **kwargs
        )
        self.base_url = base_url
        self.timeout = timeout

    def chat(self, req: ChatRequest) -> ModelResponse:
        params = dict(req.params or {})
        completion_params = {
            "model": req.model,
            "messages": req.messages,
            **params
        }

        t0 = time.perf_counter()
        try:
            response = self.client.chat.completions.create(**completion_params)
        except APITimeoutError as e:
            raise ProviderTimeout(f"{self.provider_name} timeout: {e}") from e
        except APIError as e:
            raise ProviderError(f"{self.provider_name} API error: {e}") from e
        except Exception as e:
            raise ProviderError(f"{self.provider_name} provider error: {e}") from e

        dt = time.perf_counter() - t0

        try:
            content = response.choices[0].message.content or ""
        except (IndexError, AttributeError) as e:
            raise ProviderError(f"Invalid response structure from {self.provider_name}: {e}") from e

        meta = {
            "provider": self.provider_name,
            "model": getattr(response, 'model', req.model),
            "latency": dt,
            "base_url": self.base_url or "https://api.openai.com/v1",
        }
        if getattr(response, 'usage', None):
            meta["usage"] = {
                "prompt_tokens": getattr(response.usage, 'prompt_tokens', None),
                "completion_tokens": getattr(response.usage, 'completion_tokens', None),
                "total_tokens": getattr(response.usage, 'total_tokens', None)
            }
        meta["finish_reason"] = getattr(response.choices[0], 'finish_reason', None)

        return ModelResponse(content=content, raw=response, meta=meta)

    def health_check(self) -> bool:
        try:
            _ = self.client.models.list()
            return True
        except Exception:
            return False


class OpenRouterProvider(OpenAIProvider):
    """Chat-completion calls routed through OpenRouter with caller-identification headers."""

    provider_name = "openrouter"

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None, default_headers: Optional[Dict[str, str]] = None, timeout: float = 60.0, **kwargs):
        headers = {**OPENROUTER_HEADERS, **(default_headers or {})}
        super().__init__(
            api_key=api_key,
            base_url=base_url or OPENROUTER_BASE_URL,
            default_headers=headers,
            timeout=timeout,
            **kwargs
        )
