from __future__ import annotations
from typing import Optional
import time

from anthropic import Anthropic
from anthropic import APIError, APITimeoutError

from .base import ModelProvider, ChatRequest, ModelResponse, ProviderError, ProviderTimeout

DEFAULT_MAX_TOKENS = 1024


class AnthropicProvider(ModelProvider):
    """
    Messages API backend.

    Only the user prompt is sent; the request carries an explicit max_tokens
    and the response is a list of content blocks rather than choices.
    """

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None, timeout: float = 60.0, max_tokens: int = DEFAULT_MAX_TOKENS):
        self.client = Anthropic(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)
        self.max_tokens = max_tokens
        self.timeout = timeout

    def chat(self, req: ChatRequest) -> ModelResponse:
        params = dict(req.params or {})
        max_tokens = params.pop("max_tokens", self.max_tokens)

        t0 = time.perf_counter()
        try:
            response = self.client.messages.create(
                model=req.model,
                max_tokens=max_tokens,
                messages=[{"role": "user", "content": req.user_prompt}],
                **params
            )
        except APITimeoutError as e:
            raise ProviderTimeout(f"Anthropic timeout: {e}") from e
        except APIError as e:
            raise ProviderError(f"Anthropic API error: {e}") from e
        except Exception as e:
            raise ProviderError(f"Anthropic provider error: {e}") from e

        dt = time.perf_counter() - t0

        blocks = getattr(response, "content", None)
        if not blocks:
            raise ProviderError("Invalid response structure from Anthropic: no content blocks")
        content = "".join(getattr(block, "text", "") for block in blocks)

        meta = {
            "provider": "anthropic",
            "model": getattr(response, "model", req.model),
            "latency": dt,
            "stop_reason": getattr(response, "stop_reason", None),
        }
        if getattr(response, "usage", None):
            meta["usage"] = {
                "input_tokens": getattr(response.usage, "input_tokens", None),
                "output_tokens": getattr(response.usage, "output_tokens", None),
            }

        return ModelResponse(content=content, raw=response, meta=meta)
