from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Any, Optional, List

#unified provider errors
class ProviderError(RuntimeError): ...
class ProviderTimeout(ProviderError): ...
class ConfigurationError(RuntimeError): ...

@dataclass(frozen=True)
class ChatRequest:
    model: str
    messages: List[Dict[str, Any]]
    params: Dict[str, Any] | None = None

    @property
    def system_prompt(self) -> str:
        return "\n\n".join(m["content"] for m in self.messages if m.get("role") == "system")

    @property
    def user_prompt(self) -> str:
        return "\n\n".join(m["content"] for m in self.messages if m.get("role") == "user")

@dataclass(frozen=True)
class ModelResponse:
    content: str
    raw: Any #provider-native response obj/dict
    meta: Dict[str, Any] #timings, token counts, model, etc.

class ModelProvider(ABC):
    @abstractmethod
    def chat(self, req: ChatRequest) -> ModelResponse:
        raise NotImplementedError

    def health_check(self) -> bool:
        return True
