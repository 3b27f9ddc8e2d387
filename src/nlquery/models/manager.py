from __future__ import annotations
from typing import Optional, Dict, Any, List, Union, Tuple
from pathlib import Path
from dataclasses import dataclass, field
from enum import Enum
import yaml
import time
import logging

from .prompts import PromptManager
from .providers.base import ChatRequest, ModelProvider, ModelResponse, ProviderError, ConfigurationError
from .providers.openai_sdk import OpenAIProvider, OpenRouterProvider
from .providers.anthropic_sdk import AnthropicProvider
from .providers.local_process import LocalProcessProvider
from ..settings import EngineSettings

logger = logging.getLogger(__name__)

OPENROUTER_AUTO_MODEL = "deepseek/deepseek-r1-0528:free"


class ProviderKind(Enum):
    CHAT_COMPLETION = "openai"
    MESSAGE = "anthropic"
    PROXY_ROUTED = "openrouter"
    LOCAL_PROCESS = "local_process"

    @classmethod
    def parse(cls, value: Any) -> "ProviderKind":
        key = str(value or "").strip().lower()
        key = _PROVIDER_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError as e:
            raise ProviderError(f"Unsupported model provider: {value}") from e


_PROVIDER_ALIASES = {
    "deepseek": "local_process",
    "local": "local_process",
}


@dataclass(frozen=True)
class ModelConfig:
    name: str
    provider: ProviderKind
    model: str
    api_key: Optional[str] = None
    command: Optional[str] = None
    base_url: Optional[str] = None
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Capability:
    """A resolved model: its config plus the provider variant chosen for it."""
    config: ModelConfig
    provider: ModelProvider

    def invoke(self, messages: List[Dict[str, str]], defaults: Optional[Dict[str, Any]] = None, **params) -> ModelResponse:
        """Send messages to the provider. Params layer as defaults < registry entry < params."""
        request = ChatRequest(
            model=self.config.model,
            messages=messages,
            params={**(defaults or {}), **self.config.params, **params},
        )
        return self.provider.chat(request)

    def complete(self, system_prompt: str, user_prompt: str, **params) -> str:
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        return self.invoke(messages, **params).content


class ModelManager:
    def __init__(self, settings: EngineSettings, config_path: Optional[Union[Path, str]] = None, prompts_dir: Optional[Path] = None):
        self.settings = settings
        self.config_path = Path(config_path or settings.models_config)
        self.config = self._load_config()
        self.default_model: Optional[str] = self.config.get("default_model")
        self.registry: Dict[str, Dict[str, Any]] = self._build_registry()
        self._providers: Dict[Tuple, ModelProvider] = {}
        self._stats = {} #performance tracking

        self.prompts = PromptManager(prompts_dir or settings.prompts_dir)

    def _load_config(self) -> Dict:
        if not self.config_path.exists():
            logger.warning(f"Model registry not found at {self.config_path}, relying on environment entries")
            return {}
        with open(self.config_path) as f:
            config = yaml.safe_load(f) or {}

        if not isinstance(config, dict):
            raise ValueError(f"Model registry {self.config_path} must be a mapping")
        models = config.get('models') or {}
        if not isinstance(models, dict):
            raise ValueError("Config 'models' must be a mapping of name -> settings")

        for model_name, model_cfg in models.items():
            if not isinstance(model_cfg, dict) or 'provider' not in model_cfg:
                raise ValueError(f"Model '{model_name}' missing provider")

        return config

    def _build_registry(self) -> Dict[str, Dict[str, Any]]:
        registry: Dict[str, Dict[str, Any]] = {}
        if self.settings.openrouter_api_key:
            registry["openrouter-auto"] = {
                "provider": ProviderKind.PROXY_ROUTED.value,
                "model": OPENROUTER_AUTO_MODEL,
            }
        # explicit registry entries win over environment-derived ones
        registry.update(self.config.get('models') or {})
        return registry

    def _default_api_key(self, kind: ProviderKind) -> Optional[str]:
        return {
            ProviderKind.CHAT_COMPLETION: self.settings.openai_api_key,
            ProviderKind.MESSAGE: self.settings.anthropic_api_key,
            ProviderKind.PROXY_ROUTED: self.settings.openrouter_api_key,
        }.get(kind)

    def _to_model_config(self, name: str, entry: Dict[str, Any]) -> ModelConfig:
        kind = ProviderKind.parse(entry.get("provider"))
        return ModelConfig(
            name=name,
            provider=kind,
            model=entry.get("model") or name,
            api_key=entry.get("api_key") or self._default_api_key(kind),
            command=entry.get("command"),
            base_url=entry.get("base_url"),
            params=dict(entry.get("params") or {}),
        )

    def resolve(self, model_identifier: Optional[str] = None) -> Capability:
        name = model_identifier or self.default_model
        if not name:
            raise ConfigurationError("No model requested and no default_model configured")

        entry = self.registry.get(name)
        if entry is None:
            if not self.settings.openrouter_api_key:
                raise ConfigurationError(f"Model configuration not found for {name}")
            # route ad-hoc model names through the proxy
            logger.info(f"No registry entry for '{name}', routing through OpenRouter")
            entry = {"provider": ProviderKind.PROXY_ROUTED.value, "model": name}

        config = self._to_model_config(name, entry)
        return Capability(config=config, provider=self._get_provider(config))

    def _get_provider(self, config: ModelConfig) -> ModelProvider:
        key = (config.provider, config.api_key, config.base_url, config.command)
        if key in self._providers:
            return self._providers[key]

        if config.provider is ProviderKind.CHAT_COMPLETION:
            provider = OpenAIProvider(api_key=config.api_key, base_url=config.base_url)
        elif config.provider is ProviderKind.MESSAGE:
            provider = AnthropicProvider(api_key=config.api_key, base_url=config.base_url)
        elif config.provider is ProviderKind.PROXY_ROUTED:
            provider = OpenRouterProvider(api_key=config.api_key, base_url=config.base_url)
        elif config.provider is ProviderKind.LOCAL_PROCESS:
            provider = LocalProcessProvider(command=config.command)
        else:
            raise ProviderError(f"Unsupported model provider: {config.provider}")

        self._providers[key] = provider
        logger.info(f"initialized provider: {config.provider.value} for model '{config.name}'")
        return provider

    def call(self, model_identifier: Optional[str], prompt_ref: str, variables: Dict[str, Any], **params_override) -> ModelResponse:
        start_time = time.perf_counter()

        capability = self.resolve(model_identifier)
        prompt = self.prompts.load_prompt(prompt_ref)
        messages: List[Dict[str, str]] = self.prompts.render(prompt_ref, variables)

        try:
            response = capability.invoke(messages, defaults=prompt.params, **params_override)
        except ProviderError:
            self._track_stats(capability.config.name, (time.perf_counter() - start_time) * 1000, success=False)
            raise
        except Exception as e:
            self._track_stats(capability.config.name, (time.perf_counter() - start_time) * 1000, success=False)
            raise ProviderError(f"{capability.config.provider.value} call failed: {e}") from e

        self._track_stats(capability.config.name, (time.perf_counter() - start_time) * 1000, success=True)
        return response

    def _track_stats(self, model: str, latency_ms: float, success: bool):
        if model not in self._stats:
            self._stats[model] = {
                'total_calls': 0,
                'successful_calls': 0,
                'total_latency_ms': 0
            }

        stats = self._stats[model]
        stats['total_calls'] += 1
        if success:
            stats['successful_calls'] += 1
            stats['total_latency_ms'] += latency_ms

    def get_stats(self, model: Optional[str] = None) -> Dict:
        if model:
            return self._stats.get(model, {})
        return self._stats

    def cleanup(self):
        self._providers.clear()
