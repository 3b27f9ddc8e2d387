"""
Versioned prompt templates.

A reference "name@version" points at <prompts_dir>/<name>/<version>/, which
holds system.j2, user.j2 and an optional config.yaml whose `params` mapping
gives the default call parameters for that prompt.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union
import logging

import jinja2
import yaml

logger = logging.getLogger(__name__)

# message role -> template file, in message order
TEMPLATE_FILES = {"system": "system.j2", "user": "user.j2"}


def parse_ref(prompt_ref: str) -> Tuple[str, str]:
    name, sep, version = prompt_ref.rpartition('@')
    if not sep or not name or not version:
        raise ValueError(f"Invalid prompt reference: {prompt_ref}")
    return name, version


@dataclass(frozen=True)
class PromptConfig:
    name: str
    version: str
    templates: Dict[str, jinja2.Template]
    params: Dict[str, Any] = field(default_factory=dict)

    @property
    def ref(self) -> str:
        return f"{self.name}@{self.version}"


class PromptManager:
    def __init__(self, prompts_dir: Union[Path, str]):
        self.prompts_dir = Path(prompts_dir)
        if not self.prompts_dir.is_dir():
            raise FileNotFoundError(f"Prompts dir not found: {self.prompts_dir}")

        self.jinja_env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(self.prompts_dir)),
            undefined=jinja2.StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._cache: Dict[str, PromptConfig] = {}

    def load_prompt(self, prompt_ref: str) -> PromptConfig:
        if prompt_ref in self._cache:
            return self._cache[prompt_ref]

        name, version = parse_ref(prompt_ref)
        folder = self.prompts_dir / name / version
        if not folder.is_dir():
            raise FileNotFoundError(f"Prompt not found: {folder}")

        templates = {}
        for role, filename in TEMPLATE_FILES.items():
            try:
                templates[role] = self.jinja_env.get_template(f"{name}/{version}/{filename}")
            except jinja2.TemplateNotFound as e:
                raise FileNotFoundError(f"Template file not found: {folder / filename}") from e

        prompt = PromptConfig(name=name, version=version, templates=templates, params=self._load_params(folder))
        self._cache[prompt_ref] = prompt
        logger.info(f"Loaded prompt: {prompt_ref}")
        return prompt

    def render(self, prompt_ref: str, variables: Dict[str, Any]) -> List[Dict[str, str]]:
        prompt = self.load_prompt(prompt_ref)
        try:
            messages = [
                {"role": role, "content": template.render(**variables)}
                for role, template in prompt.templates.items()
            ]
        except jinja2.UndefinedError as e:
            raise ValueError(f"Missing required variable in prompt {prompt_ref}: {e}") from e

        logger.debug(f"Rendered {prompt_ref}: " + ", ".join(f"{m['role']}={len(m['content'])} chars" for m in messages))
        return messages

    def _load_params(self, folder: Path) -> Dict[str, Any]:
        config_path = folder / "config.yaml"
        if not config_path.is_file():
            return {}
        with open(config_path) as f:
            config = yaml.safe_load(f) or {}

        params = (config.get('params') or {}) if isinstance(config, dict) else None
        if not isinstance(params, dict):
            raise ValueError(f"{config_path}: 'params' must be a mapping")
        return dict(params)
