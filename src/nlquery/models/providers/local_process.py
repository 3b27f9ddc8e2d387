from __future__ import annotations
from typing import Optional
import logging
import subprocess
import time

from .base import ModelProvider, ChatRequest, ModelResponse, ProviderError, ProviderTimeout

logger = logging.getLogger(__name__)

DEFAULT_COMMAND = "deepseek-cli"


class LocalProcessProvider(ModelProvider):
    """Runs a local completion executable with the prompt as an argument and reads stdout."""

    def __init__(self, command: Optional[str] = None, timeout: float = 300.0):
        self.command = command or DEFAULT_COMMAND
        self.timeout = timeout

    def chat(self, req: ChatRequest) -> ModelResponse:
        args = [self.command, "--prompt", req.user_prompt]

        t0 = time.perf_counter()
        try:
            result = subprocess.run(args, capture_output=True, text=True, timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            raise ProviderTimeout(f"{self.command} did not finish within {self.timeout}s") from e
        except OSError as e:
            raise ProviderError(f"Failed to start {self.command}: {e}") from e

        dt = time.perf_counter() - t0

        if result.returncode != 0:
            logger.error(f"{self.command} exited with code {result.returncode}:\n{result.stderr}")
            raise ProviderError(f"{self.command} failed (exit code {result.returncode}): {result.stderr.strip()}")

        meta = {
            "provider": "local_process",
            "model": req.model,
            "command": self.command,
            "latency": dt,
            "stderr": result.stderr,
        }
        return ModelResponse(content=result.stdout.strip(), raw=result, meta=meta)
