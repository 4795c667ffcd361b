"""Environment-driven configuration for the relay service.

Values are read from the process environment (populated from a `.env` file
by `load_dotenv()` in `main.py`). Supported variables:

- INFERENCE_PROVIDER: `openai` (default) or `workers-ai`.
- OPENAI_API_KEY / OPENAI_MODEL: used by the OpenAI backend.
- CLOUDFLARE_ACCOUNT_ID / CLOUDFLARE_API_TOKEN / WORKERS_AI_MODEL: used by
  the Workers AI backend.
- RELAY_SEED: fixed sampling seed sent with every model call.
- RELAY_PROMPT_VARIANT: `ascii` (default), `blocks`, or `summary`.
- RELAY_DEFAULT_PROMPT: text used when a request carries no instruction.
- UPSTREAM_TIMEOUT: seconds before an upstream HTTP call times out.
- LOG_LEVEL: root logging level.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from services.inference.openai_backend import DEFAULT_MODEL as DEFAULT_OPENAI_MODEL
from services.inference.workers_ai_backend import DEFAULT_MODEL as DEFAULT_WORKERS_AI_MODEL
from services.relay.prompts import DEFAULT_PROMPT, VARIANTS

PROVIDERS = ("openai", "workers-ai")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name}={raw!r} must be an integer.") from exc


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name}={raw!r} must be a number.") from exc


@dataclass(frozen=True)
class RelaySettings:
    provider: str = "openai"
    openai_api_key: Optional[str] = None
    openai_model: str = DEFAULT_OPENAI_MODEL
    cloudflare_account_id: Optional[str] = None
    cloudflare_api_token: Optional[str] = None
    workers_ai_model: str = DEFAULT_WORKERS_AI_MODEL
    seed: int = 42
    prompt_variant: str = "ascii"
    default_prompt: str = DEFAULT_PROMPT
    upstream_timeout: float = 120.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "RelaySettings":
        """Build settings from the environment, validating enumerated values."""
        provider = (os.getenv("INFERENCE_PROVIDER") or "openai").strip().lower()
        if provider not in PROVIDERS:
            raise RuntimeError(
                f"INFERENCE_PROVIDER={provider!r} is not supported. Use one of: {', '.join(PROVIDERS)}."
            )

        variant = (os.getenv("RELAY_PROMPT_VARIANT") or "ascii").strip().lower()
        if variant not in VARIANTS:
            raise RuntimeError(
                f"RELAY_PROMPT_VARIANT={variant!r} is not supported. Use one of: {', '.join(VARIANTS)}."
            )

        return cls(
            provider=provider,
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_model=os.getenv("OPENAI_MODEL") or DEFAULT_OPENAI_MODEL,
            cloudflare_account_id=os.getenv("CLOUDFLARE_ACCOUNT_ID"),
            cloudflare_api_token=os.getenv("CLOUDFLARE_API_TOKEN"),
            workers_ai_model=os.getenv("WORKERS_AI_MODEL") or DEFAULT_WORKERS_AI_MODEL,
            seed=_int_env("RELAY_SEED", 42),
            prompt_variant=variant,
            default_prompt=os.getenv("RELAY_DEFAULT_PROMPT") or DEFAULT_PROMPT,
            upstream_timeout=_float_env("UPSTREAM_TIMEOUT", 120.0),
            log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        )
