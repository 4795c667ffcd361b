"""Create the configured inference backend."""

import httpx
from openai import AsyncOpenAI

from services.inference.capability import InferenceCapability
from services.inference.openai_backend import OpenAIInference
from services.inference.workers_ai_backend import WorkersAIInference
from utils.settings import RelaySettings


def build_inference(settings: RelaySettings) -> InferenceCapability:
    """Return an inference backend for `settings.provider`.

    Raises:
        RuntimeError: If the selected provider is missing its credentials.
    """
    if settings.provider == "workers-ai":
        if not settings.cloudflare_account_id or not settings.cloudflare_api_token:
            raise RuntimeError(
                "CLOUDFLARE_ACCOUNT_ID and CLOUDFLARE_API_TOKEN must be set for the workers-ai provider"
            )
        client = httpx.AsyncClient(timeout=settings.upstream_timeout)
        return WorkersAIInference(
            client,
            account_id=settings.cloudflare_account_id,
            api_token=settings.cloudflare_api_token,
            model=settings.workers_ai_model,
        )

    if not settings.openai_api_key:
        raise RuntimeError("OPENAI_API_KEY environment variable is not set")
    try:
        client = AsyncOpenAI(api_key=settings.openai_api_key, timeout=settings.upstream_timeout)
    except Exception as exc:
        raise RuntimeError("Failed to initialize OpenAI Async client") from exc
    return OpenAIInference(client, model=settings.openai_model)
