import inspect
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request

from routes.relay_route import router as relay_router
from services.inference.factory import build_inference
from utils.settings import RelaySettings

load_dotenv()  # Load environment variables from .env file if present


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the relay settings from the environment
      - the inference backend selected by INFERENCE_PROVIDER
    and attach them to `app.state`.
    """
    settings = RelaySettings.from_env()
    logging.basicConfig(level=settings.log_level)
    app.state.settings = settings

    # Tests and embedding callers may provide their own capability.
    if getattr(app.state, "inference", None) is None:
        app.state.inference = build_inference(settings)
        logging.info("Inference backend ready: %s", settings.provider)

    try:
        yield
    finally:
        # Gracefully close the backend if it exposes a close/aclose method.
        inference = getattr(app.state, "inference", None)
        if inference is not None:
            aclose = getattr(inference, "aclose", None) or getattr(inference, "close", None)
            if aclose is not None:
                try:
                    if inspect.iscoroutinefunction(aclose):
                        await aclose()
                    else:
                        result = aclose()
                        if inspect.isawaitable(result):
                            await result
                except Exception:
                    logging.warning("Inference backend did not close cleanly", exc_info=True)


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    app = FastAPI(lifespan=lifespan)
    app.state.inference = None

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check that reports whether an inference backend is configured.
        """
        settings = getattr(request.app.state, "settings", None)
        return {
            "ok": True,
            "inference_available": getattr(request.app.state, "inference", None) is not None,
            "provider": settings.provider if settings else None,
        }

    # Register application routers
    app.include_router(relay_router)

    return app


app = create_app()
