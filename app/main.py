from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI

from app.config import allowed_llm_adapters, load_env_files


def _validate_env() -> None:
    """
    Validate all required environment variables at startup.

    Raises RuntimeError listing every missing or invalid variable so the
    operator can fix all problems in one restart cycle.

    Rules:
    - LLM_ADAPTER must be one of the supported adapters.
    - The API key for the selected adapter must be set; the check is
      skipped only when LLM_ADAPTER=mock.
    - Numeric limits, when set, must parse as positive numbers.
    """

    load_env_files()

    errors: list[str] = []

    # --- LLM adapter ----------------------------------------------------
    adapter = os.getenv("LLM_ADAPTER", "anthropic").strip().lower()
    allowed = allowed_llm_adapters()
    if adapter not in allowed:
        errors.append(
            f"LLM_ADAPTER='{adapter}' is not valid. Allowed values: {sorted(allowed)}."
        )

    # --- LLM API key ----------------------------------------------------
    if adapter == "anthropic" and not os.getenv("ANTHROPIC_API_KEY", "").strip():
        errors.append(
            "ANTHROPIC_API_KEY is not set. Empty strings are not permitted. "
            "Set LLM_ADAPTER=mock to run without an AI service."
        )
    if adapter == "openai":
        llm_api_key = os.getenv("LLM_API_KEY", "").strip()
        openai_api_key = os.getenv("OPENAI_API_KEY", "").strip()
        if not llm_api_key and not openai_api_key:
            errors.append(
                "LLM API key is not set. Provide LLM_API_KEY or OPENAI_API_KEY. "
                "Empty strings are not permitted."
            )

    # --- Numeric limits -------------------------------------------------
    for name in (
        "CSV_MAX_ROW_ERRORS",
        "UPLOAD_MAX_BYTES",
        "INSIGHTS_MAX_POINTS",
        "INSIGHTS_MAX_PAYLOAD_BYTES",
        "INSIGHTS_RATE_LIMIT_CAPACITY",
        "LLM_TIMEOUT_SECONDS",
    ):
        raw = os.getenv(name)
        if raw is None:
            continue
        try:
            value = float(raw)
        except ValueError:
            errors.append(f"{name}='{raw}' is not a number.")
            continue
        if value < 0:
            errors.append(f"{name}='{raw}' must not be negative.")

    if errors:
        raise RuntimeError(
            "Startup validation failed. Missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Start the scheduler on boot; shut it down on exit."""
    from app.scheduler.jobs import build_scheduler

    scheduler = build_scheduler()
    scheduler.start()
    logging.getLogger(__name__).info("Scheduler started with %d jobs", len(scheduler.get_jobs()))
    try:
        yield
    finally:
        scheduler.shutdown(wait=True)
        logging.getLogger(__name__).info("Scheduler shut down")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Search Insights API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import data_router, insights_router, upload_router

    application.include_router(data_router)
    application.include_router(insights_router)
    application.include_router(upload_router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=os.getenv("HOST", "127.0.0.1"), port=int(os.getenv("PORT", "8000")))
