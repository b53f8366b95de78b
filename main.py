# ─────────────────────────────────────────────────────────────────
# main.py — Application Entry Point
#
# Wires everything together at startup:
#   1. logging
#   2. the record store, loaded from disk
#   3. the forecast check and its HTTP client
#   4. the scheduler, re-armed for every stored subscriber
#      BEFORE the API accepts any request
#
# Run with:  uvicorn main:app
# ─────────────────────────────────────────────────────────────────

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI

from config import Settings, get_settings
from database import RecordStore
from forecast import ForecastChecker
from routes.subscribers import router as subscribers_router
from scheduler import CheckFn, Scheduler

logger = logging.getLogger("main")


def setup_logging(level: str = "INFO"):
    # %(name)s → which module's logger sent the message
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s — %(levelname)s — [%(name)s] — %(message)s"
    )


def create_app(settings: Optional[Settings] = None, check: Optional[CheckFn] = None) -> FastAPI:
    """
    Builds the API. `check` replaces the forecast lookup, which is
    how tests run the whole app without touching the network.
    """

    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.log_level)
        logger.info("reading config, loading state, wiring the scheduler...")

        # A corrupt store aborts startup right here
        store = RecordStore.load(settings.db_path)

        client = httpx.AsyncClient(timeout=httpx.Timeout(settings.http_timeout))
        scheduler = None

        # Everything after the client exists is cleaned up even if the
        # replay below fails half way through
        try:
            checker = check or ForecastChecker(
                client,
                alert_url=settings.alert_url,
                map_url=settings.map_url,
                lang=settings.lang,
            )

            scheduler = Scheduler(
                check=checker,
                create_record=store.upsert_location,
                update_record=store.upsert_alert_timestamp,
                remove_record=store.delete,
                check_every_seconds=settings.check_every_seconds,
            )

            # Resume every known subscriber BEFORE serving any request
            for key, record in store.all().items():
                await scheduler.add(key, record.location, record.last_alert)

            app.state.store = store
            app.state.scheduler = scheduler

            logger.info(f"🚀 Rain watch started, {len(scheduler)} subscriber(s) resumed")
            yield
        finally:
            if scheduler is not None:
                await scheduler.shutdown()
            await client.aclose()
            logger.info("Rain watch stopped")

    app = FastAPI(
        title="Rain Watch API",
        description="Per-subscriber precipitation alerts",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.include_router(subscribers_router)

    @app.get("/")
    def root():
        return {
            "message": "Rain Watch API is running",
            "version": "1.0.0",
            "docs": "/docs"
        }

    return app


app = create_app()
