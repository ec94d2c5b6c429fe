# backend/ingres/scheduler.py
import logging

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI

from ingres.core.config import settings
from ingres.crud import scrape_cache as crud
from ingres.db.session import SessionLocal
from ingres.services.kv import MemoryKV

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler(timezone="UTC")


def purge_caches_job(kv=None) -> dict:
    """
    Drop scrape_cache rows past their TTL and expired in-process KV entries.
    Locations are never purged.
    """
    with SessionLocal() as db:
        removed_rows = crud.purge_stale(db)

    removed_keys = kv.sweep() if isinstance(kv, MemoryKV) else 0
    logger.info("cache purge: %d rows, %d kv keys", removed_rows, removed_keys)
    return {"rows": removed_rows, "kv_keys": removed_keys}


def init_scheduler(app: FastAPI, kv=None) -> None:
    """Attach scheduler start/stop to FastAPI lifecycle."""
    if not settings.SCHEDULER_ENABLED:
        logger.info("scheduler disabled")
        return

    @app.on_event("startup")
    def _start_scheduler():
        # coalesce to run once if missed, and avoid overlap
        scheduler.add_job(
            purge_caches_job,
            "interval",
            minutes=settings.CACHE_PURGE_INTERVAL_MIN,
            kwargs={"kv": kv},
            id="purge_caches",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        try:
            scheduler.start()
        except Exception as e:
            # keep the API running without background purges
            logger.error("scheduler failed to start: %s", e)

    @app.on_event("shutdown")
    def _stop_scheduler():
        if scheduler.running:
            scheduler.shutdown(wait=False)
