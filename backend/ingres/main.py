import logging
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ingres.api.deps import get_kv
from ingres.api.ratelimit import make_rate_limiter
from ingres.api.routes.debug import router as debug_router
from ingres.api.routes.groundwater import router as groundwater_router
from ingres.api.routes.health import router as health_router
from ingres.api.routes.locations import router as locations_router
from ingres.api.routes.metrics import router as metrics_router
from ingres.api.routes.query import router as query_router
from ingres.core.config import settings
from ingres.db.base import create_all
from ingres.db.session import engine
from ingres.scheduler import init_scheduler

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("ingres")

app = FastAPI(title=settings.PROJECT_NAME, version="0.4.0", debug=settings.DEBUG)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS", "HEAD"],
    allow_headers=["*"],
)
app.middleware("http")(
    make_rate_limiter(get_kv, settings.RATE_LIMIT_REQUESTS, settings.RATE_LIMIT_WINDOW_SECONDS)
)

app.include_router(health_router, tags=["health"])
app.include_router(locations_router, prefix="/api")
app.include_router(query_router, prefix="/api")
app.include_router(groundwater_router, prefix="/api")
app.include_router(metrics_router, prefix="/api", tags=["metrics"])
app.include_router(debug_router, prefix="/api/debug", tags=["debug"])

init_scheduler(app, kv=get_kv())


@app.on_event("startup")
def _startup_db() -> None:
    create_all(engine)
    if settings.DATABASE_URL.startswith("sqlite:///"):
        logger.info("DB: %s", Path(settings.DATABASE_URL.replace("sqlite:///", "")).resolve())
    logger.info("CORS allow_origins = %s", settings.cors_origins_list)
