"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from shelfwise.config import get_settings
from shelfwise.db.session import SessionLocal
from shelfwise.routers import contributions, facts, layouts, prices, rewards
from shelfwise.services.rewards import get_leaderboard

logger = logging.getLogger(__name__)


def _warm_backend_state() -> None:
    """Prime the DB connection and the leaderboard query at process start."""

    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
            get_leaderboard(db, limit=1)
    except Exception:
        logger.exception("Backend warm-up failed; continuing without startup pre-warm.")


@asynccontextmanager
async def lifespan(_: FastAPI):
    _warm_backend_state()
    yield


settings = get_settings()
app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(contributions.router, tags=["contributions"])
app.include_router(facts.router, tags=["facts"])
app.include_router(prices.router, tags=["prices"])
app.include_router(layouts.router, tags=["layouts"])
app.include_router(rewards.router, tags=["rewards"])


@app.get("/health")
def health() -> dict[str, str]:
    """Simple health check endpoint."""

    return {"status": "ok"}
