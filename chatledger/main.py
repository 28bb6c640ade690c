"""chatledger FastAPI application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatledger import __version__, config
from chatledger.observability import initialize as initialize_observability, shutdown as shutdown_observability
from chatledger.routers.timeline import durations_router, timeline_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("chatledger")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("chatledger starting up")
    initialize_observability(app)
    yield
    logger.info("chatledger shutting down")
    shutdown_observability(app)


app = FastAPI(
    title="chatledger API",
    description="Reconcile conversation feeds into timelines and link checkpoints to commits",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        config.FRONTEND_ORIGIN,
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(timeline_router)
app.include_router(durations_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("chatledger.main:app", host=config.HOST, port=config.PORT)
