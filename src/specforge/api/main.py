"""FastAPI application entry point."""
from __future__ import annotations

import logging
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from specforge import __version__
from specforge.api.routes import pipeline, sessions

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Specforge API",
    description="Interview transcript to PRD and implementation spec",
    version=__version__,
)

# CORS for frontend dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sessions.router)
app.include_router(pipeline.router)


@app.on_event("startup")
async def startup_event():
    from specforge.config import get_config
    from specforge.db.engine import init_db

    config = get_config()
    project_root = Path(__file__).resolve().parents[3]
    init_db(project_root / config.db_path)
    if not config.has_llm_key:
        logger.warning("No API key for provider %s; pipeline calls will fail",
                       config.llm_provider)


@app.on_event("shutdown")
async def shutdown_event():
    from specforge.db.engine import close_db
    close_db()


@app.get("/")
async def root():
    return {"name": "Specforge API", "version": __version__}


@app.get("/health")
async def health():
    return {"status": "ok"}
