"""
FastAPI main application.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from engine import __version__, build_pipeline, load_config

from .database import init_db
from .routes import tasks_router, voice_router

# ============================================================================
# LOGGING CONFIGURATION
# ============================================================================

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

logger = logging.getLogger(__name__)


# ============================================================================
# APP SETUP
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize the database and build the network clients once.

    An incomplete configuration aborts startup.
    """
    logger.info("🚀 Voice Task Tracker starting up...")
    logger.info("📊 Initializing database...")
    init_db()
    logger.info("✅ Database initialized successfully")

    config = load_config()
    app.state.config = config
    app.state.pipeline = build_pipeline(config)
    logger.info(f"🎙️  Ready | Transcription: {config.transcription_engine} | Extraction: {config.chat_model}")
    yield
    logger.info("👋 Voice Task Tracker shutting down...")


app = FastAPI(
    title="Voice Task Tracker",
    description="Turn spoken task descriptions into tasks on a kanban board",
    version=__version__,
    lifespan=lifespan
)

app.include_router(tasks_router)
app.include_router(voice_router)


@app.get("/health")
async def health(request: Request):
    config = getattr(request.app.state, "config", None)
    return {
        "status": "ok",
        "version": __version__,
        "transcription_engine": config.transcription_engine if config else None,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000)
