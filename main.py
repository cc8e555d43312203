"""ASGI application. Serve it with ``uvicorn main:app`` after ``pip install .[server]``."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from taskboard.config import get_settings
from taskboard.infrastructure.chunk_store import ChunkStore
from taskboard.infrastructure.database import SessionLocal, engine, initialize_database
from taskboard.interfaces.api.errors import register_exception_handlers
from taskboard.interfaces.api.routes import register_routes
from taskboard.logging_config import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the tables and open the file store; release both on shutdown."""

    settings = get_settings()
    setup_logging(settings.log_level)
    initialize_database()
    store = ChunkStore(SessionLocal, chunk_size=settings.upload_chunk_size_bytes).open()
    app.state.chunk_store = store
    try:
        yield
    finally:
        store.close()
        engine.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = get_settings()
    app = FastAPI(title="Task files API", lifespan=lifespan, debug=settings.debug)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Range", "Content-Disposition", "Accept-Ranges"],
    )

    register_exception_handlers(app)
    register_routes(app)
    return app


app = create_app()
