from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from motor.motor_asyncio import AsyncIOMotorDatabase

from . import __version__
from .config import Settings, get_settings
from .database import TaskStore, close_db
from .envelope import register_exception_handlers
from .logging_setup import setup_logging
from .middleware import RequestLoggingMiddleware
from .routes import root_router, router


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    close_db()


def create_app(settings: Optional[Settings] = None, database: Optional[AsyncIOMotorDatabase] = None) -> FastAPI:
    """
    Build the application.

    ``database`` overrides the Motor database the task store runs on; when it
    is omitted the store connects lazily using ``settings``.
    """
    settings = settings or get_settings()
    app = FastAPI(title="Task Manager API", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.store = TaskStore(database) if database is not None else None

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(root_router)
    app.include_router(router)
    return app


setup_logging(get_settings().log_level, get_settings().log_file)
app = create_app()


def main() -> None:
    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
