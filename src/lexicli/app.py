import logging
import os
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from typing import Optional

from fastapi import FastAPI

from .config import settings
from .database import default_db_path, init_db
from .dispatcher import Dispatcher
from .log_handler import SQLiteHandler
from .models import Direction
from .router import router
from .store import Store, create_store

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


# --- Logging Setup ---
def setup_logging():
    logger = logging.getLogger("lexicli")
    logger.setLevel(logging.INFO)

    if not os.path.exists(settings.LOG_DIR):
        os.makedirs(settings.LOG_DIR, exist_ok=True)
    log_path = os.path.join(settings.LOG_DIR, settings.LOG_FILE)
    if not any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        file_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)

    if settings.LOG_TO_DB and not any(isinstance(h, SQLiteHandler) for h in logger.handlers):
        init_db()
        db_handler = SQLiteHandler(default_db_path())
        db_handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(db_handler)
    # Also configure root logger to see logs from other libraries
    logging.basicConfig(level=logging.INFO)


# --- App Factory ---
def create_app(store: Optional[Store] = None, dispatcher: Optional[Dispatcher] = None) -> FastAPI:
    """Builds the app. Without arguments the store comes from settings."""
    setup_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        active_store = store
        if dispatcher is None and active_store is None:
            active_store = create_store(settings)
        app.state.dispatcher = dispatcher or Dispatcher(
            active_store,
            settings.VOCAB_FILE,
            history_size=settings.HISTORY_SIZE,
            review_direction=Direction(settings.REVIEW_DIRECTION),
        )
        yield
        if app.state.dispatcher.store is not None:
            await app.state.dispatcher.store.close()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        debug=settings.DEBUG,
        lifespan=lifespan,
        root_path=settings.ROOT_PATH,
    )

    app.include_router(router)

    return app
