import logging
import os
import sqlite3
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .auth import AuthService
from .config import Settings, settings as default_settings
from .database import init_db
from .errors import VocabError
from .gateway import SQLiteGateway
from .log_handler import SQLiteHandler
from .quiz import QuizSessionManager
from .router import router
from .vocabulary import VocabularyManager
from .wrong_words import WrongWordTracker

logger = logging.getLogger("vocabtest")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


# --- Logging Setup ---
def setup_logging(settings: Settings):
    logger.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if not os.path.exists(settings.LOG_DIR):
        os.makedirs(settings.LOG_DIR, exist_ok=True)
    log_path = os.path.join(settings.LOG_DIR, settings.LOG_FILE)
    file_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(file_handler)

    if settings.LOG_TO_DB:
        db_handler = SQLiteHandler(settings.db_path)
        db_handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(db_handler)
    # Also configure root logger to see logs from other libraries
    logging.basicConfig(level=logging.INFO)


# --- Error handlers ---
async def vocab_error_handler(request: Request, exc: VocabError):
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.info(f"Rejected request to {request.url.path}: {exc.errors()}")
    return JSONResponse({"error": "Invalid input"}, status_code=400)


async def storage_error_handler(request: Request, exc: sqlite3.Error):
    logger.exception(f"Storage failure on {request.url.path}")
    return JSONResponse({"error": "Storage failure"}, status_code=500)


# --- App Factory ---
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings
    # Tables must exist before the database log handler writes to them.
    init_db(settings.db_path)
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.PROJECT_NAME} with database {settings.db_path}")
        yield

    app = FastAPI(
        title=settings.PROJECT_NAME,
        debug=settings.DEBUG,
        lifespan=lifespan,
        root_path=settings.ROOT_PATH,
    )

    gateway = SQLiteGateway(settings.db_path)
    app.state.settings = settings
    app.state.auth = AuthService(gateway, settings)
    app.state.vocab = VocabularyManager(gateway)
    app.state.quiz = QuizSessionManager(
        gateway, WrongWordTracker(gateway), history_limit=settings.HISTORY_LIMIT
    )

    app.add_exception_handler(VocabError, vocab_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(sqlite3.Error, storage_error_handler)

    app.include_router(router)

    return app
