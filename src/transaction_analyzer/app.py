from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from transaction_analyzer.api.routes import imports, merchants, refund_settings, reports, rules
from transaction_analyzer.core import settings
from transaction_analyzer.logger import get_logger, setup_logging
from transaction_analyzer.services.pipeline import ImportSession
from transaction_analyzer.storage.local_store import LocalStore

logger = get_logger(__name__)


def create_app() -> FastAPI:
    setup_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Initializing services...")
        settings.log_environment()

        store = LocalStore(data_dir=settings.DATA_DIR)
        session = ImportSession(store=store)
        session.load()
        app.state.session = session

        logger.info("Services initialized.")
        yield
        logger.info("Service shutting down.")

    app = FastAPI(title="Bank Transaction Analyzer", lifespan=lifespan)

    app.include_router(imports.router)
    app.include_router(rules.router)
    app.include_router(merchants.router)
    app.include_router(refund_settings.router)
    app.include_router(reports.router)

    return app


app = create_app()
