# family_expenses/main.py
#
# Run with: uvicorn --factory family_expenses.main:create_app

import logging
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI

from . import admin, auth, budgets, expenses
from .database import Base, make_engine, make_session_factory
from .errors import register_exception_handlers
from .settings import Settings

logger = logging.getLogger(__name__)


def configure_logging(level: str):
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    if settings is None:
        load_dotenv()
        settings = Settings()

    configure_logging(settings.log_level)

    engine = make_engine(settings.database_url)
    # Create tables if not already created
    Base.metadata.create_all(bind=engine)

    app = FastAPI(title="Family Expenses")
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = make_session_factory(engine)

    register_exception_handlers(app)

    app.include_router(auth.router)
    app.include_router(expenses.router)
    app.include_router(budgets.router)
    app.include_router(admin.router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    logger.info("Family Expenses API ready (database: %s)", engine.url.render_as_string(hide_password=True))
    return app
