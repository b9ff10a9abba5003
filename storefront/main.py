from pathlib import Path
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.templating import Jinja2Templates

from storefront.checkout import Checkout
from storefront.config import Settings
from storefront.database import init_db, make_engine, make_session_factory
from storefront.logging_config import setup_logging
from storefront.repository import Repository
from storefront.routes import router
from storefront.stripe_service import Card

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

logger = structlog.get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level, settings.log_json)

    engine = make_engine(settings)
    init_db(engine)

    db = Repository(make_session_factory(engine), timeout=settings.db_timeout)
    card = Card.from_settings(settings)

    app = FastAPI(title="Widget Storefront")
    app.state.settings = settings
    app.state.engine = engine
    app.state.db = db
    app.state.card = card
    app.state.checkout = Checkout(card, db)
    app.state.templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
    app.include_router(router)

    logger.info("app_created", database=engine.url.render_as_string(hide_password=True))
    return app


def run() -> None:
    import uvicorn

    uvicorn.run("storefront.main:create_app", factory=True, host="0.0.0.0", port=4000)
