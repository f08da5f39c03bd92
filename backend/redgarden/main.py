from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from .api.routes_bookings import router as bookings_router
from .api.routes_notifications import router as notifications_router
from .api.routes_push import router as push_router
from .api.routes_status import router as status_router
from .config import Settings, configure_logging, get_settings
from .core.database import create_db_engine, init_db, make_session_factory
from .core.datastore import Datastore
from .core.seed import seed_initial_data


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    settings.require("database_url")

    engine = create_db_engine(settings.database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db(engine)
        db = app.state.session_factory()
        try:
            seed_initial_data(db, settings)
        finally:
            db.close()
        yield
        engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.session_factory = make_session_factory(engine)
    app.state.datastore = Datastore(engine)

    app.include_router(status_router)
    app.include_router(notifications_router)
    app.include_router(push_router)
    app.include_router(bookings_router)
    return app


def build_app() -> FastAPI:
    """uvicorn factory (``pip install .[serve]``): ``uvicorn redgarden.main:build_app --factory``."""
    settings = get_settings()
    configure_logging(settings.log_level)
    return create_app(settings)
