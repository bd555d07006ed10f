# Run from project root: uvicorn chat_starter.main:app --reload

import logging

from fastapi import FastAPI

from chat_starter.api.handlers import register_exception_handlers
from chat_starter.api.routes import router
from chat_starter.core.config import Settings, load_settings
from chat_starter.core.dependencies import Services, build_services


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """Build the API. Pass `services` to run against stub providers."""
    if services is not None:
        settings = services.settings
    settings = settings or load_settings()
    logging.basicConfig(level=settings.log_level)

    app = FastAPI(title="Chat Starter Backend")
    app.state.services = services or build_services(settings)
    register_exception_handlers(app)
    app.include_router(router)
    return app


app = create_app()
