import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from mangum import Mangum
from starlette.middleware.cors import CORSMiddleware

from shopapi import containers
from shopapi.config import settings
from shopapi.core.exception_handlers import register_exception_handlers
from shopapi.core.logging_middleware import LoggingMiddleware
from shopapi.logging_config import setup_logging
from shopapi.routers import (
    admin_points_router,
    health_router,
    outbox_router,
    payment_router,
    point_router,
    return_router,
)

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    load_dotenv("shopapi/.env")
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG)
    app.container = containers.Container()  # type: ignore

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)
    register_exception_handlers(app)

    @app.get("/")
    def hello() -> dict:
        return {"message": settings.APP_NAME}

    app.include_router(health_router.router)
    for module in (
        point_router,
        admin_points_router,
        payment_router,
        return_router,
        outbox_router,
    ):
        app.include_router(module.router, prefix=settings.API_V1_STR)

    logger.info(f"{settings.APP_NAME} started ({settings.ENVIRONMENT})")
    return app


app = create_app()

handler = Mangum(app)
