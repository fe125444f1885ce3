# cart_service/main.py
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from cart_service.api.errors import register_error_handlers
from cart_service.api.routers import cart, health
from cart_service.data.database import Base, engine
from cart_service.utils.logging import get_logger

# import all models before create_all
from cart_service.data.models import CartLineModel  # noqa: F401

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Initializing database, tables: {list(Base.metadata.tables.keys())}")
    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        logger.error(f"Failed to create tables: {e}")
        raise
    logger.info("Database tables ready")
    yield


def create_app() -> FastAPI:
    app = FastAPI(
        title="Storefront Cart Service",
        version="1.0.0",
        lifespan=lifespan,
    )

    register_error_handlers(app)

    app.include_router(health.router)
    app.include_router(cart.router)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
