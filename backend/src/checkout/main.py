"""
FastAPI application entry point.

This is the main application that ties together all components:
- API routes for products, transactions and payments
- Database lifecycle management
- CORS configuration for frontend access
- Error handling (response envelope) and logging
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from checkout import __version__
from checkout.api.dependencies import get_payment_gateway
from checkout.api.errors import register_exception_handlers
from checkout.api.routes import health, payments, products, transactions
from checkout.config import PaymentProviderConfig, get_settings
from checkout.infrastructure.database import close_db, init_db

# Configure logging
logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown tasks:
    - Initialize database tables
    - Close the gateway client and database pool on shutdown
    """
    settings = get_settings()
    provider = PaymentProviderConfig.from_settings(settings)

    logger.info(f"Starting checkout v{__version__}")
    logger.info(f"Payment provider: {provider.base_url}")
    logger.info(f"Debug mode: {settings.debug}")

    try:
        await init_db()
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        # Continue anyway for development without DB

    yield  # Application runs here

    logger.info("Shutting down checkout")
    if get_payment_gateway.cache_info().currsize:
        await get_payment_gateway().aclose()
        get_payment_gateway.cache_clear()
    await close_db()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI instance ready to serve requests.
    """
    settings = get_settings()

    app = FastAPI(
        title="Checkout API",
        description=(
            "E-commerce checkout backend.\n\n"
            "Browse products, open a transaction and pay it by card "
            "through the payment gateway."
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(products.router, prefix="/api")
    app.include_router(transactions.router, prefix="/api")
    app.include_router(payments.router, prefix="/api")

    register_exception_handlers(app, debug=settings.debug)

    return app


# Create the application instance
app = create_app()


# Development server entry point
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "checkout.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
