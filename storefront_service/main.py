import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from . import api, models
from .database import engine

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.info("Application starting up... Creating database tables.")
    models.Base.metadata.create_all(bind=engine)
    logging.info("Startup complete.")
    yield
    logging.info("Application shutting down...")


app = FastAPI(
    title="Storefront Service",
    description="Catalog, cart, checkout and order history for the storefront.",
    lifespan=lifespan,
)

app.include_router(api.auth_router)
app.include_router(api.account_router)
app.include_router(api.product_router)
app.include_router(api.cart_router)
app.include_router(api.address_router)
app.include_router(api.checkout_router)
app.include_router(api.order_router)
app.include_router(api.monitoring_router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # Malformed input is a client error like any other rejected request.
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)
