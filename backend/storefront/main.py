from contextlib import asynccontextmanager

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from storefront.api.health import router as health_router
from storefront.api.routes_auth import router as auth_router
from storefront.api.routes_cart import router as cart_router
from storefront.api.routes_catalogue import router as catalogue_router
from storefront.api.routes_checkout import router as checkout_router
from storefront.api.routes_order import router as order_router
from storefront.api.routes_reviews import router as reviews_router
from storefront.api.routes_wishlist import router as wishlist_router
from storefront.config import settings
from storefront.db import SessionLocal, init_db
from storefront.repositories.session_repo import DbSessionRepository
from storefront.schemas.checkout_schema import ErrorBody, ErrorResult
from storefront.services.errors import CheckoutError
from storefront.utils.logging import configure_logging, get_logger

configure_logging()
log = get_logger(__name__)


def purge_sessions_job():
    db = SessionLocal()
    try:
        removed = DbSessionRepository(db).purge_expired()
        if removed:
            log.info("purged %s expired sessions", removed)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # startup; RESET_DB=1 drops and recreates the schema (see init_db)
    init_db()

    scheduler = None
    if settings.SCHEDULER_ENABLED:
        scheduler = BackgroundScheduler()
        scheduler.add_job(
            purge_sessions_job,
            "interval",
            seconds=settings.SESSION_PURGE_INTERVAL_SECONDS,
            id="purge_sessions",
        )
        scheduler.start()

    try:
        yield
    finally:
        if scheduler:
            scheduler.shutdown(wait=False)


app = FastAPI(title="Storefront - Checkout Backend", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.FRONTEND_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CheckoutError)
async def checkout_error_handler(request: Request, exc: CheckoutError):
    return JSONResponse(
        status_code=exc.http_status,
        content=ErrorResult(error=ErrorBody(**exc.to_dict())).model_dump(by_alias=True),
    )


@app.exception_handler(SQLAlchemyError)
async def persistence_error_handler(request: Request, exc: SQLAlchemyError):
    # the request's session is closed (and rolled back) by get_db
    log.error("persistence failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content=ErrorResult(
            error=ErrorBody(
                code="PERSISTENCE_FAILURE",
                message="Internal storage error",
                retriable=True,
            )
        ).model_dump(by_alias=True),
    )


app.include_router(health_router, prefix="/api", tags=["health"])

app.include_router(catalogue_router, prefix="/api", tags=["catalogue"])

app.include_router(auth_router, tags=["auth"])

app.include_router(cart_router, tags=["cart"])

app.include_router(checkout_router, tags=["checkout"])

app.include_router(order_router, tags=["orders"])

app.include_router(wishlist_router, tags=["wishlist"])

app.include_router(reviews_router, tags=["reviews"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("storefront.main:app", host=settings.APP_HOST, port=settings.APP_PORT)
