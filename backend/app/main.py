"""
FastAPI entrypoint for JustJio backend application.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from app.core.config import settings
from app.core.exceptions import AppError
from app.core.logging import setup_logging
from app.core.utils import format_error
from app.api.router import api_router
from app.api.routes import realtime
from app.services.broker import create_broker
from app.services.push_service import PushWorkerPool
from app.services.session_hub import SessionHub

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """One broker, session hub and push pool per process."""
    app.state.broker = create_broker()
    app.state.session_hub = SessionHub()
    app.state.push_pool = PushWorkerPool().start()
    logger.info("%s started (env=%s)", settings.APP_NAME, settings.ENV)
    try:
        yield
    finally:
        logger.info("Shutting down %s...", settings.APP_NAME)
        app.state.push_pool.close()
        app.state.session_hub.close()
        app.state.broker.close()


app = FastAPI(
    title="JustJio API",
    description="Backend API for event planning and bill splitting",
    version="1.0.0",
    debug=settings.DEBUG,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail or exc.message)
    detail = exc.detail or exc.message
    return JSONResponse(
        status_code=exc.status_code,
        content=format_error(exc.message, detail if settings.is_dev else None)
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=format_error(str(exc.detail)),
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=format_error("Review your input", jsonable_encoder(exc.errors()) if settings.is_dev else None)
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=format_error("Error occurred in server", str(exc) if settings.is_dev else None)
    )


# Include API routes
app.include_router(api_router, prefix="/api")
app.include_router(realtime.router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"message": "JustJio API is running"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.PORT)
