# FitPantry API Main Entry Point
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .settings import settings
from .logging_config import configure_logging
from .core.crypto import get_vault
from .db import create_tables
from .errors import FitPantryError
from .infra.rate_limit import limiter
from .routers.ready import router as ready_router
from .routers.auth import router as auth_router
from .routers.pantry import router as pantry_router
from .routers.profile import router as profile_router
from .routers.chat import router as chat_router

# Configure structured logging
configure_logging()
logger = logging.getLogger("fitpantry")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Misconfigured ENCRYPTION_KEY is fatal: refuse to start.
    get_vault()
    if settings.auto_create_tables:
        create_tables()
    logger.info("FitPantry API started (ai_mode=%s)", settings.ai_mode)
    yield


app = FastAPI(title="FitPantry API", version="0.1.0", lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(FitPantryError)
async def fitpantry_error_handler(request: Request, exc: FitPantryError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ready_router, prefix="/api", tags=["ready"])
app.include_router(auth_router, prefix="/api", tags=["auth"])
app.include_router(pantry_router, prefix="/api/pantry", tags=["pantry"])
app.include_router(profile_router, prefix="/api", tags=["profile"])
app.include_router(chat_router, prefix="/api", tags=["chat"])
