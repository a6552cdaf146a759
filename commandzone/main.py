from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from commandzone.api import cards_router, decks_router, health_router
from commandzone.config import settings
from commandzone.db.database import init_db
from commandzone.models.failure import KnownError, RefusalError


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    await init_db()
    yield


app = FastAPI(
    title=settings.app_name,
    version=pkg_version("commandzone"),
    lifespan=lifespan,
)

app.include_router(decks_router)
app.include_router(cards_router)
app.include_router(health_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RefusalError)
async def refusal_handler(_request: Request, exc: RefusalError) -> JSONResponse:
    """A rule declined the request; nothing was changed."""
    return JSONResponse(status_code=409, content=exc.to_response().model_dump(mode="json"))


@app.exception_handler(KnownError)
async def known_error_handler(_request: Request, exc: KnownError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code, content=exc.to_response().model_dump(mode="json")
    )
