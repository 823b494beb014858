import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from .config import get_settings
from .database import create_schema
from .infrastructure.platform import PlatformError
from .routers import account, bills, reservations, tenants
from .utils.request_id import request_id_middleware

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    if get_settings().create_schema:
        await create_schema()
    yield


async def platform_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("platform failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": "The hosting platform could not complete the request. Try again later."},
    )


configure_logging(get_settings().log_level)

app = FastAPI(title="Condominium Portal API", lifespan=lifespan)
app.middleware("http")(request_id_middleware)
app.add_exception_handler(PlatformError, platform_error_handler)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(account.router)
app.include_router(reservations.router)
app.include_router(reservations.admin_router)
app.include_router(tenants.router)
app.include_router(bills.router)
app.include_router(bills.admin_router)
