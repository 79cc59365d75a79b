# app/main.py
from __future__ import annotations

from typing import Dict, Optional

from fastapi import APIRouter, FastAPI, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# --- Logging & request-id ---
from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response as StarletteResponse

from app.config import settings
from app.core.errors import BloomPointError, InvalidArgument
from app.core.logging import configure_logging, logger
from app.core.request_id import clear_request_id, new_request_id, set_request_id
from services.db_service import close_db_pool, init_db_pool
from services.schema_service import ensure_schema

from api.routers.me import router as me_router
from api.routers.users import router as users_router

configure_logging(service_name="api", level=settings.LOG_LEVEL)

app = FastAPI(
    title="BloomPoint - Backend",
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)


def _cors_headers(origin: Optional[str]) -> Dict[str, str]:
    if origin and origin in settings.CORS_ALLOWED_ORIGINS:
        return {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Credentials": "true",
            "Vary": "Origin",
        }
    return {}


@app.on_event("startup")
async def _startup_db_pool() -> None:
    await init_db_pool()
    if settings.DB_ENSURE_SCHEMA:
        await ensure_schema()

@app.on_event("shutdown")
async def _shutdown_cleanup() -> None:
    await close_db_pool()


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        req_id = request.headers.get("x-request-id") or new_request_id()
        set_request_id(req_id)

        logger.info("request_started", method=request.method, path=str(request.url.path))
        try:
            response: StarletteResponse = await call_next(request)
        except Exception as exc:
            logger.error("request_exception", error=str(exc.__class__.__name__))
            clear_request_id()
            raise
        logger.info("request_ended", status_code=response.status_code)
        response.headers["X-Request-Id"] = req_id
        clear_request_id()
        return response

# CORS first so it is the outermost middleware; RequestIdMiddleware ends up innermost.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS", "HEAD"],
    allow_headers=["*"],
    expose_headers=["Content-Length", "X-Request-Id"],
)
app.add_middleware(RequestIdMiddleware)


@app.exception_handler(BloomPointError)
async def bloompoint_error_handler(request: Request, exc: BloomPointError) -> JSONResponse:
    origin = request.headers.get("origin")
    if exc.status_code >= 500:
        logger.error("request_failed", code=exc.code, error=exc.message, exc_info=exc)
    else:
        logger.info("request_rejected", code=exc.code, status_code=exc.status_code)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
        headers=_cors_headers(origin),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Malformed bodies are the caller's fault: same 400 as any other invalid argument
    origin = request.headers.get("origin")
    return JSONResponse(
        status_code=InvalidArgument.status_code,
        content={
            "detail": "Invalid request body",
            "code": InvalidArgument.code,
            "errors": jsonable_encoder(exc.errors()),
        },
        headers=_cors_headers(origin),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    origin = request.headers.get("origin")
    headers = dict(exc.headers or {})
    headers.update(_cors_headers(origin))
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    origin = request.headers.get("origin")
    logger.exception("unhandled_exception", exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"}, headers=_cors_headers(origin))

# --- Health endpoints ---
@app.get("/")
async def root():
    return {"ok": True, "app": "BloomPoint Backend", "message": "Up & running"}

@app.head("/")
async def root_head():
    return Response(status_code=200)

@app.get("/healthz")
async def healthz():
    return {"status": "healthy"}

@app.get("/health")
async def health():
    return {"ok": True}

# --- API router ---
api_router = APIRouter(prefix="/api")
api_router.include_router(me_router)
api_router.include_router(users_router)

app.include_router(api_router)

logger.info("routers_registered", routers=["api(me,users)"])


if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
