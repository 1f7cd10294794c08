import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.helpdesk.api.routes_chat import router as chat_router
from src.helpdesk.api.routes_sessions import router as sessions_router
from src.helpdesk.api.routes_system import router as system_router
from src.helpdesk.config import mask_secret, settings

logger = logging.getLogger("helpdesk")

app = FastAPI(title="AI Help Desk Chat Proxy")


@app.on_event("startup")
async def on_startup() -> None:
    """Log the selected provider and a masked view of its credential."""

    provider = settings.primary_provider_name
    key_name = "OPENAI_API_KEY" if provider == "openai" else "CHATBASE_API_KEY"
    key_value = settings.openai_api_key if provider == "openai" else settings.chatbase_api_key
    logger.info(
        "Deployment mode: %s, AI_PROVIDER: %s, %s: %s",
        settings.deployment_mode,
        provider,
        key_name,
        mask_secret(key_value),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render framework errors (404, 405, ...) as ``{"error": ...}`` bodies."""
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "invalid request body"},
    )


# CORS configuration: permissive by default for development. Tighten via
# CORS_ALLOW_ORIGINS in production deployments.
allow_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()] or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Routes are served both at the root and under /api, matching the paths used
# by the serverless deployment.
for prefix in ("", "/api"):
    app.include_router(system_router, prefix=prefix)
    app.include_router(chat_router, prefix=prefix)
    app.include_router(sessions_router, prefix=prefix)
