"""
FastAPI app assembly: logging, middleware, exception handlers and router wiring.
"""
import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from crud6.exceptions import CRUD6Exception, ValidationException

# Configure logging
LOG_LEVEL_NAME = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL = getattr(logging, LOG_LEVEL_NAME, logging.INFO)
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)
logger.setLevel(LOG_LEVEL)
logger.info("app_startup: log_level=%s", LOG_LEVEL_NAME)

from crud6 import __version__  # noqa: E402
from crud6.api.actions import router as actions_router  # noqa: E402
from crud6.api.audits import router as audits_router  # noqa: E402
from crud6.api.config import router as config_router  # noqa: E402
from crud6.api.records import router as records_router  # noqa: E402
from crud6.api.relationships import router as relationships_router  # noqa: E402
from crud6.api.schema import router as schema_router  # noqa: E402

# Service-owned tables are managed by Alembic migrations.

app = FastAPI(
    title="CRUD6 Service",
    description="Schema-driven CRUD API: JSON schemas describe tables, fields, relationships and actions.",
    version=__version__,
)

# Avoid implicit trailing-slash redirects for predictable URLs
app.router.redirect_slashes = False

DEFAULT_ORIGINS = "http://localhost,http://localhost:3000,http://localhost:8000"
origins = [origin.strip() for origin in os.getenv("CORS_ORIGINS", DEFAULT_ORIGINS).split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def register_exception_handlers(app: FastAPI) -> None:
    """Translate domain exceptions into JSON error responses."""

    @app.exception_handler(ValidationException)
    async def validation_exception_handler(request: Request, exc: ValidationException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "errors": exc.errors})

    @app.exception_handler(CRUD6Exception)
    async def crud6_exception_handler(request: Request, exc: CRUD6Exception):
        if exc.status_code >= 500:
            logger.error("crud6_error: path=%s error=%s", request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


register_exception_handlers(app)


@app.get("/health")
def health():
    return {"status": "ok", "version": __version__}


# Fixed paths first so they are not captured by /{model}
app.include_router(config_router)
app.include_router(audits_router)
app.include_router(schema_router)
app.include_router(actions_router)
app.include_router(relationships_router)
app.include_router(records_router)
