"""FastAPI application entrypoint."""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ensogrow import __version__
from ensogrow.auth.identity import get_identity_verifier
from ensogrow.errors import AppError
from ensogrow.middleware import RequestLoggingMiddleware, setup_logging
from ensogrow.routers import health, plants, profile
from ensogrow.services.advisor import get_plant_advisor
from ensogrow.settings import settings
from ensogrow.startup import run_startup_validation

# Configure logging before anything else
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Validate configuration, then create the process-wide AI client and
    identity verifier that every request shares.
    """
    logger.info(f"Starting application in {settings.ENV} environment")

    try:
        run_startup_validation()
        app.state.advisor = get_plant_advisor()
        app.state.identity_verifier = get_identity_verifier()
    except Exception as e:
        logger.error(f"Startup failed: {e}")
        raise

    logger.info(f"Using AI provider={settings.AI_PROVIDER}, auth provider={settings.AUTH_PROVIDER}")

    yield

    logger.info("Shutting down application")
    await app.state.advisor.close()
    app.state.identity_verifier.close()


app = FastAPI(
    title="EnsoGrow Service",
    description="Plant recommendations and growing plans for home gardeners",
    version=__version__,
    lifespan=lifespan,
)

# Last added is executed first: logging wraps everything
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(health.router)
app.include_router(profile.router)
app.include_router(plants.router)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message} ({exc.error})")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors (400), with field names."""
    fields = []
    problems = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        name = ".".join(loc) or "body"
        if name not in fields:
            fields.append(name)
        problems.append(f"{name}: {err.get('msg')}")

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "message": f"Missing or invalid fields: {', '.join(fields)}",
            "error": "; ".join(problems),
        },
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Something went wrong!"},
    )


@app.get("/")
async def root():
    return {"message": "Welcome to EnsoGrow Service API"}


def run() -> None:
    """Console entrypoint: serve with uvicorn on the configured port."""
    import uvicorn

    uvicorn.run("ensogrow.main:app", host="0.0.0.0", port=settings.PORT)


if __name__ == "__main__":
    run()
