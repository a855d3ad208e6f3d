from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import logging
import os

from database import get_db, engine, Base
from errors import TaskCommentsError, InternalError
from middleware import RequestLoggingMiddleware
from auth.routes import router as auth_router
from users.routes import router as users_router
from tasks.routes import router as tasks_router
from tasks.uploads import UPLOAD_DIR
from comments.routes import router as comments_router

# Configure logging
logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "An unexpected server error occurred."


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create missing tables; existing tables are left untouched
    Base.metadata.create_all(bind=engine)
    logger.info(f"Database ready ({engine.url.get_backend_name()})")
    yield


app = FastAPI(
    title="Tasks API",
    description="Task management with users, attachments and threaded comments",
    version="1.0.0",
    docs_url="/api-docs",
    lifespan=lifespan,
)

CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(
    RequestLoggingMiddleware,
    exclude_paths=["/health", "/api-docs", "/openapi.json"],
)


# ============== Error Handling ==============

def _request_context(request: Request) -> str:
    request_id = getattr(request.state, "request_id", "-")
    return f"{request_id} | {request.method} {request.url.path}"


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """
    Missing or malformed input is a 400, not FastAPI's default 422.

    A comment id in the path that cannot be parsed fails the comment lookup
    itself, so it is answered like any other store failure.
    """
    if request.url.path.startswith(comments_router.prefix) and any(
        error["loc"][0] == "path" for error in exc.errors()
    ):
        logger.error(f"Comment lookup failed | {_request_context(request)} | {exc.errors()}")
        return JSONResponse(status_code=500, content={"detail": INTERNAL_ERROR_MESSAGE})

    logger.info(f"Validation failed | {_request_context(request)} | {exc.errors()}")
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


@app.exception_handler(TaskCommentsError)
async def domain_error_handler(request: Request, exc: TaskCommentsError):
    if isinstance(exc, InternalError) or exc.status_code >= 500:
        logger.error(f"Internal error | {_request_context(request)} | {exc.message}", exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": INTERNAL_ERROR_MESSAGE})

    logger.info(f"{type(exc).__name__} | {_request_context(request)} | {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error | {_request_context(request)} | {exc!r}", exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": INTERNAL_ERROR_MESSAGE})


# ============== Routes ==============

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(tasks_router)
app.include_router(comments_router)

# Uploaded attachments are served back as static files
try:
    UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=str(UPLOAD_DIR)), name="uploads")
except (OSError, PermissionError) as e:
    logger.warning(f"Could not create upload directory: {e}. File uploads will not be served.")


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        logger.warning(f"Health check database probe failed: {e}")
        database = "unavailable"
    return {"status": "healthy" if database == "ok" else "degraded", "database": database}
