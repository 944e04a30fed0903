import logging
import time
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy import text
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import settings
from database import get_db, init_db
from errors import InvalidInput, LibraryError
from logging_config import setup_logging
from routers import books, borrows, users

# Setup logging
setup_logging()
logger = logging.getLogger("elibrary")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up e-library API...")
    init_db()
    yield
    logger.info("Shutting down e-library API...")


app = FastAPI(
    title="E-Library API",
    description="Library lending: users, catalog and borrow records",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allow_origins or ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration_ms = (time.time() - start) * 1000
    logger.info(
        "%s %s -> %s (%.2f ms) ip=%s",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
        request.client.host if request.client else "unknown",
    )
    return response


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@app.exception_handler(LibraryError)
async def library_error_handler(request: Request, exc: LibraryError):
    return _error(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if not errors:
        return _error(InvalidInput.status_code, InvalidInput.default_message)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    message = first.get("msg", InvalidInput.default_message)
    return _error(InvalidInput.status_code, f"{location}: {message}" if location else message)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


@app.get("/", tags=["System"])
def home():
    return {"msg": "E-Library API is running"}


@app.get("/favicon.ico", include_in_schema=False)
def favicon():
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get("/health", tags=["System"])
def health_check(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "Service unhealthy")
    return {"status": "healthy", "service": "e-library", "database": "connected"}


app.include_router(users.router)
app.include_router(books.router)
app.include_router(borrows.router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=3000)
