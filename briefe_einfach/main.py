from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, FileResponse, HTMLResponse
from fastapi.staticfiles import StaticFiles
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from pathlib import Path

from . import config
from .db import init_db
from .errors import AppError, NotFoundError, ValidationError
from .log import get_logger, setup_logging
from . import auth, billing, explain

logger = get_logger(__name__)

NO_FALLBACK_PREFIXES = ("/api/", "/auth/", "/stripe/", "/billing/", "/static/")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(debug=config.DEBUG)
    init_db()
    logger.info("briefe-einfach started")
    yield
    logger.info("briefe-einfach stopped")


app = FastAPI(title="Briefe einfach", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials="*" not in config.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

STATIC_DIR = Path(config.STATIC_DIR)
if STATIC_DIR.is_dir():
    app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")


def index_page(status_code: int = 200):
    path = STATIC_DIR / "index.html"
    if path.exists():
        return FileResponse(path, status_code=status_code, media_type="text/html")
    return HTMLResponse("<h1>Briefe einfach</h1>", status_code=status_code)


@app.get("/", response_class=HTMLResponse)
def landing():
    return index_page()

@app.get("/health")
def health():
    return JSONResponse({"ok": True})

app.include_router(auth.router)
app.include_router(explain.router)
app.include_router(billing.router)


@app.exception_handler(AppError)
def app_error(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.code}")
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)

@app.exception_handler(RequestValidationError)
def request_validation_error(request: Request, exc: RequestValidationError):
    logger.info(f"invalid request body on {request.method} {request.url.path}", extra={"extra_data": {"errors": [e.get("msg") for e in exc.errors()]}})
    return JSONResponse(ValidationError().to_dict(), status_code=400)

@app.exception_handler(StarletteHTTPException)
def http_error(request: Request, exc: StarletteHTTPException):
    path = request.url.path
    if exc.status_code == 404:
        if request.method == "GET" and not (path + "/").startswith(NO_FALLBACK_PREFIXES):
            # client-side route: hand back the entry page
            return index_page()
        return JSONResponse(NotFoundError().to_dict(), status_code=404)
    return JSONResponse({"ok": False, "error": "http_error", "message": str(exc.detail)}, status_code=exc.status_code)

@app.exception_handler(Exception)
def unexpected_error(request: Request, exc: Exception):
    logger.exception(f"unhandled error on {request.method} {request.url.path}")
    return JSONResponse({"ok": False, "error": "server_error", "message": "Serverfehler"}, status_code=500)


def serve():
    import uvicorn
    uvicorn.run("briefe_einfach.main:app", host="0.0.0.0", port=config.PORT)
