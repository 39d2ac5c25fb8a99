"""FastAPI app: хранилище групп, старое плоское хранилище, статический фронтенд."""
import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from groupshelf.config import settings

# Логи приложения в stderr, видны в docker logs
_app_log = logging.getLogger("groupshelf")
_app_log.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
if not _app_log.handlers:
    _h = logging.StreamHandler(sys.stderr)
    _h.setFormatter(logging.Formatter("%(levelname)s: %(name)s: %(message)s"))
    _app_log.addHandler(_h)
_app_log.propagate = False

from groupshelf.routers import files, groups
from groupshelf.services.errors import GroupShelfError
from groupshelf.storage import init_storage


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_storage()
    yield


app = FastAPI(
    title="GroupShelf",
    description="Группы документов Markdown и изображений: загрузка, просмотр, галерея.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(GroupShelfError)
async def groupshelf_error_handler(request: Request, exc: GroupShelfError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Непредвиденная ошибка: 500 с текстом, процесс продолжает работу."""
    _app_log.exception("Необработанная ошибка %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc), "type": type(exc).__name__},
    )


app.include_router(groups.router)
app.include_router(files.router)


@app.get("/health")
async def health():
    return {"status": "ok", "service": "groupshelf"}


STATIC_DIR = settings.get_static_path()
if STATIC_DIR.is_dir():
    app.mount("/", StaticFiles(directory=str(STATIC_DIR), html=True), name="static")
