from contextlib import asynccontextmanager
from pathlib import Path

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from app.core.config import Settings, get_settings
from app.core.logging import RequestIdMiddleware, setup_logging
from app.routers import files
from app.services.github import GitHubContentsClient

BASE_DIR = Path(__file__).resolve().parent

templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))


def create_app(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with httpx.AsyncClient(timeout=settings.github_timeout, transport=transport) as http:
            app.state.contents_client = GitHubContentsClient(settings, http)
            yield

    app = FastAPI(title="Upload Relay", lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(RequestIdMiddleware)
    app.mount("/static", StaticFiles(directory=str(BASE_DIR / "static")), name="static")

    # include our routers
    app.include_router(files.router)

    @app.get("/", response_class=HTMLResponse)
    def home(request: Request):
        return templates.TemplateResponse(
            request, "index.html", {"max_upload_mb": settings.max_upload_mb}
        )

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    return app
