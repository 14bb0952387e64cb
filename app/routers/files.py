from pathlib import Path

import structlog
from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import HTMLResponse, PlainTextResponse, Response, StreamingResponse
from fastapi.templating import Jinja2Templates
from starlette.background import BackgroundTask

from app.core.config import Settings
from app.core.exceptions import GitHubAPIError
from app.models.file import UploadedFile
from app.services.github import GitHubContentsClient
from app.services.storage import (
    DEFAULT_CONTENT_TYPE,
    add_prefix,
    build_entry,
    fetch_stored_file,
    guess_content_type,
    normalize_filename,
)

router = APIRouter()

BASE_DIR = Path(__file__).resolve().parent.parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))

logger = structlog.get_logger(__name__)


# --- dependencies: both live on app.state, set up by create_app ---
def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_contents_client(request: Request) -> GitHubContentsClient:
    return request.app.state.contents_client


# --- upload a new file ---
@router.post("/upload", response_class=HTMLResponse)
@router.post("/uploadfile", response_class=HTMLResponse, include_in_schema=False)
async def upload_file(
    request: Request,
    file: UploadFile | None = File(None),
    settings: Settings = Depends(get_app_settings),
    client: GitHubContentsClient = Depends(get_contents_client),
):
    if file is None or not file.filename:
        return PlainTextResponse("No file uploaded.", status_code=400)

    # Read one byte past the limit so oversized uploads are caught without buffering them whole
    content = await file.read(settings.max_upload_bytes + 1)
    if len(content) > settings.max_upload_bytes:
        logger.info("upload_rejected_too_large", filename=file.filename, limit=settings.max_upload_bytes)
        return PlainTextResponse(
            f"File too large (max {settings.max_upload_mb} MB)", status_code=413
        )

    upload = UploadedFile(
        original_name=file.filename,
        data=content,
        content_type=guess_content_type(file.filename),
    )
    entry = build_entry(upload, settings)

    try:
        await client.put_file(entry.storage_path, upload.data, f"Upload file {entry.filename}")
    except GitHubAPIError as e:
        logger.error(
            "github_commit_failed",
            path=entry.storage_path,
            status=e.status_code,
            detail=e.detail,
        )
        return PlainTextResponse("Error uploading file.", status_code=500)

    base_url = settings.public_base_url or str(request.base_url)
    public_url = entry.public_url(base_url)
    logger.info(
        "upload_committed",
        path=entry.storage_path,
        original_name=normalize_filename(upload.original_name),
        size=upload.size,
        content_type=upload.content_type,
    )

    return templates.TemplateResponse(
        request,
        "upload_success.html",
        {
            "public_url": public_url,
            "filename": entry.filename,
            "original_name": upload.original_name,
            "size": upload.size,
        },
    )


# --- read-through proxy for stored files ---
@router.get("/files/{file_path:path}")
async def read_file(
    file_path: str,
    settings: Settings = Depends(get_app_settings),
    client: GitHubContentsClient = Depends(get_contents_client),
):
    file_path = file_path.strip("/")
    if not file_path:
        return PlainTextResponse("File path is required.", status_code=400)
    if ".." in file_path.split("/"):
        return PlainTextResponse("Invalid file path.", status_code=400)

    storage_path = add_prefix(file_path, settings.upload_prefix)
    try:
        stored = await fetch_stored_file(client, storage_path)
    except GitHubAPIError as e:
        logger.error("github_fetch_failed", path=storage_path, status=e.status_code, detail=e.detail)
        return PlainTextResponse("Error fetching file.", status_code=500)

    if stored is None:
        logger.info("file_not_found", path=storage_path)
        return PlainTextResponse("File not found.", status_code=404)

    content_type = guess_content_type(file_path)
    if content_type == DEFAULT_CONTENT_TYPE and stored.content_type:
        content_type = stored.content_type

    headers = {"Cache-Control": f"public, max-age={settings.cache_max_age}"}
    if stored.chunks is not None:
        return StreamingResponse(
            stored.chunks,
            media_type=content_type,
            headers=headers,
            background=BackgroundTask(stored.aclose),
        )
    return Response(content=stored.data, media_type=content_type, headers=headers)
