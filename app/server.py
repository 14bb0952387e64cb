"""Process entry point: serves the relay over plaintext or TLS.

With a key and certificate on disk the app is served over TLS and the
plaintext port only redirects to it. Without them the app is served over
plaintext, unless ``REQUIRE_TLS`` is set, in which case startup fails.
"""
import asyncio
import sys
from pathlib import Path

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import RedirectResponse
from pydantic import ValidationError

from app.core.config import Settings, get_settings
from app.core.exceptions import TLSConfigurationError
from app.core.logging import setup_logging
from app.main import create_app

logger = structlog.get_logger(__name__)

REDIRECT_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def resolve_tls(settings: Settings) -> tuple[str, str] | None:
    # (keyfile, certfile) when both exist; raises when TLS is required without them
    key = Path(settings.ssl_key_path)
    cert = Path(settings.ssl_cert_path)
    if key.is_file() and cert.is_file():
        return str(key), str(cert)
    if settings.require_tls:
        raise TLSConfigurationError(
            f"TLS is required but {key} or {cert} was not found"
        )
    return None


def https_url(request: Request, https_port: int) -> str:
    host = request.url.hostname or "localhost"
    netloc = host if https_port == 443 else f"{host}:{https_port}"
    url = f"https://{netloc}{request.url.path}"
    if request.url.query:
        url = f"{url}?{request.url.query}"
    return url


def create_redirect_app(settings: Settings) -> FastAPI:
    app = FastAPI(openapi_url=None, docs_url=None, redoc_url=None)

    @app.api_route("/{path:path}", methods=REDIRECT_METHODS)
    def redirect_to_https(request: Request):
        # 308 keeps the method and body, so form posts survive the redirect
        return RedirectResponse(https_url(request, settings.https_port), status_code=308)

    return app


async def serve(settings: Settings, tls: tuple[str, str] | None) -> None:
    app = create_app(settings)

    if tls is None:
        logger.warning("tls_disabled", reason="certificate not found", port=settings.http_port)
        config = uvicorn.Config(app, host=settings.host, port=settings.http_port, log_config=None)
        await uvicorn.Server(config).serve()
        return

    keyfile, certfile = tls
    https_config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.https_port,
        ssl_keyfile=keyfile,
        ssl_certfile=certfile,
        log_config=None,
    )
    redirect_config = uvicorn.Config(
        create_redirect_app(settings),
        host=settings.host,
        port=settings.http_port,
        log_config=None,
    )
    logger.info("tls_enabled", https_port=settings.https_port, redirect_port=settings.http_port)
    await asyncio.gather(
        uvicorn.Server(https_config).serve(),
        uvicorn.Server(redirect_config).serve(),
    )


def main() -> None:
    setup_logging()
    try:
        settings = get_settings()
    except ValidationError as e:
        logger.error("invalid_configuration", errors=e.errors(include_url=False))
        sys.exit(1)
    try:
        tls = resolve_tls(settings)
    except TLSConfigurationError as e:
        logger.error("tls_configuration_error", detail=str(e))
        sys.exit(1)
    asyncio.run(serve(settings, tls))


if __name__ == "__main__":
    main()
