"""Naming, path mapping and read-back of stored uploads.

Public filenames look like ``aZ3k9Q.png``; the same file lives in the
repository at ``<prefix>/aZ3k9Q.png``. The mapping is plain prefix
concatenation, so the public filename alone is enough to find the file.
"""
import base64
import binascii
import mimetypes
import re
import secrets
import string
from pathlib import PurePosixPath
from typing import Awaitable, Callable, Sequence

import structlog

from app.core.config import Settings
from app.models.file import StorageEntry, StoredContent, UploadedFile
from app.services.github import GitHubContentsClient

logger = structlog.get_logger(__name__)

ALPHABET = string.ascii_letters + string.digits
DEFAULT_CONTENT_TYPE = "application/octet-stream"

_SUFFIX_RE = re.compile(r"\.[a-z0-9]{1,10}")
_WHITESPACE_RE = re.compile(r"\s+")

# mimetypes reports compression as an encoding rather than a type
ENCODING_TYPES = {
    "gzip": "application/gzip",
    "bzip2": "application/x-bzip2",
    "xz": "application/x-xz",
    "br": "application/x-brotli",
    "compress": "application/x-compress",
}


def generate_identifier(length: int = 6) -> str:
    # No collision check. GitHub rejects a PUT to an existing path that carries
    # no sha, so a repeated identifier fails that upload instead of overwriting.
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


def normalize_filename(name: str) -> str:
    return _WHITESPACE_RE.sub("_", name)


def guess_content_type(name: str) -> str:
    content_type, encoding = mimetypes.guess_type(name)
    if encoding:
        return ENCODING_TYPES.get(encoding, DEFAULT_CONTENT_TYPE)
    return content_type or DEFAULT_CONTENT_TYPE


def extension_for(name: str, content_type: str) -> str:
    """Pick the stored extension for an upload.

    The original suffix is kept when it is short, alphanumeric and maps to a
    known type, compressed suffixes such as ``.gz`` included. Otherwise the
    extension registered for ``content_type`` is used, and an unknown type
    gets no extension at all.
    """
    suffix = PurePosixPath(name).suffix.lower()
    if _SUFFIX_RE.fullmatch(suffix) and guess_content_type(f"file{suffix}") != DEFAULT_CONTENT_TYPE:
        return suffix
    if content_type == DEFAULT_CONTENT_TYPE:
        return ""
    return mimetypes.guess_extension(content_type) or ""


def build_entry(upload: UploadedFile, settings: Settings) -> StorageEntry:
    return StorageEntry(
        identifier=generate_identifier(settings.identifier_length),
        extension=extension_for(upload.original_name, upload.content_type),
        prefix=settings.upload_prefix,
        branch=settings.github_branch,
    )


def add_prefix(path: str, prefix: str) -> str:
    path = path.lstrip("/")
    if path.startswith(f"{prefix}/"):
        return path
    return f"{prefix}/{path}"


def strip_prefix(path: str, prefix: str) -> str:
    path = path.lstrip("/")
    if path.startswith(f"{prefix}/"):
        return path[len(prefix) + 1:]
    return path


# --- read-back strategies, tried in order ---

FetchStrategy = Callable[[GitHubContentsClient, str], Awaitable[StoredContent | None]]


async def fetch_raw(client: GitHubContentsClient, storage_path: str) -> StoredContent | None:
    response = await client.get_raw(storage_path)
    if response is None:
        return None
    return StoredContent(chunks=response.aiter_bytes(), aclose=response.aclose)


async def fetch_encoded(client: GitHubContentsClient, storage_path: str) -> StoredContent | None:
    metadata = await client.get_metadata(storage_path)
    if metadata is None or not isinstance(metadata.get("content"), str):
        return None

    encoding = metadata.get("encoding") or "base64"
    if encoding != "base64":
        # GitHub reports "none" for files too large to inline
        logger.warning("unsupported_content_encoding", path=storage_path, encoding=encoding)
        return None
    try:
        # GitHub wraps the payload in newlines; anything else outside the alphabet is corrupt
        data = base64.b64decode("".join(metadata["content"].split()), validate=True)
    except (binascii.Error, ValueError):
        logger.warning("invalid_encoded_content", path=storage_path)
        return None
    return StoredContent(data=data, content_type=metadata.get("content_type"))


FETCH_STRATEGIES: Sequence[FetchStrategy] = (fetch_raw, fetch_encoded)


async def fetch_stored_file(
    client: GitHubContentsClient,
    storage_path: str,
    strategies: Sequence[FetchStrategy] = FETCH_STRATEGIES,
) -> StoredContent | None:
    for strategy in strategies:
        stored = await strategy(client, storage_path)
        if stored is not None:
            return stored
    return None
