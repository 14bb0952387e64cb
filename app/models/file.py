# app/models/file.py
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable


@dataclass
class UploadedFile:
    original_name: str   # Name the client uploaded
    data: bytes
    content_type: str    # Inferred from the original name

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class StorageEntry:
    identifier: str      # Public identifier, e.g. "aZ3k9Q"
    extension: str       # ".png", or "" when unknown
    prefix: str          # Internal storage prefix in the repo
    branch: str

    @property
    def filename(self) -> str:
        return f"{self.identifier}{self.extension}"

    @property
    def storage_path(self) -> str:
        return f"{self.prefix}/{self.filename}"

    def public_url(self, base_url: str) -> str:
        return f"{base_url.rstrip('/')}/files/{self.filename}"


@dataclass
class StoredContent:
    data: bytes = b""
    content_type: str | None = None  # Type hint reported upstream, if any

    # Set instead of data when the body is streamed from upstream
    chunks: AsyncIterator[bytes] | None = None
    aclose: Callable[[], Awaitable[None]] | None = None

    async def read(self) -> bytes:
        if self.chunks is None:
            return self.data
        try:
            return b"".join([chunk async for chunk in self.chunks])
        finally:
            await self.aclose()
