import base64
from typing import Any, Dict
from urllib.parse import quote

import httpx
import structlog

from app.core.config import Settings
from app.core.exceptions import GitHubAPIError

logger = structlog.get_logger(__name__)

API_VERSION = "2022-11-28"
RAW_MEDIA_TYPE = "application/vnd.github.raw"
JSON_MEDIA_TYPE = "application/vnd.github+json"


# Commits and reads single files of one repository and branch
class GitHubContentsClient:
    def __init__(self, settings: Settings, http: httpx.AsyncClient):
        self.settings = settings
        self.http = http
        self.base_url = (
            f"{settings.github_api_url.rstrip('/')}"
            f"/repos/{settings.github_owner}/{settings.github_repo}/contents"
        )

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{quote(path.lstrip('/'), safe='/')}"

    def _headers(self, accept: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.github_token}",
            "Accept": accept,
            "X-GitHub-Api-Version": API_VERSION,
        }

    async def _request(
        self, method: str, path: str, accept: str, stream: bool = False, **kwargs
    ) -> httpx.Response:
        request = self.http.build_request(method, self._url(path), headers=self._headers(accept), **kwargs)
        try:
            return await self.http.send(request, stream=stream)
        except httpx.HTTPError as e:
            raise GitHubAPIError(str(e)) from e

    # --- write ---

    async def put_file(self, path: str, content: bytes, message: str) -> Dict[str, Any]:
        payload = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
            "branch": self.settings.github_branch,
        }
        response = await self._request("PUT", path, JSON_MEDIA_TYPE, json=payload)
        if not response.is_success:
            raise GitHubAPIError(response.text, status_code=response.status_code)
        return response.json()

    # --- read ---

    async def get_raw(self, path: str) -> httpx.Response | None:
        # The body is left unread; the caller streams it and closes the response
        response = await self._request(
            "GET", path, RAW_MEDIA_TYPE, stream=True, params={"ref": self.settings.github_branch}
        )
        if not response.is_success:
            await response.aclose()
            logger.info("github_raw_miss", path=path, status=response.status_code)
            return None
        return response

    async def get_metadata(self, path: str) -> Dict[str, Any] | None:
        response = await self._request(
            "GET", path, JSON_MEDIA_TYPE, params={"ref": self.settings.github_branch}
        )
        if not response.is_success:
            logger.info("github_metadata_miss", path=path, status=response.status_code)
            return None
        try:
            body = response.json()
        except ValueError:
            logger.warning("github_metadata_invalid_json", path=path)
            return None
        # A directory listing comes back as a JSON array
        if not isinstance(body, dict):
            return None
        return body
