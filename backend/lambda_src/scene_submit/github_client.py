from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlsplit

import requests

logger = logging.getLogger(__name__)

USER_AGENT = "Bleepr-Worker/1.0"
GITHUB_MEDIA_TYPE = "application/vnd.github+json"
GITHUB_API_VERSION = "2022-11-28"


class GitHubApiError(RuntimeError):
    """Raised when a GitHub API call fails or returns a non-2xx status."""

    def __init__(
        self,
        status_code: Optional[int],
        body: Any,
        method: str = "GET",
        url: str = "",
    ) -> None:
        self.status_code = status_code
        self.body = body
        self.method = method
        self.url = url
        super().__init__(self._format())

    def _format(self) -> str:
        detail = self.body if isinstance(self.body, str) else json.dumps(self.body)
        where = f"{self.method} {urlsplit(self.url).path}" if self.url else self.method
        if self.status_code is None:
            return f"GitHub API request failed on {where}: {detail}"
        return f"GitHub API failed ({self.status_code}) on {where}: {detail}"


class GitHubClient:
    """Single request primitive shared by every GitHub REST call."""

    def __init__(
        self,
        session: requests.Session | None = None,
        base_url: str = "https://api.github.com",
        user_agent: str = USER_AGENT,
        request_timeout: float = 30.0,
    ) -> None:
        self._session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent
        self.request_timeout = request_timeout

    def request(
        self,
        token: str,
        url: str,
        *,
        method: str = "GET",
        json_body: Optional[Mapping[str, Any]] = None,
        params: Optional[Mapping[str, str]] = None,
    ) -> Any:
        target = self._absolute(url)
        headers = self._headers(token, has_body=json_body is not None)
        data = json.dumps(json_body) if json_body is not None else None
        try:
            response = self._session.request(
                method,
                target,
                headers=headers,
                data=data,
                params=params,
                timeout=self.request_timeout,
            )
        except requests.RequestException as exc:
            logger.warning("GitHub %s %s failed: %s", method, urlsplit(target).path, exc)
            raise GitHubApiError(None, str(exc), method=method, url=target) from exc

        body = self._parse_body(response.text)
        if not 200 <= response.status_code < 300:
            logger.warning(
                "GitHub %s %s returned %s", method, urlsplit(target).path, response.status_code
            )
            raise GitHubApiError(response.status_code, body, method=method, url=target)

        logger.info("GitHub %s %s -> %s", method, urlsplit(target).path, response.status_code)
        return body

    # ------------------------------------------------------------------
    def _absolute(self, url: str) -> str:
        if url.startswith(("https://", "http://")):
            return url
        return f"{self.base_url}/{url.lstrip('/')}"

    def _headers(self, token: str, has_body: bool) -> Dict[str, str]:
        headers = {
            "User-Agent": self.user_agent,
            "Accept": GITHUB_MEDIA_TYPE,
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
            "Authorization": f"Bearer {token}",
        }
        if has_body:
            headers["Content-Type"] = "application/json"
        return headers

    @staticmethod
    def _parse_body(text: str) -> Any:
        if not text:
            return None
        try:
            return json.loads(text)
        except ValueError:
            return text
