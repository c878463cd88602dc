from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional
from urllib.parse import quote

import requests

from common.time_utils import epoch_millis, utc_now
from scene_submit.github_auth import GitHubAppCredentials
from scene_submit.github_client import GitHubApiError, GitHubClient
from scene_submit.models import IndexDocument, IndexEntry, SubmissionRequest
from scene_submit.settings import RepositoryTarget, SubmitSettings

logger = logging.getLogger(__name__)


class SubmissionError(RuntimeError):
    """Raised when a repository step fails after the token was minted."""

    code = "github_error"

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


@dataclass(frozen=True)
class SubmissionResult:
    pr_url: str
    branch: str


def encode_content(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def decode_content(encoded: str) -> str:
    cleaned = "".join(encoded.split())
    if not cleaned:
        return ""
    try:
        return base64.b64decode(cleaned).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return ""


class SubmissionWorkflow:
    """Records one scene list in the content repository through a pull request.

    Every write lands on a branch created for this submission alone; the
    default branch is only read. Steps run in order and the first failure
    aborts the run. Whatever was already created remotely (branch, commits)
    is left in place.
    """

    def __init__(
        self,
        credentials: GitHubAppCredentials,
        client: GitHubClient,
        target: RepositoryTarget | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._credentials = credentials
        self._client = client
        self._target = target or RepositoryTarget()
        self._clock = clock

    @classmethod
    def from_settings(
        cls, settings: SubmitSettings, session: requests.Session | None = None
    ) -> "SubmissionWorkflow":
        client = GitHubClient(
            session=session,
            base_url=settings.api_base_url,
            request_timeout=settings.request_timeout,
        )
        credentials = GitHubAppCredentials(
            app_id=settings.app_id,
            installation_id=settings.installation_id,
            private_key=settings.private_key,
            client=client,
        )
        return cls(credentials=credentials, client=client, target=settings.target)

    def submit(self, request: SubmissionRequest) -> SubmissionResult:
        token = self._credentials.mint_installation_token()
        try:
            return self._run_steps(token, request)
        except GitHubApiError as exc:
            raise SubmissionError(str(exc), status_code=exc.status_code, body=exc.body) from exc

    # ------------------------------------------------------------------
    def _run_steps(self, token: str, request: SubmissionRequest) -> SubmissionResult:
        scene_list = request.scene_list
        base_branch = self._default_branch(token)
        base_sha = self._branch_sha(token, base_branch)

        branch = self._target.branch_name(scene_list.imdb_id, epoch_millis(self._clock()))
        self._create_branch(token, branch, base_sha)
        logger.info("Created branch %s from %s@%s", branch, base_branch, base_sha)

        self._write_scene_file(token, request, branch)

        index = self._read_index(token, branch)
        index.append(IndexEntry.from_request(request))
        self._write_index(token, request, branch, index)

        pr_url = self._open_pull_request(token, request, branch, base_branch)
        logger.info("Opened pull request %s for %s", pr_url, scene_list.imdb_id)
        return SubmissionResult(pr_url=pr_url, branch=branch)

    def _default_branch(self, token: str) -> str:
        info = self._client.request(token, self._target.repo_path())
        default_branch = info.get("default_branch") if isinstance(info, dict) else None
        return str(default_branch or "main")

    def _branch_sha(self, token: str, branch: str) -> str:
        ref = self._client.request(
            token, self._target.repo_path(f"git/ref/heads/{quote(branch, safe='')}")
        )
        sha = ""
        if isinstance(ref, dict) and isinstance(ref.get("object"), dict):
            sha = str(ref["object"].get("sha") or "")
        if not sha:
            raise SubmissionError("Missing base SHA.", body=ref)
        return sha

    def _create_branch(self, token: str, branch: str, sha: str) -> None:
        self._client.request(
            token,
            self._target.repo_path("git/refs"),
            method="POST",
            json_body={"ref": f"refs/heads/{branch}", "sha": sha},
        )

    def _write_scene_file(self, token: str, request: SubmissionRequest, branch: str) -> None:
        scene_list = request.scene_list
        self._client.request(
            token,
            self._contents_path(request.scene_path),
            method="PUT",
            json_body={
                "message": f"Add scene list for {scene_list.display_name} ({scene_list.imdb_id})",
                "content": encode_content(scene_list.to_document()),
                "branch": branch,
            },
        )

    def _read_index(self, token: str, branch: str) -> IndexDocument:
        try:
            data = self._client.request(
                token,
                self._contents_path(self._target.index_path),
                params={"ref": branch},
            )
        except GitHubApiError as exc:
            if exc.status_code == 404:
                logger.info("No %s on %s; starting a new index", self._target.index_path, branch)
                return IndexDocument.empty()
            raise
        if not isinstance(data, dict):
            return IndexDocument.empty()
        sha = str(data.get("sha") or "")
        encoded = str(data.get("content") or "")
        if sha and not encoded.strip():
            logger.warning(
                "%s on %s has sha %s but no inline content (size %s); rewriting from an empty index",
                self._target.index_path,
                branch,
                sha,
                data.get("size"),
            )
        return IndexDocument.from_text(decode_content(encoded), sha=sha)

    def _write_index(
        self, token: str, request: SubmissionRequest, branch: str, index: IndexDocument
    ) -> None:
        scene_list = request.scene_list
        body = {
            "message": f"Update index for {scene_list.display_name} ({scene_list.imdb_id})",
            "content": encode_content(index.to_text()),
            "branch": branch,
        }
        if index.sha:
            body["sha"] = index.sha
        self._client.request(
            token,
            self._contents_path(self._target.index_path),
            method="PUT",
            json_body=body,
        )

    def _open_pull_request(
        self, token: str, request: SubmissionRequest, branch: str, base_branch: str
    ) -> str:
        scene_list = request.scene_list
        pr = self._client.request(
            token,
            self._target.repo_path("pulls"),
            method="POST",
            json_body={
                "title": f"Add scene list: {scene_list.display_name} ({scene_list.imdb_id})",
                "head": f"{self._target.owner}:{branch}",
                "base": base_branch,
                "body": (
                    f"IMDb: {scene_list.imdb_id}\n"
                    f"Path: {request.scene_path}\n"
                    f"Created: {scene_list.created_at}\n"
                ),
            },
        )
        pr_url = str(pr.get("html_url") or "").strip() if isinstance(pr, dict) else ""
        if not pr_url:
            raise SubmissionError("PR created but missing html_url.", body=pr)
        return pr_url

    def _contents_path(self, path: str) -> str:
        return self._target.repo_path(f"contents/{quote(path, safe='/')}")
