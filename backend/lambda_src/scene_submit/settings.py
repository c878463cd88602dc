from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

from common.ssm import resolve_secret


@dataclass(frozen=True)
class SubmissionLimits:
    schema_version: int = 2
    max_scenes: int = 2500
    scene_path_prefix: str = "scenejsons/"
    scene_path_suffix: str = ".json"
    max_scene_path_length: int = 180
    max_payload_bytes: int = 900_000


@dataclass(frozen=True)
class RepositoryTarget:
    owner: str = "MagicWagon"
    repo: str = "scene-lists"
    index_path: str = "index.json"
    branch_prefix: str = "bleepr/upload"

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def repo_path(self, suffix: str = "") -> str:
        base = f"/repos/{self.owner}/{self.repo}"
        if not suffix:
            return base
        return f"{base}/{suffix.lstrip('/')}"

    def branch_name(self, imdb_id: str, timestamp_ms: int) -> str:
        return f"{self.branch_prefix}/{imdb_id}/{timestamp_ms}"


@dataclass(frozen=True)
class SubmitSettings:
    app_id: str = ""
    installation_id: str = ""
    private_key: str = field(default="", repr=False)
    submit_key: str = field(default="", repr=False)
    api_base_url: str = "https://api.github.com"
    request_timeout: float = 30.0
    target: RepositoryTarget = field(default_factory=RepositoryTarget)
    limits: SubmissionLimits = field(default_factory=SubmissionLimits)

    @classmethod
    def from_env(cls, ssm_client: Any = None) -> "SubmitSettings":
        return cls(
            app_id=os.environ.get("GITHUB_APP_ID", "").strip(),
            installation_id=os.environ.get("GITHUB_INSTALLATION_ID", "").strip(),
            private_key=resolve_secret(
                os.environ.get("GITHUB_PRIVATE_KEY_PEM"),
                os.environ.get("GITHUB_PRIVATE_KEY_PARAMETER"),
                client=ssm_client,
            ),
            submit_key=resolve_secret(
                os.environ.get("BLEEPR_SUBMIT_KEY"),
                os.environ.get("BLEEPR_SUBMIT_KEY_PARAMETER"),
                client=ssm_client,
            ).strip(),
            api_base_url=os.environ.get("GITHUB_API_URL", "https://api.github.com"),
            request_timeout=float(os.environ.get("GITHUB_REQUEST_TIMEOUT", "30")),
            target=RepositoryTarget(
                owner=os.environ.get("SCENES_REPO_OWNER", "MagicWagon"),
                repo=os.environ.get("SCENES_REPO_NAME", "scene-lists"),
                index_path=os.environ.get("SCENES_INDEX_PATH", "index.json"),
            ),
        )
